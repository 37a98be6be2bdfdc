"""
Cart state

The cart is a client-side list of product snapshots with quantities, stored
under the `cart` key. Every mutation is synchronous and checked against the
last known stock of the product; nothing here talks to the server.
"""
from typing import Callable, Iterable, List, Optional

from pydantic import BaseModel, Field

from notices import Notices
from records import CartItem, Product
from storage import LocalStorage

STORAGE_KEY = "cart"


class PriceChange(BaseModel):
    name: str
    old_price: float
    new_price: float


class CartValidation(BaseModel):
    removed_items: List[str] = Field(default_factory=list)
    price_changes: List[PriceChange] = Field(default_factory=list)
    stock_issues: List[str] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.removed_items or self.price_changes or self.stock_issues)

    def message(self) -> str:
        lines = ["Cart has been updated. Please review before proceeding.", ""]
        if self.removed_items:
            lines.append(f"Removed items: {', '.join(self.removed_items)}")
        if self.price_changes:
            lines.append("Price changes:")
            lines.extend(f"{pc.name}: \u20b9{pc.old_price:g} \u2192 \u20b9{pc.new_price:g}" for pc in self.price_changes)
        if self.stock_issues:
            lines.append("Stock issues:")
            lines.extend(self.stock_issues)
        return "\n".join(lines)


class Cart:
    def __init__(self, storage: LocalStorage, notices: Notices, lookup: Optional[Callable[[str], Optional[Product]]] = None):
        self.storage = storage
        self.notices = notices
        # Latest catalog snapshot for a product id, if the catalog has one
        self.lookup = lookup
        self.items: List[CartItem] = [CartItem(**raw) for raw in storage.get(STORAGE_KEY, [])]

    def _save(self):
        self.storage.set(STORAGE_KEY, [item.model_dump(mode="json") for item in self.items])

    def find(self, product_id: str) -> Optional[CartItem]:
        return next((item for item in self.items if item.product_id == product_id), None)

    @property
    def count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def subtotal(self) -> float:
        return sum(item.line_total for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def snapshot(self) -> List[CartItem]:
        return [item.model_copy(deep=True) for item in self.items]

    def add(self, product: Product, quantity: int = 1) -> bool:
        if not product.is_available:
            self.notices.error("Error", f"{product.name} is out of stock.")
            return False
        if quantity < 1:
            self.notices.error("Error", "Quantity must be at least 1.")
            return False

        existing = self.find(product.id)
        if existing:
            new_quantity = existing.quantity + quantity
            if new_quantity > product.stock_quantity:
                self.notices.error("Error", f"Cannot add more than {product.stock_quantity} items.")
                return False
            existing.quantity = new_quantity
        else:
            if quantity > product.stock_quantity:
                self.notices.error("Error", f"Only {product.stock_quantity} items in stock.")
                return False
            self.items.append(CartItem(product=product.model_copy(deep=True), quantity=quantity))
        self._save()
        self.notices.success("Success", f"{product.name} added to cart")
        return True

    def update(self, product_id: str, quantity: int) -> bool:
        if quantity <= 0:
            return self.remove(product_id)
        item = self.find(product_id)
        if item is None:
            return False
        latest = self.lookup(product_id) if self.lookup else None
        ceiling = (latest or item.product).stock_quantity
        if quantity > ceiling:
            self.notices.error("Error", f"Only {ceiling} items available in stock.")
            return False
        item.quantity = quantity
        self._save()
        return True

    def remove(self, product_id: str) -> bool:
        self.items = [item for item in self.items if item.product_id != product_id]
        self._save()
        self.notices.success("Success", "Item removed from cart")
        return True

    def clear(self):
        self.items = []
        self._save()

    def validate(self, products: Iterable[Product]) -> CartValidation:
        """Re-check every line against fresh product data before checkout"""
        fresh = {p.id: p for p in products}
        report = CartValidation()
        kept: List[CartItem] = []
        for item in self.items:
            current = fresh.get(item.product_id)
            if current is None or not current.is_available:
                report.removed_items.append(item.product.name)
                continue
            if current.price != item.product.price:
                report.price_changes.append(PriceChange(name=current.name, old_price=item.product.price, new_price=current.price))
            if item.quantity > current.stock_quantity:
                report.stock_issues.append(f"Only {current.stock_quantity} of {current.name} available; quantity reduced.")
                item.quantity = current.stock_quantity
            item.product = current.model_copy(deep=True)
            kept.append(item)
        self.items = kept
        self._save()
        return report

"""
Client-side records

Every JSON payload coming back from the API goes through one of the
`from_api` constructors below, so the rest of the client sees a single shape:
- `_id` or `id` becomes `id`
- camelCase keys (`stockQuantity`, `outOfStock`, ...) are accepted next to snake_case
- a populated `category` object or a bare category id both become `category_id`
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from schemas import Address, ShippingAddress


def _pick(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return default


def _ident(raw: Dict[str, Any]) -> str:
    return str(_pick(raw, "id", "_id", default=""))


class Category(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    order: int = 0
    is_active: bool = True

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Category":
        return cls(
            id=_ident(raw),
            name=raw.get("name", ""),
            description=raw.get("description"),
            image=_pick(raw, "image", "imageUrl", "image_url"),
            order=_pick(raw, "order", default=0),
            is_active=_pick(raw, "is_active", "isActive", default=True),
        )


class ProductImage(BaseModel):
    url: str
    order: int = 0
    is_main: bool = False


class Product(BaseModel):
    id: str
    name: str
    price: float
    original_price: Optional[float] = None
    description: str = ""
    stock_quantity: int = 0
    category_id: str = ""
    image: Optional[str] = None
    images: List[ProductImage] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    view_count: int = 0
    add_to_cart_count: int = 0
    sold_last_24_hours: int = 0
    out_of_stock: bool = False

    @property
    def is_available(self) -> bool:
        return not self.out_of_stock and self.stock_quantity > 0

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Product":
        category = _pick(raw, "category", "category_id", "categoryId", default="")
        if isinstance(category, dict):
            category = _ident(category)

        images = []
        for index, img in enumerate(raw.get("images") or []):
            if isinstance(img, str):
                images.append(ProductImage(url=img, order=index, is_main=index == 0))
            else:
                images.append(ProductImage(
                    url=img.get("url", ""),
                    order=img.get("order", index),
                    is_main=_pick(img, "is_main", "isMain", default=False),
                ))
        image = _pick(raw, "image", "imageUrl", "image_url")
        if not image and images:
            image = next((i.url for i in images if i.is_main), images[0].url)

        return cls(
            id=_ident(raw),
            name=raw.get("name", ""),
            price=_pick(raw, "price", default=0),
            original_price=_pick(raw, "original_price", "originalPrice"),
            description=raw.get("description") or "",
            stock_quantity=_pick(raw, "stock_quantity", "stockQuantity", "stock", default=0),
            category_id=str(category or ""),
            image=image or None,
            images=images,
            tags=raw.get("tags") or [],
            view_count=_pick(raw, "view_count", "viewCount", default=0),
            add_to_cart_count=_pick(raw, "add_to_cart_count", "addToCartCount", default=0),
            sold_last_24_hours=_pick(raw, "sold_last_24_hours", "soldLast24Hours", default=0),
            out_of_stock=_pick(raw, "out_of_stock", "outOfStock", default=False),
        )


class CartItem(BaseModel):
    """A product snapshot taken when it was put in the cart, plus the quantity"""
    product: Product
    quantity: int = Field(..., ge=1)

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


class User(BaseModel):
    id: str
    name: str
    phone: str = ""
    email: Optional[str] = None
    role: str = "user"
    is_banned: bool = False
    addresses: List[Address] = Field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "User":
        role = "admin" if raw.get("isAdmin") or raw.get("role") == "admin" else "user"
        return cls(
            id=_ident(raw),
            name=_pick(raw, "name", "username", default="Unknown"),
            phone=_pick(raw, "phone", "phoneNumber", default=""),
            email=raw.get("email"),
            role=role,
            is_banned=_pick(raw, "is_banned", "isBanned", default=False),
            addresses=[Address(**a) for a in raw.get("addresses") or []],
        )


class OrderLine(BaseModel):
    product_id: str
    name: str
    quantity: int
    price: float
    image: Optional[str] = None


class Order(BaseModel):
    id: str
    customer_name: str
    customer_phone: str
    delivery_method: str = "store_pickup"
    shipping_address: Optional[ShippingAddress] = None
    items: List[OrderLine] = Field(default_factory=list)
    shipping_cost: float = 0
    total: float = 0
    status: str = "New"
    payment_method: str = "COD"
    payment_id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Order":
        address = _pick(raw, "shipping_address", "shippingAddress")
        return cls(
            id=_ident(raw),
            customer_name=_pick(raw, "customer_name", "customerName", default=""),
            customer_phone=_pick(raw, "customer_phone", "customerPhone", default=""),
            delivery_method=_pick(raw, "delivery_method", "deliveryMethod", default="store_pickup"),
            shipping_address=ShippingAddress(**address) if isinstance(address, dict) else None,
            items=[
                OrderLine(
                    product_id=str(_pick(i, "product_id", "productId", "id", default="")),
                    name=i.get("name", ""),
                    quantity=i.get("quantity", 1),
                    price=i.get("price", 0),
                    image=i.get("image"),
                )
                for i in raw.get("items") or []
            ],
            shipping_cost=_pick(raw, "shipping_cost", "shippingCost", default=0),
            total=raw.get("total", 0),
            status=raw.get("status", "New"),
            payment_method=_pick(raw, "payment_method", "paymentMethod", default="COD"),
            payment_id=_pick(raw, "payment_id", "paymentId"),
            created_at=_pick(raw, "created_at", "createdAt"),
        )

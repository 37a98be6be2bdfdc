"""
Checkout and order placement

Validation happens before anything is sent, and a cart-backed order re-reads
every product first: if the cart had to change, nothing is sent. A placed order decrements the
cached stock and clears the cart only after the server accepted it; a failed
request leaves both untouched. Orders carry no idempotency key, so retrying a
request that timed out after the server stored it creates a second order.
"""
import re
from typing import List, Optional

import structlog
from pydantic import BaseModel

from api import ApiClient, ApiError
from cart import Cart
from catalog import Catalog
from notices import Notices
from records import CartItem, Order, Product, User
from schemas import DeliveryMethod, PaymentMethod, ShippingAddress

logger = structlog.get_logger(__name__)

PHONE_RE = re.compile(r"^\d{10}$")
PINCODE_RE = re.compile(r"^\d{6}$")

FREE_SHIPPING_ABOVE = 799
SHIPPING_FEE = 150
ONLINE_PAYMENT_DISCOUNT = 0.05


class CustomerInfo(BaseModel):
    customer_name: str = ""
    customer_phone: str = ""
    delivery_method: DeliveryMethod = "store_pickup"
    shipping_address: Optional[ShippingAddress] = None
    payment_method: PaymentMethod = "COD"
    payment_proof: Optional[str] = None
    payment_id: Optional[str] = None


class Totals(BaseModel):
    subtotal: float
    shipping_cost: float
    discount: float
    total: float


def compute_totals(items: List[CartItem], delivery_method: str, payment_method: str) -> Totals:
    subtotal = sum(item.line_total for item in items)
    shipping = 0.0
    if delivery_method == "home_delivery":
        shipping = 0.0 if subtotal > FREE_SHIPPING_ABOVE else float(SHIPPING_FEE)
    # Discount applies to the subtotal only, never to shipping
    discount = subtotal * ONLINE_PAYMENT_DISCOUNT if payment_method == "Online Payment" else 0.0
    return Totals(
        subtotal=round(subtotal, 2),
        shipping_cost=shipping,
        discount=round(discount, 2),
        total=round(subtotal + shipping - discount, 2),
    )


def validate_checkout(customer: CustomerInfo, items: List[CartItem]) -> Optional[str]:
    """Return the first problem with the checkout form, or None"""
    if not items:
        return "Your cart is empty."
    if not customer.customer_name.strip():
        return "Please enter your Full Name."
    if not customer.customer_phone:
        return "Please enter your Phone Number."
    if not PHONE_RE.match(customer.customer_phone):
        return "Please enter a valid 10-digit Phone Number."
    if customer.delivery_method == "home_delivery":
        address = customer.shipping_address
        if address is None or not address.address_line1.strip():
            return "Please enter Address Line 1."
        if not address.city.strip():
            return "Please enter City."
        if not address.state:
            return "Please select a State."
        if not address.pincode:
            return "Please enter Pincode."
        if not PINCODE_RE.match(address.pincode):
            return "Please enter a valid 6-digit Pincode."
    if customer.payment_method == "Online Payment" and not customer.payment_proof:
        return "Please upload a screenshot of your payment."
    unavailable = [item.product.name for item in items if not item.product.is_available]
    if unavailable:
        return (
            f"The following items are out of stock and cannot be ordered: {', '.join(unavailable)}. "
            "Please remove them from your cart."
        )
    return None


class OrderService:
    def __init__(self, api: ApiClient, cart: Cart, catalog: Catalog, notices: Notices):
        self.api = api
        self.cart = cart
        self.catalog = catalog
        self.notices = notices
        self.orders: List[Order] = []

    def _remember_address(self, user: User, address: ShippingAddress):
        known = any(
            a.address_line1.lower() == address.address_line1.lower()
            and a.pincode == address.pincode
            and a.city.lower() == address.city.lower()
            for a in user.addresses
        )
        if known:
            return
        body = {**address.model_dump(), "is_default": not user.addresses}
        try:
            data = self.api.post(f"/api/users/{user.id}/addresses", json=body)
        except ApiError:
            self.notices.error("Error", "Failed to save address")
            return
        user.addresses = User.from_api({"id": user.id, "name": user.name, "addresses": data}).addresses

    def _fresh_products(self, items: List[CartItem]) -> List[Product]:
        """Current server copy of every product in items; deleted products are left out"""
        fresh = []
        for product_id in dict.fromkeys(item.product_id for item in items):
            try:
                fresh.append(Product.from_api(self.api.get(f"/api/products/{product_id}")))
            except ApiError as e:
                if e.status_code != 404:
                    raise
        return fresh

    def create_order(self, customer: CustomerInfo, items: Optional[List[CartItem]] = None, total: Optional[float] = None, user: Optional[User] = None) -> Optional[Order]:
        from_cart = items is None
        items = self.cart.snapshot() if from_cart else items
        problem = validate_checkout(customer, items)
        if problem:
            self.notices.error("Error", problem)
            return None

        if from_cart:
            try:
                fresh = self._fresh_products(items)
            except ApiError as e:
                self.notices.error("Error", f"Failed to place order: {e.message}")
                return None
            report = self.cart.validate(fresh)
            if report.has_changes:
                logger.info("checkout_cart_changed", removed=len(report.removed_items), price_changes=len(report.price_changes))
                self.notices.error("Error", report.message())
                return None

        totals = compute_totals(items, customer.delivery_method, customer.payment_method)
        if user and customer.delivery_method == "home_delivery":
            self._remember_address(user, customer.shipping_address)

        payload = {
            "customer_name": customer.customer_name.strip(),
            "customer_phone": customer.customer_phone,
            "delivery_method": customer.delivery_method,
            "shipping_address": customer.shipping_address.model_dump() if customer.delivery_method == "home_delivery" else None,
            "items": [
                {
                    "product_id": item.product_id,
                    "name": item.product.name,
                    "quantity": item.quantity,
                    "price": item.product.price,
                    "image": item.product.image,
                }
                for item in items
            ],
            "shipping_cost": totals.shipping_cost,
            "total": totals.total if total is None else total,
            "payment_method": customer.payment_method,
            "payment_proof": customer.payment_proof,
            "payment_id": customer.payment_id,
        }
        try:
            data = self.api.post("/api/orders", json=payload)
        except ApiError as e:
            self.notices.error("Error", f"Failed to place order: {e.message}")
            return None

        order = Order.from_api(data)
        self.catalog.decrement_stock(items)
        self.cart.clear()
        self.orders.insert(0, order)
        logger.info("order_placed", order_id=order.id, total=order.total)
        self.notices.success("Success!", "Order placed successfully!")
        return order

    def fetch_history(self) -> bool:
        try:
            data = self.api.get("/api/orders")
        except ApiError:
            self.notices.error("Error", "Failed to load orders")
            return False
        self.orders = [Order.from_api(o) for o in data or []]
        return True

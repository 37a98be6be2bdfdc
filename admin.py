"""
Admin console

Thin wrappers over the admin API routes. Every call updates the in-memory
catalog, users or orders only after the server accepted it and posts a notice
either way. Server messages are passed through in the error notices.
"""
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog
from pydantic import ValidationError

import csv_io
from api import ApiClient, ApiError
from catalog import Catalog
from notices import Notices
from records import Category, Order, Product, User

logger = structlog.get_logger(__name__)

# Backup columns that must stay strings even when they look like numbers
PRODUCT_TEXT_FIELDS = ("id", "name", "description", "category_id", "image")
CATEGORY_TEXT_FIELDS = ("id", "name", "description", "image")
ORDER_TEXT_FIELDS = ("id", "customer_name", "customer_phone", "payment_id", "created_at")


class AdminConsole:
    def __init__(self, api: ApiClient, catalog: Catalog, notices: Notices):
        self.api = api
        self.catalog = catalog
        self.notices = notices
        self.users: List[User] = []
        self.orders: List[Order] = []

    def _fail(self, action: str, error: ApiError):
        logger.warning("admin_action_failed", action=action, status=error.status_code, error=error.message)
        self.notices.error("Error", f"Failed to {action}: {error.message}")

    # Products
    def _create_product(self, data: Dict[str, Any]) -> Product:
        product = Product.from_api(self.api.post("/api/products", json=data))
        self.catalog.upsert(product)
        return product

    def add_product(self, data: Dict[str, Any]) -> Optional[Product]:
        try:
            product = self._create_product(data)
        except ApiError as e:
            self._fail("add product", e)
            return None
        self.notices.success("Success", f"{product.name} added")
        return product

    def update_product(self, product_id: str, data: Dict[str, Any]) -> Optional[Product]:
        try:
            raw = self.api.put(f"/api/products/{product_id}", json=data)
        except ApiError as e:
            self._fail("update product", e)
            return None
        product = Product.from_api(raw)
        self.catalog.upsert(product)
        self.notices.success("Success", f"{product.name} updated")
        return product

    def delete_product(self, product_id: str) -> bool:
        try:
            self.api.delete(f"/api/products/{product_id}")
        except ApiError as e:
            self._fail("delete product", e)
            return False
        self.catalog.remove(product_id)
        self.notices.success("Success", "Product deleted")
        return True

    # Categories
    def add_category(self, name: str, description: Optional[str] = None, image: Optional[str] = None) -> Optional[Category]:
        try:
            raw = self.api.post("/api/categories", json={"name": name, "description": description, "image": image})
        except ApiError as e:
            self._fail("add category", e)
            return None
        category = Category.from_api(raw)
        self.catalog.upsert_category(category)
        self.notices.success("Success", f"Category {category.name} added")
        return category

    def update_category(self, category_id: str, **changes) -> Optional[Category]:
        try:
            raw = self.api.put(f"/api/categories/{category_id}", json=changes)
        except ApiError as e:
            self._fail("update category", e)
            return None
        category = Category.from_api(raw)
        self.catalog.upsert_category(category)
        self.notices.success("Success", "Category updated")
        return category

    def delete_category(self, category_id: str) -> bool:
        try:
            self.api.delete(f"/api/categories/{category_id}")
        except ApiError as e:
            self._fail("delete category", e)
            return False
        self.catalog.remove_category(category_id)
        self.notices.success("Success", "Category deleted")
        return True

    def reorder_categories(self, category_ids: List[str]) -> bool:
        try:
            raw = self.api.post("/api/categories/reorder", json={"category_ids": category_ids})
        except ApiError as e:
            self._fail("reorder categories", e)
            return False
        self.catalog.categories = [Category.from_api(c) for c in raw or []]
        self.notices.success("Success", "Categories reordered")
        return True

    def toggle_category_active(self, category_id: str) -> Optional[Category]:
        try:
            raw = self.api.patch(f"/api/categories/{category_id}/toggle-active")
        except ApiError as e:
            self._fail("update category", e)
            return None
        category = Category.from_api(raw)
        self.catalog.upsert_category(category)
        state = "activated" if category.is_active else "deactivated"
        self.notices.success("Success", f"Category {category.name} {state}")
        return category

    # Users
    def fetch_users(self) -> bool:
        try:
            raw = self.api.get("/api/users")
        except ApiError as e:
            self._fail("load users", e)
            return False
        self.users = [User.from_api(u) for u in raw or []]
        return True

    def _replace_user(self, user: User):
        self.users = [user if u.id == user.id else u for u in self.users]
        if all(u.id != user.id for u in self.users):
            self.users.append(user)

    def add_user(self, data: Dict[str, Any]) -> Optional[User]:
        try:
            raw = self.api.post("/api/users", json=data)
        except ApiError as e:
            self._fail("add user", e)
            return None
        user = User.from_api(raw)
        self._replace_user(user)
        self.notices.success("Success", f"User {user.name} added")
        return user

    def update_user(self, user_id: str, data: Dict[str, Any]) -> Optional[User]:
        try:
            raw = self.api.put(f"/api/users/{user_id}", json=data)
        except ApiError as e:
            self._fail("update user", e)
            return None
        user = User.from_api(raw)
        self._replace_user(user)
        self.notices.success("Success", "User updated")
        return user

    def ban_user(self, user_id: str, ban: bool = True) -> Optional[User]:
        try:
            raw = self.api.post(f"/api/users/{user_id}/ban", json={"ban": ban})
        except ApiError as e:
            self._fail("ban user" if ban else "unban user", e)
            return None
        user = User.from_api(raw)
        self._replace_user(user)
        self.notices.success("Success", f"User {user.name} {'banned' if ban else 'unbanned'}")
        return user

    def delete_user(self, user_id: str) -> bool:
        try:
            self.api.delete(f"/api/users/{user_id}")
        except ApiError as e:
            self._fail("delete user", e)
            return False
        self.users = [u for u in self.users if u.id != user_id]
        self.notices.success("Success", "User deleted")
        return True

    # Orders
    def fetch_orders(self, status: Optional[str] = None) -> bool:
        try:
            raw = self.api.get("/api/orders", params={"status": status})
        except ApiError as e:
            self._fail("load orders", e)
            return False
        self.orders = [Order.from_api(o) for o in raw or []]
        return True

    def update_order_status(self, order_id: str, status: str) -> Optional[Order]:
        try:
            raw = self.api.put(f"/api/orders/{order_id}", json={"status": status})
        except ApiError as e:
            self._fail("update order", e)
            return None
        order = Order.from_api(raw)
        self.orders = [order if o.id == order.id else o for o in self.orders]
        self.notices.success("Success", f"Order status updated to {order.status}")
        return order

    def delete_order(self, order_id: str) -> bool:
        try:
            self.api.delete(f"/api/orders/{order_id}")
        except ApiError as e:
            self._fail("delete order", e)
            return False
        self.orders = [o for o in self.orders if o.id != order_id]
        self.notices.success("Success", "Order deleted")
        return True

    # CSV
    def import_products_csv(self, text: str) -> Optional[csv_io.CsvImportReport]:
        try:
            report = csv_io.import_products(text, self.catalog.categories, self._create_product)
        except csv_io.CsvFormatError as e:
            self.notices.error("Error", f"Error processing CSV: {e}")
            return None
        self.notices.success("Success", report.summary())
        return report

    def export_products_csv(self) -> Optional[str]:
        if not self.catalog.fetch_all():
            return None
        return csv_io.export_csv([p.model_dump() for p in self.catalog.products])

    def export_categories_csv(self) -> str:
        return csv_io.export_csv([c.model_dump() for c in self.catalog.categories])

    def export_orders_csv(self) -> str:
        return csv_io.export_csv([o.model_dump() for o in self.orders])

    # Restore replaces local state only; nothing is written back to the server
    def _restore(self, label: str, text: str, build: Callable[[Dict[str, Any]], Any], text_fields: Iterable[str]) -> Optional[list]:
        try:
            records = [build(row) for row in csv_io.parse_backup_csv(text, text_fields)]
        except (csv_io.CsvFormatError, ValidationError) as e:
            logger.warning("restore_failed", kind=label, error=str(e))
            self.notices.error("Error", f"Failed to restore {label}. {e}")
            return None
        logger.info("restore_finished", kind=label, records=len(records))
        self.notices.success("Success", f"{label.capitalize()} restored successfully.")
        return records

    def restore_products_csv(self, text: str) -> bool:
        products = self._restore("products", text, Product.from_api, PRODUCT_TEXT_FIELDS)
        if products is None:
            return False
        self.catalog.products = products
        self.catalog.total = len(products)
        self.catalog.has_more = False
        return True

    def restore_categories_csv(self, text: str) -> bool:
        categories = self._restore("categories", text, Category.from_api, CATEGORY_TEXT_FIELDS)
        if categories is None:
            return False
        self.catalog.categories = categories
        return True

    def restore_orders_csv(self, text: str) -> bool:
        orders = self._restore("orders", text, Order.from_api, ORDER_TEXT_FIELDS)
        if orders is None:
            return False
        self.orders = orders
        return True

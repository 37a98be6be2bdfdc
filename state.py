"""
Application state

AppState wires the client components to one API client, one storage file and
one notice queue, and owns the session (current user, token) and the theme.
Handlers receive the AppState and mutate through its components.
"""
from typing import Optional

import structlog

from admin import AdminConsole
from api import ApiClient, ApiError
from cart import Cart
from catalog import Catalog
from checkout import CustomerInfo, OrderService
from notices import Notices
from records import Order, User
from storage import LocalStorage
from wishlist import Wishlist

logger = structlog.get_logger(__name__)

THEMES = ("light", "dark")


class AppState:
    def __init__(self, api: Optional[ApiClient] = None, storage: Optional[LocalStorage] = None, notices: Optional[Notices] = None):
        self.storage = storage or LocalStorage()
        self.notices = notices or Notices()
        self.api = api or ApiClient()

        raw_user = self.storage.get("currentUser")
        self.current_user: Optional[User] = User.from_api(raw_user) if raw_user else None
        self.api.token = self.storage.get("token") or self.api.token

        self.catalog = Catalog(self.api, self.notices)
        self.cart = Cart(self.storage, self.notices, lookup=self.catalog.get)
        self.wishlist = Wishlist(self.api, self.storage, self.notices, user_id=self.current_user.id if self.current_user else None)
        self.orders = OrderService(self.api, self.cart, self.catalog, self.notices)
        self.admin = AdminConsole(self.api, self.catalog, self.notices)

    @property
    def is_admin(self) -> bool:
        return bool(self.current_user and self.current_user.is_admin)

    def set_current_user(self, user: Optional[User], token: Optional[str] = None):
        self.current_user = user
        self.api.token = token
        if user is None:
            self.storage.remove("currentUser")
            self.storage.remove("token")
        else:
            self.storage.set("currentUser", user.model_dump(mode="json"))
            if token:
                self.storage.set("token", token)
        self.wishlist.set_user(user.id if user else None)

    # Session
    def register(self, name: str, email: str, password: str, phone: str) -> bool:
        try:
            data = self.api.post("/api/auth/register", json={"name": name, "email": email, "password": password, "phone": phone})
        except ApiError as e:
            self.notices.error("Registration failed", e.message)
            return False
        self.notices.success("Success", data.get("message", "Registered"))
        return True

    def login(self, email: str, password: str) -> Optional[User]:
        try:
            data = self.api.post("/api/auth/login", json={"email": email, "password": password})
        except ApiError as e:
            self.notices.error("Login failed", e.message)
            return None
        user = User.from_api(data["user"])
        self.set_current_user(user, data["token"])
        logger.info("logged_in", user_id=user.id, role=user.role)
        self.notices.success("Success", f"Welcome back, {user.name}!")
        return user

    def logout(self):
        self.set_current_user(None)
        self.notices.info("Info", "You have been logged out")

    def place_order(self, customer: CustomerInfo) -> Optional[Order]:
        return self.orders.create_order(customer, user=self.current_user)

    # Theme
    @property
    def theme(self) -> str:
        theme = self.storage.get("theme", "light")
        return theme if theme in THEMES else "light"

    def toggle_theme(self) -> str:
        theme = "dark" if self.theme == "light" else "light"
        self.storage.set("theme", theme)
        return theme

    def bootstrap(self) -> bool:
        """Initial load: categories, first product page, new arrivals and the wishlist"""
        ok = self.catalog.fetch_categories()
        ok = self.catalog.fetch_products(1) and ok
        ok = self.catalog.fetch_new_arrivals() and ok
        if self.current_user:
            ok = self.wishlist.refresh() and ok
        return ok

"""
Wishlist

Anonymous users keep product ids in client storage only. Once a user id is
set, each mutation is applied locally first and then sent to the server; if
the server call fails the local state is restored from the snapshot taken
before the mutation.
"""
from typing import Callable, List, Optional

import structlog

from api import ApiClient, ApiError
from notices import Notices
from records import Product
from storage import LocalStorage

logger = structlog.get_logger(__name__)

STORAGE_KEY = "wishlist"


class Wishlist:
    def __init__(self, api: ApiClient, storage: LocalStorage, notices: Notices, user_id: Optional[str] = None):
        self.api = api
        self.storage = storage
        self.notices = notices
        self.user_id = user_id
        self.ids: List[str] = list(storage.get(STORAGE_KEY, []))
        self.products: List[Product] = []

    @property
    def authenticated(self) -> bool:
        return bool(self.user_id)

    def _save(self):
        self.storage.set(STORAGE_KEY, self.ids)

    def contains(self, product_id: str) -> bool:
        return product_id in self.ids

    def set_user(self, user_id: Optional[str]) -> bool:
        self.user_id = user_id
        if user_id:
            return self.refresh()
        return True

    def refresh(self) -> bool:
        """Replace local state with the server copy"""
        if not self.authenticated:
            return False
        try:
            data = self.api.get("/api/wishlist", params={"userId": self.user_id})
        except ApiError:
            self.notices.error("Error", "Failed to load wishlist")
            return False
        items = data.get("items", [])
        self.ids = [str(i.get("product_id")) for i in items]
        self.products = [Product.from_api(i["product"]) for i in items if isinstance(i.get("product"), dict)]
        self._save()
        return True

    def _apply(self, mutate: Callable[[], None], confirm: Callable[[], object], success: str, failure: str) -> bool:
        saved_ids, saved_products = list(self.ids), list(self.products)
        mutate()
        self._save()
        if not self.authenticated:
            self.notices.success("Success", success)
            return True
        try:
            confirm()
        except ApiError as e:
            self.ids, self.products = saved_ids, saved_products
            self._save()
            logger.warning("wishlist_rolled_back", user_id=self.user_id, status=e.status_code, error=e.message)
            self.notices.error("Error", failure)
            return False
        self.notices.success("Success", success)
        return True

    def add(self, product: Product) -> bool:
        if self.contains(product.id):
            self.notices.info("Info", "Product already in wishlist")
            return False

        def mutate():
            self.ids.append(product.id)
            self.products.append(product)

        return self._apply(
            mutate,
            lambda: self.api.post("/api/wishlist/add", json={"user_id": self.user_id, "product_id": product.id}),
            "Added to wishlist",
            "Failed to add to wishlist",
        )

    def remove(self, product_id: str) -> bool:
        def mutate():
            self.ids = [i for i in self.ids if i != product_id]
            self.products = [p for p in self.products if p.id != product_id]

        return self._apply(
            mutate,
            lambda: self.api.delete("/api/wishlist/remove", json={"user_id": self.user_id, "product_id": product_id}),
            "Removed from wishlist",
            "Failed to remove from wishlist",
        )

    def clear(self) -> bool:
        def mutate():
            self.ids = []
            self.products = []

        return self._apply(
            mutate,
            lambda: self.api.delete("/api/wishlist/clear", json={"user_id": self.user_id}),
            "Wishlist cleared",
            "Failed to clear wishlist",
        )

    def toggle(self, product: Product) -> bool:
        # Decided on local membership only
        if self.contains(product.id):
            return self.remove(product.id)
        return self.add(product)

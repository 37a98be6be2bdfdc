"""
Catalog store

Holds the products and categories the client last fetched. Page 1 of a listing
replaces the in-memory products, later pages are appended (infinite scroll).
Nothing is invalidated automatically: callers refetch on pull-to-refresh or
when the category filter changes.
"""
from typing import Dict, Iterable, List, Optional

import structlog

from api import ApiClient, ApiError
from notices import Notices
from records import CartItem, Category, Product

logger = structlog.get_logger(__name__)

PAGE_SIZE = 20
ADMIN_FETCH_LIMIT = 1000


class Catalog:
    def __init__(self, api: ApiClient, notices: Notices, page_size: int = PAGE_SIZE):
        self.api = api
        self.notices = notices
        self.page_size = page_size
        self.products: List[Product] = []
        self.categories: List[Category] = []
        self.new_arrivals: List[Product] = []
        self.page = 0
        self.total = 0
        self.has_more = False
        self.category: Optional[str] = None
        self.search: Optional[str] = None

    # Categories
    def fetch_categories(self) -> bool:
        try:
            data = self.api.get("/api/categories")
        except ApiError:
            self.notices.error("Error", "Failed to load categories from server")
            return False
        self.categories = [Category.from_api(c) for c in data or []]
        return True

    def category_by_name(self, name: str) -> Optional[Category]:
        wanted = (name or "").strip().lower()
        return next((c for c in self.categories if c.name.lower() == wanted), None)

    def upsert_category(self, category: Category):
        for index, existing in enumerate(self.categories):
            if existing.id == category.id:
                self.categories[index] = category
                return
        self.categories.append(category)

    def remove_category(self, category_id: str):
        self.categories = [c for c in self.categories if c.id != category_id]

    # Products
    def fetch_products(self, page: int = 1, category: Optional[str] = None, search: Optional[str] = None, limit: Optional[int] = None) -> bool:
        limit = limit or self.page_size
        params = {"page": page, "limit": limit, "category": category, "search": search}
        try:
            data = self.api.get("/api/products", params=params)
        except ApiError:
            self.notices.error("Error", "Failed to load products from server")
            return False

        mapped = [Product.from_api(p) for p in data.get("products", [])]
        if page == 1:
            self.products = mapped
        else:
            self.products.extend(mapped)
        pagination = data.get("pagination", {})
        self.page = page
        self.category = category
        self.search = search
        self.total = pagination.get("total", len(self.products))
        self.has_more = bool(pagination.get("has_more", pagination.get("hasMore", False)))
        return True

    def load_more(self) -> bool:
        if not self.has_more:
            return False
        return self.fetch_products(self.page + 1, category=self.category, search=self.search)

    def refresh(self) -> bool:
        return self.fetch_products(1, category=self.category, search=self.search)

    def select_category(self, category_id: Optional[str]) -> bool:
        return self.fetch_products(1, category=category_id, search=self.search)

    def search_products(self, term: Optional[str]) -> bool:
        return self.fetch_products(1, category=self.category, search=term or None)

    def fetch_all(self) -> bool:
        """Admin listing: every product in one request, up to ADMIN_FETCH_LIMIT"""
        if not self.fetch_products(1, limit=ADMIN_FETCH_LIMIT):
            return False
        self.has_more = False
        return True

    def fetch_new_arrivals(self) -> bool:
        try:
            data = self.api.get("/api/products/new-arrivals")
        except ApiError:
            self.notices.error("Error", "Failed to load new arrivals")
            return False
        self.new_arrivals = [Product.from_api(p) for p in data or []]
        return True

    def get(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)

    def upsert(self, product: Product):
        for index, existing in enumerate(self.products):
            if existing.id == product.id:
                self.products[index] = product
                return
        self.products.append(product)

    def remove(self, product_id: str):
        self.products = [p for p in self.products if p.id != product_id]

    def decrement_stock(self, items: Iterable[CartItem]):
        """Optimistic local stock update after an order; the server value is not re-read"""
        ordered: Dict[str, int] = {}
        for item in items:
            ordered[item.product_id] = ordered.get(item.product_id, 0) + item.quantity
        for product in self.products:
            if product.id in ordered:
                product.stock_quantity = max(0, product.stock_quantity - ordered[product.id])
        logger.debug("stock_decremented_locally", products=len(ordered))

import pytest

from catalog import Catalog
from records import CartItem


@pytest.fixture
def catalog(api, notices):
    return Catalog(api, notices, page_size=2)


@pytest.fixture
def five_products(make_product):
    return [make_product(name=f"Item {i}") for i in range(5)]


def test_infinite_scroll(catalog, five_products):
    assert catalog.fetch_products()
    assert len(catalog.products) == 2
    assert catalog.has_more
    assert catalog.total == 5

    assert catalog.load_more()
    assert catalog.load_more()
    assert len(catalog.products) == 5
    assert len({p.id for p in catalog.products}) == 5
    assert not catalog.has_more
    assert not catalog.load_more()


def test_refresh_replaces_list(catalog, five_products):
    catalog.fetch_products()
    catalog.load_more()
    assert catalog.refresh()
    assert len(catalog.products) == 2
    assert catalog.page == 1


def test_category_and_search_filters(catalog, make_category, make_product, category_id):
    bags = make_category("Bags", order=1)
    make_product(name="Runner")
    make_product(name="Tote", category=bags)

    catalog.select_category(bags)
    assert [p.name for p in catalog.products] == ["Tote"]
    assert catalog.products[0].category_id == bags

    catalog.select_category(None)
    catalog.search_products("run")
    assert [p.name for p in catalog.products] == ["Runner"]


def test_fetch_all_ignores_paging(catalog, five_products):
    assert catalog.fetch_all()
    assert len(catalog.products) == 5
    assert not catalog.has_more


def test_categories_and_new_arrivals(catalog, make_category, make_product):
    make_category("Bags", order=1)
    make_product(name="Fresh", tags=["new"])
    assert catalog.fetch_categories()
    assert [c.name for c in catalog.categories] == ["Shoes", "Bags"]
    assert catalog.category_by_name("bags").name == "Bags"
    assert catalog.fetch_new_arrivals()
    assert [p.name for p in catalog.new_arrivals] == ["Fresh"]


def test_server_failure_posts_notice(offline_api, notices):
    catalog = Catalog(offline_api, notices)
    assert not catalog.fetch_products()
    assert notices.last.message == "Failed to load products from server"
    assert not catalog.fetch_categories()
    assert notices.last.message == "Failed to load categories from server"
    assert catalog.products == []


def test_decrement_stock(catalog, five_products):
    catalog.fetch_products()
    first = catalog.products[0]
    catalog.decrement_stock([CartItem(product=first, quantity=2), CartItem(product=first, quantity=1)])
    assert catalog.get(first.id).stock_quantity == 2
    catalog.decrement_stock([CartItem(product=first, quantity=9)])
    assert catalog.get(first.id).stock_quantity == 0

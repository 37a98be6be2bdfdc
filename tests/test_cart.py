import pytest

from cart import Cart
from storage import LocalStorage


@pytest.fixture
def cart(storage, notices):
    return Cart(storage, notices)


def test_add_merges_lines(cart, notices, make_record):
    runner = make_record()
    assert cart.add(runner, 2)
    assert cart.add(runner, 1)
    assert len(cart.items) == 1
    assert cart.count == 3
    assert cart.subtotal == 300
    assert notices.last.message == "Runner added to cart"


@pytest.mark.parametrize("overrides", [{"stock_quantity": 0}, {"out_of_stock": True}])
def test_out_of_stock_products_are_rejected(cart, notices, make_record, overrides):
    product = make_record(**overrides)
    assert not cart.add(product)
    assert cart.items == []
    assert notices.last.kind == "error"
    assert notices.last.message == "Runner is out of stock."


def test_quantity_must_be_positive(cart, notices, make_record):
    assert not cart.add(make_record(), 0)
    assert notices.last.message == "Quantity must be at least 1."
    assert cart.is_empty


def test_add_beyond_stock(cart, notices, make_record):
    runner = make_record(stock_quantity=5)
    assert not cart.add(runner, 6)
    assert notices.last.message == "Only 5 items in stock."
    assert cart.is_empty

    cart.add(runner, 4)
    assert not cart.add(runner, 2)
    assert notices.last.message == "Cannot add more than 5 items."
    assert cart.find("p1").quantity == 4


def test_update_above_stock_is_rejected(cart, notices, make_record):
    cart.add(make_record(stock_quantity=5), 3)
    assert not cart.update("p1", 10)
    assert cart.find("p1").quantity == 3
    assert notices.last.message == "Only 5 items available in stock."

    assert cart.update("p1", 5)
    assert cart.find("p1").quantity == 5


def test_update_uses_latest_catalog_stock(storage, notices, make_record):
    latest = {"p1": make_record(stock_quantity=2)}
    cart = Cart(storage, notices, lookup=latest.get)
    cart.add(make_record(stock_quantity=5), 1)
    assert not cart.update("p1", 3)
    assert notices.last.message == "Only 2 items available in stock."


def test_update_to_zero_removes(cart, make_record):
    cart.add(make_record(), 2)
    assert cart.update("p1", 0)
    assert cart.is_empty


def test_remove_and_clear(cart, notices, make_record):
    cart.add(make_record(), 1)
    cart.add(make_record(id="p2", name="Sandal"), 1)
    cart.remove("p1")
    assert [i.product_id for i in cart.items] == ["p2"]
    assert notices.last.message == "Item removed from cart"
    cart.clear()
    assert cart.is_empty


def test_cart_survives_restart(storage, notices, make_record, tmp_path):
    cart = Cart(storage, notices)
    cart.add(make_record(), 2)

    reloaded = Cart(LocalStorage(tmp_path / "storage.json"), notices)
    assert reloaded.count == 2
    assert reloaded.items[0].product.name == "Runner"


def test_snapshot_does_not_follow_product_changes(cart, make_record):
    runner = make_record(price=100)
    cart.add(runner, 1)
    runner.price = 80
    assert cart.items[0].product.price == 100


def test_validate_against_fresh_products(cart, make_record):
    cart.add(make_record(id="p1", name="Runner", price=100, stock_quantity=5), 4)
    cart.add(make_record(id="p2", name="Sandal", price=50), 1)
    cart.add(make_record(id="p3", name="Boot", price=300), 1)

    report = cart.validate([
        make_record(id="p1", name="Runner", price=120, stock_quantity=2),
        make_record(id="p2", name="Sandal", price=50, out_of_stock=True),
    ])

    assert report.has_changes
    assert sorted(report.removed_items) == ["Boot", "Sandal"]
    assert [(c.old_price, c.new_price) for c in report.price_changes] == [(100, 120)]
    assert len(report.stock_issues) == 1
    assert [(i.product_id, i.quantity, i.product.price) for i in cart.items] == [("p1", 2, 120)]


def test_validate_without_changes(cart, make_record):
    cart.add(make_record(), 1)
    assert not cart.validate([make_record()]).has_changes

import httpx
import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from api import ApiClient
from notices import Notices
from records import Product
from schemas import Category as CategorySchema, Product as ProductSchema, User as UserSchema
from state import AppState
from storage import LocalStorage


@pytest.fixture
def mongo(monkeypatch):
    db = mongomock.MongoClient()["storefront_test"]
    monkeypatch.setattr(database, "db", db)
    monkeypatch.setattr(main, "db", db)
    return db


@pytest.fixture
def client(mongo):
    # No context manager: startup seeding stays off
    return TestClient(main.app)


def _insert_user(mongo, email, role="user", **extra):
    data = dict(
        name=extra.pop("name", email.split("@")[0].title()),
        email=email,
        phone=extra.pop("phone", "9876543210"),
        password_hash=main.pwd_context.hash(extra.pop("password", "secret123")),
        role=role,
        is_verified=extra.pop("is_verified", True),
    )
    data.update(extra)
    user_id = database.create_document("user", UserSchema(**data))
    return mongo["user"].find_one({"_id": main.oid(user_id)})


@pytest.fixture
def make_user(mongo):
    def factory(email, role="user", **extra):
        return _insert_user(mongo, email, role, **extra)
    return factory


@pytest.fixture
def admin_user(make_user):
    return make_user("admin@example.com", role="admin", name="Admin User")


@pytest.fixture
def admin_token(admin_user):
    return main.create_token(admin_user)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def shopper(make_user):
    return make_user("asha@example.com", name="Asha", phone="9123456780")


@pytest.fixture
def shopper_token(shopper):
    return main.create_token(shopper)


@pytest.fixture
def shopper_headers(shopper_token):
    return {"Authorization": f"Bearer {shopper_token}"}


@pytest.fixture
def make_category(mongo):
    def factory(name="Shoes", order=0, **extra):
        return database.create_document("category", CategorySchema(name=name, order=order, **extra))
    return factory


@pytest.fixture
def category_id(make_category):
    return make_category("Shoes")


@pytest.fixture
def make_product(mongo, category_id):
    def factory(name="Runner", price=100.0, stock_quantity=5, **extra):
        extra.setdefault("category", category_id)
        extra.setdefault("out_of_stock", stock_quantity <= 0)
        return database.create_document(
            "product", ProductSchema(name=name, price=price, stock_quantity=stock_quantity, **extra)
        )
    return factory


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def notices():
    return Notices()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "storage.json")


@pytest.fixture
def api(client):
    return ApiClient(http=client)


@pytest.fixture
def app_state(api, storage, notices):
    return AppState(api=api, storage=storage, notices=notices)


@pytest.fixture
def admin_state(app_state, admin_token):
    app_state.api.token = admin_token
    return app_state


def _refuse(request):
    raise httpx.ConnectError("Connection refused", request=request)


@pytest.fixture
def offline_api():
    return ApiClient(http=httpx.Client(transport=httpx.MockTransport(_refuse), base_url="http://testserver"))


@pytest.fixture
def make_record():
    def factory(id="p1", name="Runner", price=100.0, stock_quantity=5, **extra):
        return Product(id=id, name=name, price=price, stock_quantity=stock_quantity, **extra)
    return factory

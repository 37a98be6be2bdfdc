import main


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Storefront API running"}
    body = client.get("/test").json()
    assert body["backend"] == "running"
    assert body["database"] == "connected"


def test_category_requires_admin(client, shopper_headers):
    assert client.post("/api/categories", json={"name": "Shoes"}).status_code == 401
    resp = client.post("/api/categories", json={"name": "Shoes"}, headers=shopper_headers)
    assert resp.status_code == 403


def test_duplicate_category_is_rejected(client, admin_headers):
    first = client.post("/api/categories", json={"name": "Shoes"}, headers=admin_headers)
    assert first.status_code == 201
    second = client.post("/api/categories", json={"name": "Shoes"}, headers=admin_headers)
    assert second.status_code == 400
    assert second.json()["detail"] == "Category already exists"
    assert len(client.get("/api/categories").json()) == 1


def test_blank_category_name(client, admin_headers):
    resp = client.post("/api/categories", json={"name": "   "}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Name is required"


def test_new_categories_go_last(client, admin_headers):
    for name in ("Shoes", "Bags", "Hats"):
        client.post("/api/categories", json={"name": name}, headers=admin_headers)
    categories = client.get("/api/categories").json()
    assert [c["name"] for c in categories] == ["Shoes", "Bags", "Hats"]
    assert [c["order"] for c in categories] == [0, 1, 2]


def test_reorder_categories(client, admin_headers):
    ids = [client.post("/api/categories", json={"name": n}, headers=admin_headers).json()["id"] for n in ("A", "B", "C")]
    resp = client.post("/api/categories/reorder", json={"category_ids": list(reversed(ids))}, headers=admin_headers)
    assert resp.status_code == 200
    assert [c["name"] for c in resp.json()] == ["C", "B", "A"]


def test_update_category(client, admin_headers, make_category):
    shoes = make_category("Shoes", image="https://img/shoes.png")
    make_category("Bags", order=1)

    clash = client.put(f"/api/categories/{shoes}", json={"name": "Bags"}, headers=admin_headers)
    assert clash.status_code == 400

    resp = client.put(f"/api/categories/{shoes}", json={"name": "Sneakers", "image": "  "}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Sneakers"
    assert resp.json()["image"] == "https://img/shoes.png"


def test_toggle_category_active(client, admin_headers, category_id):
    resp = client.patch(f"/api/categories/{category_id}/toggle-active", headers=admin_headers)
    assert resp.json()["is_active"] is False
    resp = client.patch(f"/api/categories/{category_id}/toggle-active", headers=admin_headers)
    assert resp.json()["is_active"] is True


def test_delete_category_keeps_products(client, admin_headers, category_id, product):
    resp = client.delete(f"/api/categories/{category_id}", headers=admin_headers)
    assert resp.status_code == 200
    assert client.get(f"/api/categories/{category_id}").status_code == 404
    kept = client.get(f"/api/products/{product}").json()
    assert kept["category"] == category_id


def test_invalid_id(client):
    resp = client.get("/api/products/not-an-id")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid id"


def test_create_product(client, admin_headers, category_id):
    resp = client.post(
        "/api/products",
        json={
            "name": "Trail Runner",
            "price": 2499,
            "category": category_id,
            "stock_quantity": 0,
            "images": [
                {"url": "https://img/1.png", "order": 1},
                {"url": "https://img/0.png", "order": 0},
            ],
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["out_of_stock"] is True
    assert body["image"] == "https://img/0.png"
    assert body["category"] == {"id": category_id, "name": "Shoes"}


def test_create_product_validation(client, admin_headers, category_id):
    too_many = [{"url": f"https://img/{i}.png"} for i in range(6)]
    resp = client.post(
        "/api/products",
        json={"name": "X", "price": 1, "category": category_id, "images": too_many},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Maximum 5 images allowed per product"

    resp = client.post(
        "/api/products",
        json={"name": "X", "price": 1, "category": "65f0c0ffee0000000000beef"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid category"

    resp = client.post("/api/products", json={"name": "X", "price": -1, "category": category_id}, headers=admin_headers)
    assert resp.status_code == 422


def test_product_pagination(client, make_product):
    for i in range(5):
        make_product(name=f"Item {i}")
    first = client.get("/api/products", params={"page": 1, "limit": 2}).json()
    assert len(first["products"]) == 2
    assert first["pagination"] == {"page": 1, "limit": 2, "total": 5, "total_pages": 3, "has_more": True}

    last = client.get("/api/products", params={"page": 3, "limit": 2}).json()
    assert len(last["products"]) == 1
    assert last["pagination"]["has_more"] is False


def test_product_sort(client, make_product):
    make_product(name="Cheap", price=10)
    make_product(name="Pricey", price=900)
    names = [p["name"] for p in client.get("/api/products", params={"sort": "price"}).json()["products"]]
    assert names == ["Cheap", "Pricey"]
    names = [p["name"] for p in client.get("/api/products", params={"sort": "-price"}).json()["products"]]
    assert names == ["Pricey", "Cheap"]


def test_product_search_and_category_filter(client, make_category, make_product):
    bags = make_category("Bags", order=1)
    make_product(name="Trail Runner", description="Grippy sole")
    make_product(name="Tote", description="Canvas (large)", category=bags)

    found = client.get("/api/products", params={"search": "runner"}).json()["products"]
    assert [p["name"] for p in found] == ["Trail Runner"]

    found = client.get("/api/products", params={"search": "(large)"}).json()["products"]
    assert [p["name"] for p in found] == ["Tote"]

    found = client.get("/api/products", params={"category": bags}).json()["products"]
    assert [p["name"] for p in found] == ["Tote"]

    everything = client.get("/api/products", params={"category": "all"}).json()
    assert everything["pagination"]["total"] == 2


def test_new_arrivals(client, make_product):
    make_product(name="Fresh", tags=["new"])
    make_product(name="Old")
    assert [p["name"] for p in client.get("/api/products/new-arrivals").json()] == ["Fresh"]


def test_update_product_stock(client, admin_headers, product):
    resp = client.put(f"/api/products/{product}", json={"stock_quantity": 0}, headers=admin_headers)
    assert resp.json()["out_of_stock"] is True

    resp = client.put(f"/api/products/{product}", json={"stock_quantity": 3, "out_of_stock": False}, headers=admin_headers)
    body = resp.json()
    assert body["stock_quantity"] == 3
    assert body["out_of_stock"] is False

    # Forced out of stock while units remain
    resp = client.put(f"/api/products/{product}", json={"out_of_stock": True}, headers=admin_headers)
    assert resp.json()["out_of_stock"] is True
    assert resp.json()["stock_quantity"] == 3


def test_delete_product(client, admin_headers, product):
    assert client.delete(f"/api/products/{product}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/products/{product}").status_code == 404
    assert client.delete(f"/api/products/{product}", headers=admin_headers).status_code == 404


def test_seed_demo_data(mongo):
    assert main.seed_demo_data() == len(main.DEMO_PRODUCTS)
    assert mongo["category"].count_documents({}) == len(main.DEMO_CATEGORIES)
    denim = mongo["product"].find_one({"name": "Denim Jeans"})
    assert denim["out_of_stock"] is True
    # Second run is a no-op
    assert main.seed_demo_data() == 0

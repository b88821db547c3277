from datetime import datetime, timedelta


def utc_today():
    return datetime.utcnow().date()


def test_health_endpoints(client):
    assert client.get("/").json() == {"status": "freshmart running"}

    response = client.get("/test")
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Backend is running!"
    assert body["database"] == "Connected"
    assert "timestamp" in body


def test_created_product_is_listed(client, create_product):
    expiry = (utc_today() + timedelta(days=30)).isoformat()
    created = create_product(name="Organic Milk", category="Dairy", price=60.0, stock=20, discount=10,
                             expiryDate=expiry, description="1 litre")

    response = client.get("/products")
    assert response.status_code == 200
    products = response.json()
    assert len(products) == 1
    product = products[0]
    assert product["id"] == created["id"]
    assert product["name"] == "Organic Milk"
    assert product["expiryDate"] == expiry
    assert product["reviewCount"] == 0
    assert product["rating"] == 0
    assert product["discount"] == 10
    assert product["final_price"] == 54.0
    assert product["store_id"] is not None


def test_discount_is_derived_from_expiry_when_omitted(client, create_product):
    expiry = (utc_today() + timedelta(days=2)).isoformat()
    product = create_product(name="Bread", category="Bakery", price=50.0, discount=None, expiryDate=expiry)
    assert product["discount"] == 30
    assert product["final_price"] == 35.0

    product = create_product(name="Rice", category="Grains", price=80.0, discount=None)
    assert product["discount"] == 0


def test_explicit_discount_wins_over_expiry(client, create_product):
    expiry = (utc_today() + timedelta(days=1)).isoformat()
    product = create_product(price=100.0, discount=5, expiryDate=expiry)
    assert product["discount"] == 5


def test_product_filters_and_sorting(client, create_product):
    create_product(name="Green Apple", category="Fruits", price=120.0, discount=0)
    create_product(name="Banana", category="Fruits", price=40.0, discount=20)
    create_product(name="Spinach", category="Vegetables", price=30.0, discount=40)

    names = [p["name"] for p in client.get("/products", params={"search": "apple"}).json()]
    assert names == ["Green Apple"]

    names = [p["name"] for p in client.get("/products", params={"category": "Fruits"}).json()]
    assert names == ["Green Apple", "Banana"]

    names = [p["name"] for p in client.get("/products", params={"on_sale": True}).json()]
    assert names == ["Banana", "Spinach"]

    names = [p["name"] for p in client.get("/products", params={"sort": "discount"}).json()]
    assert names == ["Spinach", "Banana", "Green Apple"]

    names = [p["name"] for p in client.get("/products", params={"sort": "price"}).json()]
    assert names == ["Spinach", "Banana", "Green Apple"]

    assert client.get("/products", params={"sort": "expiry"}).status_code == 422


def test_get_product_by_id(client, create_product):
    product = create_product()
    response = client.get(f"/products/{product['id']}")
    assert response.status_code == 200
    assert response.json()["name"] == "Tomato"

    response = client.get("/products/9999")
    assert response.status_code == 404
    assert response.json()["detail"] == "Product not found"


def test_related_products(client, create_product):
    first = create_product(name="Carrot")
    for name in ("Potato", "Onion", "Cabbage"):
        create_product(name=name)
    create_product(name="Mango", category="Fruits")

    related = client.get("/products/related/Vegetables").json()
    assert len(related) == 3
    assert all(p["category"] == "Vegetables" for p in related)

    related = client.get("/products/related/Vegetables", params={"exclude": first["id"]}).json()
    assert first["id"] not in [p["id"] for p in related]

    assert client.get("/products/related/Snacks").json() == []


def test_create_product_requires_store_owner(client, customer_headers):
    payload = {"name": "Tomato", "category": "Vegetables", "price": 40.0}
    assert client.post("/products", json=payload).status_code == 401
    assert client.post("/products", json=payload, headers=customer_headers).status_code == 403


def test_create_product_validates_fields(client, owner_headers):
    response = client.post("/products", json={"name": "Tomato", "category": "Vegetables", "price": -1},
                           headers=owner_headers)
    assert response.status_code == 422

    response = client.post("/products", json={"name": "Tomato", "category": "Vegetables", "price": 10,
                                                "discount": 150}, headers=owner_headers)
    assert response.status_code == 422


def test_update_stock(client, create_product, owner_headers):
    product = create_product(stock=50)

    response = client.put(f"/products/{product['id']}/stock", json={"stock": 5}, headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["stock"] == 5
    assert client.get(f"/products/{product['id']}").json()["stock"] == 5

    response = client.put(f"/products/{product['id']}/stock", json={"stock": -3}, headers=owner_headers)
    assert response.status_code == 422

    response = client.put("/products/9999/stock", json={"stock": 1}, headers=owner_headers)
    assert response.status_code == 404


def test_update_stock_of_another_store_is_not_found(client, create_product, other_owner_headers):
    product = create_product()
    response = client.put(f"/products/{product['id']}/stock", json={"stock": 1}, headers=other_owner_headers)
    assert response.status_code == 404
    assert client.get(f"/products/{product['id']}").json()["stock"] == 50


def test_sort_by_name_and_rating(client, create_product):
    mango = create_product(name="Mango", category="Fruits")
    apple = create_product(name="Apple", category="Fruits")
    create_product(name="Cherry", category="Fruits")

    names = [p["name"] for p in client.get("/products", params={"sort": "name"}).json()]
    assert names == ["Apple", "Cherry", "Mango"]

    client.post(f"/reviews/{mango['id']}", json={"author": "Priya", "rating": 5})
    client.post(f"/reviews/{apple['id']}", json={"author": "Priya", "rating": 3})
    names = [p["name"] for p in client.get("/products", params={"sort": "rating"}).json()]
    assert names == ["Mango", "Apple", "Cherry"]


def test_skip_and_limit(client, create_product):
    for name in ("Apple", "Banana", "Cherry", "Date"):
        create_product(name=name, category="Fruits")

    names = [p["name"] for p in client.get("/products", params={"skip": 1, "limit": 2}).json()]
    assert names == ["Banana", "Cherry"]
    assert client.get("/products", params={"skip": 4}).json() == []
    assert client.get("/products", params={"limit": 0}).status_code == 422
    assert client.get("/products", params={"skip": -1}).status_code == 422

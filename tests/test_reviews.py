def test_add_reviews_and_recompute_rating(client, create_product):
    product = create_product()

    response = client.post(f"/reviews/{product['id']}", json={"author": "Priya", "rating": 5, "comment": "Fresh!"})
    assert response.status_code == 201
    review = response.json()
    assert review["product_id"] == product["id"]
    assert review["author"] == "Priya"
    assert review["date"] is not None

    response = client.post("/reviews", json={"productId": product["id"], "author": "Rahul", "rating": 4})
    assert response.status_code == 201

    reviews = client.get(f"/reviews/{product['id']}").json()
    assert [r["author"] for r in reviews] == ["Rahul", "Priya"]

    updated = client.get(f"/products/{product['id']}").json()
    assert updated["rating"] == 4.5
    assert updated["reviewCount"] == 2


def test_rating_is_rounded_to_one_decimal(client, create_product):
    product = create_product()
    for rating in (5, 4, 4):
        client.post(f"/reviews/{product['id']}", json={"author": "Guest", "rating": rating})
    assert client.get(f"/products/{product['id']}").json()["rating"] == 4.3


def test_review_validation(client, create_product):
    product = create_product()
    assert client.post(f"/reviews/{product['id']}", json={"author": "Priya", "rating": 6}).status_code == 422
    assert client.post(f"/reviews/{product['id']}", json={"author": "", "rating": 3}).status_code == 422
    assert client.post("/reviews", json={"author": "Priya", "rating": 3}).status_code == 422


def test_review_for_unknown_product(client):
    assert client.post("/reviews/9999", json={"author": "Priya", "rating": 3}).status_code == 404
    assert client.get("/reviews/9999").json() == []

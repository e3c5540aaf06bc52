from mycoshop.core.config import settings


def add(client, product_id, quantity=1, size="standard"):
    return client.post("/api/cart/add", json={"productId": product_id, "quantity": quantity, "size": size})


class TestCartApi:

    def test_first_visit_issues_session_cookie(self, client):
        response = client.get("/api/cart/")
        assert response.status_code == 200
        assert settings.SESSION_COOKIE_NAME in response.cookies
        data = response.json()["data"]
        assert data["cart"]["items"] == []
        assert data["totals"] == {"subtotal": 0.0, "tax": 0.0, "shipping": 0.0, "total": 0.0}

    def test_add_item(self, client, products):
        response = add(client, products["golden"].id, 2)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Item added to cart successfully"
        assert body["data"]["totals"] == {"subtotal": 40.0, "tax": 3.2, "shipping": 9.99, "total": 53.19}
        line = body["data"]["cart"]["items"][0]
        assert line["productId"] == products["golden"].id
        assert line["lineTotal"] == 40.0

    def test_cart_follows_cookie(self, client, products):
        add(client, products["golden"].id, 3)
        add(client, products["golden"].id, 2)
        cart = client.get("/api/cart/").json()["data"]["cart"]
        assert len(cart["items"]) == 1
        assert cart["itemCount"] == 5
        assert client.get("/api/cart/count").json()["data"]["count"] == 5

    def test_update_and_remove(self, client, products):
        line_id = add(client, products["golden"].id, 1).json()["data"]["cart"]["items"][0]["id"]

        updated = client.put(f"/api/cart/update/{line_id}", json={"quantity": 3})
        assert updated.json()["data"]["totals"]["shipping"] == 0.0

        removed = client.delete(f"/api/cart/remove/{line_id}")
        assert removed.json()["data"]["cart"]["items"] == []

    def test_clear(self, client, products):
        add(client, products["golden"].id, 2)
        add(client, products["meanie"].id, 1)
        response = client.delete("/api/cart/clear")
        assert response.json()["data"]["cart"]["itemCount"] == 0
        assert client.delete("/api/cart/clear").status_code == 200

    def test_out_of_stock(self, client, products):
        response = add(client, products["meanie"].id, 6)
        assert response.status_code == 400
        assert response.json()["error"] == "OUT_OF_STOCK"

    def test_item_limit(self, client, products):
        add(client, products["golden"].id, 10)
        response = add(client, products["golden"].id, 1)
        assert response.status_code == 400
        assert response.json()["error"] == "ITEM_LIMIT_EXCEEDED"

    def test_unknown_product(self, client):
        response = add(client, 9999)
        assert response.status_code == 404
        assert response.json()["error"] == "PRODUCT_NOT_FOUND"

    def test_zero_quantity_on_add_is_rejected(self, client, products):
        response = add(client, products["golden"].id, 0)
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_unknown_line(self, client, products):
        add(client, products["golden"].id, 1)
        response = client.put("/api/cart/update/9999", json={"quantity": 2})
        assert response.status_code == 404
        assert response.json()["error"] == "ITEM_NOT_FOUND"


class TestCartApiOffline:

    def test_cart_reads_return_empty_shape(self, offline_client):
        body = offline_client.get("/api/cart/").json()
        assert body["data"]["items"] == []
        assert body["data"]["total"] == 0.0
        assert body["message"] == "Using in-memory storage (no persistent cart)"

    def test_cart_writes_are_unavailable(self, offline_client):
        response = offline_client.post("/api/cart/add", json={"productId": 1, "quantity": 1})
        assert response.status_code == 503

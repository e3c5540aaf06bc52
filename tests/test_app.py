import time

from mycoshop.core.config import settings
from mycoshop.db.session import engine_connect_args
from mycoshop.main import app
from mycoshop.routers.payments import get_card_gateway
from mycoshop.services.payment import SimulatedCardGateway

SHIPPING = {
    "firstName": "Ada",
    "lastName": "Spore",
    "email": "ada@example.com",
    "address": "1 Mycelium Way",
    "city": "Portland",
    "state": "OR",
    "zipCode": "97201",
}


class SlowCardGateway(SimulatedCardGateway):

    def execute(self, order, payload):
        time.sleep(0.3)
        return super().execute(order, payload)


class TestRequestTimeout:

    def test_slow_request_gets_504(self, client, products, monkeypatch):
        client.post("/api/cart/add", json={"productId": products["golden"].id, "quantity": 2})
        order_number = client.post("/api/orders/", json={
            "shippingAddress": SHIPPING, "paymentMethod": "card",
        }).json()["data"]["orderNumber"]

        monkeypatch.setattr(settings, "REQUEST_TIMEOUT_SECONDS", 0.05)
        app.dependency_overrides[get_card_gateway] = lambda: SlowCardGateway()
        response = client.post("/api/payments/card/process", json={
            "orderNumber": order_number, "cardNumber": "4242424242424242", "expiry": "12/99", "cvv": "123",
        })
        assert response.status_code == 504
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "REQUEST_TIMEOUT"

        # The handler was not interrupted, so the payment went through
        monkeypatch.setattr(settings, "REQUEST_TIMEOUT_SECONDS", 30.0)
        order = client.get(f"/api/orders/{order_number}").json()["data"]
        assert order["paymentStatus"] == "completed"

    def test_fast_request_is_untouched(self, client, monkeypatch):
        monkeypatch.setattr(settings, "REQUEST_TIMEOUT_SECONDS", 5.0)
        assert client.get("/api/health").status_code == 200


class TestEngineConnectArgs:

    def test_sqlite_waits_are_bounded(self):
        assert engine_connect_args("sqlite:///./mycoshop.db", 10.0) == {"check_same_thread": False, "timeout": 10.0}

    def test_postgres_statement_timeout(self):
        args = engine_connect_args("postgresql+psycopg2://shop@db/mycoshop", 2.5)
        assert args == {"options": "-c statement_timeout=2500"}

    def test_other_drivers(self):
        assert engine_connect_args("mysql://shop@db/mycoshop", 10.0) == {}

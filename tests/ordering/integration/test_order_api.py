"""Integration tests for the order endpoints."""

from ordering.catalogue.product import Product
from ordering.order import cancellation
from ordering.order.order import Order
from ordering.order.status import OrderStatus
from protean import current_domain
from protean.exceptions import ExpectedVersionError


class TestCheckoutEndpoint:
    def test_creates_order_from_cart(self, client, product_factory, cart_factory, address):
        product = product_factory(price=100.0, stock=5)
        cart = cart_factory((product, 2))

        response = client.post("/orders", json={"cart_id": str(cart.id), "shipping_address": address()})

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["status_label"] == "Pending"
        assert data["payment_status"] == "pending"
        assert data["subtotal"] == 200.0
        assert data["items"][0]["quantity"] == 2
        assert data["shipping_address"]["postal_code"] == "1043"
        assert data["billing_address"]["name"] == "Ana Pérez"
        assert data["status_history"][0]["status"] == "pending"
        assert current_domain.repository_for(Product).get(product.id).stock == 3

    def test_empty_cart(self, client, cart_factory, address):
        cart = cart_factory()

        response = client.post("/orders", json={"cart_id": str(cart.id), "shipping_address": address()})

        assert response.status_code == 422
        assert response.json()["code"] == "EMPTY_CART"

    def test_unknown_cart(self, client, address):
        response = client.post("/orders", json={"cart_id": "missing", "shipping_address": address()})
        assert response.status_code == 404

    def test_address_is_validated(self, client, product_factory, cart_factory):
        cart = cart_factory((product_factory(), 1))

        response = client.post("/orders", json={"cart_id": str(cart.id), "shipping_address": {"name": "Ana"}})

        assert response.status_code == 422


    def test_mercadopago_checkout_returns_payment_url(self, client, gateway, product_factory, cart_factory, address):
        cart = cart_factory((product_factory(), 1))

        response = client.post(
            "/orders",
            json={"cart_id": str(cart.id), "shipping_address": address(), "payment_method": "mercadopago"},
        )

        assert response.status_code == 201
        assert response.json()["payment_url"].startswith("https://fake-gateway.test/checkout")

    def test_gateway_failure_does_not_block_checkout(self, client, gateway, product_factory, cart_factory, address):
        gateway.configure(should_succeed=False)
        cart = cart_factory((product_factory(), 1))

        response = client.post(
            "/orders",
            json={"cart_id": str(cart.id), "shipping_address": address(), "payment_method": "mercadopago"},
        )

        assert response.status_code == 201
        assert response.json()["payment_url"] is None
        assert response.json()["status"] == "pending"

    def test_unknown_payment_method(self, client, product_factory, cart_factory, address):
        cart = cart_factory((product_factory(), 1))

        response = client.post(
            "/orders",
            json={"cart_id": str(cart.id), "shipping_address": address(), "payment_method": "bitcoin"},
        )

        assert response.status_code == 422

class TestGetOrderEndpoint:
    def test_owner_sees_order(self, client, order_factory):
        order = order_factory(customer_id="cust-001")

        response = client.get(f"/orders/{order.id}", params={"customer_id": "cust-001"})

        assert response.status_code == 200
        assert response.json()["order_number"] == order.order_number

    def test_other_customer_gets_not_found(self, client, order_factory):
        order = order_factory(customer_id="cust-001")

        response = client.get(f"/orders/{order.id}", params={"customer_id": "cust-999"})

        assert response.status_code == 404


class TestCancelEndpoint:
    def test_customer_cancels_pending_order(self, client, order_factory, product_factory):
        product = product_factory(stock=4)
        order = order_factory(customer_id="cust-001", items=((product, 1),))

        response = client.post(
            f"/orders/{order.id}/cancel", json={"customer_id": "cust-001", "reason": "Changed my mind"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["payment_status"] == "cancelled"
        assert data["status_history"][-1]["notes"] == "Cancelled by customer: Changed my mind"
        assert current_domain.repository_for(Product).get(product.id).stock == 5

    def test_concurrent_update_is_a_conflict(self, client, order_factory, monkeypatch):
        order = order_factory()

        def conflict(order):
            raise ExpectedVersionError("Wrong expected version: 0")

        monkeypatch.setattr(cancellation, "restore_order_stock", conflict)

        response = client.post(f"/orders/{order.id}/cancel", json={})

        assert response.status_code == 409
        assert response.json()["code"] == "CONCURRENT_UPDATE"

    def test_processing_order_cannot_be_cancelled(self, client, order_factory):
        order = order_factory(status=OrderStatus.PROCESSING)

        response = client.post(f"/orders/{order.id}/cancel", json={})

        assert response.status_code == 422
        assert response.json()["code"] == "ORDER_CANNOT_BE_CANCELLED"


class TestStatusEndpoint:
    def test_admin_moves_order_forward(self, client, order_factory):
        order = order_factory()

        response = client.post(f"/orders/{order.id}/status", json={"status": "confirmed", "notes": "Stock checked"})

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        assert response.json()["status_history"][-1]["changed_by"] == "admin"

    def test_illegal_transition(self, client, order_factory):
        order = order_factory()

        response = client.post(f"/orders/{order.id}/status", json={"status": "delivered"})

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_STATUS_TRANSITION"
        assert current_domain.repository_for(Order).get(order.id).status == "pending"

    def test_unknown_status_value(self, client, order_factory):
        order = order_factory()

        response = client.post(f"/orders/{order.id}/status", json={"status": "teleported"})

        assert response.status_code == 422

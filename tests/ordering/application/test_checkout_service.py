"""Application tests for checkout: cart to order conversion."""

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.cart.discounts import FixedAmountDiscount
from ordering.cart.validation import INSUFFICIENT_STOCK, PRODUCT_UNAVAILABLE, CartValidator
from ordering.catalogue.product import Product
from ordering.errors import BusinessRuleError
from ordering.gateway.fake_adapter import FakeGateway
from ordering.jobs import set_dispatcher
from ordering.jobs.memory_adapter import InMemoryJobDispatcher
from ordering.jobs.port import SEND_ORDER_CONFIRMATION
from ordering.order.checkout import CheckoutService
from ordering.order.order import Order
from ordering.payment.payment import Payment
from ordering.payment.service import PaymentService
from protean import current_domain
from protean.exceptions import ValidationError


class _AlwaysValid(CartValidator):
    """Passes validation so that stock is only checked while decrementing."""

    def validate(self, cart):
        return []


def _orders():
    return current_domain.repository_for(Order)._dao.query.all().items


def _payments_for(order):
    return current_domain.repository_for(Payment)._dao.query.filter(order_id=str(order.id)).all().items


class TestPlaceOrder:
    def test_creates_pending_order(self, settings, address, product_factory, cart_factory):
        shirt = product_factory(price=125.0, stock=10)
        cart = cart_factory((shirt, 2), customer_id="cust-001")

        order = CheckoutService(settings).place_order(cart.id, shipping_address=address())

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.status == "pending"
        assert stored.payment_status == "pending"
        assert stored.order_number.startswith("ORD-")
        assert str(stored.customer_id) == "cust-001"
        assert (stored.subtotal, stored.shipping, stored.total) == (250.0, 50.0, 300.0)
        assert stored.items[0].quantity == 2
        assert stored.shipping_address.city == "CABA"

    def test_decrements_stock(self, settings, address, product_factory, cart_factory):
        shirt = product_factory(stock=10)
        cart = cart_factory((shirt, 3))

        CheckoutService(settings).place_order(cart.id, shipping_address=address())

        assert current_domain.repository_for(Product).get(shirt.id).stock == 7

    def test_empties_cart(self, settings, address, product_factory, cart_factory):
        cart = cart_factory((product_factory(), 1))

        CheckoutService(settings).place_order(cart.id, shipping_address=address())

        assert current_domain.repository_for(ShoppingCart).get(cart.id).is_empty

    def test_free_shipping_above_threshold(self, settings, address, product_factory, cart_factory):
        cart = cart_factory((product_factory(price=200.0), 2))

        order = CheckoutService(settings).place_order(cart.id, shipping_address=address())

        assert order.shipping == 0.0
        assert order.total == 400.0

    def test_applies_discount_policy(self, settings, address, product_factory, cart_factory):
        cart = cart_factory((product_factory(price=100.0), 1))

        order = CheckoutService(settings, discount_policy=FixedAmountDiscount(30.0)).place_order(
            cart.id, shipping_address=address()
        )

        assert order.discount == 30.0
        assert order.total == 120.0

    def test_separate_billing_address(self, settings, address, product_factory, cart_factory):
        cart = cart_factory((product_factory(), 1))

        order = CheckoutService(settings).place_order(
            cart.id,
            shipping_address=address(),
            billing_address=address(address="Florida 100", postal_code="1005"),
        )

        assert order.billing_address.address == "Florida 100"
        assert order.shipping_address.address == "Av. Corrientes 1234"


class TestCheckoutRejections:
    def test_empty_cart(self, settings, address, cart_factory):
        cart = cart_factory()

        with pytest.raises(BusinessRuleError) as exc:
            CheckoutService(settings).place_order(cart.id, shipping_address=address())

        assert exc.value.code == "EMPTY_CART"
        assert _orders() == []

    def test_insufficient_stock_reported_per_item(self, settings, address, product_factory, cart_factory):
        cart = cart_factory((product_factory(stock=1), 2))

        with pytest.raises(BusinessRuleError) as exc:
            CheckoutService(settings).place_order(cart.id, shipping_address=address())

        assert exc.value.code == "CART_VALIDATION_FAILED"
        [problem] = exc.value.details["items"]
        assert problem["error"] == INSUFFICIENT_STOCK
        assert problem["available"] == 1

    def test_inactive_product(self, settings, address, product_factory, cart_factory):
        product = product_factory()
        cart = cart_factory((product, 1))
        product.is_active = False
        current_domain.repository_for(Product).add(product)

        with pytest.raises(BusinessRuleError) as exc:
            CheckoutService(settings).place_order(cart.id, shipping_address=address())

        assert exc.value.details["items"][0]["error"] == PRODUCT_UNAVAILABLE


class TestCheckoutAtomicity:
    def test_stock_failure_on_second_line_rolls_back_everything(
        self, settings, address, product_factory, cart_factory
    ):
        plenty = product_factory(name="Mug", stock=10)
        scarce = product_factory(name="Poster", stock=1)
        cart = cart_factory((plenty, 2), (scarce, 5))

        with pytest.raises(ValidationError):
            CheckoutService(settings, validator=_AlwaysValid()).place_order(cart.id, shipping_address=address())

        assert _orders() == []
        assert current_domain.repository_for(Product).get(plenty.id).stock == 10
        assert current_domain.repository_for(Product).get(scarce.id).stock == 1
        assert len(current_domain.repository_for(ShoppingCart).get(cart.id).items) == 2


class TestCheckoutWithPayment:
    @pytest.fixture()
    def gateway(self):
        return FakeGateway()

    @pytest.fixture()
    def checkout(self, settings, gateway):
        return CheckoutService(settings, payments=PaymentService(gateway, settings))

    def test_mercadopago_checkout_returns_payment_url(self, checkout, gateway, address, product_factory, cart_factory):
        cart = cart_factory((product_factory(price=125.0), 2))

        result = checkout.checkout(cart.id, shipping_address=address(), payment_method="mercadopago")

        assert result.payment_url.startswith("https://fake-gateway.test/checkout")
        request = gateway.calls[0]["request"]
        assert request.payer.name == "Ana Pérez"
        assert request.payer.email == "ana@example.com"
        assert request.external_reference == str(_payments_for(result.order)[0].id)

    def test_preference_failure_keeps_the_order(self, checkout, gateway, address, product_factory, cart_factory):
        gateway.configure(should_succeed=False)
        cart = cart_factory((product_factory(), 1))

        result = checkout.checkout(cart.id, shipping_address=address(), payment_method="mercadopago")

        assert result.payment_url is None
        assert current_domain.repository_for(Order).get(result.order.id).status == "pending"
        assert [payment.status for payment in _payments_for(result.order)] == ["failed"]

    def test_missing_payer_email_keeps_the_order(self, checkout, gateway, address, product_factory, cart_factory):
        cart = cart_factory((product_factory(), 1))

        result = checkout.checkout(cart.id, shipping_address=address(email=None), payment_method="mercadopago")

        assert result.payment_url is None
        assert gateway.calls == []
        assert current_domain.repository_for(Order).get(result.order.id).status == "pending"

    def test_other_payment_methods_skip_the_gateway(self, checkout, gateway, address, product_factory, cart_factory):
        cart = cart_factory((product_factory(), 1))

        result = checkout.checkout(cart.id, shipping_address=address(), payment_method="cash")

        assert result.payment_url is None
        assert gateway.calls == []


class TestOrderConfirmation:
    def test_confirmation_job_queued_after_checkout(self, settings, address, product_factory, cart_factory):
        dispatcher = InMemoryJobDispatcher()
        set_dispatcher(dispatcher)
        cart = cart_factory((product_factory(), 1))

        order = CheckoutService(settings).place_order(cart.id, shipping_address=address())

        jobs = dispatcher.jobs_named(SEND_ORDER_CONFIRMATION)
        assert [job.payload for job in jobs] == [{"order_id": str(order.id), "order_number": order.order_number}]

    def test_no_confirmation_when_checkout_rolls_back(self, settings, address, product_factory, cart_factory):
        dispatcher = InMemoryJobDispatcher()
        set_dispatcher(dispatcher)
        cart = cart_factory((product_factory(stock=1), 5))

        with pytest.raises(ValidationError):
            CheckoutService(settings, validator=_AlwaysValid()).place_order(cart.id, shipping_address=address())

        assert dispatcher.jobs_named(SEND_ORDER_CONFIRMATION) == []

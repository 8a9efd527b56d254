import json
from datetime import timedelta

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.catalogue.product import Product, ProductVariant
from ordering.config import StoreSettings
from ordering.order.calculator import OrderTotals
from ordering.order.order import Order, OrderAddress
from ordering.order.status import OrderStatus
from ordering.utils.time import utcnow
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
@pytest.fixture()
def settings():
    return StoreSettings(
        free_shipping_threshold=300.0,
        base_shipping_cost=50.0,
        shipping_cost_per_kg=10.0,
        origin_postal_code="1043",
        frontend_url="https://shop.test",
        api_url="https://api.shop.test",
    )


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
def make_address(**overrides):
    data = {
        "name": "Ana Pérez",
        "phone": "+54 11 5555 0000",
        "email": "ana@example.com",
        "address": "Av. Corrientes 1234",
        "city": "CABA",
        "state": "Buenos Aires",
        "postal_code": "1043",
        "country": "AR",
    }
    data.update(overrides)
    return data


def create_product(name="Black T-Shirt", price=100.0, stock=10, weight=0.5, track_stock=True, variants=None):
    product = Product(
        name=name,
        sku=name.upper().replace(" ", "-"),
        price=price,
        stock=stock,
        weight=weight,
        track_stock=track_stock,
        variants=[
            ProductVariant(
                sku=variant.get("sku"),
                price=variant.get("price"),
                stock=variant.get("stock", 0),
                attributes=json.dumps(variant.get("attributes", {})),
            )
            for variant in variants or []
        ],
    )
    current_domain.repository_for(Product).add(product)
    return product


def create_cart(*lines, customer_id=None):
    """Persist a cart holding ``(product, quantity)`` or ``(product, quantity, variant_id)`` lines."""
    cart = ShoppingCart.create(customer_id=customer_id, session_id=None if customer_id else "sess-001")
    for line in lines:
        product, quantity, *variant = line
        cart.add_item(product_id=product.id, quantity=quantity, variant_id=variant[0] if variant else None)
    current_domain.repository_for(ShoppingCart).add(cart)
    return cart


def create_order(
    total=300.0,
    customer_id=None,
    status=OrderStatus.PENDING,
    created_hours_ago=0,
    items=(),
    discount=0.0,
):
    """Persist an order directly, bypassing checkout.

    ``items`` holds ``(product, quantity)`` pairs for the order lines.
    """

    class _Line:
        def __init__(self, product, quantity):
            self.product_id = str(product.id)
            self.variant_id = None
            self.name = product.name
            self.sku = product.sku
            self.quantity = quantity
            self.unit_price = product.price
            self.total = round(product.price * quantity, 2)
            self.options = {}

    lines = [_Line(product, quantity) for product, quantity in items]
    subtotal = sum(line.total for line in lines) or total
    order = Order.place(
        shipping_address=OrderAddress(**make_address()),
        totals=OrderTotals(subtotal=subtotal, discount=discount, tax=0.0, shipping=0.0, total=total),
        lines=lines,
        customer_id=customer_id,
    )
    if created_hours_ago:
        order.created_at = utcnow() - timedelta(hours=created_hours_ago)
    if status != OrderStatus.PENDING:
        path = {
            OrderStatus.CONFIRMED: [OrderStatus.CONFIRMED],
            OrderStatus.PROCESSING: [OrderStatus.CONFIRMED, OrderStatus.PROCESSING],
            OrderStatus.SHIPPED: [OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED],
            OrderStatus.CANCELLED: [OrderStatus.CANCELLED],
        }[status]
        for step in path:
            if step == OrderStatus.CANCELLED:
                order.cancel(notes="Cancelled by customer", changed_by="customer")
            else:
                order.transition_to(step)
    current_domain.repository_for(Order).add(order)
    return order


# ---------------------------------------------------------------------------
# Builder fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def address():
    return make_address


@pytest.fixture()
def product_factory():
    return create_product


@pytest.fixture()
def cart_factory():
    return create_cart


@pytest.fixture()
def order_factory():
    return create_order

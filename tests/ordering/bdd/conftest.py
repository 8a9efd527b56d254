"""Shared BDD fixtures and step definitions for the ordering lifecycle."""

import pytest
from ordering.gateway.fake_adapter import FakeGateway
from ordering.order.events import OrderPaid, OrderStatusChanged
from ordering.order.order import Order
from protean.utils.globals import current_domain
from pytest_bdd import given, parsers, then

_EVENT_CLASSES = {
    "OrderPaid": OrderPaid,
    "OrderStatusChanged": OrderStatusChanged,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured errors."""
    return {"exc": None}


@pytest.fixture()
def raised():
    """Events raised by the aggregate across When steps."""
    return []


@pytest.fixture()
def context(settings):
    """Per-scenario collaborators for gateway-driven steps."""
    return {"gateway": FakeGateway(), "settings": settings}


def _stored(order):
    return current_domain.repository_for(Order).get(order.id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the order has been cancelled")
def order_has_been_cancelled(order):
    stored = _stored(order)
    stored.cancel(notes="Cancelled by customer", changed_by="customer")
    current_domain.repository_for(Order).add(stored)


@given("the order has been paid")
def order_has_been_paid(order):
    stored = _stored(order)
    stored.mark_paid(transaction_id="mp-bdd")
    current_domain.repository_for(Order).add(stored)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert _stored(order).status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def payment_status_is(order, status):
    assert _stored(order).payment_status == status


@then(parsers.cfparse("an {event_name} event is raised"))
def event_is_raised(raised, event_name):
    event_cls = _EVENT_CLASSES[event_name]
    assert any(isinstance(event, event_cls) for event in raised)


@then("the latest history entry requires review")
def latest_history_requires_review(order):
    assert _stored(order).history()[-1].requires_review is True

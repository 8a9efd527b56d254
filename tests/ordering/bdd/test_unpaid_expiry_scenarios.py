"""BDD tests for the unpaid-order sweep."""

from ordering.catalogue.product import Product
from ordering.jobs.memory_adapter import InMemoryJobDispatcher
from ordering.jobs.port import SEND_ORDER_PAYMENT_EXPIRED_NOTIFICATION
from ordering.order.expiry import UnpaidOrderCompensator
from protean.utils.globals import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/unpaid_order_expiry.feature")


@given(parsers.cfparse("a product with {stock:d} units in stock"), target_fixture="product")
def product_in_stock(product_factory, stock):
    return product_factory(stock=stock)


@given(
    parsers.cfparse("an unpaid order for {quantity:d} units placed {hours:d} hours ago"),
    target_fixture="order",
)
def unpaid_order(order_factory, product, quantity, hours):
    return order_factory(created_hours_ago=hours, items=((product, quantity),))


@when(
    parsers.cfparse("the unpaid order sweep runs with a {hours:d} hour window"),
    target_fixture="sweep",
)
def run_sweep(settings, hours):
    dispatcher = InMemoryJobDispatcher()
    expired = UnpaidOrderCompensator(settings, dispatcher=dispatcher).run(hours=hours)
    return {"expired": expired, "dispatcher": dispatcher}


@then(parsers.re(r"(?P<count>\d+) orders? (?:is|are) expired"), converters={"count": int})
def expired_count(sweep, count):
    assert sweep["expired"] == count


@then(parsers.cfparse("the product has {stock:d} units in stock"))
def product_stock(product, stock):
    assert current_domain.repository_for(Product).get(product.id).stock == stock


@then("a payment expired notification is sent")
def notification_sent(sweep, order):
    jobs = sweep["dispatcher"].jobs_named(SEND_ORDER_PAYMENT_EXPIRED_NOTIFICATION)
    assert [job.payload["order_id"] for job in jobs] == [str(order.id)]

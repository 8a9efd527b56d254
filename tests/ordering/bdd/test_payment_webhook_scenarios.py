"""BDD tests for payment webhook reconciliation."""

from ordering.payment.payment import Payment
from ordering.payment.service import PaymentService
from protean.utils.globals import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/payment_webhooks.feature")

GATEWAY_PAYMENT_ID = "mp-bdd-001"


@given("a pending order with an open payment attempt", target_fixture="order")
def order_with_attempt(order_factory, context):
    order = order_factory(total=480.0)
    payment = Payment.open(order_id=str(order.id), amount=order.total, currency="ARS")
    current_domain.repository_for(Payment).add(payment)
    context["payment_id"] = str(payment.id)
    return order


def _report(context, status):
    gateway = context["gateway"]
    gateway.set_payment(GATEWAY_PAYMENT_ID, status, external_reference=context["payment_id"])
    service = PaymentService(gateway, context["settings"])
    return service.process_webhook({"type": "payment", "data": {"id": GATEWAY_PAYMENT_ID}})


@given(parsers.cfparse('the gateway reported the payment as "{status}"'))
def gateway_reported(context, status):
    _report(context, status)


@when(parsers.cfparse('the gateway reports the payment as "{status}"'), target_fixture="result")
def gateway_reports(context, status):
    return _report(context, status)


@then(parsers.cfparse('the reconciliation outcome is "{outcome}"'))
def outcome_is(result, outcome):
    assert result.outcome.value == outcome

"""Application tests for payment webhook reconciliation."""

from uuid import uuid4

import pytest
from ordering.gateway.fake_adapter import FakeGateway
from ordering.order.order import Order
from ordering.order.status import OrderStatus
from ordering.payment.payment import Payment
from ordering.payment.service import PaymentService
from ordering.reconciliation import ReconciliationOutcome
from protean import current_domain


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def service(gateway, settings):
    return PaymentService(gateway, settings)


def _open_payment(order, external_id=None):
    payment = Payment.open(order_id=str(order.id), amount=order.total, currency="ARS")
    if external_id:
        payment.attach_preference(external_id)
    current_domain.repository_for(Payment).add(payment)
    return payment


def _webhook(gateway_payment_id):
    return {"type": "payment", "action": "payment.updated", "data": {"id": gateway_payment_id}}


class TestApprovedPayment:
    def test_moves_payment_and_order_to_paid(self, service, gateway, order_factory):
        order = order_factory()
        payment = _open_payment(order)
        gateway.set_payment("mp-1001", "approved", external_reference=str(payment.id))

        result = service.process_webhook(_webhook("mp-1001"))

        assert result.outcome == ReconciliationOutcome.APPLIED
        assert result.events == ("OrderPaid",)
        assert current_domain.repository_for(Payment).get(payment.id).status == "paid"
        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.payment_status == "paid"
        assert stored.paid_at is not None
        assert stored.status == "pending"

    def test_replay_is_a_no_op(self, service, gateway, order_factory):
        order = order_factory()
        payment = _open_payment(order)
        gateway.set_payment("mp-1001", "approved", external_reference=str(payment.id))

        first = service.process_webhook(_webhook("mp-1001"))
        second = service.process_webhook(_webhook("mp-1001"))

        assert first.is_applied
        assert second.outcome == ReconciliationOutcome.IGNORED
        assert second.events == ()
        assert current_domain.repository_for(Order).get(order.id).payment_status == "paid"

    def test_metadata_records_gateway_details(self, service, gateway, order_factory):
        order = order_factory()
        payment = _open_payment(order)
        gateway.set_payment("mp-1001", "approved", external_reference=str(payment.id), status_detail="accredited")

        service.process_webhook(_webhook("mp-1001"))

        meta = current_domain.repository_for(Payment).get(payment.id).meta
        assert meta["mp_payment_id"] == "mp-1001"
        assert meta["mp_status"] == "approved"
        assert meta["mp_status_detail"] == "accredited"
        assert meta["payment_method"] == "visa"

    def test_found_by_preference_id_without_reference(self, service, gateway, order_factory):
        order = order_factory()
        payment = _open_payment(order, external_id="mp-2002")
        gateway.set_payment("mp-2002", "approved")

        result = service.process_webhook(_webhook("mp-2002"))

        assert result.payment_id == str(payment.id)
        assert current_domain.repository_for(Order).get(order.id).payment_status == "paid"


class TestLatePayment:
    def test_cancelled_order_keeps_status_and_needs_review(self, service, gateway, order_factory):
        order = order_factory()
        payment = _open_payment(order)
        order = current_domain.repository_for(Order).get(order.id)
        order.cancel(notes="Cancelled automatically due to unpaid payment timeout (24h)", changed_by="system")
        current_domain.repository_for(Order).add(order)
        gateway.set_payment("mp-3003", "approved", external_reference=str(payment.id))

        result = service.process_webhook(_webhook("mp-3003"))

        assert result.is_applied
        assert result.events == ()
        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.status == OrderStatus.CANCELLED.value
        assert stored.payment_status == "paid"
        last = stored.history()[-1]
        assert "Manual review required" in last.notes
        assert last.requires_review is True


class TestOtherStatuses:
    def test_rejected_payment_fails_pending_order(self, service, gateway, order_factory):
        order = order_factory()
        payment = _open_payment(order)
        gateway.set_payment("mp-4004", "rejected", external_reference=str(payment.id), status_detail="cc_rejected")

        result = service.process_webhook(_webhook("mp-4004"))

        assert result.status == "failed"
        assert current_domain.repository_for(Payment).get(payment.id).status == "failed"
        assert current_domain.repository_for(Order).get(order.id).payment_status == "failed"

    def test_rejected_payment_on_cancelled_order(self, service, gateway, order_factory):
        order = order_factory(status=OrderStatus.CANCELLED)
        payment = _open_payment(order)
        gateway.set_payment("mp-4005", "rejected", external_reference=str(payment.id))

        service.process_webhook(_webhook("mp-4005"))

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.status == OrderStatus.CANCELLED.value
        assert stored.payment_status == "failed"

    def test_rejected_sibling_attempt_keeps_paid_order_paid(self, service, gateway, order_factory):
        order = order_factory()
        approved = _open_payment(order)
        gateway.set_payment("mp-4006", "approved", external_reference=str(approved.id))
        service.process_webhook(_webhook("mp-4006"))

        retry = _open_payment(order)
        gateway.set_payment("mp-4007", "rejected", external_reference=str(retry.id))
        result = service.process_webhook(_webhook("mp-4007"))

        assert result.is_applied
        assert current_domain.repository_for(Payment).get(retry.id).status == "failed"
        assert current_domain.repository_for(Order).get(order.id).payment_status == "paid"

    def test_stale_pending_after_paid_is_ignored(self, service, gateway, order_factory):
        order = order_factory()
        payment = _open_payment(order)
        gateway.set_payment("mp-5005", "approved", external_reference=str(payment.id))
        service.process_webhook(_webhook("mp-5005"))

        gateway.set_payment("mp-5005", "pending", external_reference=str(payment.id))
        result = service.process_webhook(_webhook("mp-5005"))

        assert result.outcome == ReconciliationOutcome.IGNORED
        assert result.reason == "Stale status"
        assert current_domain.repository_for(Payment).get(payment.id).status == "paid"
        assert current_domain.repository_for(Order).get(order.id).payment_status == "paid"


class TestWebhookShapes:
    def test_non_payment_topic_is_ignored(self, service):
        result = service.process_webhook({"type": "merchant_order", "data": {"id": "1"}})
        assert result.outcome == ReconciliationOutcome.IGNORED

    def test_missing_data_id_is_rejected(self, service):
        result = service.process_webhook({"type": "payment", "data": {}})
        assert result.outcome == ReconciliationOutcome.REJECTED

    def test_unknown_gateway_payment_is_rejected(self, service):
        result = service.process_webhook(_webhook("does-not-exist"))
        assert result.outcome == ReconciliationOutcome.REJECTED

    def test_unknown_local_payment_is_rejected(self, service, gateway):
        gateway.set_payment("mp-6006", "approved", external_reference="no-such-payment")
        result = service.process_webhook(_webhook("mp-6006"))
        assert result.outcome == ReconciliationOutcome.REJECTED

    def test_processing_errors_are_swallowed(self, service, gateway):
        orphan = Payment.open(order_id=str(uuid4()), amount=100.0, currency="ARS")
        current_domain.repository_for(Payment).add(orphan)
        gateway.set_payment("mp-7007", "approved", external_reference=str(orphan.id))

        result = service.process_webhook(_webhook("mp-7007"))

        assert result.outcome == ReconciliationOutcome.REJECTED


class TestPaymentStatusQuery:
    def test_sync_pulls_from_gateway(self, service, gateway, order_factory):
        order = order_factory()
        payment = _open_payment(order)
        gateway.set_payment("mp-8008", "pending", external_reference=str(payment.id))
        service.process_webhook(_webhook("mp-8008"))
        gateway.set_payment("mp-8008", "approved", external_reference=str(payment.id))

        assert service.get_payment_status(payment.id)["status"] == "pending"
        status = service.get_payment_status(payment.id, sync=True)

        assert status["status"] == "paid"
        assert status["order_id"] == str(order.id)

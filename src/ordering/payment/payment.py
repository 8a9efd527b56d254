"""Payment aggregate: one record per payment attempt for an order.

An order may accumulate several attempts across retries; the order's own
``payment_status`` is the authoritative current status. Once a payment is
successful, later reports can only move it forward (refunds): a stale
"pending" notification arriving after "approved" is never applied.
"""

import json

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text

from ordering.domain import ordering
from ordering.order.status import PaymentStatus
from ordering.payment.events import PaymentAttemptCreated, PaymentAttemptFailed, PaymentStatusUpdated
from ordering.utils.time import utcnow

# Statuses that may only move along these edges once reached
_FORWARD_ONLY = {
    PaymentStatus.APPROVED: {PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED},
    PaymentStatus.PARTIALLY_REFUNDED: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal
}


@ordering.aggregate
class Payment:
    order_id = Identifier(required=True)
    gateway = String(max_length=50, default="mercado_pago")
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="ARS")
    external_id = String(max_length=255)  # Gateway preference id
    metadata = Text()  # JSON
    paid_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def open(cls, order_id, amount, currency, gateway="mercado_pago"):
        now = utcnow()
        payment = cls(
            order_id=order_id,
            gateway=gateway,
            status=PaymentStatus.PENDING.value,
            amount=amount,
            currency=currency,
            metadata=json.dumps({}),
            created_at=now,
            updated_at=now,
        )
        payment.raise_(
            PaymentAttemptCreated(
                payment_id=str(payment.id),
                order_id=str(order_id),
                gateway=gateway,
                amount=amount,
                currency=currency,
                created_at=now,
            )
        )
        return payment

    @property
    def meta(self) -> dict:
        return json.loads(self.metadata) if self.metadata else {}

    def merge_metadata(self, values: dict) -> None:
        data = self.meta
        data.update({k: v for k, v in values.items() if v is not None})
        self.metadata = json.dumps(data)

    # -------------------------------------------------------------------
    # Preference lifecycle
    # -------------------------------------------------------------------
    def attach_preference(self, preference_id):
        self.external_id = str(preference_id)
        self.merge_metadata({"preference_id": str(preference_id)})
        self.updated_at = utcnow()

    def mark_failed(self, reason):
        if PaymentStatus(self.status) != PaymentStatus.PENDING:
            raise ValidationError({"status": [f"Cannot fail a payment in status {self.status}"]})

        now = utcnow()
        self.status = PaymentStatus.FAILED.value
        self.merge_metadata({"failure_reason": reason})
        self.updated_at = now

        self.raise_(
            PaymentAttemptFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                reason=reason,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------
    def accepts(self, new_status) -> bool:
        """Whether a reported status may replace the current one."""
        current = PaymentStatus(self.status)
        new_status = PaymentStatus(new_status)
        if current in _FORWARD_ONLY:
            return new_status in _FORWARD_ONLY[current]
        return True

    def apply_gateway_status(self, new_status, metadata=None, gateway_payment_id=None):
        """Record a gateway-reported status. Returns the previous status."""
        new_status = PaymentStatus(new_status)
        previous = PaymentStatus(self.status)
        if new_status != previous and not self.accepts(new_status):
            raise ValidationError({"status": [f"Cannot move payment from {previous.value} to {new_status.value}"]})

        now = utcnow()
        self.merge_metadata(metadata or {})
        self.updated_at = now
        if new_status == previous:
            return previous

        self.status = new_status.value
        if new_status == PaymentStatus.PAID:
            self.paid_at = now

        self.raise_(
            PaymentStatusUpdated(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                previous_status=previous.value,
                new_status=new_status.value,
                gateway_payment_id=str(gateway_payment_id) if gateway_payment_id else None,
                updated_at=now,
            )
        )
        return previous

"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="Payment")
class PaymentAttemptCreated:
    """A payment attempt was opened for an order."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    gateway = String(required=True, max_length=50)
    amount = Float(required=True)
    currency = String(max_length=3)
    created_at = DateTime(required=True)


@ordering.event(part_of="Payment")
class PaymentAttemptFailed:
    """Opening the hosted checkout failed at the gateway."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    failed_at = DateTime(required=True)


@ordering.event(part_of="Payment")
class PaymentStatusUpdated:
    """Reconciliation moved a payment to a new gateway-reported status."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    previous_status = String(required=True, max_length=30)
    new_status = String(required=True, max_length=30)
    gateway_payment_id = String(max_length=255)
    updated_at = DateTime(required=True)

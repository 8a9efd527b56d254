"""Domain events for the Order aggregate.

Events are versioned, immutable facts raised by Order transitions and
published after the unit of work that produced them commits. Consumers
(notifications, fulfillment triggers) receive them at least once and must be
idempotent.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderCreated:
    """A cart was converted into a new order at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True, max_length=30)
    customer_id = Identifier()
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    discount = Float()
    tax = Float()
    shipping = Float()
    total = Float(required=True)
    currency = String(max_length=3)
    created_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The fulfillment status of an order moved along the transition table."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True, max_length=20)
    to_status = String(required=True, max_length=20)
    notes = Text()
    changed_by = String(max_length=100)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaid:
    """Payment for an order was confirmed by the gateway."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True, max_length=30)
    customer_id = Identifier()
    total = Float(required=True)
    currency = String(max_length=3)
    transaction_id = String(max_length=255)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaymentFailed:
    """The gateway reported a final payment failure for an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(max_length=500)
    failed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaymentExpired:
    """An unpaid order was cancelled after its payment window elapsed."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True, max_length=30)
    expiration_hours = Integer(required=True)
    expired_at = DateTime(required=True)

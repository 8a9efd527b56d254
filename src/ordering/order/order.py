"""Order aggregate: a committed purchase with two independent status tracks.

The aggregate only mutates itself and raises events; orchestrators load it
through a repository, call one of the transition methods below and persist it
in their own unit of work. Every fulfillment transition appends an
OrderStatusHistory row to the aggregate, so the audit trail is written
together with the state it describes.

Fulfillment track (see ``status.ORDER_TRANSITIONS``):
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED → REFUNDED
    PENDING/CONFIRMED/PROCESSING → CANCELLED

Payment track (``payment_status``) is driven by gateway reconciliation and
never moves ``status`` on its own.
"""

import json
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderCreated,
    OrderPaid,
    OrderPaymentExpired,
    OrderPaymentFailed,
    OrderStatusChanged,
)
from ordering.order.status import (
    CUSTOMER_CANCELLABLE,
    OrderStatus,
    PaymentStatus,
    can_transition,
    label,
)
from ordering.utils.time import utcnow


def generate_order_number(now=None) -> str:
    """Human-readable order number, e.g. ``ORD-261017-4F2A9C``."""
    now = now or utcnow()
    return f"ORD-{now:%y%m%d}-{uuid4().hex[:6].upper()}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class OrderAddress:
    """Shipping or billing address captured at checkout.

    The snapshot never changes once recorded, whatever happens later to the
    customer's address book.
    """

    name = String(required=True, max_length=255)
    phone = String(max_length=50)
    email = String(max_length=255)
    address = String(required=True, max_length=255)
    address_line_2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=2, default="AR")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """Line item snapshot, decoupled from the live product."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    name = String(required=True, max_length=255)
    sku = String(max_length=100)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    options = Text()  # JSON: variant attributes


@ordering.entity(part_of="Order")
class OrderStatusHistory:
    """One audit row per status change or payment milestone. Append-only."""

    status = String(required=True, max_length=20)
    notes = Text()
    changed_by = String(max_length=100)
    requires_review = Boolean(default=False)
    created_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=30)
    customer_id = Identifier()  # Nullable for guest orders
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    subtotal = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="ARS")
    notes = Text()
    shipping_address = ValueObject(OrderAddress, required=True)
    billing_address = ValueObject(OrderAddress)
    items = HasMany(OrderItem)
    status_history = HasMany(OrderStatusHistory)
    paid_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def paid_orders_must_have_payment_timestamp(self):
        if self.payment_status == PaymentStatus.PAID.value and self.paid_at is None:
            raise ValidationError({"paid_at": ["A paid order must record when it was paid"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        shipping_address,
        totals,
        lines,
        customer_id=None,
        billing_address=None,
        notes=None,
        currency="ARS",
        order_number=None,
    ):
        """Create a PENDING/PENDING order from priced cart lines.

        Args:
            shipping_address: OrderAddress snapshot.
            totals: OrderTotals from the calculator.
            lines: Iterable of CartLine snapshots.
        """
        now = utcnow()
        order = cls(
            order_number=order_number or generate_order_number(now),
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            subtotal=totals.subtotal,
            discount=totals.discount,
            tax=totals.tax,
            shipping=totals.shipping,
            total=totals.total,
            currency=currency,
            notes=notes,
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            created_at=now,
            updated_at=now,
        )

        for line in lines:
            order.add_items(
                OrderItem(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    name=line.name,
                    sku=line.sku,
                    quantity=line.quantity,
                    price=line.unit_price,
                    total=line.total,
                    options=json.dumps(line.options or {}),
                )
            )

        order._record_history(OrderStatus.PENDING.value, "Order created", changed_by="system", at=now)

        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id) if customer_id else None,
                item_count=len(order.items),
                subtotal=order.subtotal,
                discount=order.discount,
                tax=order.tax,
                shipping=order.shipping,
                total=order.total,
                currency=currency,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_awaiting_payment(self) -> bool:
        return self.status == OrderStatus.PENDING.value and self.payment_status == PaymentStatus.PENDING.value

    @property
    def can_be_cancelled_by_customer(self) -> bool:
        return OrderStatus(self.status) in CUSTOMER_CANCELLABLE

    def belongs_to(self, customer_id) -> bool:
        """Guest orders have no owner; registered orders belong to one customer."""
        if self.customer_id is None:
            return customer_id is None
        return customer_id is not None and str(self.customer_id) == str(customer_id)

    # -------------------------------------------------------------------
    # Fulfillment track
    # -------------------------------------------------------------------
    def transition_to(self, target, notes=None, changed_by=None):
        """Move ``status`` along an edge of the transition table."""
        target = OrderStatus(target)
        current = OrderStatus(self.status)
        if not can_transition(current, target):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

        now = utcnow()
        self.status = target.value
        if target == OrderStatus.SHIPPED:
            self.shipped_at = now
        elif target == OrderStatus.DELIVERED:
            self.delivered_at = now
        elif target == OrderStatus.CANCELLED:
            self.cancelled_at = now
        self.updated_at = now

        self._record_history(target.value, notes or label(target), changed_by=changed_by, at=now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                from_status=current.value,
                to_status=target.value,
                notes=notes,
                changed_by=changed_by,
                changed_at=now,
            )
        )

    def cancel(self, notes, changed_by=None):
        """Cancel the order, closing a still-open payment track."""
        self.transition_to(OrderStatus.CANCELLED, notes=notes, changed_by=changed_by)
        if self.payment_status == PaymentStatus.PENDING.value:
            self.payment_status = PaymentStatus.CANCELLED.value

    def expire_unpaid(self, hours):
        """Cancel an order whose payment window of ``hours`` has elapsed."""
        if not self.is_awaiting_payment:
            raise ValidationError({"status": ["Only pending unpaid orders can expire"]})

        self.payment_status = PaymentStatus.CANCELLED.value
        self.transition_to(
            OrderStatus.CANCELLED,
            notes=f"Cancelled automatically due to unpaid payment timeout ({hours}h)",
            changed_by="system",
        )

        self.raise_(
            OrderPaymentExpired(
                order_id=str(self.id),
                order_number=self.order_number,
                expiration_hours=hours,
                expired_at=self.cancelled_at,
            )
        )

    # -------------------------------------------------------------------
    # Payment track
    # -------------------------------------------------------------------
    def mark_paid(self, transaction_id=None):
        now = utcnow()
        self.paid_at = now
        self.payment_status = PaymentStatus.PAID.value
        self.updated_at = now

        notes = "Payment received"
        if transaction_id:
            notes = f"Payment received (transaction {transaction_id})"
        self._record_history(self.status, notes, changed_by="payment_gateway", at=now)

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id) if self.customer_id else None,
                total=self.total,
                currency=self.currency,
                transaction_id=str(transaction_id) if transaction_id else None,
                paid_at=now,
            )
        )

    def record_late_payment(self, transaction_id=None):
        """Record a payment approved after the order was cancelled.

        The order stays CANCELLED and nothing downstream is triggered; the
        history row is flagged for a human to decide between refund and
        reinstatement.
        """
        now = utcnow()
        self.paid_at = now
        self.payment_status = PaymentStatus.PAID.value
        self.updated_at = now

        notes = "Late payment received. Payment approved after order cancellation. Manual review required."
        if transaction_id:
            notes = f"{notes} (transaction {transaction_id})"
        self._record_history(self.status, notes, changed_by="payment_gateway", at=now, requires_review=True)

    def mark_payment_failed(self, reason=None):
        now = utcnow()
        self.payment_status = PaymentStatus.FAILED.value
        self.updated_at = now

        notes = f"Payment failed: {reason}" if reason else "Payment failed"
        self._record_history(self.status, notes, changed_by="payment_gateway", at=now)

        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                reason=reason,
                failed_at=now,
            )
        )

    def set_payment_status(self, payment_status):
        """Mirror a non-terminal gateway status onto the order."""
        self.payment_status = PaymentStatus(payment_status).value
        self.updated_at = utcnow()

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _record_history(self, status, notes, changed_by=None, at=None, requires_review=False):
        self.add_status_history(
            OrderStatusHistory(
                status=status,
                notes=notes,
                changed_by=changed_by,
                requires_review=requires_review,
                created_at=at or utcnow(),
            )
        )

    def history(self):
        """Status history ordered by creation time."""
        return sorted(self.status_history, key=lambda entry: entry.created_at)

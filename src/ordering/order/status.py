"""Status vocabularies and transition tables.

The enum values are the wire-level contract for API responses and must
round-trip exactly. Allowed transitions live in plain lookup tables, and
human-readable labels in a separate formatting function, so the domain types
stay free of presentation concerns.
"""

from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    APPROVED = "approved"
    FAILED = "failed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class ShippingStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    RETURNED = "returned"


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),  # Terminal
    OrderStatus.REFUNDED: frozenset(),  # Terminal
}

# Orders a customer may still cancel themselves
CUSTOMER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})

SUCCESSFUL_PAYMENT_STATUSES = frozenset({PaymentStatus.PAID, PaymentStatus.APPROVED})
FAILED_PAYMENT_STATUSES = frozenset({PaymentStatus.FAILED, PaymentStatus.REJECTED, PaymentStatus.CANCELLED})


def allowed_transitions(status) -> frozenset:
    return ORDER_TRANSITIONS.get(OrderStatus(status), frozenset())


def can_transition(current, target) -> bool:
    return OrderStatus(target) in allowed_transitions(current)


def is_successful(status) -> bool:
    return PaymentStatus(status) in SUCCESSFUL_PAYMENT_STATUSES


def is_failed_final(status) -> bool:
    return PaymentStatus(status) in FAILED_PAYMENT_STATUSES


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------
_LABELS = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.PROCESSING: "Processing",
    OrderStatus.SHIPPED: "Shipped",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.REFUNDED: "Refunded",
    PaymentStatus.PENDING: "Pending",
    PaymentStatus.PROCESSING: "Processing",
    PaymentStatus.PAID: "Paid",
    PaymentStatus.APPROVED: "Approved",
    PaymentStatus.FAILED: "Failed",
    PaymentStatus.REJECTED: "Rejected",
    PaymentStatus.CANCELLED: "Cancelled",
    PaymentStatus.REFUNDED: "Refunded",
    PaymentStatus.PARTIALLY_REFUNDED: "Partially Refunded",
    ShippingStatus.PENDING: "Pending",
    ShippingStatus.PROCESSING: "Processing",
    ShippingStatus.SHIPPED: "Shipped",
    ShippingStatus.IN_TRANSIT: "In Transit",
    ShippingStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    ShippingStatus.DELIVERED: "Delivered",
    ShippingStatus.FAILED: "Delivery Failed",
    ShippingStatus.RETURNED: "Returned",
}


def label(status: Enum) -> str:
    """Human-readable label for any order, payment or shipping status."""
    return _LABELS[status]

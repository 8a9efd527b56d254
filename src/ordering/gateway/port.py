"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement, plus
the mapping from the gateway's status vocabulary to PaymentStatus. This
enables swapping between FakeGateway (dev/test) and MercadoPagoGateway
(production) without changing any domain or application code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ordering.order.status import PaymentStatus

_STATUS_MAP = {
    "approved": PaymentStatus.PAID,
    "pending": PaymentStatus.PENDING,
    "in_process": PaymentStatus.PENDING,
    "rejected": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.CANCELLED,
    "refunded": PaymentStatus.REFUNDED,
}


def map_gateway_status(raw_status: str | None) -> PaymentStatus:
    """Map a gateway status string; anything unrecognized is still pending."""
    return _STATUS_MAP.get((raw_status or "").strip().lower(), PaymentStatus.PENDING)


@dataclass(frozen=True)
class Payer:
    name: str
    email: str
    surname: str | None = None


@dataclass(frozen=True)
class PreferenceItem:
    id: str
    title: str
    quantity: int
    unit_price: float
    description: str | None = None


@dataclass(frozen=True)
class PreferenceRequest:
    """Everything the gateway needs to open a hosted checkout."""

    external_reference: str
    items: tuple[PreferenceItem, ...]
    payer: Payer
    currency: str
    back_urls: dict = field(default_factory=dict)
    notification_url: str | None = None
    statement_descriptor: str | None = None


@dataclass(frozen=True)
class Preference:
    """A hosted checkout session created by the gateway."""

    id: str
    init_point: str
    sandbox_init_point: str | None = None


@dataclass(frozen=True)
class GatewayPayment:
    """A payment as currently known by the gateway."""

    id: str
    status: str
    status_detail: str | None = None
    external_reference: str | None = None
    transaction_amount: float | None = None
    currency_id: str | None = None
    date_approved: str | None = None
    payment_method_id: str | None = None
    payment_type_id: str | None = None
    payer: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name = "gateway"

    @abstractmethod
    def create_preference(self, request: PreferenceRequest) -> Preference:
        """Create a hosted checkout preference."""
        ...

    @abstractmethod
    def get_payment(self, gateway_payment_id: str) -> GatewayPayment | None:
        """Fetch a payment's current remote state; None when it cannot be read."""
        ...

    @abstractmethod
    def validate_webhook_signature(self, signature: str | None, request_id: str | None, raw_body) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...

    def map_status(self, raw_status: str | None) -> PaymentStatus:
        return map_gateway_status(raw_status)

"""Shipping provider port: abstract interface for carrier integrations.

All carrier adapters must implement this interface. The shipping
orchestrator programs against the port; adapters are swapped via
configuration.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import date, datetime

from ordering.order.status import ShippingStatus


@dataclass(frozen=True)
class QuoteRequest:
    destination_postal_code: str
    origin_postal_code: str
    weight: float  # kg
    declared_value: float
    volume_cm3: int | None = None


@dataclass(frozen=True)
class ShippingOption:
    service_code: str
    service_name: str
    cost: float
    estimated_days: int
    description: str | None = None


@dataclass(frozen=True)
class ShippingQuote:
    provider: str
    options: tuple[ShippingOption, ...]
    free_threshold: float | None = None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ShipmentRequest:
    """What the carrier needs to create a shipment for one order."""

    order_number: str
    origin_postal_code: str | None
    recipient_name: str
    recipient_email: str | None
    recipient_phone: str | None
    street: str
    city: str
    state: str | None
    postal_code: str
    country: str
    weight: float  # kg
    declared_value: float


@dataclass(frozen=True)
class ShipmentResult:
    tracking_number: str
    label_url: str | None = None
    estimated_delivery: date | None = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TrackingEvent:
    timestamp: datetime
    status: str
    description: str
    location: str | None = None


@dataclass(frozen=True)
class TrackingInfo:
    tracking_number: str
    status: str  # Carrier vocabulary, lowercased
    events: tuple[TrackingEvent, ...] = ()
    last_update: datetime | None = None

    def as_dict(self) -> dict:
        return asdict(self)


class ShippingProvider(ABC):
    """Abstract interface for carrier adapters."""

    name = "carrier"

    @abstractmethod
    def get_quote(self, request: QuoteRequest) -> ShippingQuote:
        """Quote the available services for a parcel."""
        ...

    @abstractmethod
    def create_shipment(self, request: ShipmentRequest) -> ShipmentResult:
        """Create a shipment and return its tracking number and label."""
        ...

    @abstractmethod
    def track_shipment(self, tracking_number: str) -> TrackingInfo:
        """Current carrier status and event history of a shipment."""
        ...

    @abstractmethod
    def map_status(self, carrier_status: str | None) -> ShippingStatus:
        """Translate a carrier status string into ShippingStatus."""
        ...

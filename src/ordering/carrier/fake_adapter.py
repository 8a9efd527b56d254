"""Fake carrier adapter: deterministic carrier for testing and development.

Generates mock tracking numbers, labels and tracking events using the
Andreani status vocabulary. Configurable success/failure behavior for
integration testing.
"""

from datetime import timedelta
from uuid import uuid4

from ordering.carrier.andreani_adapter import map_andreani_status
from ordering.carrier.port import (
    QuoteRequest,
    ShipmentRequest,
    ShipmentResult,
    ShippingOption,
    ShippingProvider,
    ShippingQuote,
    TrackingEvent,
    TrackingInfo,
)
from ordering.errors import ProviderError
from ordering.order.status import ShippingStatus
from ordering.utils.time import utcnow


class FakeCarrier(ShippingProvider):
    """Fake carrier that always succeeds by default."""

    name = "andreani"

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.calls: list[dict] = []
        self.tracking: dict[str, str] = {}

    def configure(self, should_succeed: bool = True, failure_reason: str = "Carrier unavailable"):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def _fail_if_configured(self):
        if not self.should_succeed:
            raise ProviderError(message=self.failure_reason, status_code=503, response_body={"error": self.failure_reason})

    def map_status(self, carrier_status: str | None) -> ShippingStatus:
        return map_andreani_status(carrier_status)

    def get_quote(self, request: QuoteRequest) -> ShippingQuote:
        self.calls.append({"method": "get_quote", "request": request})
        self._fail_if_configured()
        return ShippingQuote(
            provider=self.name,
            options=(
                ShippingOption(
                    service_code="standard",
                    service_name="Andreani Estándar",
                    cost=round(1800 + request.weight * 150, 2),
                    estimated_days=5,
                ),
                ShippingOption(
                    service_code="express",
                    service_name="Andreani Urgente",
                    cost=round(3200 + request.weight * 200, 2),
                    estimated_days=2,
                ),
            ),
        )

    def create_shipment(self, request: ShipmentRequest) -> ShipmentResult:
        self.calls.append({"method": "create_shipment", "request": request})
        self._fail_if_configured()

        tracking_number = f"FAKE{uuid4().hex[:12].upper()}"
        self.tracking[tracking_number] = "ingresado"
        return ShipmentResult(
            tracking_number=tracking_number,
            label_url=f"https://fake-carrier.example.com/labels/{tracking_number}.pdf",
            estimated_delivery=(utcnow() + timedelta(days=5)).date(),
            metadata={"numeroAndreani": tracking_number, "ordenCompra": request.order_number},
        )

    def set_tracking_status(self, tracking_number: str, carrier_status: str) -> None:
        self.tracking[tracking_number] = carrier_status

    def track_shipment(self, tracking_number: str) -> TrackingInfo:
        self.calls.append({"method": "track_shipment", "tracking_number": tracking_number})
        self._fail_if_configured()

        status = self.tracking.get(tracking_number, "en preparacion")
        now = utcnow()
        return TrackingInfo(
            tracking_number=tracking_number,
            status=status,
            events=(TrackingEvent(timestamp=now, status=status, description="Fake tracking event", location="CABA"),),
            last_update=now,
        )

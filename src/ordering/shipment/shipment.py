"""Shipment aggregate: one carrier shipment for an order.

A shipment row is opened PENDING before the carrier is called, then becomes
SHIPPED with a tracking number or FAILED with the carrier's error kept in
``metadata``. Carrier webhooks move it further (IN_TRANSIT, DELIVERED ...);
every raw notification is merged into ``metadata`` as an audit trail.
"""

import json

from protean.exceptions import ValidationError
from protean.fields import Date, DateTime, Identifier, String, Text

from ordering.domain import ordering
from ordering.order.status import ShippingStatus
from ordering.shipment.events import (
    ShipmentDispatched,
    ShipmentFailed,
    ShipmentRequested,
    ShipmentStatusUpdated,
)
from ordering.utils.time import utcnow


@ordering.aggregate
class Shipment:
    order_id = Identifier(required=True)
    provider = String(required=True, max_length=50)
    tracking_number = String(max_length=100)
    status = String(choices=ShippingStatus, default=ShippingStatus.PENDING.value)
    label_url = String(max_length=500)
    estimated_delivery = Date()
    shipped_at = DateTime()
    delivered_at = DateTime()
    metadata = Text()  # JSON
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def open(cls, order_id, provider):
        now = utcnow()
        shipment = cls(
            order_id=order_id,
            provider=provider,
            status=ShippingStatus.PENDING.value,
            metadata=json.dumps({}),
            created_at=now,
            updated_at=now,
        )
        shipment.raise_(
            ShipmentRequested(
                shipment_id=str(shipment.id),
                order_id=str(order_id),
                provider=provider,
                requested_at=now,
            )
        )
        return shipment

    @property
    def meta(self) -> dict:
        return json.loads(self.metadata) if self.metadata else {}

    def merge_metadata(self, values: dict) -> None:
        data = self.meta
        data.update(values)
        self.metadata = json.dumps(data, default=str)

    @property
    def is_failed(self) -> bool:
        return self.status == ShippingStatus.FAILED.value

    @property
    def is_delivered(self) -> bool:
        return self.status == ShippingStatus.DELIVERED.value or self.delivered_at is not None

    # -------------------------------------------------------------------
    # Creation outcome
    # -------------------------------------------------------------------
    def dispatch(self, tracking_number, label_url=None, estimated_delivery=None, carrier_response=None):
        if self.status != ShippingStatus.PENDING.value:
            raise ValidationError({"status": [f"Cannot dispatch a shipment in status {self.status}"]})

        now = utcnow()
        self.tracking_number = tracking_number
        self.label_url = label_url
        self.estimated_delivery = estimated_delivery
        self.status = ShippingStatus.SHIPPED.value
        self.shipped_at = now
        self.updated_at = now
        if carrier_response:
            self.merge_metadata({"carrier_response": carrier_response})

        self.raise_(
            ShipmentDispatched(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                provider=self.provider,
                tracking_number=tracking_number,
                label_url=label_url,
                estimated_delivery=estimated_delivery,
                shipped_at=now,
            )
        )

    def mark_failed(self, error, status_code=None, response_body=None):
        if self.status != ShippingStatus.PENDING.value:
            raise ValidationError({"status": [f"Cannot fail a shipment in status {self.status}"]})

        now = utcnow()
        self.status = ShippingStatus.FAILED.value
        self.updated_at = now
        self.merge_metadata(
            {
                "error": error,
                "status_code": status_code,
                "response_body": response_body,
                "failed_at": now.isoformat(),
            }
        )

        self.raise_(
            ShipmentFailed(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                error=error,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Carrier notifications
    # -------------------------------------------------------------------
    def apply_carrier_update(self, new_status, carrier_status=None, payload=None):
        """Record a carrier-reported status. Returns the previous status."""
        new_status = ShippingStatus(new_status)
        previous = ShippingStatus(self.status)

        now = utcnow()
        self.merge_metadata({"last_webhook": payload or {}, "last_webhook_at": now.isoformat()})
        self.updated_at = now
        if new_status == previous:
            return previous

        self.status = new_status.value
        if new_status == ShippingStatus.DELIVERED and self.delivered_at is None:
            self.delivered_at = now

        self.raise_(
            ShipmentStatusUpdated(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                tracking_number=self.tracking_number,
                previous_status=previous.value,
                new_status=new_status.value,
                carrier_status=carrier_status,
                updated_at=now,
            )
        )
        return previous

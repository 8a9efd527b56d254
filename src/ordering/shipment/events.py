"""Domain events for the Shipment aggregate."""

from protean.fields import Date, DateTime, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="Shipment")
class ShipmentRequested:
    """A shipment row was opened before calling the carrier."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    provider = String(required=True, max_length=50)
    requested_at = DateTime(required=True)


@ordering.event(part_of="Shipment")
class ShipmentDispatched:
    """The carrier accepted the shipment and issued a tracking number."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    provider = String(required=True, max_length=50)
    tracking_number = String(required=True, max_length=100)
    label_url = String(max_length=500)
    estimated_delivery = Date()
    shipped_at = DateTime(required=True)


@ordering.event(part_of="Shipment")
class ShipmentFailed:
    """The carrier refused or could not be reached when creating the shipment."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    error = String(max_length=1000)
    failed_at = DateTime(required=True)


@ordering.event(part_of="Shipment")
class ShipmentStatusUpdated:
    """A carrier notification moved the shipment to a new status."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    tracking_number = String(max_length=100)
    previous_status = String(required=True, max_length=30)
    new_status = String(required=True, max_length=30)
    carrier_status = String(max_length=100)
    updated_at = DateTime(required=True)

"""Shipping orchestration: quotes, shipment creation, tracking and carrier
webhooks.

Quotes never fail towards the customer: without an origin postal code, or
when the carrier errors, a flat fallback quote is returned instead.

Shipment creation opens a PENDING row in its own unit of work, calls the
carrier outside any transaction, then records SHIPPED (and moves the order
to SHIPPED) or FAILED in a second unit of work. The FAILED marker is
committed before the carrier error propagates to the admin caller.
"""

import hashlib
import hmac

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.carrier.port import QuoteRequest, ShipmentRequest, ShippingProvider
from ordering.catalogue.product import Product
from ordering.config import CarrierSettings, StoreSettings
from ordering.errors import BusinessRuleError, NotFoundError, ProviderError
from ordering.order.order import Order
from ordering.order.status import OrderStatus, ShippingStatus, can_transition
from ordering.reconciliation import ReconciliationResult
from ordering.shipment.shipment import Shipment
from ordering.utils.versioning import save, unit_of_work

logger = structlog.get_logger(__name__)

# Synonyms seen in carrier notifications that are not part of the carrier's
# documented vocabulary
_STATUS_SYNONYMS = {
    "en_camino": ShippingStatus.IN_TRANSIT,
    "in_transit": ShippingStatus.IN_TRANSIT,
    "shipped": ShippingStatus.SHIPPED,
    "out_for_delivery": ShippingStatus.OUT_FOR_DELIVERY,
    "delivered": ShippingStatus.DELIVERED,
    "fallido": ShippingStatus.FAILED,
    "failed": ShippingStatus.FAILED,
    "returned": ShippingStatus.RETURNED,
}


class ShippingService:
    def __init__(
        self,
        provider: ShippingProvider,
        settings: StoreSettings,
        carrier_settings: CarrierSettings | None = None,
    ) -> None:
        self.provider = provider
        self.settings = settings
        self.carrier_settings = carrier_settings or CarrierSettings()

    # -------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------
    def quote(self, postal_code: str, weight: float, declared_value: float = 0.0) -> dict:
        """Shipping options for a destination, falling back to a flat quote."""
        origin = self.settings.origin_postal_code
        if not origin:
            logger.warning("Origin postal code not configured, using default quote")
            return self.default_quote(weight)

        try:
            quote = self.provider.get_quote(
                QuoteRequest(
                    destination_postal_code=postal_code,
                    origin_postal_code=origin,
                    weight=weight,
                    declared_value=declared_value,
                )
            )
        except ProviderError as exc:
            logger.warning(
                "Shipping quote failed, using default",
                postal_code=postal_code,
                error=exc.message,
                status_code=exc.status_code,
            )
            return self.default_quote(weight)

        result = quote.as_dict()
        result["free_threshold"] = self.settings.free_shipping_threshold
        return result

    def default_quote(self, weight: float) -> dict:
        return {
            "provider": "standard",
            "options": [
                {
                    "service_code": "standard",
                    "service_name": "Envío Estándar",
                    "cost": round(self.settings.base_shipping_cost + weight * self.settings.shipping_cost_per_kg, 2),
                    "estimated_days": 5,
                    "description": "Envío estándar a domicilio",
                }
            ],
            "free_threshold": self.settings.free_shipping_threshold,
        }

    # -------------------------------------------------------------------
    # Shipment creation
    # -------------------------------------------------------------------
    def _existing_shipments(self, order_id):
        return (
            current_domain.repository_for(Shipment)
            ._dao.query.filter(order_id=str(order_id))
            .all()
            .items
        )

    def _assert_shippable(self, order):
        if order.status != OrderStatus.PROCESSING.value:
            raise BusinessRuleError(
                "ORDER_NOT_SHIPPABLE",
                f"Order {order.order_number} must be processing to ship, it is {order.status}",
                details={"status": order.status},
            )

        live = [shipment for shipment in self._existing_shipments(order.id) if not shipment.is_failed]
        if live:
            raise BusinessRuleError(
                "SHIPMENT_ALREADY_EXISTS",
                f"Order {order.order_number} already has a shipment",
                details={"shipment_id": str(live[0].id), "tracking_number": live[0].tracking_number},
            )

    def _order_weight(self, order) -> float:
        repo = current_domain.repository_for(Product)
        weight = 0.0
        for item in order.items:
            try:
                unit_weight = repo.get(str(item.product_id)).weight
            except ObjectNotFoundError:
                unit_weight = None
            weight += (unit_weight or self.settings.default_item_weight) * item.quantity
        return round(weight, 3)

    def _shipment_request(self, order) -> ShipmentRequest:
        address = order.shipping_address
        return ShipmentRequest(
            order_number=order.order_number,
            origin_postal_code=self.settings.origin_postal_code,
            recipient_name=address.name,
            recipient_email=address.email,
            recipient_phone=address.phone,
            street=" ".join(part for part in (address.address, address.address_line_2) if part),
            city=address.city,
            state=address.state,
            postal_code=address.postal_code,
            country=address.country or "AR",
            weight=self._order_weight(order),
            declared_value=order.total,
        )

    def create_shipment(self, order_id) -> Shipment:
        """Ship a PROCESSING order through the carrier.

        Raises:
            BusinessRuleError: ``ORDER_NOT_SHIPPABLE`` or ``SHIPMENT_ALREADY_EXISTS``.
            ProviderError: the carrier refused the shipment; the Shipment row
                is left FAILED with the error in its metadata.
        """
        order_repo = current_domain.repository_for(Order)
        shipment_repo = current_domain.repository_for(Shipment)

        with unit_of_work():
            order = order_repo.get(order_id)
            self._assert_shippable(order)
            shipment = Shipment.open(order_id=str(order.id), provider=self.provider.name)
            save(shipment_repo, shipment)

        try:
            result = self.provider.create_shipment(self._shipment_request(order))
        except ProviderError as exc:
            logger.error(
                "Shipment creation failed",
                order_id=str(order.id),
                shipment_id=str(shipment.id),
                error=exc.message,
                status_code=exc.status_code,
            )
            self._mark_shipment_failed(shipment.id, exc)
            raise

        with unit_of_work():
            shipment = shipment_repo.get(shipment.id)
            shipment.dispatch(
                tracking_number=result.tracking_number,
                label_url=result.label_url,
                estimated_delivery=result.estimated_delivery,
                carrier_response=result.metadata,
            )
            save(shipment_repo, shipment)

            order = order_repo.get(order_id)
            order.transition_to(
                OrderStatus.SHIPPED,
                notes=f"Shipment created with tracking: {result.tracking_number}",
                changed_by="system",
            )
            save(order_repo, order)

        logger.info(
            "Shipment created",
            order_id=str(order.id),
            shipment_id=str(shipment.id),
            tracking_number=result.tracking_number,
        )
        return shipment

    def _mark_shipment_failed(self, shipment_id, exc: ProviderError):
        repo = current_domain.repository_for(Shipment)
        with unit_of_work():
            shipment = repo.get(shipment_id)
            shipment.mark_failed(exc.message, status_code=exc.status_code, response_body=exc.response_body)
            save(repo, shipment)

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    def track_shipment(self, tracking_number: str) -> dict:
        try:
            info = self.provider.track_shipment(tracking_number)
        except ProviderError as exc:
            logger.error("Shipment tracking failed", tracking_number=tracking_number, error=exc.message)
            raise

        result = info.as_dict()
        result["mapped_status"] = self.provider.map_status(info.status).value
        return result

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    def validate_webhook_signature(self, raw_body, signature: str | None) -> bool:
        """HMAC-SHA256 hex digest of the raw body with the carrier secret."""
        secret = self.carrier_settings.webhook_secret
        if not secret:
            return True
        if not signature:
            logger.warning("Carrier webhook received without signature")
            return False

        if isinstance(raw_body, str):
            raw_body = raw_body.encode("utf-8")
        expected = hmac.new(secret.encode("utf-8"), raw_body or b"", hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature)

    def map_status(self, carrier_status: str) -> ShippingStatus:
        normalized = carrier_status.strip().lower()
        if normalized in _STATUS_SYNONYMS:
            return _STATUS_SYNONYMS[normalized]
        return self.provider.map_status(normalized)

    def _find_shipment(self, tracking_number):
        matches = (
            current_domain.repository_for(Shipment)
            ._dao.query.filter(tracking_number=str(tracking_number))
            .all()
            .items
        )
        return matches[0] if matches else None

    def process_webhook(self, payload: dict) -> ReconciliationResult:
        """Entry point for carrier notifications. Never raises."""
        try:
            return self._apply_webhook(payload)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Carrier webhook processing failed", error=str(exc))
            return ReconciliationResult.rejected(str(exc))

    def _apply_webhook(self, payload: dict) -> ReconciliationResult:
        tracking_number = payload.get("numeroAndreani") or payload.get("tracking_number")
        if not tracking_number:
            logger.warning("Carrier webhook without tracking number", payload=payload)
            return ReconciliationResult.rejected("Missing tracking number")

        shipment = self._find_shipment(tracking_number)
        if shipment is None:
            logger.warning("Shipment not found for webhook", tracking_number=tracking_number)
            return ReconciliationResult.rejected("Unknown shipment")

        carrier_status = payload.get("estado") or payload.get("status") or ""
        if not carrier_status:
            return ReconciliationResult.ignored("Missing status", shipment_id=str(shipment.id))

        new_status = self.map_status(carrier_status)
        shipment_repo = current_domain.repository_for(Shipment)
        order_repo = current_domain.repository_for(Order)
        events: list[str] = []

        with unit_of_work():
            shipment = shipment_repo.get(shipment.id)
            already_delivered = shipment.is_delivered
            previous = shipment.apply_carrier_update(new_status, carrier_status=carrier_status, payload=payload)
            save(shipment_repo, shipment)

            if new_status == ShippingStatus.DELIVERED and not already_delivered:
                order = order_repo.get(shipment.order_id)
                if can_transition(order.status, OrderStatus.DELIVERED):
                    order.transition_to(
                        OrderStatus.DELIVERED,
                        notes="Order delivered by shipping provider",
                        changed_by="shipping_provider",
                    )
                    save(order_repo, order)
                    events.append("OrderStatusChanged")
                else:
                    logger.warning(
                        "Delivered shipment for order that cannot be delivered",
                        shipment_id=str(shipment.id),
                        order_id=str(order.id),
                        order_status=order.status,
                    )

        logger.info(
            "Shipment updated from webhook",
            tracking_number=tracking_number,
            previous_status=previous.value,
            status=new_status.value,
        )
        if previous == new_status:
            return ReconciliationResult.ignored(
                "Status unchanged",
                shipment_id=str(shipment.id),
                order_id=str(shipment.order_id),
                status=new_status.value,
            )
        return ReconciliationResult.applied(
            shipment_id=str(shipment.id),
            order_id=str(shipment.order_id),
            status=new_status.value,
            events=tuple(events),
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def shipments_for(self, order_id) -> list:
        try:
            current_domain.repository_for(Order).get(order_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(message=f"Order {order_id} not found") from exc
        return sorted(self._existing_shipments(order_id), key=lambda shipment: shipment.created_at)

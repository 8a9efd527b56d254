"""Andreani shipping provider: payload building and response parsing on top
of AndreaniApiClient, plus the carrier status vocabulary.
"""

from datetime import datetime

import structlog

from ordering.carrier.andreani_client import AndreaniApiClient
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
from ordering.config import CarrierSettings
from ordering.errors import ProviderError
from ordering.order.status import ShippingStatus
from ordering.utils.time import utcnow

logger = structlog.get_logger(__name__)

DEFAULT_SERVICE_TYPE = "Estándar"
MINIMUM_PARCEL_WEIGHT = 0.1  # kg

_STATUS_MAP = {
    "en preparacion": ShippingStatus.PENDING,
    "ingresado": ShippingStatus.PENDING,
    "en camino": ShippingStatus.IN_TRANSIT,
    "en transito": ShippingStatus.IN_TRANSIT,
    "despachado": ShippingStatus.SHIPPED,
    "en distribucion": ShippingStatus.SHIPPED,
    "entregado": ShippingStatus.DELIVERED,
    "devuelto": ShippingStatus.FAILED,
    "rechazado": ShippingStatus.FAILED,
    "no entregado": ShippingStatus.FAILED,
}


def map_andreani_status(carrier_status: str | None) -> ShippingStatus:
    """Andreani free-text status to ShippingStatus; unknown strings stay PENDING."""
    return _STATUS_MAP.get((carrier_status or "").strip().lower(), ShippingStatus.PENDING)


PARSE_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def _invalid_payload(operation: str, data, exc: Exception) -> ProviderError:
    logger.error("Andreani payload could not be parsed", operation=operation, error=str(exc))
    return ProviderError(message=f"Andreani returned an invalid {operation} payload: {exc}", response_body=data)


def _parse_datetime(value) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None


class AndreaniShippingProvider(ShippingProvider):
    name = "andreani"

    def __init__(self, settings: CarrierSettings, client: AndreaniApiClient | None = None, sender: dict | None = None):
        self.settings = settings
        self.client = client or AndreaniApiClient(settings)
        self.sender = sender or {}

    def map_status(self, carrier_status: str | None) -> ShippingStatus:
        return map_andreani_status(carrier_status)

    # -------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------
    def _quote_payload(self, request: QuoteRequest) -> dict:
        parcel = {"kilos": request.weight, "valorDeclarado": request.declared_value}
        if request.volume_cm3:
            parcel["volumen"] = request.volume_cm3
        return {
            "cpDestino": request.destination_postal_code,
            "cpOrigen": request.origin_postal_code,
            "contrato": self.settings.contract,
            "peso": request.weight,
            "valorDeclarado": request.declared_value,
            "bultos": [parcel],
        }

    @staticmethod
    def _option(rate: dict) -> ShippingOption:
        return ShippingOption(
            service_code=rate.get("productoAEntregar") or "standard",
            service_name=rate.get("producto") or rate.get("productoAEntregar") or "Andreani",
            cost=float(rate.get("tarifaSinIva") or rate.get("tarifaConIva") or 0.0),
            estimated_days=int(rate.get("plazoEntrega") or 5),
            description=rate.get("descripcion"),
        )

    def get_quote(self, request: QuoteRequest) -> ShippingQuote:
        data = self.client.get_shipping_quote(self._quote_payload(request))
        try:
            options = tuple(self._option(rate) for rate in data["tarifas"])
        except PARSE_ERRORS as exc:
            raise _invalid_payload("quote", data, exc) from exc
        return ShippingQuote(provider=self.name, options=options)

    # -------------------------------------------------------------------
    # Shipments
    # -------------------------------------------------------------------
    def _shipment_payload(self, request: ShipmentRequest) -> dict:
        return {
            "contrato": self.settings.contract,
            "origen": {"postal": {"codigoPostal": request.origin_postal_code}},
            "destino": {
                "postal": {
                    "codigoPostal": request.postal_code,
                    "calle": request.street,
                    "numero": "S/N",
                    "localidad": request.city,
                    "region": request.state,
                    "pais": request.country or "AR",
                }
            },
            "remitente": {
                "nombreCompleto": self.sender.get("name", ""),
                "email": self.sender.get("email", ""),
                "documentoTipo": "CUIT",
                "documentoNumero": self.sender.get("document", ""),
            },
            "destinatario": [
                {
                    "nombreCompleto": request.recipient_name,
                    "email": request.recipient_email or "",
                    "documentoTipo": "DNI",
                    "documentoNumero": "",
                    "celular": request.recipient_phone or "",
                }
            ],
            "productoAEntregar": DEFAULT_SERVICE_TYPE,
            "bultos": [
                {
                    "kilos": max(request.weight, MINIMUM_PARCEL_WEIGHT),
                    "valorDeclarado": request.declared_value,
                }
            ],
            "referencia": {"ordenCompra": request.order_number},
        }

    def create_shipment(self, request: ShipmentRequest) -> ShipmentResult:
        data = self.client.create_shipment(self._shipment_payload(request))

        try:
            estimated = _parse_datetime(data.get("fechaEntregaEstimada"))
            return ShipmentResult(
                tracking_number=str(data["numeroAndreani"]),
                label_url=data.get("urlEtiqueta"),
                estimated_delivery=estimated.date() if estimated else None,
                metadata=data,
            )
        except PARSE_ERRORS as exc:
            raise _invalid_payload("shipment", data, exc) from exc

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    def track_shipment(self, tracking_number: str) -> TrackingInfo:
        data = self.client.get_tracking(tracking_number)

        try:
            events = tuple(
                TrackingEvent(
                    timestamp=_parse_datetime(trace.get("fecha")) or utcnow(),
                    status=trace.get("estado") or "",
                    description=trace.get("motivo") or "",
                    location=trace.get("sucursal"),
                )
                for trace in data.get("trazas") or []
            )
        except PARSE_ERRORS as exc:
            raise _invalid_payload("tracking", data, exc) from exc

        # Andreani lists the most recent trace first
        status = events[0].status.lower() if events else "pending"
        last_update = max((event.timestamp for event in events), default=None, key=lambda ts: ts.replace(tzinfo=None))
        return TrackingInfo(tracking_number=tracking_number, status=status, events=events, last_update=last_update)

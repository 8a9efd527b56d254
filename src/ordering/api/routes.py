"""FastAPI routes for the ordering core: orders, payments, shipping,
webhooks and maintenance.

Services are built per request from the configured adapters and settings;
tests swap adapters through ``set_gateway`` / ``set_carrier``.
"""

import json

import structlog
from fastapi import APIRouter, Header, Query, Request
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    CancelOrderRequest,
    CheckoutRequest,
    CheckoutResponse,
    CreatePreferenceRequest,
    CreateShipmentRequest,
    ExpireUnpaidRequest,
    ExpireUnpaidResponse,
    OrderResponse,
    PaymentStatusResponse,
    PreferenceResponse,
    ShipmentResponse,
    ShippingQuoteResponse,
    TrackingResponse,
    UpdateOrderStatusRequest,
)
from ordering.carrier import get_carrier
from ordering.config import CarrierSettings, GatewaySettings, current_store_settings
from ordering.errors import NotFoundError
from ordering.gateway import get_gateway
from ordering.gateway.port import Payer
from ordering.order.cancellation import CancelOrder, UpdateOrderStatus
from ordering.order.checkout import CheckoutService
from ordering.order.expiry import UnpaidOrderCompensator
from ordering.order.order import Order
from ordering.order.status import OrderStatus, PaymentStatus, ShippingStatus, label
from ordering.payment.service import PaymentService
from ordering.reconciliation import ReconciliationOutcome
from ordering.shipment.service import ShippingService

logger = structlog.get_logger(__name__)


def _payment_service() -> PaymentService:
    return PaymentService(get_gateway(), current_store_settings(), GatewaySettings.from_env())


def _shipping_service() -> ShippingService:
    return ShippingService(get_carrier(), current_store_settings(), CarrierSettings.from_env())


def _order_response(order) -> OrderResponse:
    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id) if order.customer_id else None,
        status=order.status,
        status_label=label(OrderStatus(order.status)),
        payment_status=order.payment_status,
        payment_status_label=label(PaymentStatus(order.payment_status)),
        subtotal=order.subtotal,
        discount=order.discount,
        tax=order.tax,
        shipping=order.shipping,
        total=order.total,
        currency=order.currency,
        notes=order.notes,
        shipping_address=order.shipping_address.to_dict(),
        billing_address=order.billing_address.to_dict() if order.billing_address else None,
        items=[
            {
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "name": item.name,
                "sku": item.sku,
                "quantity": item.quantity,
                "price": item.price,
                "total": item.total,
            }
            for item in order.items
        ],
        status_history=[
            {
                "status": entry.status,
                "label": label(OrderStatus(entry.status)),
                "notes": entry.notes,
                "changed_by": entry.changed_by,
                "requires_review": bool(entry.requires_review),
                "created_at": entry.created_at,
            }
            for entry in order.history()
        ],
        paid_at=order.paid_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        created_at=order.created_at,
    )


def _shipment_response(shipment) -> ShipmentResponse:
    return ShipmentResponse(
        id=str(shipment.id),
        order_id=str(shipment.order_id),
        provider=shipment.provider,
        tracking_number=shipment.tracking_number,
        status=shipment.status,
        status_label=label(ShippingStatus(shipment.status)),
        label_url=shipment.label_url,
        estimated_delivery=shipment.estimated_delivery,
        shipped_at=shipment.shipped_at,
        delivered_at=shipment.delivered_at,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=CheckoutResponse)
async def checkout(body: CheckoutRequest) -> CheckoutResponse:
    """Convert a shopping cart into a new order, opening its payment when paying online."""
    result = CheckoutService(current_store_settings(), payments=_payment_service()).checkout(
        body.cart_id,
        payment_method=body.payment_method,
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        customer_id=body.customer_id,
        notes=body.notes,
        shipping_cost=body.shipping_cost,
    )
    return CheckoutResponse(**_order_response(result.order).model_dump(), payment_url=result.payment_url)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, customer_id: str | None = Query(default=None)) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    if customer_id is not None and not order.belongs_to(customer_id):
        raise NotFoundError(message=f"Order {order_id} not found")
    return _order_response(order)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> OrderResponse:
    command = CancelOrder(order_id=order_id, customer_id=body.customer_id, reason=body.reason)
    order = current_domain.process(command, asynchronous=False)
    return _order_response(order)


@order_router.post("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderResponse:
    """Admin status change along the transition table."""
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status.value,
        notes=body.notes,
        changed_by=body.changed_by or "admin",
    )
    order = current_domain.process(command, asynchronous=False)
    return _order_response(order)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/preferences", status_code=201, response_model=PreferenceResponse)
async def create_payment_preference(body: CreatePreferenceRequest) -> PreferenceResponse:
    """Open a payment attempt and return the hosted checkout URL."""
    payer = Payer(name=body.payer.name, email=body.payer.email, surname=body.payer.surname) if body.payer else None
    result = _payment_service().create_payment_preference(body.order_id, payer, customer_id=body.customer_id)
    return PreferenceResponse(
        payment_id=result.payment_id,
        preference_id=result.preference_id,
        init_point=result.init_point,
        sandbox_init_point=result.sandbox_init_point,
    )


@payment_router.get("/{payment_id}", response_model=PaymentStatusResponse)
async def get_payment_status(payment_id: str, sync: bool = Query(default=False)) -> PaymentStatusResponse:
    return PaymentStatusResponse(**_payment_service().get_payment_status(payment_id, sync=sync))


# ---------------------------------------------------------------------------
# Shipping Router
# ---------------------------------------------------------------------------
shipping_router = APIRouter(tags=["shipping"])


@shipping_router.get("/shipping/quote", response_model=ShippingQuoteResponse)
async def shipping_quote(
    postal_code: str = Query(min_length=1),
    weight: float = Query(default=1.0, gt=0),
    declared_value: float = Query(default=0.0, ge=0),
) -> ShippingQuoteResponse:
    """Shipping options for a destination. Never fails on carrier errors."""
    return ShippingQuoteResponse(**_shipping_service().quote(postal_code, weight, declared_value))


@shipping_router.post("/shipments", status_code=201, response_model=ShipmentResponse)
async def create_shipment(body: CreateShipmentRequest) -> ShipmentResponse:
    """Admin: ship a processing order through the carrier."""
    shipment = _shipping_service().create_shipment(body.order_id)
    return _shipment_response(shipment)


@shipping_router.get("/orders/{order_id}/shipments", response_model=list[ShipmentResponse])
async def list_order_shipments(order_id: str) -> list[ShipmentResponse]:
    """Admin: every shipment attempt for an order, failed ones included."""
    return [_shipment_response(shipment) for shipment in _shipping_service().shipments_for(order_id)]


@shipping_router.get("/shipments/{tracking_number}/tracking", response_model=TrackingResponse)
async def track_shipment(tracking_number: str) -> TrackingResponse:
    return TrackingResponse(**_shipping_service().track_shipment(tracking_number))


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _parse_json(raw_body: bytes) -> dict | None:
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


@webhook_router.post("/mercadopago")
async def mercadopago_webhook(
    request: Request,
    x_signature: str | None = Header(default=None),
    x_request_id: str | None = Header(default=None),
) -> JSONResponse:
    """Gateway notifications. 401 on a bad signature, 200 for everything else."""
    raw_body = await request.body()
    service = _payment_service()

    if not service.gateway.validate_webhook_signature(x_signature, x_request_id, raw_body):
        logger.warning(
            "Payment webhook rejected, invalid signature",
            has_signature=x_signature is not None,
            has_request_id=x_request_id is not None,
        )
        return JSONResponse(status_code=401, content={"error": "Invalid signature"})

    payload = _parse_json(raw_body)
    if payload is None:
        logger.warning("Payment webhook with unreadable body")
        return JSONResponse(status_code=200, content={"status": "error", "message": "Webhook processing failed"})

    result = service.process_webhook(payload)
    if result.outcome == ReconciliationOutcome.REJECTED:
        return JSONResponse(status_code=200, content={"status": "error", "message": "Webhook processing failed"})
    return JSONResponse(status_code=200, content={"status": "ok"})


@webhook_router.post("/andreani")
async def andreani_webhook(
    request: Request,
    x_andreani_signature: str | None = Header(default=None),
) -> JSONResponse:
    """Carrier notifications. The signature is checked only when a secret is configured."""
    raw_body = await request.body()
    service = _shipping_service()

    if not service.validate_webhook_signature(raw_body, x_andreani_signature):
        logger.warning("Carrier webhook rejected, invalid signature")
        return JSONResponse(status_code=401, content={"status": "error", "message": "Invalid signature"})

    payload = _parse_json(raw_body)
    if payload is None:
        logger.warning("Carrier webhook with unreadable body")
        return JSONResponse(status_code=200, content={"status": "error", "message": "Webhook processing failed"})

    result = service.process_webhook(payload)
    if result.outcome == ReconciliationOutcome.REJECTED:
        return JSONResponse(status_code=200, content={"status": "error", "message": "Webhook processing failed"})
    return JSONResponse(status_code=200, content={"status": "ok"})


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/expire-unpaid", response_model=ExpireUnpaidResponse)
async def expire_unpaid(body: ExpireUnpaidRequest | None = None) -> ExpireUnpaidResponse:
    """Run the unpaid-order sweep once (for schedulers that call HTTP)."""
    settings = current_store_settings()
    hours = (body.hours if body else None) or settings.pending_payment_expiration_hours
    expired = UnpaidOrderCompensator(settings).run(hours=hours)
    return ExpireUnpaidResponse(expired=expired, hours=hours)

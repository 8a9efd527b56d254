"""Pydantic request/response schemas for the ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands and aggregates.
"""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from ordering.order.status import OrderStatus


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    name: str
    phone: str | None = None
    email: str | None = None
    address: str
    address_line_2: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str = "AR"


class OrderItemSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    name: str
    sku: str | None = None
    quantity: int
    price: float
    total: float


class StatusHistorySchema(BaseModel):
    status: str
    label: str
    notes: str | None = None
    changed_by: str | None = None
    requires_review: bool = False
    created_at: datetime


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    cart_id: str
    customer_id: str | None = None
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    notes: str | None = None
    shipping_cost: float | None = Field(default=None, ge=0)
    payment_method: Literal["mercadopago", "cash"] | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "cart_id": "cart-001",
                    "shipping_address": {
                        "name": "Ana Pérez",
                        "email": "ana@example.com",
                        "address": "Av. Corrientes 1234",
                        "city": "CABA",
                        "state": "Buenos Aires",
                        "postal_code": "1043",
                        "country": "AR",
                    },
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    customer_id: str | None = None
    reason: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    notes: str | None = None
    changed_by: str | None = None


class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str | None = None
    status: str
    status_label: str
    payment_status: str
    payment_status_label: str
    subtotal: float
    discount: float
    tax: float
    shipping: float
    total: float
    currency: str
    notes: str | None = None
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    items: list[OrderItemSchema]
    status_history: list[StatusHistorySchema]
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None


class CheckoutResponse(OrderResponse):
    payment_url: str | None = None


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class PayerSchema(BaseModel):
    name: str
    email: str
    surname: str | None = None


class CreatePreferenceRequest(BaseModel):
    order_id: str
    customer_id: str | None = None
    payer: PayerSchema | None = None


class PreferenceResponse(BaseModel):
    payment_id: str
    preference_id: str
    init_point: str
    sandbox_init_point: str | None = None


class PaymentStatusResponse(BaseModel):
    id: str
    order_id: str
    status: str
    amount: float
    currency: str
    gateway: str
    external_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Shipping
# ---------------------------------------------------------------------------
class ShippingOptionSchema(BaseModel):
    service_code: str
    service_name: str
    cost: float
    estimated_days: int
    description: str | None = None


class ShippingQuoteResponse(BaseModel):
    provider: str
    options: list[ShippingOptionSchema]
    free_threshold: float | None = None


class CreateShipmentRequest(BaseModel):
    order_id: str


class ShipmentResponse(BaseModel):
    id: str
    order_id: str
    provider: str
    tracking_number: str | None = None
    status: str
    status_label: str
    label_url: str | None = None
    estimated_delivery: date | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None


class TrackingEventSchema(BaseModel):
    timestamp: datetime
    status: str
    description: str
    location: str | None = None


class TrackingResponse(BaseModel):
    tracking_number: str
    status: str
    mapped_status: str
    events: list[TrackingEventSchema]
    last_update: datetime | None = None


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
class ExpireUnpaidRequest(BaseModel):
    hours: int | None = Field(default=None, ge=1)


class ExpireUnpaidResponse(BaseModel):
    expired: int
    hours: int

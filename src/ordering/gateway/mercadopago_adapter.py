"""MercadoPago adapter: hosted checkout preferences, payment lookups and
webhook signature validation over the REST API.

The HTTP session is created lazily on first use so that a missing access
token only fails the calls that need it. Webhook validation fails closed: no
configured secret, a missing header or a malformed ``x-signature`` all reject
the notification.
"""

import hashlib
import hmac

import requests
import structlog

from ordering.config import GatewaySettings
from ordering.errors import GatewayError
from ordering.gateway.port import (
    GatewayPayment,
    PaymentGateway,
    Preference,
    PreferenceRequest,
)

logger = structlog.get_logger(__name__)


class MercadoPagoGateway(PaymentGateway):
    name = "mercado_pago"

    def __init__(self, settings: GatewaySettings, session: requests.Session | None = None) -> None:
        self.settings = settings
        self._session = session
        self._initialized = False

    # -------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------
    def _ensure_initialized(self) -> requests.Session:
        if not self.settings.access_token:
            raise GatewayError("MERCADOPAGO_NOT_CONFIGURED", "MercadoPago access token is not configured")

        if not self._initialized:
            if self._session is None:
                self._session = requests.Session()
            self._session.headers.update(
                {
                    "Authorization": f"Bearer {self.settings.access_token}",
                    "Content-Type": "application/json",
                }
            )
            self._initialized = True
        return self._session

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}{path}"

    # -------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------
    @staticmethod
    def _validate_request(request: PreferenceRequest) -> None:
        errors = []
        if not request.items:
            errors.append("At least one item is required")
        for item in request.items:
            if item.quantity <= 0:
                errors.append(f"Item {item.id}: quantity must be greater than 0")
            if item.unit_price <= 0:
                errors.append(f"Item {item.id}: unit price must be greater than 0")
        if not request.payer.name:
            errors.append("Payer name is required")
        if not request.payer.email or "@" not in request.payer.email:
            errors.append("Payer email is invalid")
        for key in ("success", "failure", "pending"):
            if not request.back_urls.get(key):
                errors.append(f"Back URL '{key}' is required")

        if errors:
            raise GatewayError(
                "MERCADOPAGO_PREFERENCE_FAILED",
                "Invalid preference request",
                details={"errors": errors},
            )

    @staticmethod
    def _preference_body(request: PreferenceRequest) -> dict:
        body = {
            "items": [
                {
                    "id": item.id,
                    "title": item.title,
                    "description": item.description or item.title,
                    "quantity": item.quantity,
                    "unit_price": round(item.unit_price, 2),
                    "currency_id": request.currency,
                }
                for item in request.items
            ],
            "payer": {"name": request.payer.name, "email": request.payer.email},
            "back_urls": request.back_urls,
            "auto_return": "approved",
            "external_reference": request.external_reference,
        }
        if request.payer.surname:
            body["payer"]["surname"] = request.payer.surname
        if request.notification_url:
            body["notification_url"] = request.notification_url
        if request.statement_descriptor:
            body["statement_descriptor"] = request.statement_descriptor
        return body

    def create_preference(self, request: PreferenceRequest) -> Preference:
        session = self._ensure_initialized()
        self._validate_request(request)

        try:
            response = session.post(
                self._url("/checkout/preferences"),
                json=self._preference_body(request),
                timeout=self.settings.timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError("MERCADOPAGO_PREFERENCE_FAILED", f"MercadoPago request failed: {exc}") from exc

        if not response.ok:
            logger.error(
                "MercadoPago preference creation failed",
                status_code=response.status_code,
                body=response.text,
                external_reference=request.external_reference,
            )
            raise GatewayError(
                "MERCADOPAGO_PREFERENCE_FAILED",
                "MercadoPago rejected the preference",
                status_code=response.status_code,
                response_body=response.text,
            )

        data = response.json()
        if not data.get("id") or not data.get("init_point"):
            raise GatewayError(
                "MERCADOPAGO_PREFERENCE_FAILED",
                "MercadoPago returned an incomplete preference",
                status_code=response.status_code,
                response_body=data,
            )

        return Preference(
            id=str(data["id"]),
            init_point=data["init_point"],
            sandbox_init_point=data.get("sandbox_init_point"),
        )

    # -------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------
    def get_payment(self, gateway_payment_id: str) -> GatewayPayment | None:
        session = self._ensure_initialized()

        try:
            response = session.get(
                self._url(f"/v1/payments/{gateway_payment_id}"),
                timeout=self.settings.timeout,
            )
        except requests.RequestException as exc:
            logger.error("MercadoPago payment lookup failed", payment_id=gateway_payment_id, error=str(exc))
            return None

        if not response.ok:
            logger.error(
                "MercadoPago payment lookup failed",
                payment_id=gateway_payment_id,
                status_code=response.status_code,
                body=response.text,
            )
            return None

        data = response.json()
        payment_method = data.get("payment_method") or {}
        return GatewayPayment(
            id=str(data.get("id", gateway_payment_id)),
            status=data.get("status") or "pending",
            status_detail=data.get("status_detail"),
            external_reference=data.get("external_reference"),
            transaction_amount=data.get("transaction_amount"),
            currency_id=data.get("currency_id"),
            date_approved=data.get("date_approved"),
            payment_method_id=data.get("payment_method_id") or payment_method.get("id"),
            payment_type_id=data.get("payment_type_id") or payment_method.get("type"),
            payer=data.get("payer") or {},
        )

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    @staticmethod
    def parse_signature_header(signature: str | None) -> dict:
        """Split ``ts=<unix>,v1=<hex>`` into its parts."""
        parts = {}
        for chunk in (signature or "").split(","):
            key, sep, value = chunk.strip().partition("=")
            if sep and key and value:
                parts[key.strip()] = value.strip()
        return parts

    def validate_webhook_signature(self, signature: str | None, request_id: str | None, raw_body) -> bool:
        secret = self.settings.webhook_secret
        if not secret:
            logger.warning("MercadoPago webhook secret not configured, rejecting webhook")
            return False
        if not signature or not request_id:
            return False

        parts = self.parse_signature_header(signature)
        timestamp, received = parts.get("ts"), parts.get("v1")
        if not timestamp or not received:
            return False

        if isinstance(raw_body, bytes):
            raw_body = raw_body.decode("utf-8")
        manifest = f"{timestamp}{request_id}{raw_body or ''}"
        expected = hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, received)

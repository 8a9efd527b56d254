"""Configurable fake payment gateway for development and testing.

This adapter simulates MercadoPago without any external calls. It can be
configured at runtime to succeed or fail, and tests register the remote state
of payments with ``set_payment`` so webhook reconciliation can be exercised
end to end.
"""

from uuid import uuid4

from ordering.errors import GatewayError
from ordering.gateway.port import GatewayPayment, PaymentGateway, Preference, PreferenceRequest


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "mercado_pago"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self.payments: dict[str, GatewayPayment] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def set_payment(
        self,
        gateway_payment_id: str,
        status: str,
        external_reference: str | None = None,
        status_detail: str | None = None,
        amount: float | None = None,
    ) -> GatewayPayment:
        """Register what the gateway reports for a payment id."""
        payment = GatewayPayment(
            id=str(gateway_payment_id),
            status=status,
            status_detail=status_detail,
            external_reference=external_reference,
            transaction_amount=amount,
            payment_method_id="visa",
            payment_type_id="credit_card",
        )
        self.payments[str(gateway_payment_id)] = payment
        return payment

    def create_preference(self, request: PreferenceRequest) -> Preference:
        self.calls.append({"method": "create_preference", "request": request})

        if not self.should_succeed:
            raise GatewayError("MERCADOPAGO_PREFERENCE_FAILED", self.failure_reason, status_code=503)

        preference_id = f"fake_pref_{uuid4().hex[:12]}"
        return Preference(
            id=preference_id,
            init_point=f"https://fake-gateway.test/checkout?pref_id={preference_id}",
            sandbox_init_point=f"https://sandbox.fake-gateway.test/checkout?pref_id={preference_id}",
        )

    def get_payment(self, gateway_payment_id: str) -> GatewayPayment | None:
        self.calls.append({"method": "get_payment", "gateway_payment_id": str(gateway_payment_id)})
        return self.payments.get(str(gateway_payment_id))

    def validate_webhook_signature(self, signature, request_id, raw_body) -> bool:  # noqa: ARG002
        return signature == "test-signature"

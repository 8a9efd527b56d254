"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing (default)
- MercadoPagoGateway when PAYMENT_GATEWAY_ADAPTER=mercadopago
"""

import os

from ordering.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway."""
    global _current_gateway
    if _current_gateway is None:
        adapter = os.environ.get("PAYMENT_GATEWAY_ADAPTER", "fake")
        if adapter == "fake":
            from ordering.gateway.fake_adapter import FakeGateway

            _current_gateway = FakeGateway()
        elif adapter == "mercadopago":
            from ordering.config import GatewaySettings
            from ordering.gateway.mercadopago_adapter import MercadoPagoGateway

            _current_gateway = MercadoPagoGateway(GatewaySettings.from_env())
        else:
            raise ValueError(f"Unknown payment gateway adapter: {adapter}")
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None

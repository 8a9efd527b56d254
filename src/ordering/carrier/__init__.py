"""Carrier adapter abstraction: pluggable shipping carrier integration."""

import os

_carrier_instance = None


def get_carrier():
    """Return the configured carrier adapter (singleton).

    Uses FakeCarrier by default. In production, configure via
    CARRIER_ADAPTER environment variable.
    """
    global _carrier_instance
    if _carrier_instance is None:
        adapter = os.environ.get("CARRIER_ADAPTER", "fake")
        if adapter == "fake":
            from ordering.carrier.fake_adapter import FakeCarrier

            _carrier_instance = FakeCarrier()
        elif adapter == "andreani":
            from ordering.carrier.andreani_adapter import AndreaniShippingProvider
            from ordering.config import CarrierSettings

            _carrier_instance = AndreaniShippingProvider(
                CarrierSettings.from_env(),
                sender={
                    "name": os.environ.get("STORE_NAME", ""),
                    "email": os.environ.get("STORE_EMAIL", ""),
                    "document": os.environ.get("ANDREANI_SENDER_DOCUMENT", ""),
                },
            )
        else:
            raise ValueError(f"Unknown carrier adapter: {adapter}")
    return _carrier_instance


def set_carrier(carrier) -> None:
    """Override the active carrier adapter (useful for tests)."""
    global _carrier_instance
    _carrier_instance = carrier


def reset_carrier():
    """Reset the carrier singleton (useful for testing)."""
    global _carrier_instance
    _carrier_instance = None

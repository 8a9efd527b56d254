"""Explicit configuration objects for the ordering core.

Components receive these at construction time instead of reading a global
settings facade. ``from_env()`` builds each one from environment variables;
``StoreSettings.from_store()`` reads the store-level keys from a key/value
settings store such as the admin-managed settings table.
"""

import os
from dataclasses import dataclass
from typing import Any, Protocol


class SettingsStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...


class DictSettingsStore:
    """In-process key/value settings store."""

    def __init__(self, values: dict | None = None) -> None:
        self._values = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class StoreSettings:
    """Pricing, shipping and expiry settings of the store."""

    store_name: str = "Tienda"
    currency: str = "ARS"
    free_shipping_threshold: float = 50000.0
    base_shipping_cost: float = 2500.0
    shipping_cost_per_kg: float = 100.0
    default_item_weight: float = 0.5
    tax_enabled: bool = False
    tax_included_in_prices: bool = True
    tax_rate: float = 21.0  # percentage
    origin_postal_code: str | None = None
    pending_payment_expiration_hours: int = 24
    frontend_url: str = "http://localhost:3000"
    api_url: str = "http://localhost:8000"

    @classmethod
    def from_env(cls) -> "StoreSettings":
        defaults = cls()
        return cls(
            store_name=os.environ.get("STORE_NAME", defaults.store_name),
            currency=os.environ.get("STORE_CURRENCY", defaults.currency),
            free_shipping_threshold=float(
                os.environ.get("STORE_FREE_SHIPPING_THRESHOLD", defaults.free_shipping_threshold)
            ),
            base_shipping_cost=float(os.environ.get("STORE_BASE_SHIPPING_COST", defaults.base_shipping_cost)),
            shipping_cost_per_kg=float(os.environ.get("STORE_SHIPPING_COST_PER_KG", defaults.shipping_cost_per_kg)),
            default_item_weight=float(os.environ.get("STORE_DEFAULT_ITEM_WEIGHT", defaults.default_item_weight)),
            tax_enabled=_env_bool("STORE_TAX_ENABLED", defaults.tax_enabled),
            tax_included_in_prices=_env_bool("STORE_TAX_INCLUDED_IN_PRICES", defaults.tax_included_in_prices),
            tax_rate=float(os.environ.get("STORE_TAX_RATE", defaults.tax_rate)),
            origin_postal_code=os.environ.get("STORE_ORIGIN_POSTAL_CODE") or None,
            pending_payment_expiration_hours=int(
                os.environ.get("STORE_PENDING_PAYMENT_EXPIRATION_HOURS", defaults.pending_payment_expiration_hours)
            ),
            frontend_url=os.environ.get("STORE_FRONTEND_URL", defaults.frontend_url),
            api_url=os.environ.get("STORE_API_URL", defaults.api_url),
        )

    @classmethod
    def from_store(cls, store: SettingsStore, defaults: "StoreSettings | None" = None) -> "StoreSettings":
        """Settings from store keys; missing keys keep ``defaults``."""
        defaults = defaults or cls()
        return cls(
            store_name=store.get("store_name", defaults.store_name),
            currency=store.get("currency", defaults.currency),
            free_shipping_threshold=float(store.get("free_shipping_threshold", defaults.free_shipping_threshold)),
            base_shipping_cost=float(store.get("shipping_cost", defaults.base_shipping_cost)),
            shipping_cost_per_kg=float(store.get("shipping_cost_per_kg", defaults.shipping_cost_per_kg)),
            default_item_weight=float(store.get("default_item_weight", defaults.default_item_weight)),
            tax_enabled=_as_bool(store.get("tax_enabled", defaults.tax_enabled)),
            tax_included_in_prices=_as_bool(store.get("tax_included_in_prices", defaults.tax_included_in_prices)),
            tax_rate=float(store.get("tax_rate", defaults.tax_rate)),
            origin_postal_code=store.get("origin_postal_code", defaults.origin_postal_code) or None,
            pending_payment_expiration_hours=int(
                store.get("pending_payment_expiration_hours", defaults.pending_payment_expiration_hours)
            ),
            frontend_url=store.get("frontend_url", defaults.frontend_url),
            api_url=store.get("api_url", defaults.api_url),
        )


_settings_store: SettingsStore | None = None


def get_settings_store() -> SettingsStore | None:
    return _settings_store


def set_settings_store(store: SettingsStore) -> None:
    """Install the admin-managed settings store (the API reads it on every request)."""
    global _settings_store
    _settings_store = store


def reset_settings_store() -> None:
    global _settings_store
    _settings_store = None


def current_store_settings() -> StoreSettings:
    """Environment settings, overridden key by key by the installed settings store."""
    settings = StoreSettings.from_env()
    store = get_settings_store()
    if store is None:
        return settings
    return StoreSettings.from_store(store, defaults=settings)


# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class GatewaySettings:
    """MercadoPago credentials and webhook secret."""

    access_token: str | None = None
    webhook_secret: str | None = None
    statement_descriptor: str = "TIENDA"
    base_url: str = "https://api.mercadopago.com"
    timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "GatewaySettings":
        return cls(
            access_token=os.environ.get("MERCADOPAGO_ACCESS_TOKEN") or None,
            webhook_secret=os.environ.get("MERCADOPAGO_WEBHOOK_SECRET") or None,
            statement_descriptor=os.environ.get("MERCADOPAGO_STATEMENT_DESCRIPTOR", cls.statement_descriptor),
        )


@dataclass(frozen=True)
class CarrierSettings:
    """Andreani credentials, contract and webhook secret."""

    username: str | None = None
    password: str | None = None
    contract: str | None = None
    webhook_secret: str | None = None
    base_url: str = "https://apis.andreani.com/v2"
    timeout: float = 30.0
    token_lifetime_hours: int = 24

    @classmethod
    def from_env(cls) -> "CarrierSettings":
        return cls(
            username=os.environ.get("ANDREANI_USERNAME") or None,
            password=os.environ.get("ANDREANI_PASSWORD") or None,
            contract=os.environ.get("ANDREANI_CONTRACT") or None,
            webhook_secret=os.environ.get("ANDREANI_WEBHOOK_SECRET") or None,
            base_url=os.environ.get("ANDREANI_BASE_URL", cls.base_url),
        )

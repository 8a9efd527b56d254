"""Andreani REST client: authentication, quotes, shipments and tracking.

Keeps the bearer token in memory and logs in again when the cached token is
within five minutes of its assumed expiry. Every failure (transport error,
non-2xx status, unparseable or empty payload) is raised as ProviderError with
the HTTP status and raw response body attached.
"""

from datetime import timedelta

import requests
import structlog

from ordering.config import CarrierSettings
from ordering.errors import ProviderError
from ordering.utils.time import utcnow

logger = structlog.get_logger(__name__)

TOKEN_REFRESH_MARGIN = timedelta(minutes=5)


class AndreaniApiClient:
    def __init__(self, settings: CarrierSettings, session: requests.Session | None = None, clock=utcnow) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at = None

    # -------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------
    @property
    def has_valid_token(self) -> bool:
        if not self._token or self._token_expires_at is None:
            return False
        return self._clock() < self._token_expires_at - TOKEN_REFRESH_MARGIN

    def _authenticate(self) -> None:
        if not self.settings.username or not self.settings.password:
            raise ProviderError("ANDREANI_NOT_CONFIGURED", "Andreani credentials are not configured")

        data = self._send(
            "POST",
            "/login",
            json={"username": self.settings.username, "password": self.settings.password},
            authenticated=False,
        )
        token = data.get("token")
        if not token:
            raise ProviderError("ANDREANI_REQUEST_FAILED", "No token received from Andreani", response_body=data)

        self._token = token
        self._token_expires_at = self._clock() + timedelta(hours=self.settings.token_lifetime_hours)
        logger.info("Andreani token refreshed", expires_at=self._token_expires_at.isoformat())

    def _ensure_token(self) -> str:
        if not self.has_valid_token:
            self._authenticate()
        return self._token

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    @staticmethod
    def _body(response):
        try:
            return response.json()
        except ValueError:
            return response.text

    def _send(self, method: str, path: str, json=None, authenticated: bool = True) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if authenticated:
            headers["Authorization"] = f"Bearer {self._ensure_token()}"

        url = f"{self.settings.base_url.rstrip('/')}{path}"
        try:
            response = self.session.request(method, url, json=json, headers=headers, timeout=self.settings.timeout)
        except requests.RequestException as exc:
            logger.error("Andreani request failed", method=method, path=path, error=str(exc))
            raise ProviderError(message=f"Andreani request failed: {exc}") from exc

        if not response.ok:
            body = self._body(response)
            logger.error(
                "Andreani API error",
                method=method,
                path=path,
                status_code=response.status_code,
                body=body,
            )
            raise ProviderError(
                message=f"Andreani API returned HTTP {response.status_code}",
                status_code=response.status_code,
                response_body=body,
            )

        body = self._body(response)
        if not isinstance(body, dict):
            raise ProviderError(
                message="Andreani API returned an invalid payload",
                status_code=response.status_code,
                response_body=body,
            )
        return body

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    def get_shipping_quote(self, payload: dict) -> dict:
        data = self._send("POST", "/envios/tarifa", json=payload)
        if not data.get("tarifas"):
            raise ProviderError(message="Andreani returned no rates", response_body=data)
        return data

    def create_shipment(self, payload: dict) -> dict:
        data = self._send("POST", "/envios", json=payload)
        if not data.get("numeroAndreani"):
            raise ProviderError(message="Andreani did not return a tracking number", response_body=data)
        return data

    def get_tracking(self, tracking_number: str) -> dict:
        return self._send("GET", f"/envios/{tracking_number}/trazas")

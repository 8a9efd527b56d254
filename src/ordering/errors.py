"""Error taxonomy for the ordering core.

Every error carries a stable machine-readable ``code`` and an HTTP status so
the API layer can render a structured ``{"code", "message", "details"}`` body.
Aggregate-level rule violations (illegal status transitions, insufficient
stock) are raised as Protean ``ValidationError`` and mapped at the boundary.
"""


class OrderingError(Exception):
    """Base class for coded ordering errors."""

    code = "ORDERING_ERROR"
    http_status = 400

    def __init__(self, code: str | None = None, message: str = "", details: dict | None = None) -> None:
        self.code = code or self.code
        self.message = message or self.code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------
class BusinessRuleError(OrderingError):
    code = "BUSINESS_RULE_VIOLATION"
    http_status = 422


class NotFoundError(OrderingError):
    code = "NOT_FOUND"
    http_status = 404


class ConcurrentUpdateError(OrderingError):
    """Raised when an aggregate was written by someone else since it was read."""

    code = "CONCURRENT_UPDATE"
    http_status = 409


# ---------------------------------------------------------------------------
# External systems
# ---------------------------------------------------------------------------
class ExternalServiceError(OrderingError):
    """A failed call to an external API.

    ``status_code`` and ``response_body`` are kept verbatim for diagnostics.
    """

    http_status = 502

    def __init__(
        self,
        code: str | None = None,
        message: str = "",
        status_code: int | None = None,
        response_body=None,
        details: dict | None = None,
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        details = dict(details or {})
        if status_code is not None:
            details.setdefault("status_code", status_code)
        super().__init__(code, message, details)


class GatewayError(ExternalServiceError):
    code = "MERCADOPAGO_REQUEST_FAILED"


class ProviderError(ExternalServiceError):
    code = "ANDREANI_REQUEST_FAILED"


class InvalidSignatureError(OrderingError):
    code = "INVALID_SIGNATURE"
    http_status = 401

"""Translate ordering errors into structured JSON responses.

Every error body has the shape ``{"code", "message", "details"}``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError

from ordering.errors import ConcurrentUpdateError, ExternalServiceError, OrderingError

logger = structlog.get_logger(__name__)

# Protean validation failures keyed by field name
_VALIDATION_CODES = {
    "status": "INVALID_STATUS_TRANSITION",
    "stock": "INSUFFICIENT_STOCK",
}


def _validation_code(messages: dict) -> str:
    for field_name, code in _VALIDATION_CODES.items():
        if field_name in messages:
            return code
    return "VALIDATION_ERROR"


async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    if isinstance(exc, ExternalServiceError):
        logger.error(
            "External service error",
            path=request.url.path,
            code=exc.code,
            status_code=exc.status_code,
            error=exc.message,
        )
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    messages = exc.messages if isinstance(exc.messages, dict) else {"_entity": [str(exc.messages)]}
    first = next(iter(messages.values()), ["Validation failed"])
    return JSONResponse(
        status_code=422,
        content={
            "code": _validation_code(messages),
            "message": first[0] if isinstance(first, list) and first else str(first),
            "details": messages,
        },
    )


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"code": "NOT_FOUND", "message": str(exc) or "Not found", "details": {}},
    )


async def version_conflict_handler(request: Request, exc: ExpectedVersionError) -> JSONResponse:
    """Conflicts raised when a command handler's unit of work commits."""
    logger.warning("Concurrent update rejected", path=request.url.path, error=str(exc))
    error = ConcurrentUpdateError(message="Record was modified concurrently", details={"reason": str(exc)})
    return JSONResponse(status_code=error.http_status, content=error.to_dict())


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderingError, ordering_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(ExpectedVersionError, version_conflict_handler)

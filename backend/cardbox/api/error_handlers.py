"""Error Handlers — map every failure to the single JSON error envelope.

Invariants:
    - CardboxError → its own http_status and to_response() body
    - RequestValidationError → 400 VALIDATION_ERROR; "field" names the first bad
      input by its wire name, as ValidationFailedError does
    - Exception (catch-all) → 500 INTERNAL_ERROR, never leaks internal details
    - Negative pickup outcomes never reach here (they are 200 responses)

Design Decisions:
    - Three layers registered explicitly from main.py: domain, validation, catch-all
    - 4xx domain errors log at warning, 5xx at error
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cardbox.core.errors import CardboxError, ErrorCategory, ErrorSeverity

logger = logging.getLogger(__name__)

# request part prefixes FastAPI puts in front of the field name
_LOCATIONS = {"body", "query", "path", "header", "form"}


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CardboxError, _cardbox_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unhandled_error)


async def _cardbox_error(request: Request, exc: CardboxError) -> JSONResponse:
    level = logging.ERROR if exc.http_status >= 500 else logging.WARNING
    logger.log(
        level,
        f"{exc.code}: {exc.message}",
        extra={
            "error_code": exc.code,
            "path": request.url.path,
            "status": exc.http_status,
            "card_id": exc.context.card_id,
            "box_id": exc.context.box_id,
        },
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def _validation_error(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    errors = exc.errors()
    logger.warning(
        f"Request validation failed: {len(errors)} error(s)",
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    details = [
        {
            "field": _field_name(e["loc"]),
            "message": e["msg"],
            "type": e["type"],
        }
        for e in errors
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_envelope(
            "VALIDATION_ERROR", "Invalid request data",
            ErrorCategory.VALIDATION, ErrorSeverity.ERROR,
            field=details[0]["field"] if details else None,
            details=details,
        ),
    )


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={"error_code": "INTERNAL_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope(
            "INTERNAL_ERROR", "An unexpected error occurred",
            ErrorCategory.INTERNAL, ErrorSeverity.CRITICAL,
        ),
    )


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc]
    if parts and parts[0] in _LOCATIONS:
        parts = parts[1:]
    return ".".join(parts) or "request"


def _envelope(
    code: str, message: str, category: ErrorCategory, severity: ErrorSeverity,
    **extra,
) -> dict:
    error = {
        "code": code,
        "message": message,
        "category": category.value,
        "severity": severity.value,
    }
    error.update({k: v for k, v in extra.items() if v is not None})
    return {"error": error}

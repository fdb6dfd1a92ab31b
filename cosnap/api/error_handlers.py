"""Error Handlers — map exceptions onto the {"error": {...}} envelope.

Invariants:
    - CoSnapError answers with its own http_status and to_response() body
    - Request schema failures answer 400 VALIDATION_ERROR, one details entry per field
    - Anything else answers 500 INTERNAL_ERROR with no internal text

Design Decisions:
    - Log level follows the error's http_status: 5xx at ERROR, everything else at WARNING
    - Validation field paths are dotted locations ("body.city") so clients can map them to inputs
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cosnap.core.errors import CoSnapError, ErrorSeverity

logger = logging.getLogger(__name__)


def _envelope(
    code: str, message: str, category: str, severity: ErrorSeverity,
    details=None,
) -> dict:
    body = {
        "code": code,
        "message": message,
        "category": category,
        "severity": severity.value,
    }
    if details is not None:
        body["details"] = details
    return {"error": body}


def _field_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]


async def handle_cosnap_error(request: Request, exc: CoSnapError) -> JSONResponse:
    logger.log(
        logging.ERROR if exc.http_status >= 500 else logging.WARNING,
        "%s %s -> %s: %s",
        request.method, request.url.path, exc.code, exc.message,
        extra={"error_code": exc.code, "path": request.url.path},
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def handle_validation_error(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    fields = _field_errors(exc)
    logger.warning(
        "%s %s rejected: %s",
        request.method, request.url.path,
        ", ".join(f["field"] for f in fields),
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_envelope(
            "VALIDATION_ERROR", "Invalid request data", "validation",
            ErrorSeverity.ERROR, fields,
        ),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled %s on %s %s",
        type(exc).__name__, request.method, request.url.path,
        extra={"error_code": "INTERNAL_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope(
            "INTERNAL_ERROR", "An unexpected error occurred", "internal",
            ErrorSeverity.CRITICAL,
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach the three handlers, most specific first."""
    app.add_exception_handler(CoSnapError, handle_cosnap_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

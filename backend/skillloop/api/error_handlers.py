"""Error Handlers — map every failure to the `{"error": {...}}` envelope.

Invariants:
    - SkillLoopError → its own to_response() body with its http_status
    - RequestValidationError (pydantic, missing identity header) → 400 VALIDATION_ERROR with
      per-field details
    - Anything else → 500 INTERNAL_ERROR; the exception text stays in the logs, never the body

Design Decisions:
    - Refusals (4xx) log at warning with the escrow identifiers from the error context:
      an insufficient balance is a business outcome, not an incident
    - 5xx log at error; the catch-all logs the traceback
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from skillloop.core.errors import ErrorCategory, ErrorSeverity, SkillLoopError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SkillLoopError, _handle_domain_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)


async def _handle_domain_error(request: Request, exc: SkillLoopError) -> JSONResponse:
    log = logger.warning if exc.http_status < 500 else logger.error
    log(
        f"{exc.code}: {exc.message}",
        extra={
            "error_code": exc.code,
            "path": request.url.path,
            "session_id": exc.context.session_id,
            "request_id": exc.context.request_id,
            "bid_id": exc.context.bid_id,
        },
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def _handle_validation_error(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.warning(
        f"Rejected request body: {[d['field'] for d in details]}",
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return _envelope(
        status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Invalid request data",
        ErrorCategory.VALIDATION, ErrorSeverity.ERROR, details=details,
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
        extra={"error_code": "INTERNAL_ERROR", "path": request.url.path},
    )
    return _envelope(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR",
        "An unexpected error occurred", ErrorCategory.INTERNAL, ErrorSeverity.CRITICAL,
    )


def _envelope(
    http_status: int,
    code: str,
    message: str,
    category: ErrorCategory,
    severity: ErrorSeverity,
    **extra,
) -> JSONResponse:
    body = {
        "code": code,
        "message": message,
        "category": category.value,
        "severity": severity.value,
        **extra,
    }
    return JSONResponse(status_code=http_status, content={"error": body})

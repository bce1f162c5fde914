"""Error Handlers — map every failure onto the engine's one error envelope.

Invariants:
    - Every error body is CfpError.to_response(): {"error": {code, reason, message,
      category, severity, timestamp, context}}; clients parse a single shape
    - Schema violations become ValidationError (400) with context.details["fields"] listing
      location, field path, message and type per violation
    - Unhandled exceptions become INTERNAL_ERROR (500); the exception text stays in the log
    - 4xx outcomes log at WARNING with talk/slot/actor ids; 5xx at ERROR

Design Decisions:
    - Request validation goes through the domain ValidationError rather than a second
      envelope builder, so the talk/slot context keys are present on every 4xx
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from cfp.core.errors import (
    CfpError, ErrorCategory, ErrorContext, ErrorSeverity, ValidationError,
)

logger = logging.getLogger(__name__)

# Request locations FastAPI prefixes onto each error "loc"
_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_cfp_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _respond(request: Request, error: CfpError) -> JSONResponse:
    level = logging.ERROR if error.http_status >= 500 else logging.WARNING
    logger.log(
        level,
        f"{error.code} on {request.method} {request.url.path}: {error.message}",
        extra={
            "error_code": error.code,
            "reason": error.reason,
            "path": request.url.path,
            "talk_id": error.context.talk_id,
            "slot_id": error.context.slot_id,
            "actor_id": error.context.actor_id,
        },
    )
    return JSONResponse(status_code=error.http_status, content=error.to_response())


def _register_cfp_error_handler(app: FastAPI) -> None:

    @app.exception_handler(CfpError)
    async def cfp_error_handler(request: Request, exc: CfpError):
        return _respond(request, exc)


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _respond(request, request_validation_error(exc))


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
            exc_info=exc,
        )
        return _respond(request, internal_error())


def request_validation_error(exc: RequestValidationError) -> ValidationError:
    """Fold FastAPI's per-field errors into one domain ValidationError."""
    fields = [_field_violation(e) for e in exc.errors()]
    first = fields[0]["field"] if fields else None
    return ValidationError(
        "Request does not match the expected schema",
        field=first,
        context=ErrorContext(details={"fields": fields}),
    )


def internal_error() -> CfpError:
    return CfpError(
        "An unexpected error occurred", "INTERNAL_ERROR", ErrorCategory.INTERNAL,
        ErrorSeverity.CRITICAL, http_status=500,
    )


def _field_violation(error: dict) -> dict:
    loc = [str(part) for part in error.get("loc", ())]
    location = loc.pop(0) if loc and loc[0] in _LOCATIONS else None
    return {
        "location": location,
        "field": ".".join(loc) or None,
        "message": error["msg"],
        "type": error["type"],
    }

"""
=============================================================================
ERROR HANDLING MODULE
=============================================================================
Error taxonomy for the contact pipeline plus global exception handlers for
secure, user-friendly error responses.

Taxonomy:
- Validation failures and rate-limit rejections are returned as structured
  results (never raised) and rendered by the submission handler.
- TransportConfigurationError: mail transport missing host/recipient (500).
- TransportDeliveryError: the transport refused, failed or timed out (500).
- Anything else is unexpected: logged with its traceback, answered with a
  generic 500 envelope (details only when DEBUG is on).

Usage:
    # In main.py
    from app.core.errors import register_exception_handlers
    register_exception_handlers(app, settings)
=============================================================================
"""

import logging
import traceback
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Settings

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


class ContactError(Exception):
    """Base class for errors raised inside the contact pipeline."""

    category = "unexpected"


class TransportConfigurationError(ContactError):
    """The outbound mail transport is not configured."""

    category = "configuration"


class TransportDeliveryError(ContactError):
    """The outbound mail transport failed to deliver a message."""

    category = "delivery"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def error_envelope(message: str, **extra) -> dict:
    return {"success": False, "message": message, "timestamp": utc_timestamp(), **extra}


def _client_context(request: Request) -> dict:
    return {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
        "user_agent": request.headers.get("user-agent", ""),
    }


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            logger.warning(
                "404 - Route not found: %s %s",
                request.method,
                request.url.path,
                extra={"event_type": "route_not_found", **_client_context(request)},
            )
            return JSONResponse(
                status_code=404,
                content={"success": False, "message": "Route not found"},
            )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
                "message": err.get("msg", "Invalid value"),
                "value": None,
            }
            for err in exc.errors()
        ]
        logger.warning(
            "Request validation failed on %s %s",
            request.method,
            request.url.path,
            extra={
                "event_type": "request_validation_failed",
                "fields": [e["field"] for e in errors],
                **_client_context(request),
            },
        )
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Validation failed", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all handler for unhandled exceptions.

        - Logs the full traceback for debugging
        - Returns a generic error message to prevent info leakage
        - In debug mode, includes more details
        """
        logger.error(
            "Unhandled exception on %s %s:\n%s",
            request.method,
            request.url.path,
            traceback.format_exc(),
            extra={
                "event_type": "unhandled_exception",
                "error_type": type(exc).__name__,
                **_client_context(request),
            },
        )

        if settings.DEBUG:
            return JSONResponse(
                status_code=500,
                content=error_envelope(
                    str(exc) or "Internal server error",
                    error_type=type(exc).__name__,
                    stack=traceback.format_exception(type(exc), exc, exc.__traceback__),
                ),
            )
        return JSONResponse(status_code=500, content=error_envelope("Internal server error"))

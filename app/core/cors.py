"""CORS policy: allow-list enforcement on top of Starlette's CORSMiddleware.

Starlette only omits CORS headers for unknown origins (and answers their
preflights with a bare 400). The landing page contract is stricter: any
request carrying a non-allowed ``Origin`` gets a 403 JSON body and one
warning log entry. Requests without an ``Origin`` (curl, server-to-server,
same-origin navigation) pass through.
"""
import logging
from typing import Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from app.core.config import Settings
from app.core.errors import utc_timestamp

logger = logging.getLogger(__name__)

CORS_VIOLATION_MESSAGE = "CORS policy violation: Origin not allowed"


class CorsPolicyMiddleware:
    def __init__(self, app: ASGIApp, allowed_origins: Iterable[str]) -> None:
        self.app = app
        self.allowed_origins = frozenset(allowed_origins)
        self.allow_all = "*" in self.allowed_origins

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = {k.decode("latin-1"): v.decode("latin-1") for k, v in scope["headers"]}
        origin = headers.get("origin")
        if origin is None or self.allow_all or origin in self.allowed_origins:
            await self.app(scope, receive, send)
            return

        client = scope.get("client")
        logger.warning(
            "CORS blocked request from origin %s",
            origin,
            extra={
                "event_type": "cors_rejected",
                "origin": origin,
                "method": scope["method"],
                "path": scope["path"],
                "client_ip": client[0] if client else "unknown",
                "user_agent": headers.get("user-agent", ""),
            },
        )
        response = JSONResponse(
            status_code=403,
            content={
                "success": False,
                "message": CORS_VIOLATION_MESSAGE,
                "timestamp": utc_timestamp(),
            },
        )
        await response(scope, receive, send)


def install_cors(app: FastAPI, settings: Settings) -> None:
    """Add CORS header handling and the allow-list gate (outermost)."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=settings.ALLOWED_METHODS,
        allow_headers=settings.ALLOWED_HEADERS,
        expose_headers=[
            "X-Request-ID",
            "RateLimit-Limit",
            "RateLimit-Remaining",
            "RateLimit-Reset",
            "Retry-After",
        ],
        max_age=settings.CORS_MAX_AGE,
    )
    app.add_middleware(CorsPolicyMiddleware, allowed_origins=settings.ALLOWED_ORIGINS)

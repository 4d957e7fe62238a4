import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api.routes import health
from app.api.v1 import contact
from app.core.config import Settings, settings as default_settings
from app.core.cors import install_cors
from app.core.email import MailTransport, build_transport
from app.core.errors import register_exception_handlers
from app.core.logging import setup_logging
from app.core.middleware import RequestIdMiddleware, RequestLoggingMiddleware
from app.core.rate_limiter import ContactRateLimiter, build_trusted_networks
from app.core.security_headers import SecurityHeadersMiddleware
from app.services.contact_service import ContactSubmissionHandler
from app.services.contact_validator import ContactValidator, ValidationBounds
from app.services.notifier import ContactNotifier

logger = logging.getLogger(__name__)


tags_metadata = [
    {
        "name": "contact",
        "description": "**Contact** - Public contact form: rate limited, validated, delivered by email.",
    },
    {
        "name": "health",
        "description": "**Health** - Process snapshot and plain-text liveness probe.",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    if not app.state.notifier.is_configured:
        logger.warning("Email transport is not configured; contact submissions will fail")
    elif settings.SMTP_VERIFY_ON_STARTUP:
        await app.state.notifier.verify_connection()

    yield

    logger.info("Shutting down...")


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[MailTransport] = None,
) -> FastAPI:
    """Build the application and its long-lived services.

    Rate limiter, validator, notifier and submission handler are created
    once here and shared through ``app.state``.
    """
    settings = settings or default_settings

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="""
## Landing Contact API

Server side of the marketing landing page: the contact form pipeline
(rate limit, validation, email notification) and health checks.
        """,
        openapi_tags=tags_metadata,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/api/openapi.json",
    )

    limiter = ContactRateLimiter.from_settings(settings)
    validator = ContactValidator(ValidationBounds.from_settings(settings))
    notifier = ContactNotifier(settings, transport or build_transport(settings))

    app.state.settings = settings
    app.state.trusted_networks = build_trusted_networks(settings.TRUSTED_PROXIES)
    app.state.rate_limiter = limiter
    app.state.notifier = notifier
    app.state.submission_handler = ContactSubmissionHandler(
        limiter=limiter,
        validator=validator,
        notifier=notifier,
        settings=settings,
    )

    # Middleware order: last added runs first
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    install_cors(app, settings)

    register_exception_handlers(app, settings)

    app.include_router(contact.router, prefix="/api", tags=["contact"])
    app.include_router(health.router)

    if settings.FRONTEND_DIR:
        frontend = Path(settings.FRONTEND_DIR)
        if frontend.is_dir():
            app.mount("/", StaticFiles(directory=frontend, html=True), name="frontend")
        else:
            logger.warning("FRONTEND_DIR %s does not exist; static files disabled", frontend)

    return app


setup_logging(default_settings)
app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn on HOST:PORT."""
    uvicorn.run(
        "app.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_config=None,
    )

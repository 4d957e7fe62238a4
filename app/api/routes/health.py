"""
Health check endpoints.

Provides:
- /health        - Process snapshot (uptime, memory, load, mail configuration)
- /health/simple - Plain-text liveness probe for load balancers
"""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from app.core.errors import utc_timestamp
from app.services import health_service
from app.services.health_service import HealthSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthSnapshot,
    summary="Health check",
    description="""
    Returns process uptime, memory usage, load average and whether the mail
    transport is configured. Recomputed on every call.

    **Status codes:**
    - `200`: snapshot taken, `status` is `healthy`
    - `500`: introspection failed, `status` is `unhealthy`
    """,
    responses={500: {"description": "Health check failed"}},
)
async def health_check(request: Request):
    settings = request.app.state.settings
    try:
        snapshot = health_service.build_health_snapshot(settings)
    except Exception as exc:
        logger.error(
            "Health check failed: %s",
            exc,
            exc_info=True,
            extra={"event_type": "health_check_failed", "error_type": type(exc).__name__},
        )
        return JSONResponse(
            status_code=500,
            content={
                "status": "unhealthy",
                "timestamp": utc_timestamp(),
                "error": "Health check failed",
                "message": str(exc),
            },
        )

    if settings.ENVIRONMENT == "development":
        logger.info(
            "Health check requested",
            extra={
                "event_type": "health_check",
                "client_ip": request.client.host if request.client else "unknown",
                "user_agent": request.headers.get("user-agent", ""),
            },
        )
    return snapshot


@router.get(
    "/health/simple",
    response_class=PlainTextResponse,
    summary="Liveness probe",
    description="Quick check if the service is alive.",
)
async def simple_health_check() -> PlainTextResponse:
    return PlainTextResponse("OK")

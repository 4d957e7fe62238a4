"""Process and host introspection for the health endpoint."""
from __future__ import annotations

import os
import platform
import resource
import sys
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.core.config import Settings

_PROCESS_STARTED = time.monotonic()


class MemoryUsage(BaseModel):
    rss_mb: Optional[float] = Field(None, description="Current resident set size")
    max_rss_mb: float = Field(..., description="Peak resident set size")


class SystemInfo(BaseModel):
    platform: str
    arch: str
    python_version: str
    pid: int
    memory: MemoryUsage
    load_average: List[float]
    cpu_count: int


class EmailServiceHealth(BaseModel):
    configured: bool
    host: str


class HealthSnapshot(BaseModel):
    status: str = "healthy"
    timestamp: datetime
    uptime: float = Field(..., ge=0, description="Seconds since process start")
    environment: str
    version: str
    system: SystemInfo
    services: Dict[str, EmailServiceHealth]


def _to_mb(value_bytes: float) -> float:
    return round(value_bytes / 1024 / 1024, 2)


def _current_rss_bytes() -> Optional[int]:
    try:
        with open("/proc/self/statm") as fh:
            pages = int(fh.read().split()[1])
    except (OSError, ValueError, IndexError):
        return None
    return pages * os.sysconf("SC_PAGE_SIZE")


def _memory_usage() -> MemoryUsage:
    max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is kilobytes on Linux, bytes on macOS
    max_rss_bytes = max_rss if sys.platform == "darwin" else max_rss * 1024
    current = _current_rss_bytes()
    return MemoryUsage(
        rss_mb=_to_mb(current) if current is not None else None,
        max_rss_mb=_to_mb(max_rss_bytes),
    )


def process_uptime() -> float:
    return max(0.0, time.monotonic() - _PROCESS_STARTED)


def build_health_snapshot(settings: Settings) -> HealthSnapshot:
    """Read uptime, memory, load and mail configuration right now."""
    return HealthSnapshot(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        uptime=round(process_uptime(), 3),
        environment=settings.ENVIRONMENT,
        version=settings.VERSION,
        system=SystemInfo(
            platform=sys.platform,
            arch=platform.machine(),
            python_version=platform.python_version(),
            pid=os.getpid(),
            memory=_memory_usage(),
            load_average=[round(v, 2) for v in os.getloadavg()],
            cpu_count=os.cpu_count() or 1,
        ),
        services={
            "email": EmailServiceHealth(
                configured=settings.email_configured,
                host=settings.SMTP_HOST or "not configured",
            )
        },
    )

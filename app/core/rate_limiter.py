"""
=============================================================================
RATE LIMITER MODULE
=============================================================================
In-memory, per-client fixed-window rate limiting for the contact form.

Features:
- One window per client identifier (IP): hits 1..max are admitted, later
  hits inside the window are rejected, the counter resets once it elapses
- Bounded LRU map of tracked clients with periodic sweep of expired windows
- Thread-safe: every read-modify-write happens under a single lock
- Trusted-proxy validation for X-Forwarded-For

Usage:
    limiter = ContactRateLimiter.from_settings(settings)
    decision = limiter.hit(get_client_ip(request, settings.TRUSTED_PROXIES))
    if not decision.allowed:
        ...  # 429 with decision.retry_after
=============================================================================
"""

import ipaddress
import logging
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Iterable, List, Optional, Union

from fastapi import Request

from app.core.config import Settings

logger = logging.getLogger(__name__)

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int
    retry_after: int

    def headers(self) -> Dict[str, str]:
        """IETF draft ``RateLimit-*`` response headers for this decision."""
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


@dataclass
class _Window:
    count: int
    started_at: float


class ContactRateLimiter:
    """Fixed-window counter keyed by client identifier."""

    def __init__(
        self,
        window_seconds: int = 3600,
        max_requests: int = 5,
        retry_after: int = 3600,
        max_clients: int = 10_000,
    ) -> None:
        if window_seconds <= 0 or max_requests <= 0 or max_clients <= 0:
            raise ValueError("window_seconds, max_requests and max_clients must be positive")
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.retry_after = retry_after
        self.max_clients = max_clients
        self._lock = Lock()
        self._windows: "OrderedDict[str, _Window]" = OrderedDict()
        self._last_sweep = time.monotonic()

    @classmethod
    def from_settings(cls, cfg: Settings) -> "ContactRateLimiter":
        return cls(
            window_seconds=cfg.RATE_LIMIT_WINDOW_SECONDS,
            max_requests=cfg.RATE_LIMIT_MAX_REQUESTS,
            retry_after=cfg.RATE_LIMIT_RETRY_AFTER,
            max_clients=cfg.RATE_LIMIT_MAX_CLIENTS,
        )

    def hit(self, identifier: str, now: Optional[float] = None) -> RateLimitDecision:
        """Count one request for ``identifier`` and decide whether to admit it."""
        now = time.monotonic() if now is None else now

        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep_locked(now)

            window = self._windows.get(identifier)
            if window is None or now - window.started_at >= self.window_seconds:
                window = _Window(count=0, started_at=now)
                self._windows[identifier] = window
            self._windows.move_to_end(identifier)

            window.count += 1
            while len(self._windows) > self.max_clients:
                evicted, _ = self._windows.popitem(last=False)
                logger.debug("Rate limiter evicted least recent client %s", evicted)

            allowed = window.count <= self.max_requests
            reset_after = max(
                0, math.ceil(window.started_at + self.window_seconds - now)
            )
            return RateLimitDecision(
                allowed=allowed,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - window.count),
                reset_after=reset_after,
                retry_after=self.retry_after,
            )

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop every expired window; returns how many were removed."""
        now = time.monotonic() if now is None else now
        with self._lock:
            return self._sweep_locked(now)

    def _sweep_locked(self, now: float) -> int:
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now
        if expired:
            logger.debug("Rate limiter swept %d expired windows", len(expired))
        return len(expired)

    def reset(self) -> None:
        """Clear rate limiter state. Intended for tests."""
        with self._lock:
            self._windows.clear()
            self._last_sweep = time.monotonic()

    def stats(self) -> dict:
        """Get current rate limiting statistics (for debugging)."""
        with self._lock:
            return {
                "backend": "in_memory",
                "window_seconds": self.window_seconds,
                "max_requests": self.max_requests,
                "tracked_clients": len(self._windows),
                "max_clients": self.max_clients,
            }


# =============================================================================
# IP EXTRACTION
# =============================================================================


def build_trusted_networks(entries: Iterable[str]) -> List[Network]:
    """Parse TRUSTED_PROXIES entries into network objects."""
    nets: List[Network] = []
    for entry in entries:
        try:
            nets.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.warning("Invalid TRUSTED_PROXIES entry ignored: %s", entry)
    return nets


def _is_trusted_proxy(ip_str: str, networks: List[Network]) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in net for net in networks)


def get_client_ip(request: Request, trusted_networks: List[Network]) -> str:
    """Extract client IP, trusting X-Forwarded-For only from trusted proxies."""
    direct_ip = request.client.host if request.client else "unknown"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and _is_trusted_proxy(direct_ip, trusted_networks):
        parts = [p.strip() for p in forwarded.split(",") if p.strip()]
        # Rightmost untrusted hop is the real client
        for ip in reversed(parts):
            if not _is_trusted_proxy(ip, trusted_networks):
                return ip
        if parts:
            return parts[0]

    return direct_ip

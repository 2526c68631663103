"""Search quota tracking for the web search capability.

One :class:`RateLimitTracker` lives on the application state and is shared
by every request.  It records monthly usage from Brave's rate-limit headers
(or counts locally when the headers are absent) and short-circuits searches
once the configured budget is spent.

``used`` only ever grows: concurrent responses can report stale remaining
counts, so each update takes the maximum of what is recorded and what the
header implies.  Only :meth:`RateLimitTracker.reset` lowers it.  State is
in memory only and starts fresh on process restart.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger(__name__)

DEFAULT_MONTHLY_LIMIT = 1000


class QuotaStatus(str, Enum):
    HEALTHY = "healthy"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RateLimitState:
    limit: int
    used: int = 0
    remaining: int = 0
    reset_time: datetime | None = None
    status: QuotaStatus = QuotaStatus.UNKNOWN
    last_updated: datetime = field(default_factory=_now)


def _monthly_field(value: str | None) -> int | None:
    """Second comma-separated field of a ``"<per-second>, <per-month>"`` header."""
    if not value:
        return None
    parts = value.split(",")
    if len(parts) < 2:
        return None
    try:
        return int(parts[1].strip())
    except ValueError:
        return None


class RateLimitTracker:
    """Thread-safe monthly search budget."""

    def __init__(self, limit: int = DEFAULT_MONTHLY_LIMIT) -> None:
        self._lock = threading.Lock()
        self._state = RateLimitState(limit=limit, remaining=limit)

    @property
    def limit(self) -> int:
        return self._state.limit

    def _advance(self, used: int) -> None:
        # Caller holds the lock.
        state = self._state
        state.used = max(state.used, used)
        state.remaining = max(0, state.limit - state.used)
        state.last_updated = _now()

    def update_from_headers(self, headers: Mapping[str, str], status_code: int) -> None:
        """Record one completed search call from its response headers."""
        monthly_remaining = _monthly_field(headers.get("X-RateLimit-Remaining"))
        monthly_reset = _monthly_field(headers.get("X-RateLimit-Reset"))

        with self._lock:
            if monthly_remaining is not None:
                self._advance(self._state.limit - monthly_remaining)
                self._state.reset_time = (
                    _now() + timedelta(seconds=monthly_reset) if monthly_reset is not None else None
                )
            else:
                self._advance(self._state.used + 1)
            self._state.status = (
                QuotaStatus.RATE_LIMITED if status_code == 429 else QuotaStatus.HEALTHY
            )
            used, limit = self._state.used, self._state.limit

        logger.info("Search usage: %d/%d (status=%s)", used, limit, status_code)

    def is_rate_limited(self) -> bool:
        with self._lock:
            return (
                self._state.used >= self._state.limit
                or self._state.status == QuotaStatus.RATE_LIMITED
            )

    def snapshot(self) -> RateLimitState:
        """A copy of the current state."""
        with self._lock:
            s = self._state
            return RateLimitState(
                limit=s.limit,
                used=s.used,
                remaining=s.remaining,
                reset_time=s.reset_time,
                status=s.status,
                last_updated=s.last_updated,
            )

    def usage_info(self) -> dict[str, Any]:
        """JSON-friendly usage summary (with percentage of budget spent)."""
        s = self.snapshot()
        percentage = round(s.used / s.limit * 100) if s.limit > 0 else 0
        return {
            "used": s.used,
            "remaining": s.remaining,
            "limit": s.limit,
            "percentage": percentage,
            "status": s.status.value,
            "last_updated": s.last_updated.isoformat(),
            "reset_time": s.reset_time.isoformat() if s.reset_time else None,
        }

    def reset(self) -> None:
        with self._lock:
            self._state = RateLimitState(
                limit=self._state.limit,
                remaining=self._state.limit,
                status=QuotaStatus.HEALTHY,
            )
        logger.info("Search usage counter reset")

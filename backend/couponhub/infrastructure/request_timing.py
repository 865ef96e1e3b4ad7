"""Request Timing — per-request sub-timings that collaborators report into.

Invariants:
    - One RequestTiming per inbound request, held in a ContextVar; asyncio tasks
      spawned by the request inherit it, so concurrent stages report into the same object
    - track_* outside a request is a no-op apart from the returned duration
    - processing = total - database - cache, clamped at 0 (concurrent stages overlap)

Design Decisions:
    - Explicit track calls keyed by operation name instead of driver hooks:
      the adapters already know where their IO starts and ends
"""

import logging
import time
from contextvars import ContextVar, Token
from dataclasses import dataclass, field

from couponhub.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class RequestTiming:
    """Mutable accumulator for one request."""
    request_id: str
    started: float = field(default_factory=time.perf_counter)
    database_ms: float = 0.0
    cache_ms: float = 0.0
    operations: dict[str, float] = field(default_factory=dict)

    def total_ms(self) -> float:
        return round((time.perf_counter() - self.started) * 1000, 2)

    def breakdown(self) -> dict:
        total = self.total_ms()
        processing = max(total - self.database_ms - self.cache_ms, 0.0)
        return {
            "totalTime": total,
            "database": round(self.database_ms, 2),
            "cache": round(self.cache_ms, 2),
            "processing": round(processing, 2),
        }

    def _record(self, category: str, operation: str, ms: float) -> None:
        if category == "database":
            self.database_ms += ms
        else:
            self.cache_ms += ms
        key = f"{category}:{operation}"
        self.operations[key] = round(self.operations.get(key, 0.0) + ms, 2)


_current: ContextVar[RequestTiming | None] = ContextVar(
    "request_timing", default=None,
)


def begin_request(request_id: str) -> tuple[RequestTiming, Token]:
    timing = RequestTiming(request_id=request_id)
    return timing, _current.set(timing)


def end_request(token: Token) -> None:
    _current.reset(token)


def current_timing() -> RequestTiming | None:
    return _current.get()


def track_database(operation: str, started: float) -> float:
    """Report a finished DB operation. Logs slow queries."""
    ms = (time.perf_counter() - started) * 1000
    timing = _current.get()
    if timing is not None:
        timing._record("database", operation, ms)
    if ms > get_settings().slow_query_threshold_ms:
        logger.warning(
            f"Slow DB {operation}: {ms:.1f}ms",
            extra={
                "operation": operation, "duration_ms": round(ms, 2),
                "request_id": timing.request_id if timing else None,
            },
        )
    return ms


def track_cache(operation: str, started: float) -> float:
    """Report a finished cache operation."""
    ms = (time.perf_counter() - started) * 1000
    timing = _current.get()
    if timing is not None:
        timing._record("cache", operation, ms)
    logger.debug(f"Cache {operation}: {ms:.1f}ms")
    return ms

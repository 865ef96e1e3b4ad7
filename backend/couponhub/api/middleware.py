"""Timing Middleware — per-request timing context, response headers, and slow-request logs.

Invariants:
    - Every response carries X-Response-Time ("<ms>ms") and X-Request-ID (echoed
      from the request when present, generated otherwise)
    - One structured log line per request; above slow_request_threshold_ms it is a
      warning carrying the full breakdown
    - Status code and body are never changed here; only with_performance touches
      the body, and only outside production

Design Decisions:
    - BaseHTTPMiddleware: the timing ContextVar is set before call_next, so the
      route task and every stage task it spawns report into the same RequestTiming
    - _performance attached by an explicit route decorator, not by rewriting
      response bodies in middleware
"""

import functools
import logging
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from couponhub.config import get_settings
from couponhub.infrastructure.request_timing import (
    begin_request, current_timing, end_request,
)

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"


class RequestTimingMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, slow_request_threshold_ms: float = 1000.0):
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        timing, token = begin_request(request_id)
        request.state.request_id = request_id
        try:
            response = await call_next(request)
        finally:
            end_request(token)

        breakdown = timing.breakdown()
        response.headers[RESPONSE_TIME_HEADER] = f"{breakdown['totalTime']}ms"
        response.headers[REQUEST_ID_HEADER] = request_id

        extra = {
            "request_id": request_id, "method": request.method,
            "path": request.url.path, "status_code": response.status_code,
            "duration_ms": breakdown["totalTime"], "timing": breakdown,
        }
        if breakdown["totalTime"] > self.slow_request_threshold_ms:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} took "
                f"{breakdown['totalTime']}ms (db {breakdown['database']}ms, "
                f"cache {breakdown['cache']}ms)",
                extra=extra,
            )
        else:
            logger.info(
                f"{request.method} {request.url.path} {response.status_code} "
                f"{breakdown['totalTime']}ms",
                extra=extra,
            )
        return response


def with_performance(handler):
    """Attach `_performance` (totalTime + breakdown) to dict responses outside production."""

    @functools.wraps(handler)
    async def wrapper(*args, **kwargs):
        result = await handler(*args, **kwargs)
        timing = current_timing()
        if (
            isinstance(result, dict)
            and timing is not None
            and not get_settings().is_production
        ):
            result["_performance"] = {
                **timing.breakdown(),
                "operations": dict(timing.operations),
            }
        return result

    return wrapper

"""Circuit Breaker — fail fast on a side-effect stage that keeps failing.

Invariants:
    - CLOSED: calls allowed; `threshold` consecutive failures → OPEN
    - OPEN: calls rejected until `reset_seconds` elapsed → HALF_OPEN
    - HALF_OPEN: one trial call admitted, the rest rejected until it is recorded;
      success → CLOSED, failure → OPEN again
    - A trial call never recorded within `reset_seconds` is abandoned and the next
      call becomes the trial
    - Counters (successes, failures, rejections) are cumulative for monitoring

Design Decisions:
    - One breaker per stage, owned by the orchestrator (no module-level state)
    - Clock injectable for tests (time.monotonic by default)
"""

import logging
import time
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Consecutive-failure breaker with timed half-open probe."""

    def __init__(
        self,
        name: str,
        threshold: int,
        reset_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.threshold = threshold
        self.reset_seconds = reset_seconds
        self._clock = clock
        self._state = BreakerState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0
        self._trial_started_at: float | None = None
        self.successes = 0
        self.failures = 0
        self.rejections = 0

    @property
    def state(self) -> BreakerState:
        if (
            self._state is BreakerState.OPEN
            and self._clock() - self._opened_at >= self.reset_seconds
        ):
            self._state = BreakerState.HALF_OPEN
        return self._state

    def allow(self) -> bool:
        """Whether a call may proceed now. Rejections are counted."""
        state = self.state
        if state is BreakerState.CLOSED:
            return True
        now = self._clock()
        if state is BreakerState.HALF_OPEN and (
            self._trial_started_at is None
            or now - self._trial_started_at >= self.reset_seconds
        ):
            self._trial_started_at = now
            return True
        self.rejections += 1
        return False

    def record(self, success: bool) -> None:
        self._trial_started_at = None
        if success:
            self.successes += 1
            self._consecutive_failures = 0
            if self._state is not BreakerState.CLOSED:
                logger.info(f"Circuit breaker CLOSED for {self.name}")
            self._state = BreakerState.CLOSED
            return

        self.failures += 1
        self._consecutive_failures += 1
        if (
            self.state is BreakerState.HALF_OPEN
            or self._consecutive_failures >= self.threshold
        ):
            if self._state is not BreakerState.OPEN:
                logger.error(
                    f"Circuit breaker OPENED for {self.name} after "
                    f"{self._consecutive_failures} failures",
                )
            self._state = BreakerState.OPEN
            self._opened_at = self._clock()

    def status(self) -> dict:
        total = self.successes + self.failures
        return {
            "state": self.state.value,
            "consecutiveFailures": self._consecutive_failures,
            "successCount": self.successes,
            "failureCount": self.failures,
            "rejectedCount": self.rejections,
            "successRate": round(self.successes / total * 100, 1) if total else 100.0,
        }

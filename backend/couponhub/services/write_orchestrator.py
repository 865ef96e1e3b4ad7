"""Write Orchestrator — persist first, then cache/websocket/revalidation in parallel.

Invariants:
    - Persistence happens-before every side effect; a persistence failure returns a
      single database StageResult and attempts nothing else
    - Side-effect stages run concurrently, each under its own timeout and circuit
      breaker; a failure or timeout is a failed StageResult, never an exception
    - overall_success == database stage success (aggregate_results)
    - The broadcaster reads the cache outcome before building its event; the wait is
      bounded by the cache stage timeout, not the websocket one
    - Caller cancellation never aborts the pipeline: execute() awaits a shielded task
      and the background outcome is logged

Design Decisions:
    - One orchestrator per process (app.state), no per-entity locks: cache keys are
      independent per entity and the SQL version column turns concurrent writes to
      the same row into ConcurrencyError
    - Stage collaborators injected, so tests swap in fakes without patching
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from couponhub.core.affected_paths import affected_paths
from couponhub.core.domain_types import Operation, Stage
from couponhub.core.errors import ErrorContext, PersistenceError, StoreUnavailableError
from couponhub.core.pipeline_types import (
    AggregatedResult, EntitySnapshot, Mutation, StageResult, aggregate_results,
)
from couponhub.core.repository_protocols import EntityStore
from couponhub.infrastructure.circuit_breaker import CircuitBreaker
from couponhub.services.cache_invalidator import CacheInvalidator
from couponhub.services.event_broadcaster import EventBroadcaster
from couponhub.services.revalidation_trigger import RevalidationTrigger

logger = logging.getLogger(__name__)

StageCall = Callable[[], Awaitable[StageResult]]


class WriteOrchestrator:
    """Runs one Mutation through the write-path consistency pipeline."""

    def __init__(
        self,
        store: EntityStore,
        invalidator: CacheInvalidator,
        broadcaster: EventBroadcaster,
        revalidation: RevalidationTrigger,
        *,
        database_timeout: float = 10.0,
        stage_timeouts: dict[Stage, float] | None = None,
        breakers: dict[Stage, CircuitBreaker] | None = None,
    ):
        self.store = store
        self._invalidator = invalidator
        self._broadcaster = broadcaster
        self._revalidation = revalidation
        self._database_timeout = database_timeout
        self._timeouts = {
            Stage.CACHE: 3.0, Stage.WEBSOCKET: 3.0, Stage.REVALIDATION: 5.0,
            **(stage_timeouts or {}),
        }
        self.breakers = breakers or {}
        self._inflight: set[asyncio.Task] = set()
        self.executed = 0
        self.persistence_failures = 0
        self.partial_failures = 0

    async def execute(self, mutation: Mutation) -> AggregatedResult:
        task = asyncio.create_task(self._run(mutation))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.warning(
                f"Caller cancelled {mutation.operation.value} "
                f"{mutation.entity_type.value}; pipeline continues in background",
                extra={"entity_type": mutation.entity_type.value,
                       "operation": mutation.operation.value},
            )
            task.add_done_callback(self._log_background_outcome)
            raise

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for pipelines still running after their callers went away."""
        if self._inflight:
            await asyncio.wait(set(self._inflight), timeout=timeout)

    # ─── Stage 1: persistence ───────────────────────────────────

    async def _run(self, mutation: Mutation) -> AggregatedResult:
        started = time.perf_counter()
        self.executed += 1
        try:
            snapshot = await asyncio.wait_for(
                self._persist(mutation), timeout=self._database_timeout,
            )
        except asyncio.TimeoutError:
            error = StoreUnavailableError(
                f"timed out after {self._database_timeout}s",
                mutation.operation.value,
                ErrorContext(entity_type=mutation.entity_type.value,
                             entity_id=mutation.entity_id),
            )
            return self._persistence_failed(mutation, started, error)
        except PersistenceError as e:
            return self._persistence_failed(mutation, started, e)

        database = StageResult.ok(
            Stage.DATABASE, started,
            operation=mutation.operation.value, entityId=snapshot.id,
            version=snapshot.version,
        )
        side_effects = await self._run_side_effects(mutation, snapshot)
        result = aggregate_results(snapshot, database, side_effects)

        if result.failed_stages:
            self.partial_failures += 1
            failed = [s.value for s in result.failed_stages]
            logger.warning(
                f"{mutation.operation.value} {mutation.entity_type.value} "
                f"{snapshot.id} persisted with failed stages: {', '.join(failed)}",
                extra={"entity_type": mutation.entity_type.value,
                       "entity_id": snapshot.id,
                       "operation": mutation.operation.value,
                       "failed_stages": failed, "version": snapshot.version},
            )
        return result

    async def _persist(self, mutation: Mutation) -> EntitySnapshot:
        if mutation.operation is Operation.CREATE:
            return await self.store.create(mutation.entity_type, mutation.payload)
        if mutation.operation is Operation.UPDATE:
            return await self.store.update(
                mutation.entity_type, mutation.entity_id, mutation.payload,
                mutation.previous_version,
            )
        return await self.store.delete(
            mutation.entity_type, mutation.entity_id, mutation.previous_version,
        )

    def _persistence_failed(
        self, mutation: Mutation, started: float, error: PersistenceError,
    ) -> AggregatedResult:
        self.persistence_failures += 1
        logger.warning(
            f"{mutation.operation.value} {mutation.entity_type.value} failed: "
            f"{error.message}",
            extra={"entity_type": mutation.entity_type.value,
                   "entity_id": mutation.entity_id,
                   "operation": mutation.operation.value,
                   "stage": Stage.DATABASE.value, "error_code": error.code},
        )
        database = StageResult.failed(
            Stage.DATABASE, started, error.message, code=error.code,
        )
        return aggregate_results(None, database, error=error)

    # ─── Stages 2-4: side effects ───────────────────────────────

    async def _run_side_effects(
        self, mutation: Mutation, snapshot: EntitySnapshot,
    ) -> list[StageResult]:
        cache_task = asyncio.create_task(self._stage(
            Stage.CACHE,
            lambda: self._invalidator.invalidate(
                snapshot.entity_type, snapshot.id,
                slug=snapshot.slug, parent_id=snapshot.parent_id,
            ),
        ))

        async def broadcast_after_cache() -> StageResult:
            cache_result = await cache_task
            return await self._stage(
                Stage.WEBSOCKET,
                lambda: self._broadcaster.publish(
                    snapshot.entity_type, snapshot.id, mutation.operation,
                    snapshot.data, snapshot.version,
                    cache_invalidated=cache_result.success,
                ),
            )

        revalidation = self._stage(
            Stage.REVALIDATION,
            lambda: self._revalidation.revalidate(
                snapshot.entity_type, snapshot.id, affected_paths(snapshot),
            ),
        )
        results = await asyncio.gather(
            cache_task, broadcast_after_cache(), revalidation,
        )
        return list(results)

    async def _stage(self, stage: Stage, call: StageCall) -> StageResult:
        """Run one side effect under its breaker and timeout. Never raises."""
        started = time.perf_counter()
        breaker = self.breakers.get(stage)
        if breaker is not None and not breaker.allow():
            return StageResult.failed(stage, started, "circuit open")

        timeout = self._timeouts[stage]
        try:
            result = await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Stage {stage.value} timed out after {timeout}s",
                extra={"stage": stage.value},
            )
            result = StageResult.failed(
                stage, started, f"timed out after {timeout}s", timedOut=True,
            )
        except Exception as e:
            logger.error(
                f"Stage {stage.value} raised {type(e).__name__}: {e}",
                extra={"stage": stage.value}, exc_info=True,
            )
            result = StageResult.failed(stage, started, f"{type(e).__name__}: {e}")

        if breaker is not None:
            breaker.record(result.success)
        return result

    # ─── Monitoring ─────────────────────────────────────────────

    def _log_background_outcome(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.error("Background write pipeline was cancelled")
            return
        if task.exception() is not None:
            logger.error(
                f"Background write pipeline crashed: {task.exception()!r}",
            )
            return
        result = task.result()
        logger.info(
            f"Background write pipeline finished: overall_success="
            f"{result.overall_success}, failed_stages="
            f"{[s.value for s in result.failed_stages]}",
        )

    def status(self) -> dict:
        return {
            "executed": self.executed,
            "persistenceFailures": self.persistence_failures,
            "partialFailures": self.partial_failures,
            "inFlight": len(self._inflight),
            "timeouts": {
                Stage.DATABASE.value: self._database_timeout,
                **{s.value: t for s, t in self._timeouts.items()},
            },
            "circuitBreakers": {
                s.value: b.status() for s, b in self.breakers.items()
            },
        }

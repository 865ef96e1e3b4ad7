"""Pipeline Types — values that flow through one write: Mutation in, AggregatedResult out.

Invariants:
    - StageResult is a value, never an exception: stage failures are data
    - AggregatedResult.overall_success == database StageResult.success, always
    - A failed persistence yields exactly one StageResult (database) — stages not
      attempted have no entry
    - ChangeEvent.version equals the entity version right after persistence

Design Decisions:
    - Frozen dataclasses: the orchestrator's join step is pure aggregation
      (aggregate_results) with no exception handling at that layer
    - Wire dicts built here (to_dict/to_wire) so API and broadcast share one shape
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from couponhub.core.domain_types import EntityType, Operation, Stage
from couponhub.core.errors import PersistenceError


def elapsed_ms(started: float) -> float:
    """Milliseconds since a time.perf_counter() reading, rounded for display."""
    return round((time.perf_counter() - started) * 1000, 2)


@dataclass(frozen=True)
class Mutation:
    """One in-flight write. Never persisted; discarded after the pipeline completes."""
    entity_type: EntityType
    operation: Operation
    entity_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    previous_version: int | None = None

    def __post_init__(self):
        if self.operation is not Operation.CREATE and not self.entity_id:
            raise ValueError(f"{self.operation.value} mutation requires entity_id")


@dataclass(frozen=True)
class EntitySnapshot:
    """Entity state immediately after persistence (a tombstone for deletes)."""
    entity_type: EntityType
    id: str
    slug: str
    version: int
    data: dict[str, Any]
    parent_id: str | None = None
    parent_slug: str | None = None


@dataclass(frozen=True)
class StageResult:
    """Outcome of one stage for one mutation."""
    stage: Stage
    success: bool
    detail: dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0
    error: str | None = None

    @classmethod
    def ok(cls, stage: Stage, started: float, **detail: Any) -> "StageResult":
        return cls(stage, True, detail, elapsed_ms(started))

    @classmethod
    def failed(
        cls, stage: Stage, started: float, error: str, **detail: Any,
    ) -> "StageResult":
        return cls(stage, False, detail, elapsed_ms(started), error)

    def to_dict(self) -> dict:
        out = {
            "stage": self.stage.value,
            "success": self.success,
            "detail": self.detail,
            "durationMs": self.duration_ms,
        }
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class AggregatedResult:
    """Everything the caller learns about one write."""
    entity: EntitySnapshot | None
    stage_results: tuple[StageResult, ...]
    overall_success: bool
    error: PersistenceError | None = None

    def stage(self, stage: Stage) -> StageResult | None:
        for result in self.stage_results:
            if result.stage is stage:
                return result
        return None

    @property
    def failed_stages(self) -> list[Stage]:
        return [r.stage for r in self.stage_results if not r.success]

    def atomic_update_results(self) -> dict[str, dict]:
        """Stage results keyed by stage name — the atomicUpdateResults envelope."""
        return {r.stage.value: r.to_dict() for r in self.stage_results}


def aggregate_results(
    entity: EntitySnapshot | None,
    database: StageResult,
    side_effects: list[StageResult] | tuple[StageResult, ...] = (),
    error: PersistenceError | None = None,
) -> AggregatedResult:
    """Join stage outcomes. Only the database stage gates overall success."""
    if not database.success:
        return AggregatedResult(None, (database,), False, error)
    return AggregatedResult(
        entity, (database, *side_effects), True, None,
    )


@dataclass(frozen=True)
class ChangeEvent:
    """Versioned notification sent to real-time subscribers."""
    entity_type: EntityType
    entity_id: str
    operation: Operation
    data: dict[str, Any]
    version: int
    cache_invalidated: bool
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def type(self) -> str:
        return self.entity_type.event_type

    @property
    def force_refresh(self) -> bool:
        return self.operation.forces_refresh

    def to_wire(self) -> dict:
        """JSON object delivered to subscribers; field names are part of the contract."""
        return {
            "type": self.type,
            self.entity_type.id_field: self.entity_id,
            "operation": self.operation.value,
            "data": self.data,
            "forceRefresh": self.force_refresh,
            "cacheInvalidated": self.cache_invalidated,
            "version": self.version,
            "timestamp": self.timestamp.isoformat(),
        }

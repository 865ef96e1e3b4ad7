"""Boundary Protocols — contracts between the pipeline and its four collaborators.

Invariants:
    - Services NEVER import concrete adapters — they depend on these Protocols
    - Implementations provided by infrastructure/ via dependency injection (app.state)
    - EntityStore raises PersistenceError subclasses; CacheBackend raises
      CacheUnavailableError; RevalidationClient raises RevalidationError

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
"""

from typing import Any, Protocol

from couponhub.core.domain_types import EntityType
from couponhub.core.pipeline_types import ChangeEvent, EntitySnapshot


class EntityStore(Protocol):
    """Persistent store for catalog entities."""
    async def create(
        self, entity_type: EntityType, payload: dict,
    ) -> EntitySnapshot: ...
    async def update(
        self, entity_type: EntityType, entity_id: str, patch: dict,
        previous_version: int | None = None,
    ) -> EntitySnapshot: ...
    async def delete(
        self, entity_type: EntityType, entity_id: str,
        previous_version: int | None = None,
    ) -> EntitySnapshot: ...
    async def get(
        self, entity_type: EntityType, entity_id: str,
    ) -> EntitySnapshot: ...
    async def list(
        self, entity_type: EntityType, filters: dict, page: int, limit: int,
    ) -> tuple[list[dict], int]: ...


class CacheBackend(Protocol):
    """Key-value cache with pattern deletion."""
    async def delete_matching(self, pattern: str) -> int: ...
    async def get(self, key: str) -> Any | None: ...
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None: ...
    async def ping(self) -> bool: ...


class Connection(Protocol):
    """A real-time client connection (FastAPI WebSocket satisfies this)."""
    async def send_text(self, data: str) -> None: ...
    async def close(self, code: int = 1000) -> None: ...


class NotificationChannel(Protocol):
    """Fan-out of ChangeEvents to connected subscribers."""
    async def subscribe(
        self, connection: Connection, channels: list[str] | None = None,
    ) -> str: ...
    async def unsubscribe(self, handle: str) -> bool: ...
    async def broadcast(self, event: ChangeEvent) -> int: ...


class RevalidationClient(Protocol):
    """Outbound call to the rendering layer's revalidation endpoint."""
    async def revalidate(
        self, entity_type: EntityType, entity_id: str, paths: list[str],
    ) -> int: ...

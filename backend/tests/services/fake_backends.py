"""Fake Backends — in-process stand-ins for Redis, WebSockets, the frontend, and the store.

Invariants:
    - FakeCache matches keys with glob semantics (fnmatchcase ≈ Redis MATCH) and
      stores JSON strings, so cached values are copies like in Redis
    - unreachable=True makes every cache command raise CacheUnavailableError
    - FakeSocket records decoded JSON messages; fail/delay simulate dead or slow clients
    - InMemoryEntityStore follows SqlEntityStore's version and tombstone rules

Design Decisions:
    - Flat fake classes (no inheritance): satisfy the Protocols structurally
    - gate (asyncio.Event) on the store lets tests hold persistence mid-flight
"""

import asyncio
import json
import uuid
from fnmatch import fnmatchcase

from couponhub.core.domain_types import EntityType
from couponhub.core.errors import (
    BroadcastError, CacheUnavailableError, EntityNotFoundError, RevalidationError,
)
from couponhub.core.pipeline_types import EntitySnapshot
from couponhub.core.slugs import slugify


# -- Cache ---------------------------------------------------------------------

class FakeCache:
    """CacheBackend over a dict of JSON strings."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.unreachable = False
        self.patterns_deleted: list[str] = []
        self.delay = 0.0

    def _check(self):
        if self.unreachable:
            raise CacheUnavailableError("connection refused")

    def seed(self, *keys: str, value="cached"):
        for key in keys:
            self.data[key] = json.dumps(value)

    async def delete_matching(self, pattern: str) -> int:
        if self.delay:
            await asyncio.sleep(self.delay)
        self._check()
        self.patterns_deleted.append(pattern)
        matches = [k for k in self.data if fnmatchcase(k, pattern)]
        for key in matches:
            del self.data[key]
        return len(matches)

    async def get(self, key: str):
        self._check()
        raw = self.data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value, ttl: int | None = None) -> None:
        self._check()
        self.data[key] = json.dumps(value, default=str)

    async def ping(self) -> bool:
        return not self.unreachable


# -- Real-time -----------------------------------------------------------------

class FakeSocket:
    """Connection that records what it was sent."""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.sent: list[dict] = []
        self.fail = fail
        self.delay = delay
        self.close_code: int | None = None

    async def send_text(self, data: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        self.close_code = code


class UnreachableChannel:
    """NotificationChannel whose transport is down."""

    async def subscribe(self, connection, channels=None) -> str:
        return "never"

    async def unsubscribe(self, handle: str) -> bool:
        return False

    async def broadcast(self, event) -> int:
        raise BroadcastError("notification transport unreachable")


# -- Revalidation --------------------------------------------------------------

class FakeRevalidationClient:
    """RevalidationClient that records calls and answers with a fixed status."""

    def __init__(self, status: int = 200, delay: float = 0.0):
        self.status = status
        self.delay = delay
        self.calls: list[dict] = []

    async def revalidate(self, entity_type, entity_id, paths) -> int:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.calls.append({
            "entityType": entity_type.value, "entityId": entity_id, "paths": paths,
        })
        if not 200 <= self.status < 300:
            raise RevalidationError(f"HTTP {self.status}", self.status)
        return self.status


# -- Entity store --------------------------------------------------------------

class InMemoryEntityStore:
    """EntityStore with SqlEntityStore's version semantics and no database."""

    def __init__(self):
        self.rows: dict[tuple[EntityType, str], dict] = {}
        self.gate: asyncio.Event | None = None
        self.delay = 0.0

    async def _pause(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)

    def _snapshot(self, entity_type, row) -> EntitySnapshot:
        return EntitySnapshot(
            entity_type=entity_type, id=row["id"], slug=row["slug"],
            version=row["version"], data=dict(row),
            parent_id=row.get("storeId"),
        )

    async def create(self, entity_type, payload):
        await self._pause()
        entity_id = str(uuid.uuid4())
        source = payload.get("name") or payload.get("title") or "item"
        row = {
            **payload, "id": entity_id, "slug": slugify(source), "version": 1,
        }
        self.rows[(entity_type, entity_id)] = row
        return self._snapshot(entity_type, row)

    async def update(self, entity_type, entity_id, patch, previous_version=None):
        await self._pause()
        row = await self._row(entity_type, entity_id)
        row.update(patch)
        row["version"] += 1
        return self._snapshot(entity_type, row)

    async def delete(self, entity_type, entity_id, previous_version=None):
        await self._pause()
        row = await self._row(entity_type, entity_id)
        del self.rows[(entity_type, entity_id)]
        tombstone = {**row, "version": row["version"] + 1, "deleted": True}
        return self._snapshot(entity_type, tombstone)

    async def get(self, entity_type, entity_id):
        return self._snapshot(entity_type, await self._row(entity_type, entity_id))

    async def list(self, entity_type, filters, page, limit):
        items = [r for (t, _), r in self.rows.items() if t is entity_type]
        return items[(page - 1) * limit: page * limit], len(items)

    async def _row(self, entity_type, entity_id):
        row = self.rows.get((entity_type, entity_id))
        if row is None:
            raise EntityNotFoundError(entity_type.value, entity_id)
        return row

"""Redis Cache — read-through storage and pattern invalidation for catalog views.

Invariants:
    - Values are JSON documents; a missing key is None (never an error)
    - delete_matching returns the number of keys actually removed; 0 is a valid result
    - Exact keys (no glob characters) are deleted directly, patterns via SCAN + batched DEL
    - Any RedisError surfaces as CacheUnavailableError (core/errors.py)

Design Decisions:
    - SCAN over KEYS: never blocks the Redis event loop on large keyspaces
    - Scan stops after max_keys_per_pattern; the rest is left to TTL expiry
"""

import json
import logging
import time
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from couponhub.core.cache_keys import has_wildcard
from couponhub.core.errors import CacheUnavailableError
from couponhub.infrastructure.request_timing import track_cache

logger = logging.getLogger(__name__)

_DELETE_BATCH = 100


class RedisCache:
    """CacheBackend implementation over redis.asyncio."""

    def __init__(
        self,
        client: Redis,
        scan_count: int = 100,
        max_keys_per_pattern: int = 10_000,
    ):
        self._client = client
        self._scan_count = scan_count
        self._max_keys = max_keys_per_pattern

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisCache":
        client = Redis.from_url(
            url, decode_responses=True, health_check_interval=30,
        )
        return cls(client, **kwargs)

    async def delete_matching(self, pattern: str) -> int:
        started = time.perf_counter()
        try:
            if not has_wildcard(pattern):
                return await self._client.delete(pattern)
            return await self._scan_and_delete(pattern)
        except RedisError as e:
            logger.error(f"Redis delete_matching failed for {pattern}: {e}")
            raise CacheUnavailableError(str(e))
        finally:
            track_cache("delete_matching", started)

    async def _scan_and_delete(self, pattern: str) -> int:
        deleted = 0
        seen = 0
        batch: list[str] = []
        async for key in self._client.scan_iter(
            match=pattern, count=self._scan_count,
        ):
            batch.append(key)
            seen += 1
            if len(batch) >= _DELETE_BATCH:
                deleted += await self._client.delete(*batch)
                batch.clear()
            if seen >= self._max_keys:
                logger.warning(f"Cache pattern scan limit reached for: {pattern}")
                break
        if batch:
            deleted += await self._client.delete(*batch)
        return deleted

    async def get(self, key: str) -> Any | None:
        started = time.perf_counter()
        try:
            raw = await self._client.get(key)
        except RedisError as e:
            raise CacheUnavailableError(str(e))
        finally:
            track_cache("get", started)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding non-JSON cache value at {key}")
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        started = time.perf_counter()
        try:
            await self._client.set(key, json.dumps(value, default=str), ex=ttl)
        except RedisError as e:
            raise CacheUnavailableError(str(e))
        finally:
            track_cache("set", started)

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()

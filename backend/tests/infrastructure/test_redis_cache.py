"""Redis Cache — verifies pattern deletion, JSON values, and error mapping against a fake client.

Design Decisions:
    - _FakeRedis implements only the redis.asyncio calls RedisCache makes
      (scan_iter, delete, get, set, ping, aclose)
"""

import json
from fnmatch import fnmatchcase

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from couponhub.core.errors import CacheUnavailableError
from couponhub.infrastructure.redis_cache import RedisCache


class _FakeRedis:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.down = False
        self.delete_calls: list[tuple] = []

    def _check(self):
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def scan_iter(self, match=None, count=None):
        self._check()
        for key in list(self.data):
            if fnmatchcase(key, match):
                yield key

    async def delete(self, *keys):
        self._check()
        self.delete_calls.append(keys)
        removed = 0
        for key in keys:
            removed += self.data.pop(key, None) is not None
        return removed

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        pass


@pytest.fixture
def redis_client():
    return _FakeRedis()


@pytest.fixture
def cache(redis_client):
    return RedisCache(redis_client)


async def test_exact_key_deleted_directly(cache, redis_client):
    redis_client.data["p:store:1"] = "{}"
    assert await cache.delete_matching("p:store:1") == 1
    assert redis_client.delete_calls == [("p:store:1",)]


async def test_pattern_deletes_in_batches(cache, redis_client):
    for i in range(250):
        redis_client.data[f"p:stores:page:{i}"] = "{}"
    redis_client.data["p:coupons:all"] = "{}"

    assert await cache.delete_matching("p:stores:*") == 250
    assert [len(c) for c in redis_client.delete_calls] == [100, 100, 50]
    assert list(redis_client.data) == ["p:coupons:all"]


async def test_missing_pattern_deletes_zero(cache):
    assert await cache.delete_matching("p:nothing:*") == 0


async def test_scan_limit_stops_early(redis_client):
    cache = RedisCache(redis_client, max_keys_per_pattern=10)
    for i in range(30):
        redis_client.data[f"p:stores:{i}"] = "{}"
    assert await cache.delete_matching("p:stores:*") == 10


async def test_get_set_json_roundtrip(cache, redis_client):
    await cache.set("p:store:1", {"name": "Acme"}, ttl=60)
    assert json.loads(redis_client.data["p:store:1"]) == {"name": "Acme"}
    assert await cache.get("p:store:1") == {"name": "Acme"}
    assert await cache.get("p:store:missing") is None


async def test_non_json_value_is_a_miss(cache, redis_client):
    redis_client.data["p:store:1"] = "not json"
    assert await cache.get("p:store:1") is None


async def test_redis_errors_become_cache_unavailable(cache, redis_client):
    redis_client.down = True
    with pytest.raises(CacheUnavailableError):
        await cache.delete_matching("p:stores:*")
    with pytest.raises(CacheUnavailableError):
        await cache.get("p:store:1")
    assert await cache.ping() is False

"""Catalog Routes — end-to-end write pipeline through the HTTP surface.

Invariants:
    - Create → 201, update/delete → 200, body {status, data{..., atomicUpdateResults}}
    - One store_update event per write, versions 1, 2, ... and forceRefresh rule
    - Deleted entities are gone from cache and database (read-through miss → 404)
    - Persistence errors map to 400/404/409 through the global handlers
"""

import logging

import pytest

from couponhub.core.cache_keys import detail_key
from couponhub.core.domain_types import EntityType

from tests.services.fake_backends import FakeSocket


@pytest.fixture
async def subscriber(registry):
    socket = FakeSocket()
    await registry.subscribe(socket)
    return socket


async def _create_store(client, name="Acme"):
    res = await client.post("/api/v1/stores", json={"name": name})
    assert res.status_code == 201, res.text
    return res.json()["data"]


async def test_create_store_scenario(client, subscriber):
    data = await _create_store(client)

    assert data["version"] == 1
    assert data["slug"] == "acme"
    results = data["atomicUpdateResults"]
    assert results["database"]["success"] is True
    assert set(results) == {"database", "cache", "websocket", "revalidation"}

    assert len(subscriber.sent) == 1
    event = subscriber.sent[0]
    assert event["type"] == "store_update"
    assert event["storeId"] == data["id"]
    assert event["version"] == 1
    assert event["forceRefresh"] is False
    assert event["operation"] == "create"


async def test_update_store_scenario(client, subscriber, fake_cache):
    data = await _create_store(client)
    # warm the read-through cache
    await client.get(f"/api/v1/stores/{data['id']}")
    assert detail_key(EntityType.STORE, data["id"]) in fake_cache.data

    res = await client.patch(
        f"/api/v1/stores/{data['id']}", json={"name": "Acme2"},
    )
    assert res.status_code == 200
    updated = res.json()["data"]
    assert updated["version"] == 2
    assert updated["name"] == "Acme2"
    cache = updated["atomicUpdateResults"]["cache"]
    assert cache["success"] is True
    assert cache["detail"]["totalDeleted"] >= 1

    event = subscriber.sent[-1]
    assert event["version"] == 2
    assert event["forceRefresh"] is True
    assert event["cacheInvalidated"] is True


async def test_delete_store_scenario(client, subscriber, fake_cache):
    data = await _create_store(client)
    await client.get(f"/api/v1/stores/{data['id']}")

    res = await client.delete(f"/api/v1/stores/{data['id']}")
    assert res.status_code == 200
    assert res.json()["data"]["deleted"] is True

    assert detail_key(EntityType.STORE, data["id"]) not in fake_cache.data
    event = subscriber.sent[-1]
    assert event["type"] == "store_update"
    assert event["operation"] == "delete"
    assert event["version"] == 2

    res = await client.get(f"/api/v1/stores/{data['id']}")
    assert res.status_code == 404


async def test_read_through_cache_hit_and_miss(client):
    data = await _create_store(client)
    first = await client.get(f"/api/v1/stores/{data['id']}")
    second = await client.get(f"/api/v1/stores/{data['id']}")
    assert first.headers["X-Cache"] == "MISS"
    assert second.headers["X-Cache"] == "HIT"
    assert first.json()["data"]["name"] == second.json()["data"]["name"]


async def test_list_is_invalidated_by_create(client):
    await _create_store(client, "A")
    first = await client.get("/api/v1/stores", params={"limit": 10})
    assert first.json()["pagination"]["total"] == 1

    await _create_store(client, "B")
    second = await client.get("/api/v1/stores", params={"limit": 10})
    assert second.headers["X-Cache"] == "MISS"
    assert second.json()["pagination"]["total"] == 2


async def test_unreachable_cache_still_succeeds(client, fake_cache):
    fake_cache.unreachable = True
    data = await _create_store(client)
    assert data["atomicUpdateResults"]["cache"]["success"] is False

    res = await client.get(f"/api/v1/stores/{data['id']}")
    assert res.status_code == 200


async def test_revalidation_called_with_affected_paths(client, fake_revalidation):
    data = await _create_store(client)
    assert fake_revalidation.calls == [{
        "entityType": "store", "entityId": data["id"],
        "paths": ["/stores/acme", "/stores", "/"],
    }]


async def test_coupon_lifecycle_revalidates_parent_store(client, fake_revalidation):
    store = await _create_store(client)
    res = await client.post("/api/v1/coupons", json={
        "storeId": store["id"], "offerDetails": "20% off everything", "code": "SAVE20",
    })
    assert res.status_code == 201
    coupon = res.json()["data"]
    assert coupon["storeSlug"] == "acme"
    assert fake_revalidation.calls[-1]["paths"] == ["/stores/acme", "/coupons", "/"]

    listed = await client.get("/api/v1/coupons", params={"storeId": store["id"]})
    assert listed.json()["pagination"]["total"] == 1


async def test_coupon_for_unknown_store_is_400(client):
    res = await client.post("/api/v1/coupons", json={
        "storeId": "00000000-0000-0000-0000-000000000000",
        "offerDetails": "deal",
    })
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_blog_post_create(client, subscriber):
    res = await client.post("/api/v1/blog-posts", json={
        "title": "Best Deals of the Week", "authorName": "Editor",
    })
    assert res.status_code == 201
    assert res.json()["data"]["slug"] == "best-deals-of-the-week"
    assert subscriber.sent[-1]["type"] == "blog_post_update"
    assert "blogPostId" in subscriber.sent[-1]


async def test_stale_previous_version_is_409(client):
    data = await _create_store(client)
    await client.patch(f"/api/v1/stores/{data['id']}", json={"name": "B"})
    res = await client.patch(
        f"/api/v1/stores/{data['id']}", json={"name": "C", "previousVersion": 1},
    )
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "CONCURRENCY_CONFLICT"


async def test_update_missing_entity_is_404(client, subscriber):
    res = await client.patch(
        "/api/v1/stores/00000000-0000-0000-0000-000000000000", json={"name": "x"},
    )
    assert res.status_code == 404
    assert subscriber.sent == []


async def test_invalid_payload_is_400(client):
    res = await client.post("/api/v1/stores", json={"name": "   "})
    assert res.status_code == 400
    assert res.json()["error"]["details"]


async def test_store_delete_invalidates_coupon_listing(client):
    store = await _create_store(client)
    await client.post("/api/v1/coupons", json={
        "storeId": store["id"], "offerDetails": "10% off", "code": "TEN",
    })
    warm = await client.get("/api/v1/coupons", params={"storeId": store["id"]})
    assert warm.headers["X-Cache"] == "MISS"
    again = await client.get("/api/v1/coupons", params={"storeId": store["id"]})
    assert again.headers["X-Cache"] == "HIT"

    res = await client.delete(f"/api/v1/stores/{store['id']}")
    assert res.status_code == 200

    after = await client.get("/api/v1/coupons", params={"storeId": store["id"]})
    assert after.headers["X-Cache"] == "MISS"


async def test_store_update_invalidates_coupon_detail(client, fake_cache):
    store = await _create_store(client)
    res = await client.post("/api/v1/coupons", json={
        "storeId": store["id"], "offerDetails": "10% off", "code": "TEN",
    })
    coupon = res.json()["data"]
    await client.get(f"/api/v1/coupons/{coupon['id']}")
    assert detail_key(EntityType.COUPON, coupon["id"]) in fake_cache.data

    await client.patch(f"/api/v1/stores/{store['id']}", json={"name": "Acme2"})
    assert detail_key(EntityType.COUPON, coupon["id"]) not in fake_cache.data


async def test_not_found_is_logged_as_warning(client, caplog):
    with caplog.at_level(logging.INFO, logger="couponhub.api.error_handlers"):
        res = await client.get("/api/v1/stores/00000000-0000-0000-0000-000000000000")
    assert res.status_code == 404
    records = [r for r in caplog.records if r.name == "couponhub.api.error_handlers"]
    assert [r.levelno for r in records] == [logging.WARNING]
    assert records[0].status_code == 404

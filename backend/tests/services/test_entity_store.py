"""SQL Entity Store — verifies versioning, slugs, references, and error mapping on SQLite.

Invariants:
    - create → version 1; each update → +1; delete → tombstone at last + 1
    - previous_version mismatch → ConcurrencyError
    - coupons require an existing store
"""

import uuid

import pytest

from couponhub.core.domain_types import EntityType
from couponhub.core.errors import (
    ConcurrencyError, EntityNotFoundError, EntityValidationError,
)


async def _store(entity_store, name="Acme"):
    return await entity_store.create(EntityType.STORE, {"name": name})


async def test_create_starts_at_version_one(entity_store):
    snap = await _store(entity_store)
    assert snap.version == 1
    assert snap.slug == "acme"
    assert snap.data["name"] == "Acme"
    assert snap.data["version"] == 1


async def test_update_increments_version_by_one(entity_store):
    snap = await _store(entity_store)
    v2 = await entity_store.update(EntityType.STORE, snap.id, {"name": "Acme2"})
    v3 = await entity_store.update(EntityType.STORE, snap.id, {"is_top_store": True})
    assert (v2.version, v3.version) == (2, 3)
    assert v3.data["name"] == "Acme2"
    assert v3.data["isTopStore"] is True


async def test_duplicate_names_get_unique_slugs(entity_store):
    a = await _store(entity_store)
    b = await _store(entity_store)
    assert (a.slug, b.slug) == ("acme", "acme-1")


async def test_previous_version_mismatch_is_concurrency_error(entity_store):
    snap = await _store(entity_store)
    await entity_store.update(EntityType.STORE, snap.id, {"name": "B"})
    with pytest.raises(ConcurrencyError):
        await entity_store.update(
            EntityType.STORE, snap.id, {"name": "C"}, previous_version=1,
        )


async def test_matching_previous_version_accepted(entity_store):
    snap = await _store(entity_store)
    updated = await entity_store.update(
        EntityType.STORE, snap.id, {"name": "B"}, previous_version=1,
    )
    assert updated.version == 2


async def test_delete_returns_tombstone(entity_store):
    snap = await _store(entity_store)
    await entity_store.update(EntityType.STORE, snap.id, {"name": "B"})
    tombstone = await entity_store.delete(EntityType.STORE, snap.id)
    assert tombstone.version == 3
    assert tombstone.data["deleted"] is True
    with pytest.raises(EntityNotFoundError):
        await entity_store.get(EntityType.STORE, snap.id)


async def test_missing_and_malformed_ids_are_not_found(entity_store):
    with pytest.raises(EntityNotFoundError):
        await entity_store.get(EntityType.STORE, str(uuid.uuid4()))
    with pytest.raises(EntityNotFoundError):
        await entity_store.update(EntityType.STORE, "not-a-uuid", {"name": "x"})


async def test_coupon_requires_existing_store(entity_store):
    with pytest.raises(EntityValidationError):
        await entity_store.create(EntityType.COUPON, {
            "store_id": uuid.uuid4(), "offer_details": "10% off",
        })


async def test_coupon_snapshot_carries_parent_store(entity_store):
    store = await _store(entity_store)
    coupon = await entity_store.create(EntityType.COUPON, {
        "store_id": uuid.UUID(store.id), "offer_details": "10% off", "code": "TEN",
    })
    assert coupon.parent_id == store.id
    assert coupon.parent_slug == "acme"
    assert coupon.data["storeSlug"] == "acme"
    assert coupon.slug == "10-off"


async def test_list_filters_and_paginates(entity_store):
    for name in ("A", "B", "C"):
        await entity_store.create(EntityType.STORE, {"name": name})
    await entity_store.create(
        EntityType.STORE, {"name": "Top", "is_top_store": True},
    )

    items, total = await entity_store.list(EntityType.STORE, {}, page=1, limit=2)
    assert total == 4
    assert len(items) == 2

    top, total = await entity_store.list(
        EntityType.STORE, {"is_top_store": True}, page=1, limit=10,
    )
    assert total == 1
    assert top[0]["name"] == "Top"


async def test_list_coupons_by_store(entity_store):
    a = await _store(entity_store, "A")
    b = await _store(entity_store, "B")
    for store in (a, a, b):
        await entity_store.create(EntityType.COUPON, {
            "store_id": uuid.UUID(store.id), "offer_details": "deal",
        })
    items, total = await entity_store.list(
        EntityType.COUPON, {"store_id": a.id}, page=1, limit=10,
    )
    assert total == 2
    assert all(item["storeId"] == a.id for item in items)

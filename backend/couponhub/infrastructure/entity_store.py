"""SQL Entity Store — create/update/delete/read for stores, coupons, and blog posts.

Invariants:
    - Every write returns an EntitySnapshot built after commit (version already bumped)
    - version is 1 after create, +1 after each update (version_id_col); a delete returns
      a tombstone snapshot carrying last version + 1
    - previous_version, when given, must equal the stored version (ConcurrencyError otherwise)
    - Slugs are unique per table: base, base-1, base-2, ...
    - Every operation reports its duration through track_database

Design Decisions:
    - One generic store keyed by EntityType instead of three repositories: the write
      pipeline treats entity types uniformly, model classes carry the differences
      (WRITABLE_FIELDS, SLUG_SOURCE, to_dict)
    - Unknown payload keys are dropped silently: the API schemas already validated them
"""

import logging
import time
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from couponhub.core.domain_types import EntityType
from couponhub.core.errors import (
    ConcurrencyError, EntityNotFoundError, EntityValidationError, ErrorContext,
)
from couponhub.core.pipeline_types import EntitySnapshot
from couponhub.core.slugs import candidate_slugs, slugify
from couponhub.infrastructure.database import guarded_session
from couponhub.infrastructure.request_timing import track_database
from couponhub.models import BlogPost, Coupon, Store

logger = logging.getLogger(__name__)

_MODELS = {
    EntityType.STORE: Store,
    EntityType.COUPON: Coupon,
    EntityType.BLOG_POST: BlogPost,
}

_ORDERING = {
    EntityType.STORE: (Store.created_at.desc(),),
    EntityType.COUPON: (Coupon.order.asc(), Coupon.created_at.desc()),
    EntityType.BLOG_POST: (BlogPost.created_at.desc(),),
}

# JSON columns cannot be filtered by equality portably
_UNFILTERABLE = {"categories"}


def _parse_id(entity_type: EntityType, entity_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(entity_id))
    except ValueError:
        raise EntityNotFoundError(entity_type.value, str(entity_id))


def _writable(model_cls, payload: dict) -> dict:
    return {k: v for k, v in payload.items() if k in model_cls.WRITABLE_FIELDS}


class SqlEntityStore:
    """EntityStore backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._factory = session_factory

    # ─── Writes ─────────────────────────────────────────────────

    async def create(
        self, entity_type: EntityType, payload: dict,
    ) -> EntitySnapshot:
        started = time.perf_counter()
        model_cls = _MODELS[entity_type]
        fields = _writable(model_cls, payload)
        async with guarded_session(self._factory) as db:
            await self._check_references(db, entity_type, fields)
            base = fields.get("slug") or slugify(
                str(fields.get(model_cls.SLUG_SOURCE, "")),
            )
            fields["slug"] = await self._unique_slug(db, model_cls, base)
            row = model_cls(**fields)
            db.add(row)
            await db.commit()
            snapshot = await self._snapshot(db, entity_type, row)
        track_database(f"{entity_type.value}.create", started)
        logger.info(
            f"Created {entity_type.value} {snapshot.id}",
            extra={"entity_type": entity_type.value, "entity_id": snapshot.id},
        )
        return snapshot

    async def update(
        self,
        entity_type: EntityType,
        entity_id: str,
        patch: dict,
        previous_version: int | None = None,
    ) -> EntitySnapshot:
        started = time.perf_counter()
        model_cls = _MODELS[entity_type]
        fields = _writable(model_cls, patch)
        async with guarded_session(self._factory) as db:
            row = await self._load(db, entity_type, entity_id)
            self._check_version(entity_type, row, previous_version)
            await self._check_references(db, entity_type, fields)
            if not fields.get("slug", True):
                fields.pop("slug")
            if fields.get("slug") and fields["slug"] != row.slug:
                fields["slug"] = await self._unique_slug(
                    db, model_cls, fields["slug"], exclude_id=row.id,
                )
            for key, value in fields.items():
                setattr(row, key, value)
            row.updated_at = datetime.now(timezone.utc)
            await db.commit()
            snapshot = await self._snapshot(db, entity_type, row)
        track_database(f"{entity_type.value}.update", started)
        return snapshot

    async def delete(
        self,
        entity_type: EntityType,
        entity_id: str,
        previous_version: int | None = None,
    ) -> EntitySnapshot:
        started = time.perf_counter()
        async with guarded_session(self._factory) as db:
            row = await self._load(db, entity_type, entity_id)
            self._check_version(entity_type, row, previous_version)
            last = await self._snapshot(db, entity_type, row)
            await db.delete(row)
            await db.commit()
        track_database(f"{entity_type.value}.delete", started)
        tombstone_version = last.version + 1
        return EntitySnapshot(
            entity_type=entity_type,
            id=last.id,
            slug=last.slug,
            version=tombstone_version,
            data={**last.data, "version": tombstone_version, "deleted": True},
            parent_id=last.parent_id,
            parent_slug=last.parent_slug,
        )

    # ─── Reads ──────────────────────────────────────────────────

    async def get(
        self, entity_type: EntityType, entity_id: str,
    ) -> EntitySnapshot:
        started = time.perf_counter()
        async with guarded_session(self._factory) as db:
            row = await self._load(db, entity_type, entity_id)
            snapshot = await self._snapshot(db, entity_type, row)
        track_database(f"{entity_type.value}.get", started)
        return snapshot

    async def list(
        self, entity_type: EntityType, filters: dict, page: int, limit: int,
    ) -> tuple[list[dict], int]:
        started = time.perf_counter()
        model_cls = _MODELS[entity_type]
        if filters.get("store_id") is not None:
            filters = {**filters, "store_id": _coerce_uuid(filters["store_id"])}
        conditions = [
            getattr(model_cls, key) == value
            for key, value in filters.items()
            if value is not None
            and key in model_cls.WRITABLE_FIELDS
            and key not in _UNFILTERABLE
        ]
        query = (
            select(model_cls).where(*conditions)
            .order_by(*_ORDERING[entity_type])
            .limit(limit).offset((page - 1) * limit)
        )
        count_query = select(func.count()).select_from(model_cls).where(*conditions)
        async with guarded_session(self._factory) as db:
            rows = (await db.execute(query)).scalars().all()
            total = (await db.execute(count_query)).scalar_one()
        track_database(f"{entity_type.value}.list", started)
        return [row.to_dict() for row in rows], total

    # ─── Helpers ────────────────────────────────────────────────

    async def _load(self, db: AsyncSession, entity_type: EntityType, entity_id: str):
        row = await db.get(_MODELS[entity_type], _parse_id(entity_type, entity_id))
        if row is None:
            raise EntityNotFoundError(entity_type.value, str(entity_id))
        return row

    @staticmethod
    def _check_version(entity_type: EntityType, row, previous_version: int | None):
        if previous_version is not None and row.version != previous_version:
            raise ConcurrencyError(
                f"{entity_type.value} {row.id} is at version {row.version}, "
                f"not {previous_version}",
                ErrorContext(entity_type=entity_type.value, entity_id=str(row.id)),
            )

    async def _check_references(
        self, db: AsyncSession, entity_type: EntityType, fields: dict,
    ) -> None:
        """Coupons must point at an existing store; blog posts may."""
        store_id = fields.get("store_id")
        if entity_type is EntityType.STORE or store_id is None:
            return
        fields["store_id"] = _coerce_uuid(store_id)
        if await db.get(Store, fields["store_id"]) is None:
            raise EntityValidationError(
                f"store '{store_id}' does not exist", field="storeId",
            )

    async def _unique_slug(
        self, db: AsyncSession, model_cls, base: str,
        exclude_id: uuid.UUID | None = None,
    ) -> str:
        base = slugify(base)
        for candidate in candidate_slugs(base):
            query = select(model_cls.id).where(model_cls.slug == candidate)
            if exclude_id is not None:
                query = query.where(model_cls.id != exclude_id)
            if (await db.execute(query)).first() is None:
                return candidate

    async def _snapshot(
        self, db: AsyncSession, entity_type: EntityType, row,
    ) -> EntitySnapshot:
        data = row.to_dict()
        parent_id = parent_slug = None
        store_id = getattr(row, "store_id", None)
        if store_id is not None:
            parent = await db.get(Store, store_id)
            parent_id = str(store_id)
            parent_slug = parent.slug if parent else None
            data["storeSlug"] = parent_slug
        return EntitySnapshot(
            entity_type=entity_type,
            id=data["id"],
            slug=row.slug,
            version=row.version,
            data=data,
            parent_id=parent_id,
            parent_slug=parent_slug,
        )


def _coerce_uuid(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise EntityValidationError(f"invalid id '{value}'", field="storeId")

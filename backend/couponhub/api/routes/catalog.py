"""Catalog Routes — CRUD for stores, coupons, and blog posts through the write pipeline.

Invariants:
    - Every write goes through WriteOrchestrator.execute; the response embeds
      atomicUpdateResults (database, cache, websocket, revalidation)
    - A write whose database stage succeeded always answers 201 (create) or 200;
      side-effect failures show up only inside atomicUpdateResults
    - A failed database stage re-raises its PersistenceError for the global handler
    - Reads are read-through cached; an unreachable cache is a miss, never an error

Design Decisions:
    - One router factory per resource over three copy-pasted modules: the pipeline
      treats entity types uniformly, CatalogResource carries the differences
    - Filters declared as explicit dependency functions so OpenAPI lists them
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from fastapi import APIRouter, Depends, Query, Response, status

from couponhub.api.dependencies import get_cache, get_entity_store, get_orchestrator
from couponhub.api.middleware import with_performance
from couponhub.config import get_settings
from couponhub.core.cache_keys import detail_key, list_key
from couponhub.core.domain_types import EntityType, Operation
from couponhub.core.errors import CacheUnavailableError
from couponhub.core.pipeline_types import AggregatedResult, Mutation
from couponhub.core.repository_protocols import CacheBackend, EntityStore
from couponhub.schemas.catalog import (
    BlogPostCreate, BlogPostUpdate, CouponCreate, CouponUpdate, StoreCreate,
    StoreUpdate, list_envelope, success_envelope,
)
from couponhub.services.write_orchestrator import WriteOrchestrator

logger = logging.getLogger(__name__)

CACHE_HEADER = "X-Cache"


# ─── Filters ────────────────────────────────────────────────────

def store_filters(
    is_top_store: bool | None = Query(None, alias="isTopStore"),
    is_editors_choice: bool | None = Query(None, alias="isEditorsChoice"),
    language: str | None = Query(None, max_length=40),
) -> dict:
    return {
        "is_top_store": is_top_store,
        "is_editors_choice": is_editors_choice,
        "language": language,
    }


def coupon_filters(
    store_id: str | None = Query(None, alias="storeId"),
    active: bool | None = Query(None),
    featured_for_home: bool | None = Query(None, alias="featuredForHome"),
) -> dict:
    return {
        "store_id": store_id,
        "active": active,
        "featured_for_home": featured_for_home,
    }


def blog_post_filters(
    status_: str | None = Query(None, alias="status", pattern="^(draft|published)$"),
    category: str | None = Query(None, max_length=140),
    front_banner: bool | None = Query(None, alias="frontBanner"),
    store_id: str | None = Query(None, alias="storeId"),
) -> dict:
    return {
        "status": status_,
        "category": category,
        "front_banner": front_banner,
        "store_id": store_id,
    }


@dataclass(frozen=True)
class CatalogResource:
    entity_type: EntityType
    path: str
    create_schema: type
    update_schema: type
    filters: Callable[..., dict]


STORES = CatalogResource(
    EntityType.STORE, "stores", StoreCreate, StoreUpdate, store_filters,
)
COUPONS = CatalogResource(
    EntityType.COUPON, "coupons", CouponCreate, CouponUpdate, coupon_filters,
)
BLOG_POSTS = CatalogResource(
    EntityType.BLOG_POST, "blog-posts", BlogPostCreate, BlogPostUpdate,
    blog_post_filters,
)


# ─── Helpers ────────────────────────────────────────────────────

def _write_response(result: AggregatedResult) -> dict:
    if not result.overall_success:
        raise result.error
    return success_envelope({
        **result.entity.data,
        "atomicUpdateResults": result.atomic_update_results(),
    })


async def _cache_get(cache: CacheBackend, key: str) -> Any | None:
    try:
        return await cache.get(key)
    except CacheUnavailableError as e:
        logger.warning(f"Cache read failed, serving from database: {e.message}")
        return None


async def _cache_set(cache: CacheBackend, key: str, value: Any, ttl: int) -> None:
    try:
        await cache.set(key, value, ttl)
    except CacheUnavailableError as e:
        logger.warning(f"Cache write skipped for {key}: {e.message}")


# ─── Router factory ─────────────────────────────────────────────

def build_router(resource: CatalogResource) -> APIRouter:
    router = APIRouter(prefix=f"/api/v1/{resource.path}", tags=[resource.path])
    entity_type = resource.entity_type
    CreateSchema = resource.create_schema
    UpdateSchema = resource.update_schema

    @router.post("", status_code=status.HTTP_201_CREATED)
    @with_performance
    async def create_entity(
        body: CreateSchema,
        orchestrator: WriteOrchestrator = Depends(get_orchestrator),
    ):
        payload, _ = body.mutation_payload()
        result = await orchestrator.execute(
            Mutation(entity_type, Operation.CREATE, payload=payload),
        )
        return _write_response(result)

    @router.patch("/{entity_id}")
    @with_performance
    async def update_entity(
        entity_id: str,
        body: UpdateSchema,
        orchestrator: WriteOrchestrator = Depends(get_orchestrator),
    ):
        payload, previous_version = body.mutation_payload()
        result = await orchestrator.execute(Mutation(
            entity_type, Operation.UPDATE, entity_id, payload, previous_version,
        ))
        return _write_response(result)

    @router.delete("/{entity_id}")
    @with_performance
    async def delete_entity(
        entity_id: str,
        previous_version: int | None = Query(None, alias="previousVersion", ge=1),
        orchestrator: WriteOrchestrator = Depends(get_orchestrator),
    ):
        result = await orchestrator.execute(Mutation(
            entity_type, Operation.DELETE, entity_id,
            previous_version=previous_version,
        ))
        return _write_response(result)

    @router.get("")
    @with_performance
    async def list_entities(
        response: Response,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        filters: dict = Depends(resource.filters),
        store: EntityStore = Depends(get_entity_store),
        cache: CacheBackend = Depends(get_cache),
    ):
        settings = get_settings()
        key = list_key(
            entity_type, {**filters, "page": page, "limit": limit},
            settings.cache_key_prefix,
        )
        cached = await _cache_get(cache, key)
        if cached is not None:
            response.headers[CACHE_HEADER] = "HIT"
            return cached

        items, total = await store.list(entity_type, filters, page, limit)
        body = list_envelope(items, total, page, limit)
        await _cache_set(cache, key, body, settings.cache_list_ttl_seconds)
        response.headers[CACHE_HEADER] = "MISS"
        return body

    @router.get("/{entity_id}")
    @with_performance
    async def get_entity(
        entity_id: str,
        response: Response,
        store: EntityStore = Depends(get_entity_store),
        cache: CacheBackend = Depends(get_cache),
    ):
        settings = get_settings()
        key = detail_key(entity_type, entity_id, settings.cache_key_prefix)
        cached = await _cache_get(cache, key)
        if cached is not None:
            response.headers[CACHE_HEADER] = "HIT"
            return cached

        snapshot = await store.get(entity_type, entity_id)
        body = success_envelope(snapshot.data)
        await _cache_set(cache, key, body, settings.cache_detail_ttl_seconds)
        response.headers[CACHE_HEADER] = "MISS"
        return body

    return router


stores_router = build_router(STORES)
coupons_router = build_router(COUPONS)
blog_posts_router = build_router(BLOG_POSTS)

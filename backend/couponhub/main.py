"""CouponHub API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CatalogError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Pipeline collaborators (entity store, cache, subscriber registry, revalidation
      client, orchestrator) created once in the lifespan and stored on app.state

Design Decisions:
    - Lifespan over @app.on_event: cleaner cleanup, in-flight pipelines drained on shutdown
    - attach_collaborators() is separate from the lifespan so tests wire fakes
      into the same graph without a running Redis or frontend
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from couponhub.api.error_handlers import register_error_handlers
from couponhub.api.middleware import RequestTimingMiddleware
from couponhub.api.routes import catalog, health, realtime
from couponhub.config import Settings, get_settings
from couponhub.core.domain_types import Stage
from couponhub.core.repository_protocols import CacheBackend, RevalidationClient
from couponhub.infrastructure.circuit_breaker import CircuitBreaker
from couponhub.infrastructure.database import init_db
from couponhub.infrastructure.entity_store import SqlEntityStore
from couponhub.infrastructure.observability import setup_logging
from couponhub.infrastructure.redis_cache import RedisCache
from couponhub.infrastructure.revalidation_client import HttpRevalidationClient
from couponhub.services.cache_invalidator import CacheInvalidator
from couponhub.services.event_broadcaster import EventBroadcaster
from couponhub.services.revalidation_trigger import RevalidationTrigger
from couponhub.services.subscriber_registry import SubscriberRegistry
from couponhub.services.write_orchestrator import WriteOrchestrator

logger = logging.getLogger(__name__)


def build_breakers(settings: Settings) -> dict[Stage, CircuitBreaker]:
    return {
        Stage.CACHE: CircuitBreaker(
            "cache", settings.cache_breaker_threshold,
            settings.cache_breaker_reset_seconds,
        ),
        Stage.WEBSOCKET: CircuitBreaker(
            "websocket", settings.websocket_breaker_threshold,
            settings.websocket_breaker_reset_seconds,
        ),
        Stage.REVALIDATION: CircuitBreaker(
            "revalidation", settings.revalidation_breaker_threshold,
            settings.revalidation_breaker_reset_seconds,
        ),
    }


def attach_collaborators(
    app: FastAPI,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    cache: CacheBackend,
    revalidation_client: RevalidationClient | None,
) -> WriteOrchestrator:
    """Build the write pipeline graph and publish every handle on app.state."""
    store = SqlEntityStore(session_factory)
    registry = SubscriberRegistry(settings.websocket_send_timeout_seconds)
    revalidation = RevalidationTrigger(
        revalidation_client, enabled=settings.revalidation_enabled,
    )
    orchestrator = WriteOrchestrator(
        store,
        CacheInvalidator(cache, settings.cache_key_prefix),
        EventBroadcaster(registry),
        revalidation,
        database_timeout=settings.database_timeout_seconds,
        stage_timeouts={
            Stage.CACHE: settings.cache_timeout_seconds,
            Stage.WEBSOCKET: settings.websocket_timeout_seconds,
            Stage.REVALIDATION: settings.revalidation_timeout_seconds,
        },
        breakers=build_breakers(settings),
    )
    app.state.entity_store = store
    app.state.cache = cache
    app.state.registry = registry
    app.state.revalidation = revalidation
    app.state.orchestrator = orchestrator
    return orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    db = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    cache = RedisCache.from_url(settings.redis_url)
    revalidation_client = None
    if settings.revalidation_enabled:
        revalidation_client = HttpRevalidationClient(
            settings.frontend_url, settings.revalidation_secret,
            settings.revalidation_timeout_seconds,
        )
    app.state.db = db
    orchestrator = attach_collaborators(
        app, settings, db.session_factory, cache, revalidation_client,
    )
    logger.info(f"CouponHub API started ({settings.environment})")
    yield
    logger.info("CouponHub API shutting down")
    await orchestrator.drain()
    if revalidation_client is not None:
        await revalidation_client.close()
    await cache.close()
    await db.dispose()


app = FastAPI(
    title="CouponHub API", version="1.0.0", lifespan=lifespan,
)

# CORS: origins from settings
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Response-Time", "X-Request-ID", "X-Cache"],
)
app.add_middleware(
    RequestTimingMiddleware,
    slow_request_threshold_ms=settings.slow_request_threshold_ms,
)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(catalog.stores_router)
app.include_router(catalog.coupons_router)
app.include_router(catalog.blog_posts_router)
app.include_router(realtime.router)

register_error_handlers(app)

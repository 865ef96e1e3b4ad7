"""Cache Invalidator — removes every cached view a mutation made stale.

Invariants:
    - Patterns come from core/cache_keys.build_key_set only
    - Deleting zero keys is success; invalidating twice never errors
    - A backend failure yields a failed StageResult carrying the partial breakdown;
      nothing is retried inline
"""

import logging
import time

from couponhub.core.cache_keys import DEFAULT_PREFIX, build_key_set
from couponhub.core.domain_types import EntityType, Stage
from couponhub.core.errors import CacheUnavailableError
from couponhub.core.pipeline_types import StageResult
from couponhub.core.repository_protocols import CacheBackend

logger = logging.getLogger(__name__)


class CacheInvalidator:

    def __init__(self, cache: CacheBackend, prefix: str = DEFAULT_PREFIX):
        self._cache = cache
        self._prefix = prefix

    async def invalidate(
        self,
        entity_type: EntityType,
        entity_id: str,
        slug: str | None = None,
        parent_id: str | None = None,
    ) -> StageResult:
        started = time.perf_counter()
        key_set = build_key_set(
            entity_type, entity_id, slug=slug, parent_id=parent_id,
            prefix=self._prefix,
        )
        breakdown: dict[str, int] = {}
        try:
            for pattern in key_set:
                breakdown[pattern] = await self._cache.delete_matching(pattern)
        except CacheUnavailableError as e:
            logger.warning(
                f"Cache invalidation aborted for {entity_type.value} {entity_id}: {e.message}",
                extra={"entity_type": entity_type.value, "entity_id": entity_id,
                       "stage": Stage.CACHE.value, "error_code": e.code},
            )
            return StageResult.failed(
                Stage.CACHE, started, e.message,
                totalDeleted=sum(breakdown.values()), patterns=breakdown,
            )

        total = sum(breakdown.values())
        logger.info(
            f"Invalidated {total} cache key(s) across {len(key_set)} pattern(s) "
            f"for {entity_type.value} {entity_id}",
            extra={"entity_type": entity_type.value, "entity_id": entity_id,
                   "stage": Stage.CACHE.value},
        )
        return StageResult.ok(
            Stage.CACHE, started, totalDeleted=total, patterns=breakdown,
        )

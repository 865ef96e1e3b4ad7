"""Event Broadcaster — turns a persisted mutation into one versioned ChangeEvent.

Invariants:
    - event.version is the snapshot version (never recomputed here)
    - forceRefresh is derived from the operation (false only on create)
    - cacheInvalidated is supplied by the caller from the cache stage outcome
    - Zero connected subscribers is success (recipients=0)
"""

import logging
import time
from typing import Any

from couponhub.core.domain_types import EntityType, Operation, Stage
from couponhub.core.pipeline_types import ChangeEvent, StageResult
from couponhub.core.repository_protocols import NotificationChannel

logger = logging.getLogger(__name__)


class EventBroadcaster:

    def __init__(self, channel: NotificationChannel):
        self._channel = channel

    async def publish(
        self,
        entity_type: EntityType,
        entity_id: str,
        operation: Operation,
        data: dict[str, Any],
        version: int,
        cache_invalidated: bool,
    ) -> StageResult:
        started = time.perf_counter()
        event = ChangeEvent(
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            data=data,
            version=version,
            cache_invalidated=cache_invalidated,
        )
        try:
            recipients = await self._channel.broadcast(event)
        except Exception as e:
            logger.warning(
                f"Broadcast of {event.type} failed: {e}",
                extra={"entity_type": entity_type.value, "entity_id": entity_id,
                       "stage": Stage.WEBSOCKET.value, "version": version},
            )
            return StageResult.failed(
                Stage.WEBSOCKET, started, f"{type(e).__name__}: {e}",
                eventType=event.type, version=version,
            )
        return StageResult.ok(
            Stage.WEBSOCKET, started,
            eventType=event.type, version=version, recipients=recipients,
            forceRefresh=event.force_refresh, cacheInvalidated=cache_invalidated,
        )

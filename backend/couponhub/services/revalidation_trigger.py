"""Revalidation Trigger — asks the rendering layer to regenerate affected pages.

Invariants:
    - Disabled → success with detail.skipped=true, no outbound call
    - Any RevalidationError → failed StageResult; never gates overall success
"""

import logging
import time

from couponhub.core.domain_types import EntityType, Stage
from couponhub.core.errors import RevalidationError
from couponhub.core.pipeline_types import StageResult
from couponhub.core.repository_protocols import RevalidationClient

logger = logging.getLogger(__name__)


class RevalidationTrigger:

    def __init__(self, client: RevalidationClient | None, enabled: bool = True):
        self._client = client
        self.enabled = enabled and client is not None

    async def revalidate(
        self, entity_type: EntityType, entity_id: str, paths: list[str],
    ) -> StageResult:
        started = time.perf_counter()
        if not self.enabled:
            return StageResult.ok(
                Stage.REVALIDATION, started, skipped=True, paths=paths,
            )
        try:
            status = await self._client.revalidate(entity_type, entity_id, paths)
        except RevalidationError as e:
            logger.warning(
                f"Revalidation failed for {entity_type.value} {entity_id}: {e.message}",
                extra={"entity_type": entity_type.value, "entity_id": entity_id,
                       "stage": Stage.REVALIDATION.value, "error_code": e.code},
            )
            return StageResult.failed(
                Stage.REVALIDATION, started, e.message,
                paths=paths, statusCode=e.status_code,
            )
        return StageResult.ok(
            Stage.REVALIDATION, started, paths=paths, statusCode=status,
        )

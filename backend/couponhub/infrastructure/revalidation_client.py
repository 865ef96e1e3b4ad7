"""Revalidation Client — asks the frontend rendering layer to regenerate pages.

Invariants:
    - POST <frontend_url>/api/revalidate with {entityType, entityId, paths}
    - Authorization: Bearer <revalidation_secret>
    - 2xx is success; any other status, timeout, or transport error → RevalidationError
    - Single attempt per call: no retries here (circuit breaker sits in the orchestrator)
"""

import logging

import httpx

from couponhub.core.domain_types import EntityType
from couponhub.core.errors import ErrorContext, RevalidationError

logger = logging.getLogger(__name__)


class HttpRevalidationClient:
    """RevalidationClient over a shared httpx.AsyncClient."""

    def __init__(
        self,
        frontend_url: str,
        secret: str,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._endpoint = f"{frontend_url.rstrip('/')}/api/revalidate"
        self._secret = secret
        self._timeout = timeout_seconds
        self._client = client or httpx.AsyncClient()

    async def revalidate(
        self, entity_type: EntityType, entity_id: str, paths: list[str],
    ) -> int:
        ctx = ErrorContext(entity_type=entity_type.value, entity_id=entity_id)
        payload = {
            "entityType": entity_type.value,
            "entityId": entity_id,
            "paths": paths,
        }
        try:
            response = await self._client.post(
                self._endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self._secret}"},
                timeout=self._timeout,
            )
        except httpx.TimeoutException:
            raise RevalidationError("request timed out", context=ctx)
        except httpx.HTTPError as e:
            raise RevalidationError(f"{type(e).__name__}: {e}", context=ctx)

        if not response.is_success:
            raise RevalidationError(
                f"HTTP {response.status_code}", response.status_code, ctx,
            )
        logger.debug(
            f"Revalidated {len(paths)} path(s) for {entity_type.value} {entity_id}",
        )
        return response.status_code

    async def close(self) -> None:
        await self._client.aclose()

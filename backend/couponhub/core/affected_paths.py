"""Affected Paths — frontend pages that render a given entity.

Invariants:
    - Entity page first, then listing pages, then the homepage
    - Pure function of the snapshot; no lookups
"""

from couponhub.core.domain_types import EntityType
from couponhub.core.pipeline_types import EntitySnapshot


def affected_paths(entity: EntitySnapshot) -> list[str]:
    """Paths the rendering layer should regenerate after this entity changed."""
    if entity.entity_type is EntityType.STORE:
        paths = [f"/stores/{entity.slug}", "/stores"]
    elif entity.entity_type is EntityType.COUPON:
        paths = ["/coupons"]
        if entity.parent_slug:
            paths.insert(0, f"/stores/{entity.parent_slug}")
    else:
        paths = [f"/blog/{entity.slug}", "/blog"]
    paths.append("/")
    return paths

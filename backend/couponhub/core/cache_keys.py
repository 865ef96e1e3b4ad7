"""Cache Keys — one place that names every cached view of the catalog.

Invariants:
    - Read-through keys (detail_key, slug_key, list_key) and invalidation patterns
      are built from the same templates, so every key a reader can write is
      covered by some pattern of the mutation that makes it stale
    - Patterns are derived only from entity type, id, slug and parent store id:
      concurrent invalidations from different mutations are independent
    - list_key is deterministic for a given filter dict (sorted, None dropped)

Design Decisions:
    - Glob patterns (Redis SCAN MATCH syntax); a pattern without wildcards is an
      exact key and the cache adapter deletes it directly
    - Over-invalidation is accepted: deleting a key nobody cached is a no-op
    - A store mutation clears every coupon view; coupon detail keys carry no
      store segment to scope the delete by
"""

from dataclasses import dataclass

from couponhub.core.domain_types import EntityType

DEFAULT_PREFIX = "coupon_backend"

# Aggregate views per entity type. Placeholders: {p} prefix, {parent} parent store id.
_LIST_SEGMENTS = {
    EntityType.STORE: "stores",
    EntityType.COUPON: "coupons",
    EntityType.BLOG_POST: "blog_posts",
}

_AGGREGATE_TEMPLATES = {
    EntityType.STORE: (
        "{p}:stores:*",             # paginated + top/editors-choice lists
        "{p}:store_search:*",
        "{p}:categories:*",         # category-scoped store listings
        "{p}:homepage*",
        "{p}:coupons:*",            # coupon lists filter by store and cascade with it
        "{p}:coupon:*",             # coupon details embed storeSlug
    ),
    EntityType.COUPON: (
        "{p}:coupons:*",
        "{p}:homepage*",
        "{p}:stores:*",             # store lists embed coupon summaries
    ),
    EntityType.BLOG_POST: (
        "{p}:blog_posts:*",
        "{p}:front_banner_blogs*",
        "{p}:related*",
        "{p}:homepage*",
    ),
}

_PARENT_TEMPLATES = {
    EntityType.STORE: ("{p}:store:{id}:coupons*",),
    EntityType.COUPON: ("{p}:store:{parent}", "{p}:store:{parent}:coupons*"),
    EntityType.BLOG_POST: (),
}


def detail_key(
    entity_type: EntityType, entity_id: str, prefix: str = DEFAULT_PREFIX,
) -> str:
    return f"{prefix}:{entity_type.value}:{entity_id}"


def slug_key(
    entity_type: EntityType, slug: str, prefix: str = DEFAULT_PREFIX,
) -> str:
    return f"{prefix}:{entity_type.value}:slug:{slug}"


def list_key(
    entity_type: EntityType, params: dict, prefix: str = DEFAULT_PREFIX,
) -> str:
    """Key for one filtered/paginated listing, e.g. coupon_backend:stores:limit:10|page:1."""
    filtered = sorted(
        (k, v) for k, v in params.items() if v is not None
    )
    suffix = "|".join(f"{k}:{v}" for k, v in filtered) or "all"
    return f"{prefix}:{_LIST_SEGMENTS[entity_type]}:{suffix}"


@dataclass(frozen=True)
class CacheKeySet:
    """Patterns made stale by one mutation, in deletion order."""
    entity_type: EntityType
    entity_id: str
    patterns: tuple[str, ...]

    def __iter__(self):
        return iter(self.patterns)

    def __len__(self):
        return len(self.patterns)


def build_key_set(
    entity_type: EntityType,
    entity_id: str,
    slug: str | None = None,
    parent_id: str | None = None,
    prefix: str = DEFAULT_PREFIX,
) -> CacheKeySet:
    """Entity detail keys first, then parent-scoped views, then aggregate views."""
    patterns = [detail_key(entity_type, entity_id, prefix)]
    if slug:
        patterns.append(slug_key(entity_type, slug, prefix))

    for template in _PARENT_TEMPLATES[entity_type]:
        if "{parent}" in template and not parent_id:
            continue
        patterns.append(
            template.format(p=prefix, id=entity_id, parent=parent_id),
        )

    patterns.extend(
        t.format(p=prefix) for t in _AGGREGATE_TEMPLATES[entity_type]
    )
    # dict.fromkeys keeps first-seen order while dropping duplicates
    return CacheKeySet(entity_type, entity_id, tuple(dict.fromkeys(patterns)))


def has_wildcard(pattern: str) -> bool:
    return any(ch in pattern for ch in "*?[")

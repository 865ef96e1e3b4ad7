"""Domain Types — rich types that replace bare strings across the pipeline.

Invariants:
    - EntityType values double as cache key segments and ChangeEvent type prefixes
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum


class EntityType(str, Enum):
    """Catalog entities that flow through the write pipeline."""
    STORE = "store"
    COUPON = "coupon"
    BLOG_POST = "blog_post"

    @property
    def id_field(self) -> str:
        """Entity-specific id field on the ChangeEvent wire format."""
        return _ID_FIELDS[self]

    @property
    def event_type(self) -> str:
        return f"{self.value}_update"


_ID_FIELDS = {
    EntityType.STORE: "storeId",
    EntityType.COUPON: "couponId",
    EntityType.BLOG_POST: "blogPostId",
}


class Operation(str, Enum):
    """Write operations a Mutation can describe."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def forces_refresh(self) -> bool:
        """Subscribers must drop local copies on update/delete; create is a lazy hint."""
        return self is not Operation.CREATE


class Stage(str, Enum):
    """The four subsystems a mutation touches. Key names in atomicUpdateResults."""
    DATABASE = "database"
    CACHE = "cache"
    WEBSOCKET = "websocket"
    REVALIDATION = "revalidation"


SIDE_EFFECT_STAGES = (Stage.CACHE, Stage.WEBSOCKET, Stage.REVALIDATION)

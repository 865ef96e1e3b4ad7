"""Coupon ORM — an offer belonging to one store.

Invariants:
    - store_id references an existing store (checked by the entity store before insert)
    - Either code or active must be set (mirrors the API schema validator)
    - version semantics identical to Store (version_id_col)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from couponhub.db.base import Base


class Coupon(Base):
    """Coupon — child of Store; changes also stale the parent store's views."""
    __tablename__ = "coupons"

    WRITABLE_FIELDS = (
        "store_id", "slug", "offer_details", "code", "active", "is_valid",
        "featured_for_home", "order", "hits",
    )
    SLUG_SOURCE = "offer_details"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    slug: Mapped[str] = mapped_column(
        String(140), nullable=False, unique=True, index=True,
    )
    offer_details: Mapped[str] = mapped_column(Text, nullable=False)
    code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    featured_for_home: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "storeId": str(self.store_id),
            "slug": self.slug,
            "offerDetails": self.offer_details,
            "code": self.code,
            "active": self.active,
            "isValid": self.is_valid,
            "featuredForHome": self.featured_for_home,
            "order": self.order,
            "hits": self.hits,
            "version": self.version,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

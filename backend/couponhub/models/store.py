"""Store ORM — merchant whose coupons the catalog lists.

Invariants:
    - id is UUID primary key
    - slug is unique and URL-safe (generated from name when not supplied)
    - version starts at 1 and increments by exactly 1 on every UPDATE
      (SQLAlchemy version_id_col — stale writers get StaleDataError)

Design Decisions:
    - categories stored as JSON list of category slugs: category-scoped cache views
      are keyed by slug, no join needed to invalidate them
    - to_dict() emits the camelCase wire shape used by API responses and ChangeEvents
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from couponhub.db.base import Base


class Store(Base):
    """Store aggregate — coupons reference it by store_id."""
    __tablename__ = "stores"

    WRITABLE_FIELDS = (
        "name", "slug", "direct_url", "tracking_url", "short_description",
        "long_description", "image_url", "image_alt", "language",
        "is_top_store", "is_editors_choice", "heading", "categories",
    )
    SLUG_SOURCE = "name"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(140), nullable=False, unique=True, index=True,
    )
    direct_url: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    tracking_url: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    short_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    long_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    image_alt: Mapped[str | None] = mapped_column(String(200), nullable=True)
    language: Mapped[str] = mapped_column(String(40), nullable=False, default="English")
    is_top_store: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_editors_choice: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    heading: Mapped[str] = mapped_column(
        String(60), nullable=False, default="Coupons & Promo Codes",
    )
    categories: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
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
            "name": self.name,
            "slug": self.slug,
            "directUrl": self.direct_url,
            "trackingUrl": self.tracking_url,
            "shortDescription": self.short_description,
            "longDescription": self.long_description,
            "imageUrl": self.image_url,
            "imageAlt": self.image_alt,
            "language": self.language,
            "isTopStore": self.is_top_store,
            "isEditorsChoice": self.is_editors_choice,
            "heading": self.heading,
            "categories": list(self.categories or []),
            "version": self.version,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

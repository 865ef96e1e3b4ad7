"""Catalog schema — stores, coupons, blog_posts with version counters.

Revision ID: 001_catalog
Revises: None
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_catalog"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "stores",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(140), nullable=False, unique=True),
        sa.Column("direct_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("tracking_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("short_description", sa.Text, nullable=False, server_default=""),
        sa.Column("long_description", sa.Text, nullable=False, server_default=""),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("image_alt", sa.String(200), nullable=True),
        sa.Column("language", sa.String(40), nullable=False, server_default="English"),
        sa.Column("is_top_store", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_editors_choice", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("heading", sa.String(60), nullable=False, server_default="Coupons & Promo Codes"),
        sa.Column("categories", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_stores_slug", "stores", ["slug"])

    op.create_table(
        "coupons",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "store_id", UUID(as_uuid=True),
            sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("slug", sa.String(140), nullable=False, unique=True),
        sa.Column("offer_details", sa.Text, nullable=False),
        sa.Column("code", sa.String(100), nullable=True),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_valid", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("featured_for_home", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("hits", sa.Integer, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_coupons_slug", "coupons", ["slug"])
    op.create_index("ix_coupons_store_id", "coupons", ["store_id"])

    op.create_table(
        "blog_posts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("slug", sa.String(140), nullable=False, unique=True),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("excerpt", sa.Text, nullable=True),
        sa.Column("author_name", sa.String(120), nullable=False),
        sa.Column("category", sa.String(140), nullable=True),
        sa.Column("front_banner", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column(
            "store_id", UUID(as_uuid=True),
            sa.ForeignKey("stores.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_blog_posts_slug", "blog_posts", ["slug"])


def downgrade() -> None:
    op.drop_table("blog_posts")
    op.drop_table("coupons")
    op.drop_table("stores")

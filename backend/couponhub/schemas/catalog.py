"""Catalog Schemas — Pydantic request models for store, coupon, and blog post writes.

Invariants:
    - Wire names are camelCase (alias_generator); snake_case accepted too
    - Update schemas are partial: only fields the client sent reach the store
      (exclude_unset)
    - previousVersion is optional optimistic-concurrency input, never persisted
    - A coupon needs a code or must be an active deal

Design Decisions:
    - Separate Create/Update classes over one model with Optional everything:
      required-on-create fields stay required where it matters
"""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _CatalogModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore",
    )

    def mutation_payload(self) -> tuple[dict, int | None]:
        """(fields to persist, previous_version) — only fields the client sent."""
        payload = self.model_dump(exclude_unset=True)
        previous_version = payload.pop("previous_version", None)
        return payload, previous_version


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("cannot be empty or whitespace")
    return v


# --- Stores -------------------------------------------------------------------

class StoreCreate(_CatalogModel):
    name: str = Field(min_length=1, max_length=200)
    slug: str | None = Field(None, max_length=140)
    direct_url: str = Field("", max_length=500)
    tracking_url: str = Field("", max_length=500)
    short_description: str = ""
    long_description: str = ""
    image_url: str | None = Field(None, max_length=500)
    image_alt: str | None = Field(None, max_length=200)
    language: str = Field("English", max_length=40)
    is_top_store: bool = False
    is_editors_choice: bool = False
    heading: str = Field("Coupons & Promo Codes", max_length=60)
    categories: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_required(v)


class StoreUpdate(_CatalogModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    slug: str | None = Field(None, max_length=140)
    direct_url: str | None = Field(None, max_length=500)
    tracking_url: str | None = Field(None, max_length=500)
    short_description: str | None = None
    long_description: str | None = None
    image_url: str | None = Field(None, max_length=500)
    image_alt: str | None = Field(None, max_length=200)
    language: str | None = Field(None, max_length=40)
    is_top_store: bool | None = None
    is_editors_choice: bool | None = None
    heading: str | None = Field(None, max_length=60)
    categories: list[str] | None = None
    previous_version: int | None = Field(None, ge=1)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        return None if v is None else _strip_required(v)


# --- Coupons ------------------------------------------------------------------

class CouponCreate(_CatalogModel):
    store_id: UUID
    offer_details: str = Field(min_length=1, max_length=2_000)
    slug: str | None = Field(None, max_length=140)
    code: str | None = Field(None, max_length=100)
    active: bool = True
    is_valid: bool = True
    featured_for_home: bool = False
    order: int = Field(0, ge=0)
    hits: int = Field(0, ge=0)

    @model_validator(mode="after")
    def code_or_active(self):
        if not self.code and not self.active:
            raise ValueError("coupon needs a code or must be an active deal")
        return self


class CouponUpdate(_CatalogModel):
    store_id: UUID | None = None
    offer_details: str | None = Field(None, min_length=1, max_length=2_000)
    slug: str | None = Field(None, max_length=140)
    code: str | None = Field(None, max_length=100)
    active: bool | None = None
    is_valid: bool | None = None
    featured_for_home: bool | None = None
    order: int | None = Field(None, ge=0)
    hits: int | None = Field(None, ge=0)
    previous_version: int | None = Field(None, ge=1)

    @model_validator(mode="after")
    def code_or_active(self):
        if "code" in self.model_fields_set and "active" in self.model_fields_set:
            if not self.code and not self.active:
                raise ValueError("coupon needs a code or must be an active deal")
        return self


# --- Blog posts ---------------------------------------------------------------

BlogStatus = Literal["draft", "published"]


class BlogPostCreate(_CatalogModel):
    title: str = Field(min_length=1, max_length=300)
    author_name: str = Field(min_length=1, max_length=120)
    slug: str | None = Field(None, max_length=140)
    content: str = ""
    excerpt: str | None = None
    category: str | None = Field(None, max_length=140)
    front_banner: bool = False
    status: BlogStatus = "draft"
    store_id: UUID | None = None

    @field_validator("title", "author_name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        return _strip_required(v)


class BlogPostUpdate(_CatalogModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    author_name: str | None = Field(None, min_length=1, max_length=120)
    slug: str | None = Field(None, max_length=140)
    content: str | None = None
    excerpt: str | None = None
    category: str | None = Field(None, max_length=140)
    front_banner: bool | None = None
    status: BlogStatus | None = None
    store_id: UUID | None = None
    previous_version: int | None = Field(None, ge=1)


# --- Envelopes ----------------------------------------------------------------

def success_envelope(data) -> dict:
    return {"status": "success", "data": data}


def list_envelope(items: list[dict], total: int, page: int, limit: int) -> dict:
    pages = (total + limit - 1) // limit if limit else 0
    return {
        "status": "success",
        "data": items,
        "pagination": {
            "page": page, "limit": limit, "total": total, "pages": pages,
        },
    }

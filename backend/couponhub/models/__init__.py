"""ORM Models — SQLAlchemy declarative models for catalog entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Every model exposes WRITABLE_FIELDS, SLUG_SOURCE, version, and to_dict()

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all/migrations
"""

from couponhub.models.store import Store  # noqa: F401
from couponhub.models.coupon import Coupon  # noqa: F401
from couponhub.models.blog_post import BlogPost  # noqa: F401

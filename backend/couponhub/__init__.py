"""Coupon Catalog Backend — write-path consistency pipeline for stores, coupons, and blog posts.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""

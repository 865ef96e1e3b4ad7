"""Infrastructure — adapters for SQL, Redis, HTTP, logging, and request timing.

Invariants:
    - Every adapter maps its library's exceptions onto core/errors.py types
"""

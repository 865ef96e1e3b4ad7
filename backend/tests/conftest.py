"""Root conftest — shared test configuration."""

import os

# Tests never reach a real database, Redis, or frontend
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/15")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")
os.environ.setdefault("REVALIDATION_SECRET", "test-secret")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "text")

"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded outside dev defaults)
    - get_settings() is cached (lru_cache) — single instance per process
    - Every side-effect stage has its own timeout and circuit-breaker knobs

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    environment: str = "development"

    # Database
    database_url: str = (
        "postgresql+asyncpg://catalog:catalog@db:5432/catalog"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms provide postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_timeout_seconds: float = 10.0

    # Cache
    redis_url: str = "redis://localhost:6379/0"
    cache_key_prefix: str = "coupon_backend"
    cache_detail_ttl_seconds: int = 3600
    cache_list_ttl_seconds: int = 1800
    cache_timeout_seconds: float = 3.0

    # Real-time notifications
    websocket_enabled: bool = True
    websocket_timeout_seconds: float = 3.0
    websocket_send_timeout_seconds: float = 1.0

    # Frontend revalidation
    revalidation_enabled: bool = True
    frontend_url: str = "http://localhost:3000"
    revalidation_secret: str = "dev-revalidation-secret"
    revalidation_timeout_seconds: float = 5.0

    # Circuit breakers: consecutive failures before opening, cool-down before half-open
    cache_breaker_threshold: int = 3
    cache_breaker_reset_seconds: float = 15.0
    websocket_breaker_threshold: int = 5
    websocket_breaker_reset_seconds: float = 30.0
    revalidation_breaker_threshold: int = 3
    revalidation_breaker_reset_seconds: float = 10.0

    # Timing instrumentation
    slow_request_threshold_ms: float = 1000.0
    slow_query_threshold_ms: float = 100.0

    # API
    cors_origins: list[str] = ["http://localhost:3000"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()

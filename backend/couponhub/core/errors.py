"""Error Hierarchy — typed, categorized exceptions for every catalog failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - PersistenceError subclasses are fatal to a write: no entity was produced
    - SideEffectError subclasses are never raised past a stage boundary; they end up
      inside a failed StageResult
    - to_response() produces the REST error envelope; no internal details leaked

Design Decisions:
    - Single hierarchy with CatalogError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    CACHE = "cache"
    NOTIFICATION = "notification"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    entity_type: str | None = None
    entity_id: str | None = None
    operation: str | None = None
    debug_info: dict[str, Any] | None = None


class CatalogError(Exception):
    """Base exception for all catalog errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "entity_type": self.context.entity_type,
                    "entity_id": self.context.entity_id,
                    "operation": self.context.operation,
                },
            }
        }


# ─── Persistence Errors (fatal to the request) ──────────────────

class PersistenceError(CatalogError):
    """The entity store could not produce an entity. Gates overall success."""


class EntityNotFoundError(PersistenceError):
    """Requested entity does not exist."""
    def __init__(
        self, entity_type: str, entity_id: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.entity_type = ctx.entity_type or entity_type
        ctx.entity_id = ctx.entity_id or entity_id
        super().__init__(
            f"{entity_type} '{entity_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )


class EntityValidationError(PersistenceError):
    """Payload rejected by the store (constraint, missing reference, bad field)."""
    def __init__(
        self, message: str, field: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ConcurrencyError(PersistenceError):
    """Stored version differs from the one the caller based its write on."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


class StoreUnavailableError(PersistenceError):
    """Database unreachable, timed out, or failed at the driver level."""
    def __init__(
        self, message: str, operation: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


# ─── Side-Effect Errors (non-fatal, reported per stage) ─────────

class SideEffectError(CatalogError):
    """A best-effort stage failed. Surfaced only inside atomicUpdateResults."""


class CacheUnavailableError(SideEffectError):
    """Cache backend unreachable or rejected the command."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cache error: {message}", "CACHE_UNAVAILABLE", ErrorCategory.CACHE,
            ErrorSeverity.WARNING, context, 503,
        )


class BroadcastError(SideEffectError):
    """Notification channel could not fan an event out."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Broadcast error: {message}", "BROADCAST_FAILED",
            ErrorCategory.NOTIFICATION, ErrorSeverity.WARNING, context, 503,
        )


class RevalidationError(SideEffectError):
    """External revalidation endpoint failed or answered non-2xx."""
    def __init__(
        self, message: str, status_code: int | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Revalidation error: {message}", "REVALIDATION_FAILED",
            ErrorCategory.EXTERNAL_API, ErrorSeverity.WARNING, context, 502,
        )
        self.status_code = status_code

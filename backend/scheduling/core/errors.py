"""Error Hierarchy — typed, categorized exceptions for every scheduling failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Only ConflictError and StoreConnectionError are transient; all others are terminal
    - Business errors (CapacityError, ClassNotFoundError, ...) abort the transaction unchanged
    - to_response() produces the REST envelope used by the API error handlers

Design Decisions:
    - Single hierarchy with SchedulingError base: API handler catches all (ADR: uniform error shape)
    - Names avoid shadowing built-ins (StoreConnectionError, TransactionTimeoutError,
      ClassNotFoundError) so `except TimeoutError` elsewhere keeps its stdlib meaning
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DATABASE = "database"
    TIMEOUT = "timeout"
    DATA_CORRUPTION = "data_corruption"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    student_id: str | None = None
    class_name: str | None = None
    attempt: int | None = None
    retry_after_ms: int | None = None
    debug_info: dict[str, Any] | None = None


class SchedulingError(Exception):
    """Base exception for all scheduling errors."""

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
                    "student_id": self.context.student_id,
                    "class_name": self.context.class_name,
                    "attempt": self.context.attempt,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(SchedulingError):
    """Operation arguments are invalid."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class CapacityError(SchedulingError):
    """No seats left in the requested class."""
    def __init__(self, class_name: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.class_name = class_name
        super().__init__(
            f"Class '{class_name}' has no seats available",
            "CLASS_FULL", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 409,
        )
        self.class_name = class_name


class ClassLimitError(SchedulingError):
    """Student already attends the maximum number of classes."""
    def __init__(self, student_id: str, limit: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.student_id = student_id
        super().__init__(
            f"Student '{student_id}' already attends {limit} classes",
            "CLASS_LIMIT_REACHED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 409,
        )
        self.student_id = student_id
        self.limit = limit


class ClassNotFoundError(SchedulingError):
    """Referenced class has no ClassRecord."""
    def __init__(self, class_name: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.class_name = class_name
        super().__init__(
            f"Class '{class_name}' not found",
            "CLASS_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )
        self.class_name = class_name


# ─── Data Errors ────────────────────────────────────────────────

class MalformedKeyError(SchedulingError):
    """Key bytes do not match a valid tuple encoding (corruption or version mismatch)."""
    def __init__(self, message: str, key: bytes | None = None, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        if key is not None:
            ctx.debug_info = {"key": key.hex()}
        super().__init__(
            f"Malformed key: {message}",
            "MALFORMED_KEY", ErrorCategory.DATA_CORRUPTION,
            ErrorSeverity.CRITICAL, ctx, 500,
        )
        self.key = key


class MalformedValueError(SchedulingError):
    """Stored value cannot be decoded as the record it belongs to."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Malformed value: {message}",
            "MALFORMED_VALUE", ErrorCategory.DATA_CORRUPTION,
            ErrorSeverity.CRITICAL, context, 500,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class ConflictError(SchedulingError):
    """Store detected a conflicting concurrent transaction. Retryable."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "TRANSACTION_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


class StoreConnectionError(SchedulingError):
    """Transient infrastructure failure talking to the store. Retryable."""
    def __init__(
        self,
        message: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Store unavailable: {message}",
            "STORE_UNAVAILABLE", ErrorCategory.DATABASE,
            ErrorSeverity.WARNING, ctx, 503,
        )


class DatabaseError(SchedulingError):
    """Store operation failed in a way retrying cannot fix."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class TransactionTimeoutError(SchedulingError):
    """Retry budget or wall-clock deadline exceeded. Terminal."""
    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: BaseException | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.attempt = attempts
        super().__init__(
            message, "TRANSACTION_TIMEOUT", ErrorCategory.TIMEOUT,
            ErrorSeverity.ERROR, ctx, 504,
        )
        self.attempts = attempts
        self.last_error = last_error

"""Error Hierarchy — typed, categorized exceptions for every engine failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Each error kind owns exactly one stable code; Conflict adds a stable reason
    - Domain errors (4xx) are recoverable; StorageError (5xx) is critical
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with CfpError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
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
    PERMISSION = "permission"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DATABASE = "database"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    talk_id: str | None = None
    slot_id: str | None = None
    actor_id: str | None = None
    details: dict[str, Any] | None = None


class CfpError(Exception):
    """Base exception for all engine errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
        reason: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status
        self.reason = reason

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "reason": self.reason,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "talk_id": self.context.talk_id,
                    "slot_id": self.context.slot_id,
                    "details": self.context.details,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(CfpError):
    """Malformed input (e.g. start >= end, score out of range)."""
    def __init__(
        self, message: str, field: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class InvalidTransitionError(CfpError):
    """No edge in the transition table for (current, target)."""
    def __init__(
        self, current: str, target: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.details = {"current_state": current, "target_state": target}
        super().__init__(
            f"Invalid state transition: cannot move from {current} to {target}",
            "INVALID_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 409,
        )
        self.current = current
        self.target = target


class PermissionDeniedError(CfpError):
    """Actor lacks authority for the requested action."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "PERMISSION_DENIED", ErrorCategory.PERMISSION,
            ErrorSeverity.WARNING, context, 403,
        )


class NotFoundError(CfpError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(CfpError):
    """Uniqueness or overlap violation."""
    def __init__(
        self, message: str, reason: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409, reason=reason,
        )


class StateError(CfpError):
    """Operation requires a talk state precondition that is not met."""
    def __init__(
        self, message: str, state: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "STATE_ERROR", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 422,
        )
        self.state = state


# ─── Conflict reasons ───────────────────────────────────────────

SLOT_OVERLAP = "SLOT_OVERLAP"
SLOT_OCCUPIED = "SLOT_OCCUPIED"
TALK_ALREADY_SCHEDULED = "TALK_ALREADY_SCHEDULED"
TRACK_HAS_ASSIGNED_SLOTS = "TRACK_HAS_ASSIGNED_SLOTS"
DUPLICATE_LABEL_NAME = "DUPLICATE_LABEL_NAME"
CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"


# ─── Infrastructure Errors (500-level) ──────────────────────────

class StorageError(CfpError):
    """Opaque persistence-layer failure."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "STORAGE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation

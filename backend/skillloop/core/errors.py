"""Error Hierarchy — typed, categorized exceptions for all SkillLoop failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - HTTP status is a function of the category alone (HTTP_STATUS_BY_CATEGORY)
    - Domain errors (4xx) are raised before any mutation; infrastructure errors (5xx) may be transient
    - to_response() produces the REST envelope consumed by the API error handlers
    - AuthorizationError messages never name the actor who WOULD be allowed

Design Decisions:
    - Code, category and severity are class attributes: a subclass only formats its message,
      so a new failure mode is one small class
    - InsufficientBalanceError subclasses GuardViolationError: a refused debit is a state
      precondition, not bad input; callers branch on category, not on concrete class
    - ErrorContext carries the escrow identifiers (session, request, bid) of the failing call
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """The request surface's status taxonomy."""
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    RESOURCE_NOT_FOUND = "resource_not_found"
    GUARD_VIOLATION = "guard_violation"
    CONFLICT = "conflict"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"


HTTP_STATUS_BY_CATEGORY: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.UNAUTHORIZED: 403,
    ErrorCategory.RESOURCE_NOT_FOUND: 404,
    ErrorCategory.GUARD_VIOLATION: 409,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.EXTERNAL_API: 502,
    ErrorCategory.DATABASE: 503,
    ErrorCategory.INTERNAL: 500,
}

_RETRYABLE = frozenset({ErrorCategory.DATABASE, ErrorCategory.CONFLICT})


@dataclass
class ErrorContext:
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str | None = None
    request_id: str | None = None
    bid_id: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class SkillLoopError(Exception):
    """Base exception for all SkillLoop errors."""

    code = "INTERNAL_ERROR"
    category = ErrorCategory.INTERNAL
    severity = ErrorSeverity.ERROR

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        if code is not None:
            self.code = code

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CATEGORY[self.category]

    @property
    def transient(self) -> bool:
        return self.category in _RETRYABLE

    def to_response(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "transient": self.transient,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "session_id": self.context.session_id,
                    "request_id": self.context.request_id,
                    "bid_id": self.context.bid_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (4xx) ─────────────────────────────────────────

class ValidationError(SkillLoopError):
    """Malformed or missing input."""
    code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION

    def __init__(
        self, message: str, field: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(message, context)
        self.field = field


class AuthorizationError(SkillLoopError):
    """Actor is not permitted to perform the requested action."""
    code = "UNAUTHORIZED"
    category = ErrorCategory.UNAUTHORIZED
    severity = ErrorSeverity.WARNING

    def __init__(self, action: str, context: ErrorContext | None = None):
        super().__init__(f"Not authorized to {action}", context)
        self.action = action


class ResourceNotFoundError(SkillLoopError):
    code = "RESOURCE_NOT_FOUND"
    category = ErrorCategory.RESOURCE_NOT_FOUND

    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(f"{resource_type} '{resource_id}' not found", context)
        self.resource_type = resource_type


class GuardViolationError(SkillLoopError):
    """State-machine precondition unmet. `code` names the specific precondition."""
    code = "GUARD_VIOLATION"
    category = ErrorCategory.GUARD_VIOLATION

    def __init__(
        self, reason: str, code: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(reason, context, code)
        self.reason = reason


class InsufficientBalanceError(GuardViolationError):
    code = "INSUFFICIENT_BALANCE"

    def __init__(
        self, balance: float, required: float, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Insufficient SKL tokens. You have {balance:g} SKL but need {required:g} SKL",
            context=context,
        )
        self.balance = balance
        self.required = required


class InvalidTransitionError(GuardViolationError):
    """Session action not allowed from the current status."""
    code = "INVALID_TRANSITION"

    def __init__(
        self, action: str, current_status: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Cannot {action} a session that is {current_status}", context=context,
        )
        self.action = action
        self.current_status = current_status


class CompletionGateError(GuardViolationError):
    """in-progress -> completed attempted before progress gates are met."""
    code = "COMPLETION_GATE_NOT_MET"

    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(f"Session cannot be completed. {reason}", context=context)


class ConcurrencyError(SkillLoopError):
    """Optimistic version check lost a race; safe to reload and retry."""
    code = "CONCURRENCY_CONFLICT"
    category = ErrorCategory.CONFLICT
    severity = ErrorSeverity.WARNING


# ─── Infrastructure Errors (5xx) ─────────────────────────────────

class DatabaseError(SkillLoopError):
    code = "DATABASE_ERROR"
    category = ErrorCategory.DATABASE
    severity = ErrorSeverity.CRITICAL

    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(f"Database {operation} failed: {message}", context)
        self.operation = operation


class MintingError(SkillLoopError):
    """Minting collaborator failed."""
    code = "MINTING_FAILED"
    category = ErrorCategory.EXTERNAL_API
    severity = ErrorSeverity.CRITICAL

    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(f"Certificate minting failed: {message}", context)

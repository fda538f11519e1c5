"""Error Hierarchy — typed, categorized exceptions for all lucky money failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Rule violations derive from RuleViolationError; exhaustion, storage and
      conflict errors do not
    - to_response() produces the REST error envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with LuckyMoneyError base: FastAPI global handler catches all
    - Core checks return Violation values; error_for_violation() is the one place
      that maps a FailureKind to its exception type
"""

from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime, timezone

from lucky_money.core.domain_types import (
    EnvelopeToken, FailureKind, RoomId, UserId, Violation,
)


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
    RESOURCE_EXHAUSTED = "resource_exhausted"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    token: EnvelopeToken | None = None
    user_id: UserId | None = None
    room_id: RoomId | None = None


class LuckyMoneyError(Exception):
    """Base exception for all lucky money errors."""

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
                    "token": self.context.token,
                    "user_id": self.context.user_id,
                    "room_id": self.context.room_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class EnvelopeNotFoundError(LuckyMoneyError):
    """Token does not resolve to an envelope."""
    def __init__(self, token: EnvelopeToken, context: ErrorContext | None = None):
        super().__init__(
            f"Envelope '{token}' not found",
            "ENVELOPE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.token = token


class RuleViolationError(LuckyMoneyError):
    """Caller input broke a business rule. Never retried automatically."""
    def __init__(
        self,
        message: str,
        code: str,
        http_status: int,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, http_status,
        )


class RoomMismatchError(RuleViolationError):
    """Claim came from a room other than the envelope's room."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(message, "ROOM_MISMATCH", 403, context)


class EnvelopeExpiredError(RuleViolationError):
    """Claim or audit window has closed."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(message, "ENVELOPE_EXPIRED", 410, context)


class SelfClaimForbiddenError(RuleViolationError):
    """Owner tried to claim a share of their own envelope."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(message, "SELF_CLAIM_FORBIDDEN", 403, context)


class DuplicateClaimError(RuleViolationError):
    """User already holds a share of this envelope."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(message, "DUPLICATE_CLAIM", 409, context)


class LookupForbiddenError(RuleViolationError):
    """Someone other than the owner tried to audit the envelope."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(message, "LOOKUP_FORBIDDEN", 403, context)


class SharesExhaustedError(LuckyMoneyError):
    """Request was valid but every standby share was already claimed."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "NO_SHARES_REMAINING", ErrorCategory.RESOURCE_EXHAUSTED,
            ErrorSeverity.INFO, context, 409,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(LuckyMoneyError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class ConcurrencyError(LuckyMoneyError):
    """Compare-and-set kept losing after every retry."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


# ─── Violation mapping ──────────────────────────────────────────

_RULE_ERRORS: dict[FailureKind, type[LuckyMoneyError]] = {
    FailureKind.ROOM_MISMATCH: RoomMismatchError,
    FailureKind.EXPIRED: EnvelopeExpiredError,
    FailureKind.SELF_CLAIM_FORBIDDEN: SelfClaimForbiddenError,
    FailureKind.DUPLICATE_CLAIM: DuplicateClaimError,
    FailureKind.FORBIDDEN: LookupForbiddenError,
    FailureKind.NO_SHARES_REMAINING: SharesExhaustedError,
}


def error_for_violation(
    violation: Violation, context: ErrorContext | None = None,
) -> LuckyMoneyError:
    """Build the exception that reports a core Violation to the caller."""
    if violation.kind == FailureKind.NOT_FOUND:
        token = context.token if context and context.token else EnvelopeToken("?")
        return EnvelopeNotFoundError(token, context)
    return _RULE_ERRORS[violation.kind](violation.message, context)

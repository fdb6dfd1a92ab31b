"""Error Hierarchy — typed, categorized exceptions for all CoSnap failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Business outcomes (validation, quota, not-found, transition) are 4xx and never retried
    - Dependency errors (database, notification) are 503 and left to the caller to retry
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with CoSnapError base: FastAPI global handler catches all
    - NotFoundError also covers "exists but caller lacks the role": existence is never leaked
    - An idempotent double-accept is NOT an error (AcceptResult.already_accepted)
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
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DEPENDENCY = "dependency"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    flag_id: str | None = None
    offer_id: str | None = None
    debug_info: dict[str, Any] | None = None


class CoSnapError(Exception):
    """Base exception for all CoSnap errors."""

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

    def details(self) -> dict[str, Any]:
        """Extra machine-readable fields for the response envelope."""
        return {}

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        body = {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.context.timestamp.isoformat(),
            "context": {
                "user_id": self.context.user_id,
                "flag_id": self.context.flag_id,
                "offer_id": self.context.offer_id,
            },
        }
        extra = self.details()
        if extra:
            body["details"] = extra
        return {"error": body}


# ─── Validation (400) ───────────────────────────────────────────

class ValidationError(CoSnapError):
    """Malformed input — surfaced verbatim, never retried."""
    def __init__(
        self,
        message: str,
        field: str | None = None,
        context: ErrorContext | None = None,
        code: str = "VALIDATION_ERROR",
    ):
        super().__init__(
            message, code, ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.field = field

    def details(self) -> dict[str, Any]:
        return {"field": self.field} if self.field else {}


class LocationRequiredError(ValidationError):
    """Flag submitted without a coordinate."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "A location is required to publish a flag.",
            "location", context, code="LOCATION_REQUIRED",
        )


class SelfOfferNotAllowedError(ValidationError):
    """Sender and receiver are the same user."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Cannot send an offer to yourself.",
            "receiver_id", context, code="SELF_OFFER_NOT_ALLOWED",
        )


# ─── Business Rules (403/409) ───────────────────────────────────

class QuotaExceededError(CoSnapError):
    """Plan-tier active flag limit reached."""
    def __init__(
        self,
        tier: str,
        limit: int,
        active_count: int,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Active flag limit reached for {tier} plan ({active_count}/{limit}).",
            "QUOTA_EXCEEDED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 403,
        )
        self.tier = tier
        self.limit = limit
        self.active_count = active_count

    def details(self) -> dict[str, Any]:
        return {
            "tier": self.tier,
            "limit": self.limit,
            "active_count": self.active_count,
        }


class InvalidTransitionError(CoSnapError):
    """Offer is not in the status the requested action needs."""
    def __init__(
        self,
        offer_id: str,
        current: str,
        requested: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Offer '{offer_id}' is {current}; cannot move to {requested}.",
            "INVALID_TRANSITION", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )
        self.offer_id = offer_id
        self.current = current
        self.requested = requested

    def details(self) -> dict[str, Any]:
        return {"current": self.current, "requested": self.requested}


# ─── Not Found (404) ────────────────────────────────────────────

class NotFoundError(CoSnapError):
    """Resource missing, or present but outside the caller's role."""
    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        context: ErrorContext | None = None,
        code: str = "RESOURCE_NOT_FOUND",
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code, ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class SenderProfileMissingError(NotFoundError):
    def __init__(self, user_id: str, context: ErrorContext | None = None):
        super().__init__(
            "Profile", user_id, context, code="SENDER_PROFILE_MISSING",
        )


class ReceiverProfileMissingError(NotFoundError):
    def __init__(self, user_id: str, context: ErrorContext | None = None):
        super().__init__(
            "Profile", user_id, context, code="RECEIVER_PROFILE_MISSING",
        )


# ─── Dependency Errors (503) ────────────────────────────────────

class DependencyError(CoSnapError):
    """Transient I/O failure of a collaborator."""
    def __init__(
        self,
        message: str,
        code: str = "DEPENDENCY_ERROR",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.DEPENDENCY,
            ErrorSeverity.CRITICAL, context, 503,
        )


class DatabaseError(DependencyError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}", "DATABASE_ERROR", context,
        )
        self.operation = operation


class NotificationError(DependencyError):
    """Notification sink rejected or failed to store an event."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Notification emit failed: {message}", "NOTIFICATION_ERROR", context,
        )

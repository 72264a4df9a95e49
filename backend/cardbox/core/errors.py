"""Error Hierarchy — typed, categorized exceptions for all Cardbox failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (4xx) never mutate state; infrastructure errors (5xx) are
      recovered by the lifecycle engine where the collaborator is optional
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with CardboxError base: FastAPI global handler catches all
    - Negative pickup outcomes are NOT errors (see core.lifecycle_rules.PickupOutcome)
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
    AUTHORIZATION = "authorization"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    card_id: str | None = None
    box_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class CardboxError(Exception):
    """Base exception for all Cardbox errors."""

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
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "card_id": self.context.card_id,
                    "box_id": self.context.box_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationFailedError(CardboxError):
    """Request input failed a domain validation rule."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["field"] = self.field
        return response


class ResourceNotFoundError(CardboxError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["reason"] = "not found"
        return response


class CardStateConflictError(CardboxError):
    """Operation not allowed from the card's current status."""
    def __init__(
        self, card_id: str, current_status: str, message: str | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.card_id = card_id
        super().__init__(
            message or f"Card is not awaiting resolution. Current status: {current_status}",
            "CARD_STATE_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.current_status = current_status


class PickupCodesExhaustedError(CardboxError):
    """Every pickup code of a box is held by an unconsumed card."""
    def __init__(self, box_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.box_id = box_id
        super().__init__(
            f"Box '{box_id}' has no free pickup codes. Empty the box before adding cards.",
            "PICKUP_CODES_EXHAUSTED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 409,
        )


class StaffAccessDeniedError(CardboxError):
    """Staff-only route called without the staff token."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Staff access required",
            "STAFF_ACCESS_DENIED", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 401,
        )


class BoxFrameError(CardboxError):
    """A box frame could not be decoded."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Malformed box frame: {reason}",
            "BOX_FRAME_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.reason = reason


# ─── Collaborator Errors (500-level) ────────────────────────────

class NotificationFailedError(CardboxError):
    """Owner email was stored but the notification could not be delivered."""
    def __init__(
        self, card_id: str, email: str, card: dict | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.card_id = card_id
        super().__init__(
            "Email address saved but failed to send email.",
            "NOTIFICATION_FAILED", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, ctx, 502,
        )
        self.email = email
        self.card = card

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["card"] = self.card
        return response


class ExtractionError(CardboxError):
    """OCR response could not be turned into card fields."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Card text extraction failed: {message}",
            "EXTRACTION_FAILED", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, context, 502,
        )


class AnthropicAPIError(CardboxError):
    """Anthropic API call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Anthropic API error ({api_error_type}): {message}",
            "ANTHROPIC_API_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.api_error_type = api_error_type

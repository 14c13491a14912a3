"""
Domain exceptions for the seda progression engine.

Purpose
-------
Structured exception hierarchy for progression and economy rules. Services
raise these for rule violations; the caller-facing layer (REST handler,
websocket gateway, UI bridge) turns them into user-facing messages.

Design Notes
------------
- Every domain exception inherits from `ProgressionError`.
- Each carries `message`, `details`, `severity`, `is_retryable` and a
  stable `error_code`, and serializes with `to_dict()`.
- Some exceptions are raised and handled inside the engine:
  `InsufficientCreditsError` becomes a False return from spend_credits and
  `DuplicateEventError` becomes a no-op apply. Callers only ever observe
  `ValidationError` and `UnknownEventTypeError`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, e.g. a replayed event
    INFO = "info"  # Normal operation, e.g. rejected input
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ProgressionError(Exception):
    """
    Base exception for all progression domain errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise ProgressionError("Ledger mismatch", {"user_id": "fan-7"})
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class InsufficientCreditsError(ProgressionError):
    """
    Raised when a spend exceeds the user's credit balance.

    Args:
        user_id: User attempting the spend
        required: Credits requested
        current: Credits available
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, user_id: str, required: int, current: int) -> None:
        self.user_id = user_id
        self.required = required
        self.current = current
        super().__init__(
            f"Insufficient credits: need {required:,}, have {current:,}",
            details={
                "user_id": user_id,
                "required": required,
                "current": current,
                "deficit": required - current,
            },
            error_code="INSUFFICIENT_CREDITS",
        )


class UnknownEventTypeError(ProgressionError):
    """Raised when an action event type has no XP rule."""

    DEFAULT_SEVERITY = ErrorSeverity.ERROR

    def __init__(self, event_type: Any) -> None:
        self.event_type = event_type
        super().__init__(
            f"Unknown action event type: {event_type!r}",
            details={"event_type": str(event_type)},
            error_code="UNKNOWN_EVENT_TYPE",
        )


class DuplicateEventError(ProgressionError):
    """
    Raised when an event with an already-applied idempotency key is replayed.

    Args:
        user_id: Owner of the progression record
        dedup_key: "<session_id>:<event type>" key that was seen before
    """

    DEFAULT_SEVERITY = ErrorSeverity.DEBUG

    def __init__(self, user_id: str, dedup_key: str) -> None:
        self.user_id = user_id
        self.dedup_key = dedup_key
        super().__init__(
            "Event already applied",
            details={"user_id": user_id, "dedup_key": dedup_key},
            error_code="DUPLICATE_EVENT",
        )


class ValidationError(ProgressionError):
    """
    Raised when caller input fails domain validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


# ============================================================================
# Helpers
# ============================================================================


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity of an exception; non-domain exceptions count as ERROR."""
    if isinstance(exc, ProgressionError):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)


__all__ = [
    "ErrorSeverity",
    "ProgressionError",
    "InsufficientCreditsError",
    "UnknownEventTypeError",
    "DuplicateEventError",
    "ValidationError",
    "get_error_severity",
    "should_alert",
]

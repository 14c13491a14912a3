"""Shared building blocks for domain modules."""

from seda_progression.modules.shared.base_service import BaseService
from seda_progression.modules.shared.exceptions import (
    DuplicateEventError,
    ErrorSeverity,
    InsufficientCreditsError,
    ProgressionError,
    UnknownEventTypeError,
    ValidationError,
)

__all__ = [
    "BaseService",
    "DuplicateEventError",
    "ErrorSeverity",
    "InsufficientCreditsError",
    "ProgressionError",
    "UnknownEventTypeError",
    "ValidationError",
]

"""
Base service foundation.

Provides the shared plumbing for domain services: config access, domain
event emission and structured operation logging. Persistence, locking and
notification delivery stay with the components that own them.

Usage
-----
    class ProgressionService(BaseService):
        def __init__(self, store, emitter, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)
            self._store = store
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from seda_progression.core.config.errors import ConfigValidationError
from seda_progression.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from seda_progression.core.config.manager import ConfigManager
    from seda_progression.core.event.bus import EventBus


class BaseService:
    """
    Base class for domain services.

    Args:
        config_manager: Balance configuration manager
        event_bus: Event bus for domain events
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Retrieve a configuration value.

        Raises:
            ConfigValidationError: If required=True and the key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigValidationError(f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Publish a domain event on the bus."""
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    def validate_positive_int(self, value: Any, name: str) -> None:
        """
        Raises:
            ValidationError: If value is not a positive int (bools rejected)
        """
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(name, f"{name} must be a positive integer, got {value!r}")

    def validate_user_id(self, user_id: Any) -> str:
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("user_id", f"user_id must be a non-empty string, got {user_id!r}")
        return user_id

"""
EventBus: async pub/sub for progression domain events.

Purpose
-------
Decouples the Progression Store from everything that reacts to its
commits (entitlement services, feeds, analytics). The Store publishes
`progression.*` events after the per-user lock is released; subscribers
never run inside a user's critical section.

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to exact and wildcard subscribers
- Tiered execution (see `scheduler.py`)
- Isolate listener failures from publishers

Design Decisions
----------------
- Instance-based: each engine (and each test) owns its bus.
- Listener timeouts come from ConfigManager
  (`core.event.listener_timeout.*_seconds`) with safe defaults.
- Callback signatures are checked at subscribe time, not at publish time.

Dependencies
------------
- seda_progression.core.logging.logger
- seda_progression.core.config.manager.ConfigManager (optional)
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any, Optional

from seda_progression.core.event.registry import ListenerRegistry
from seda_progression.core.event.scheduler import EventScheduler
from seda_progression.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from seda_progression.core.logging.logger import LogContext, get_logger

if TYPE_CHECKING:
    from seda_progression.core.config.manager import ConfigManager

logger = get_logger(__name__)


class EventBus:
    """
    Async EventBus with tiered listener execution.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("progression.level_up", on_level_up, priority=ListenerPriority.HIGH)
    >>> await bus.publish("progression.level_up", {"user_id": "dj-1", "new_level": 2})
    """

    def __init__(
        self,
        config_manager: Optional["ConfigManager"] = None,
        *,
        registry: Optional[ListenerRegistry] = None,
        scheduler: Optional[EventScheduler] = None,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._config_manager = config_manager
        self._registry = registry or ListenerRegistry()
        self._scheduler = scheduler or EventScheduler()
        self._published: dict[str, int] = {}

        self._critical_timeout = self._load_timeout(
            key="core.event.listener_timeout.critical_seconds",
            override=critical_timeout_seconds,
            default=5.0,
        )
        self._high_timeout = self._load_timeout(
            key="core.event.listener_timeout.high_seconds",
            override=high_timeout_seconds,
            default=5.0,
        )

        logger.debug(
            "EventBus initialized",
            extra={
                "critical_timeout_seconds": self._critical_timeout,
                "high_timeout_seconds": self._high_timeout,
            },
        )

    # ------------------------------------------------------------------ #
    # Configuration Loading
    # ------------------------------------------------------------------ #

    def _load_timeout(self, key: str, override: Optional[float], default: float) -> float:
        """Resolve a timeout: explicit override, then config, then default."""
        if override is not None:
            return float(override)
        if self._config_manager is None:
            return float(default)
        return float(self._config_manager.get(key, default))

    # ------------------------------------------------------------------ #
    # Listener Validation
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """
        Ensure the callback accepts exactly one positional parameter.

        Raises
        ------
        ValueError
            If the signature does not match.
        """
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            # Built-ins may not expose a signature
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            callback_name = getattr(callback, "__qualname__", None) or repr(callback)
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{callback_name}'"
            )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns
        -------
        str
            Listener identifier, used with `unsubscribe()`.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )
        added = self._registry.add_listener(
            event_name=event_name,
            listener=listener,
            allow_duplicates=allow_duplicates,
        )

        if added:
            logger.debug(
                "EventBus: subscribed listener",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "once": listener.once,
                },
            )
        else:
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )

        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        removed = self._registry.remove_listener(event_name=event_name, identifier=identifier)
        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        """Remove all listeners (tests and full re-initialization)."""
        total = self._registry.clear_all()
        logger.info(
            "EventBus: cleared all listeners",
            extra={"previous_listener_count": total},
        )

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to all matching listeners.

        Returns
        -------
        list[Any]
            Results of awaited (CRITICAL/HIGH/NORMAL) listeners.
        """
        self._published[event_name] = self._published.get(event_name, 0) + 1

        listeners = self._registry.extract_listeners_for_event(event_name=event_name)
        if not listeners:
            logger.debug("EventBus: no listeners for event", extra={"event_name": event_name})
            return []

        user_id = data.get("user_id")
        async with LogContext(
            user_id=str(user_id) if user_id is not None else None,
            component="event_bus",
            operation=event_name,
        ):
            logger.debug(
                "EventBus: executing listeners",
                extra={"event_name": event_name, "listener_count": len(listeners)},
            )
            return await self._scheduler.execute(
                event_name=event_name,
                payload=data,
                listeners=listeners,
                logger=logger,
                critical_timeout=self._critical_timeout,
                high_timeout=self._high_timeout,
            )

    async def drain(self) -> None:
        """Await fire-and-forget listeners still running."""
        await self._scheduler.drain()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return self._registry.get_total_listener_count()
        return self._registry.get_listener_count_for_event(event_name)

    def get_publish_counts(self) -> dict[str, int]:
        return dict(self._published)

    def get_all_events(self) -> list[str]:
        return self._registry.get_all_event_keys()


__all__ = ["EventBus"]

"""
Core event types for the progression EventBus.

Priority Levels
---------------
- CRITICAL (0): sequential, awaited, timeout-protected. Use for state that
  must be consistent before publish() returns (e.g. a ledger mirror).
- HIGH (10): sequential, awaited, timeout-protected. Use for entitlement
  changes such as premium activation after a credit spend.
- NORMAL (50): concurrent, awaited. Use for analytics and feed updates.
- LOW (100): fire-and-forget. Use for audit logging and metrics.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# Payloads should stay JSON-serializable for log aggregation
EventPayload = dict[str, Any]


class ListenerPriority(Enum):
    """
    Priority levels for event listeners (lower value runs earlier).

    Examples
    --------
    >>> ListenerPriority.CRITICAL.value
    0
    """

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


@dataclass(slots=True, frozen=True)
class EventListener:
    """
    A registered listener.

    Attributes
    ----------
    callback:
        Async or sync callable invoked with the event payload.
    priority:
        Determines execution order and concurrency tier.
    identifier:
        Unique string used for de-duplication and unsubscription.
    once:
        Remove the listener before its first execution.
    """

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> EventListener:
        """
        Build a listener, deriving the identifier from the callback when absent.

        Examples
        --------
        >>> listener = EventListener.from_callback(
        ...     event_name="progression.level_up",
        ...     callback=award_premium_trial,
        ...     priority=ListenerPriority.HIGH,
        ...     identifier=None,
        ...     once=False,
        ... )
        >>> listener.identifier
        'perks.award_premium_trial@progression.level_up'
        """
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(
                callback, "__qualname__", getattr(callback, "__name__", "callback")
            )
            identifier = f"{module}.{qualname}@{event_name}"

        return cls(
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )


__all__ = ["CallbackType", "EventListener", "EventPayload", "ListenerPriority"]

"""
Listener failure handling for the EventBus.

A failing listener is logged with full context and never affects the
publisher or the other listeners of the same event.
"""

from __future__ import annotations

from logging import Logger

from seda_progression.core.event.types import EventListener


def handle_listener_error(
    *,
    logger: Logger,
    event_name: str,
    listener: EventListener,
    exc: BaseException,
) -> None:
    """
    Log a listener failure. Never raises.

    Parameters
    ----------
    logger:
        Logger used for the error record.
    event_name:
        Event being processed when the listener failed.
    listener:
        The listener that raised.
    exc:
        The raised exception (or the timeout).
    """
    logger.error(
        "EventBus listener error",
        extra={
            "event_name": event_name,
            "listener_id": listener.identifier,
            "priority": listener.priority.name,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=exc,
    )


__all__ = ["handle_listener_error"]

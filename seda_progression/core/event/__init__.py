"""
Event system for seda progression.

Instance-based async EventBus with priority tiers and wildcard routing.
Progression domain events are published under the `progression.` prefix.
"""

from seda_progression.core.event.bus import EventBus
from seda_progression.core.event.registry import ListenerRegistry, pattern_matches
from seda_progression.core.event.scheduler import EventScheduler
from seda_progression.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventScheduler",
    "ListenerRegistry",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
    "pattern_matches",
]

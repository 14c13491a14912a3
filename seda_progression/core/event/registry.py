"""
Listener storage and lookup for the EventBus.

Supports exact event names ("progression.level_up") and wildcard patterns
("progression.*", "*.credits_earned", "*"). Listeners are kept sorted by
(priority, identifier) so execution order is deterministic.

Registry methods are synchronous: asyncio runs on a single thread, so the
dictionary mutations are atomic between awaits.
"""

from __future__ import annotations

from fnmatch import fnmatchcase

from seda_progression.core.event.types import EventListener


def _sort_key(listener: EventListener) -> tuple[int, str]:
    return (listener.priority.value, listener.identifier)


def pattern_matches(event_name: str, pattern: str) -> bool:
    """
    Check an event name against a subscription pattern.

    Examples
    --------
    >>> pattern_matches("progression.level_up", "progression.*")
    True
    >>> pattern_matches("progression.level_up", "*.level_up")
    True
    >>> pattern_matches("progression.level_up", "economy.*")
    False
    """
    if pattern == "*":
        return True
    if "*" not in pattern:
        return event_name == pattern
    return fnmatchcase(event_name, pattern)


class ListenerRegistry:
    """
    Registry for exact and wildcard listeners.

    Examples
    --------
    >>> registry = ListenerRegistry()
    >>> registry.add_listener("progression.level_up", listener, allow_duplicates=False)
    True
    >>> len(registry.extract_listeners_for_event("progression.level_up"))
    1
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventListener]] = {}
        self._wildcard_listeners: list[tuple[str, EventListener]] = []

    # ------------------------------------------------------------------ #
    # Modification
    # ------------------------------------------------------------------ #

    def add_listener(
        self,
        event_name: str,
        listener: EventListener,
        *,
        allow_duplicates: bool,
    ) -> bool:
        """
        Register a listener. Returns False when prevented as a duplicate.
        """
        if "*" in event_name:
            if not allow_duplicates and any(
                pattern == event_name and existing.identifier == listener.identifier
                for pattern, existing in self._wildcard_listeners
            ):
                return False
            self._wildcard_listeners.append((event_name, listener))
            self._wildcard_listeners.sort(key=lambda entry: _sort_key(entry[1]))
            return True

        listeners = self._listeners.setdefault(event_name, [])
        if not allow_duplicates and any(
            existing.identifier == listener.identifier for existing in listeners
        ):
            return False

        listeners.append(listener)
        listeners.sort(key=_sort_key)
        return True

    def remove_listener(self, event_name: str, identifier: str) -> bool:
        """Remove a listener by identifier. Returns True if one was removed."""
        removed = False

        if event_name in self._listeners:
            before = len(self._listeners[event_name])
            remaining = [
                lst for lst in self._listeners[event_name] if lst.identifier != identifier
            ]
            removed = len(remaining) < before
            if remaining:
                self._listeners[event_name] = remaining
            else:
                del self._listeners[event_name]

        before_wildcards = len(self._wildcard_listeners)
        self._wildcard_listeners = [
            (pattern, lst)
            for pattern, lst in self._wildcard_listeners
            if not (pattern == event_name and lst.identifier == identifier)
        ]
        return removed or len(self._wildcard_listeners) < before_wildcards

    def clear_all(self) -> int:
        """Remove every listener and return the previous total."""
        total = self.get_total_listener_count()
        self._listeners.clear()
        self._wildcard_listeners.clear()
        return total

    # ------------------------------------------------------------------ #
    # Lookup & Once-Removal
    # ------------------------------------------------------------------ #

    def extract_listeners_for_event(self, event_name: str) -> list[EventListener]:
        """
        Collect exact and wildcard listeners for an event, pruning once=True
        listeners from the registry in the same step.
        """
        result: list[EventListener] = []

        exact = self._listeners.get(event_name, [])
        kept_exact = [lst for lst in exact if not lst.once]
        result.extend(exact)
        if kept_exact:
            self._listeners[event_name] = kept_exact
        elif event_name in self._listeners:
            del self._listeners[event_name]

        kept_wildcards: list[tuple[str, EventListener]] = []
        for pattern, listener in self._wildcard_listeners:
            if pattern_matches(event_name, pattern):
                result.append(listener)
                if listener.once:
                    continue
            kept_wildcards.append((pattern, listener))
        self._wildcard_listeners = kept_wildcards

        result.sort(key=_sort_key)
        return result

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count_for_event(self, event_name: str) -> int:
        count = len(self._listeners.get(event_name, []))
        count += sum(
            1
            for pattern, _ in self._wildcard_listeners
            if pattern_matches(event_name, pattern)
        )
        return count

    def get_total_listener_count(self) -> int:
        total = sum(len(listeners) for listeners in self._listeners.values())
        return total + len(self._wildcard_listeners)

    def get_all_event_keys(self) -> list[str]:
        keys: list[str] = list(self._listeners.keys())
        keys.extend(pattern for pattern, _ in self._wildcard_listeners)
        return sorted(set(keys))


__all__ = ["ListenerRegistry", "pattern_matches"]

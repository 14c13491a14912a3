"""
Notification Emitter.

Purpose
-------
Delivers NotificationEvents produced by the Progression Store to the single
observer currently watching a user (one open profile screen, one
dashboard socket).

Semantics
---------
- `on_notification(user_id, callback)` registers exactly one callback per
  user; a new registration replaces the previous one. The returned token
  lets an observer deregister without evicting a newer observer.
- `remove_listener(user_id)` deregisters; later events are dropped, not queued.
- `emit(user_id, events)` delivers a batch in order, at most once per event.
  Sync and async callbacks are both supported. Observer failures are logged
  and never propagate to the Store.

The Store calls `emit` only after the per-user lock has been released.
"""

from __future__ import annotations

import inspect
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union

from seda_progression.core.logging.logger import get_logger
from seda_progression.modules.progression.models import (
    ActionEvent,
    ActionType,
    NotificationEvent,
    NotificationType,
)

logger = get_logger(__name__)

NotificationCallback = Union[
    Callable[[NotificationEvent], Any],
    Callable[[NotificationEvent], Awaitable[Any]],
]


# ============================================================================
# NOTIFICATION BUILDERS
# ============================================================================


def describe_action(event: ActionEvent) -> str:
    """Short human-readable description of what earned the XP."""
    if event.type is ActionType.FAN_TIP:
        return f"Tipped artist ${event.value:,.2f}"
    return {
        ActionType.DJ_TRACK_PLAYED: "Track played in public DJ session",
        ActionType.DJ_UPVOTE_RECEIVED: "Upvote received in DJ session",
        ActionType.DJ_DOWNVOTE_RECEIVED: "Downvote received in DJ session",
        ActionType.FAN_TRACK_PURCHASE: "Purchased track",
        ActionType.FAN_MERCH_PURCHASE: "Purchased merch",
        ActionType.FAN_TICKET_PURCHASE: "Purchased concert ticket",
        ActionType.ARTIST_REPLY_BONUS: "Artist replied to your support",
    }[event.type]


def xp_gained(user_id: str, xp: int, event: ActionEvent) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.XP_GAINED,
        title=f"+{xp} XP",
        description=describe_action(event),
        user_id=user_id,
        xp=xp,
    )


def level_up(user_id: str, level: int, badge: str) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.LEVEL_UP,
        title=f"Level {level}!",
        description=f"You've reached {badge}",
        user_id=user_id,
        level=level,
        badge=badge,
    )


def badge_unlocked(user_id: str, badge: str, level: int) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.BADGE_UNLOCKED,
        title="New Badge!",
        description=f"Unlocked: {badge}",
        user_id=user_id,
        level=level,
        badge=badge,
    )


def credits_earned(user_id: str, credits: int) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.CREDITS_EARNED,
        title=f"+{credits} Credits",
        description="Redeemable for Premium subscription",
        user_id=user_id,
        credits=credits,
    )


def credits_spent(user_id: str, credits: int, reason: str) -> NotificationEvent:
    description = "Premium renewed" if reason == "premium_renewal" else "Premium unlocked"
    return NotificationEvent(
        type=NotificationType.CREDITS_SPENT,
        title=f"-{credits} Credits",
        description=description,
        user_id=user_id,
        credits=credits,
        reason=reason,
    )


def seasonal_cap_reached(user_id: str, cap: int) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.SEASONAL_CAP_REACHED,
        title="Seasonal Credit Cap Reached",
        description=f"You've earned the maximum of {cap} credits this season",
        user_id=user_id,
        credits=cap,
    )


def session_ineligible(user_id: str, reason: str) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.SESSION_INELIGIBLE,
        title="Session Not Eligible",
        description=reason,
        user_id=user_id,
        xp=0,
        reason=reason,
    )


# ============================================================================
# EMITTER
# ============================================================================


@dataclass(frozen=True)
class _Subscription:
    token: str
    callback: NotificationCallback


class NotificationEmitter:
    """
    Single-observer-per-user notification channel.

    Examples
    --------
    >>> emitter = NotificationEmitter()
    >>> token = emitter.on_notification("fan-1", render_toast)
    >>> await emitter.emit("fan-1", [event])
    1
    >>> emitter.remove_listener("fan-1", token)
    True
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[str, _Subscription] = {}

    def on_notification(self, user_id: str, callback: NotificationCallback) -> str:
        """Register `callback` as the user's only observer. Returns a token."""
        if not callable(callback):
            raise TypeError(f"Notification callback must be callable, got {callback!r}")

        replaced = user_id in self._subscriptions
        token = uuid.uuid4().hex
        self._subscriptions[user_id] = _Subscription(token=token, callback=callback)

        logger.debug(
            "Notification listener registered",
            extra={"user_id": user_id, "replaced": replaced},
        )
        return token

    def remove_listener(self, user_id: str, token: Optional[str] = None) -> bool:
        """
        Deregister the user's observer.

        With a token, only the matching registration is removed, so a stale
        screen cannot evict its replacement.
        """
        current = self._subscriptions.get(user_id)
        if current is None:
            return False
        if token is not None and current.token != token:
            return False

        del self._subscriptions[user_id]
        logger.debug("Notification listener removed", extra={"user_id": user_id})
        return True

    def has_listener(self, user_id: str) -> bool:
        return user_id in self._subscriptions

    @property
    def listener_count(self) -> int:
        return len(self._subscriptions)

    async def emit(self, user_id: str, events: Sequence[NotificationEvent]) -> int:
        """
        Deliver `events` in order to the user's observer.

        Returns the number of events delivered without error. Never raises.
        """
        if not events:
            return 0

        subscription = self._subscriptions.get(user_id)
        if subscription is None:
            logger.debug(
                "No notification listener; dropping events",
                extra={
                    "user_id": user_id,
                    "event_types": [event.type.value for event in events],
                },
            )
            return 0

        delivered = 0
        for event in events:
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as exc:
                logger.warning(
                    "Notification listener failed",
                    extra={
                        "user_id": user_id,
                        "event_type": event.type.value,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
        return delivered


__all__ = [
    "NotificationCallback",
    "NotificationEmitter",
    "badge_unlocked",
    "credits_earned",
    "credits_spent",
    "describe_action",
    "level_up",
    "seasonal_cap_reached",
    "session_ineligible",
    "xp_gained",
]

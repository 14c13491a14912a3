"""
Progression domain models.

Purpose
-------
Value objects and the per-user progression record shared by the rule
engine, the store, the decay scheduler and the notification emitter.

Responsibilities
----------------
- ActionType / ActionEvent: typed recordable occurrences
- NotificationType / NotificationEvent: user-facing state transitions
- UserProgression: the authoritative per-user record and its invariants
- SessionSnapshot: summary of a finished DJ session for eligibility checks

Non-Responsibilities
--------------------
- Persistence (handled by repositories)
- Reward arithmetic (handled by the rule engine and store)

Design Decisions
----------------
- Transient values are frozen dataclasses validated in `__post_init__`.
- `UserProgression.level` and `current_badge` are derived from `total_xp`
  through the LevelTable. The store refreshes them on every load and write
  and repositories never persist them.
"""

from __future__ import annotations

import copy
import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional

from seda_progression.modules.shared.exceptions import (
    ErrorSeverity,
    ProgressionError,
    UnknownEventTypeError,
    ValidationError,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# ACTION EVENTS
# ============================================================================


class ActionCategory(str, Enum):
    """Source category an action's XP is credited to."""

    DJ = "dj"
    FAN = "fan"


class ActionType(str, Enum):
    """Recordable action types."""

    DJ_TRACK_PLAYED = "dj_track_played"
    DJ_UPVOTE_RECEIVED = "dj_upvote_received"
    DJ_DOWNVOTE_RECEIVED = "dj_downvote_received"
    FAN_TIP = "fan_tip"
    FAN_TRACK_PURCHASE = "fan_track_purchase"
    FAN_MERCH_PURCHASE = "fan_merch_purchase"
    FAN_TICKET_PURCHASE = "fan_ticket_purchase"
    ARTIST_REPLY_BONUS = "artist_reply_bonus"

    @property
    def category(self) -> ActionCategory:
        if self.value.startswith("dj_"):
            return ActionCategory.DJ
        return ActionCategory.FAN

    @classmethod
    def parse(cls, value: Any) -> "ActionType":
        """
        Coerce a string or enum member into an ActionType.

        Raises
        ------
        UnknownEventTypeError
            If the value names no known action.

        Examples
        --------
        >>> ActionType.parse("fan_tip") is ActionType.FAN_TIP
        True
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownEventTypeError(value) from None


@dataclass(frozen=True)
class ActionEvent:
    """
    A single recordable occurrence.

    Attributes
    ----------
    type : ActionType
        What happened. Plain strings are accepted and parsed.
    value : float
        Dollars for `fan_tip`, an occurrence count otherwise.
    session_id : Optional[str]
        Originating session; with `type` it forms the de-duplication key.
    is_public_session : bool
        DJ-category events earn nothing when False.
    metadata : Mapping[str, Any]
        Free-form context carried into logs and domain events.
    """

    type: ActionType
    value: float = 1
    session_id: Optional[str] = None
    is_public_session: bool = True
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", ActionType.parse(self.type))

        if isinstance(self.value, bool) or not isinstance(self.value, Real):
            raise ValidationError("value", f"must be a number, got {self.value!r}")
        if not math.isfinite(self.value) or self.value < 0:
            raise ValidationError("value", f"must be a finite non-negative number, got {self.value!r}")
        if self.session_id is not None and not str(self.session_id).strip():
            raise ValidationError("session_id", "must be non-empty when provided")

    @property
    def category(self) -> ActionCategory:
        return self.type.category

    @property
    def dedup_key(self) -> Optional[str]:
        """`"<session_id>:<type>"`, or None for events without a session."""
        if self.session_id is None:
            return None
        return f"{self.session_id}:{self.type.value}"


@dataclass(frozen=True)
class SessionSnapshot:
    """Summary of a DJ session used to decide whether it earns XP."""

    session_id: str
    is_public: bool
    listener_count: int
    duration_minutes: float
    tracks_played: int
    engagement_count: int = 0
    upvotes: int = 0
    downvotes: int = 0

    def __post_init__(self) -> None:
        for name in ("listener_count", "tracks_played", "engagement_count", "upvotes", "downvotes"):
            if getattr(self, name) < 0:
                raise ValidationError(name, "cannot be negative")
        if self.duration_minutes < 0:
            raise ValidationError("duration_minutes", "cannot be negative")


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class NotificationType(str, Enum):
    XP_GAINED = "xp_gained"
    LEVEL_UP = "level_up"
    CREDITS_EARNED = "credits_earned"
    BADGE_UNLOCKED = "badge_unlocked"
    SESSION_INELIGIBLE = "session_ineligible"
    CREDITS_SPENT = "credits_spent"
    SEASONAL_CAP_REACHED = "seasonal_cap_reached"


@dataclass(frozen=True)
class NotificationEvent:
    """User-facing report of a committed state transition."""

    type: NotificationType
    title: str
    description: str
    user_id: str
    xp: Optional[int] = None
    credits: Optional[int] = None
    level: Optional[int] = None
    badge: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["created_at"] = self.created_at.isoformat()
        return {key: value for key, value in data.items() if value is not None}


# ============================================================================
# USER PROGRESSION
# ============================================================================


@dataclass
class UserProgression:
    """
    Authoritative per-user progression record.

    Invariants
    ----------
    - total_xp == dj_points + fan_support_xp
    - credits_balance == credits_earned - credits_spent - credits_forfeited
    - every counter is non-negative
    - badges is append-only
    """

    user_id: str
    total_xp: int = 0
    dj_points: int = 0
    fan_support_xp: int = 0
    badges: List[str] = field(default_factory=list)
    credits_balance: int = 0
    credits_earned: int = 0
    credits_spent: int = 0
    credits_forfeited: int = 0
    season_credits: int = 0
    season_id: str = ""
    credit_xp_carry: int = 0
    last_xp_decay: Optional[datetime] = None
    last_active: Optional[datetime] = None
    recent_event_keys: Dict[str, datetime] = field(default_factory=dict)
    current_streak: int = 0
    longest_streak: int = 0
    last_login_on: Optional[date] = None
    created_at: datetime = field(default_factory=utcnow)

    # Derived from total_xp; refreshed by the store, never persisted
    level: int = 1
    current_badge: str = ""

    DERIVED_FIELDS = ("level", "current_badge")

    def copy(self) -> "UserProgression":
        return copy.deepcopy(self)

    def assert_invariants(self) -> None:
        """
        Raises
        ------
        ProgressionError
            If the record violates a ledger or partition invariant.
        """
        problems: List[str] = []
        if self.total_xp != self.dj_points + self.fan_support_xp:
            problems.append("total_xp != dj_points + fan_support_xp")
        if self.credits_balance != self.credits_earned - self.credits_spent - self.credits_forfeited:
            problems.append("credits_balance != earned - spent - forfeited")
        for name in (
            "total_xp",
            "dj_points",
            "fan_support_xp",
            "credits_balance",
            "credits_earned",
            "credits_spent",
            "credits_forfeited",
            "season_credits",
            "credit_xp_carry",
        ):
            if getattr(self, name) < 0:
                problems.append(f"{name} is negative")

        if problems:
            raise ProgressionError(
                "Progression invariant violated",
                details={"user_id": self.user_id, "problems": problems},
                severity=ErrorSeverity.CRITICAL,
                error_code="INVARIANT_VIOLATION",
            )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly snapshot, derived fields included."""
        data = asdict(self)
        for key in ("last_xp_decay", "last_active", "created_at"):
            value = data[key]
            data[key] = value.isoformat() if value is not None else None
        data["last_login_on"] = self.last_login_on.isoformat() if self.last_login_on else None
        data["recent_event_keys"] = {
            key: applied_at.isoformat() for key, applied_at in self.recent_event_keys.items()
        }
        return data


__all__ = [
    "ActionCategory",
    "ActionEvent",
    "ActionType",
    "NotificationEvent",
    "NotificationType",
    "SessionSnapshot",
    "UserProgression",
    "utcnow",
]

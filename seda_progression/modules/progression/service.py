"""
Progression Service
===================

Purpose
-------
Async facade over the progression engine for the rest of seda.fm: DJ
session wrap-up, fan checkout, premium redemption and profile screens.

Domain
------
- Recording actions (`apply_event`, `add_xp`, session and fan helpers)
- Credit redemption for Premium
- Observer registration for a user's notifications
- Read models: progression stats and leaderboards
- Season resets and daily-login streaks

Design Decisions
----------------
- Constructor-injected: the service owns no state of its own. All writes go
  through the ProgressionStore, which serializes them per user.
- Domain exceptions propagate to the caller, except the ones the Store turns
  into results (duplicates become no-ops, low balances become False).

Dependencies
------------
- ProgressionStore: single writer of UserProgression
- SessionEligibilityPolicy: DJ session requirements
- ConfigManager / EventBus / Logger: via BaseService
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Union

from seda_progression.core.config.manager import ConfigManager
from seda_progression.core.event.bus import EventBus
from seda_progression.core.logging.logger import get_logger
from seda_progression.modules.progression import constants
from seda_progression.modules.progression.eligibility import SessionEligibilityPolicy
from seda_progression.modules.progression.models import (
    ActionEvent,
    ActionType,
    SessionSnapshot,
    UserProgression,
)
from seda_progression.modules.progression.notifications import (
    NotificationCallback,
    session_ineligible,
)
from seda_progression.modules.progression.repository import ProgressionRepository
from seda_progression.modules.progression.store import ProgressionStore
from seda_progression.modules.shared.base_service import BaseService
from seda_progression.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from datetime import datetime
    from logging import Logger


# Fan helper actions -> action types
FAN_SUPPORT_ACTIONS: Dict[str, ActionType] = {
    "tip": ActionType.FAN_TIP,
    "track": ActionType.FAN_TRACK_PURCHASE,
    "merch": ActionType.FAN_MERCH_PURCHASE,
    "ticket": ActionType.FAN_TICKET_PURCHASE,
}

DEFAULT_TIP_DOLLARS = 5

LEADERBOARD_KINDS = ("dj", "fan", "combined")


# ============================================================================
# ProgressionService
# ============================================================================


class ProgressionService(BaseService):
    """
    Public API of the progression engine.

    Public Methods
    --------------
    - get_progression() / apply_event() / add_xp()
    - simulate_dj_session() / simulate_fan_support() / record_dj_session()
    - spend_credits() / redeem_premium_month()
    - on_notification() / remove_listener()
    - get_progression_stats() / get_leaderboard()
    - reset_season_credits() / record_daily_login()
    """

    LEVEL_PROGRESSION = constants.LEVEL_PROGRESSION
    XP_REWARDS = constants.XP_REWARDS
    CREDIT_ECONOMY = constants.CREDIT_ECONOMY
    SESSION_REQUIREMENTS = constants.SESSION_REQUIREMENTS
    DECAY_POLICY = constants.DECAY_POLICY

    def __init__(
        self,
        store: ProgressionStore,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        eligibility: Optional[SessionEligibilityPolicy] = None,
    ) -> None:
        """
        Args:
            store: Progression Store (single writer)
            config_manager: Balance configuration manager
            event_bus: Event bus for domain events
            logger: Structured logger instance
            eligibility: DJ session requirements; read from config when omitted
        """
        super().__init__(config_manager, event_bus, logger)
        self._store = store
        self._eligibility = eligibility or SessionEligibilityPolicy.from_config(config_manager)

    @property
    def store(self) -> ProgressionStore:
        return self._store

    # =========================================================================
    # READS
    # =========================================================================

    async def get_progression(self, user_id: str) -> UserProgression:
        """Snapshot of the user's progression; created on first access."""
        return await self._store.get_progression(self.validate_user_id(user_id))

    async def get_progression_stats(self, user_id: str) -> Dict[str, Any]:
        """
        Profile-screen read model.

        Returns:
            Dict with the record's fields plus level progress, the next level
            (or None at max), and remaining seasonal credit headroom.
        """
        record = await self.get_progression(user_id)
        table = self._store.level_table
        progress = table.calculate_level(record.total_xp)
        next_level = table.next_level_info(record.level)
        cap = self._store.seasonal_credit_cap
        headroom = max(0, cap - record.season_credits)

        return {
            **record.to_dict(),
            "level_progress": progress.progress,
            "current_level_xp": progress.current_level_xp,
            "next_level_xp": progress.next_level_xp,
            "xp_to_next_level": (
                next_level.xp_required - record.total_xp if next_level is not None else 0
            ),
            "next_level": next_level.level if next_level is not None else None,
            "next_badge": next_level.badge if next_level is not None else None,
            "is_max_level": next_level is None,
            "seasonal_credit_cap": cap,
            "credits_to_season_cap": headroom,
            "can_earn_more_credits": headroom > 0,
        }

    async def get_leaderboard(self, kind: str = "combined", limit: int = 10) -> List[Dict[str, Any]]:
        """
        Rank users by DJ points, fan support XP or total XP.

        Ties are broken by user id so the ordering is stable.
        """
        if kind not in LEADERBOARD_KINDS:
            raise ValidationError("kind", f"must be one of {LEADERBOARD_KINDS}, got {kind!r}")
        self.validate_positive_int(limit, "limit")

        field_name = {"dj": "dj_points", "fan": "fan_support_xp", "combined": "total_xp"}[kind]
        records = await self._store.list_progressions()
        ranked = sorted(records, key=lambda r: (-getattr(r, field_name), r.user_id))[:limit]

        return [
            {
                "rank": index,
                "user_id": record.user_id,
                "score": getattr(record, field_name),
                "level": record.level,
                "badge": record.current_badge,
            }
            for index, record in enumerate(ranked, start=1)
        ]

    # =========================================================================
    # RECORDING ACTIONS
    # =========================================================================

    async def apply_event(
        self, user_id: str, event: Union[ActionEvent, Mapping[str, Any]]
    ) -> UserProgression:
        """
        Apply one action and return the resulting snapshot.

        Args:
            user_id: User the action belongs to
            event: ActionEvent, or a mapping with `type`, `value`,
                `session_id`, `is_public_session`, `metadata`

        Raises:
            ValidationError: Malformed user id or event
            UnknownEventTypeError: Event type has no XP rule
        """
        self.validate_user_id(user_id)
        if not isinstance(event, ActionEvent):
            event = self._event_from_mapping(event)
        return await self._store.apply_event(user_id, event)

    async def add_xp(self, user_id: str, event: Union[ActionEvent, Mapping[str, Any]]) -> None:
        await self.apply_event(user_id, event)

    @staticmethod
    def _event_from_mapping(data: Mapping[str, Any]) -> ActionEvent:
        if not isinstance(data, Mapping):
            raise ValidationError("event", f"expected ActionEvent or mapping, got {type(data).__name__}")
        if "type" not in data:
            raise ValidationError("type", "event type is required")
        return ActionEvent(
            type=data["type"],
            value=data.get("value", 1),
            session_id=data.get("session_id"),
            is_public_session=data.get("is_public_session", True),
            metadata=dict(data.get("metadata") or {}),
        )

    async def simulate_dj_session(
        self, user_id: str, is_public: bool = True, session_id: Optional[str] = None
    ) -> UserProgression:
        """One track play in a DJ session. Private sessions earn nothing."""
        event = ActionEvent(
            type=ActionType.DJ_TRACK_PLAYED,
            value=1,
            session_id=session_id or f"demo-{uuid.uuid4().hex}",
            is_public_session=is_public,
        )
        return await self.apply_event(user_id, event)

    async def simulate_fan_support(
        self, user_id: str, action: str, value: Optional[float] = None
    ) -> UserProgression:
        """
        Record a fan support action.

        Args:
            action: 'tip', 'track', 'merch' or 'ticket'
            value: Tip amount in dollars (defaults to $5); ignored otherwise
        """
        action_type = FAN_SUPPORT_ACTIONS.get(action)
        if action_type is None:
            raise ValidationError(
                "action", f"must be one of {sorted(FAN_SUPPORT_ACTIONS)}, got {action!r}"
            )

        if action_type is ActionType.FAN_TIP:
            amount = value if value is not None else DEFAULT_TIP_DOLLARS
        else:
            amount = 1
        return await self.apply_event(user_id, ActionEvent(type=action_type, value=amount))

    async def record_dj_session(self, user_id: str, snapshot: SessionSnapshot) -> UserProgression:
        """
        Award XP for a finished DJ session.

        Ineligible sessions produce a single `session_ineligible` notification
        and no XP. Eligible sessions apply track plays, upvotes and downvotes
        under the session's id, so a repeated wrap-up is a no-op.
        """
        self.validate_user_id(user_id)
        verdict = self._eligibility.evaluate(snapshot)

        if not verdict.eligible:
            self.log.info(
                "DJ session not eligible for XP",
                extra={
                    "user_id": user_id,
                    "session_id": snapshot.session_id,
                    "reason": verdict.reason,
                },
            )
            await self._store.emitter.emit(
                user_id, [session_ineligible(user_id, verdict.reason or "")]
            )
            return await self._store.get_progression(user_id)

        self.log_operation(
            "record_dj_session",
            user_id=user_id,
            session_id=snapshot.session_id,
            tracks_played=snapshot.tracks_played,
            upvotes=snapshot.upvotes,
        )

        record = await self._store.get_progression(user_id)
        for action_type, count in (
            (ActionType.DJ_TRACK_PLAYED, snapshot.tracks_played),
            (ActionType.DJ_UPVOTE_RECEIVED, snapshot.upvotes),
            (ActionType.DJ_DOWNVOTE_RECEIVED, snapshot.downvotes),
        ):
            if count == 0:
                continue
            record = await self._store.apply_event(
                user_id,
                ActionEvent(
                    type=action_type,
                    value=count,
                    session_id=snapshot.session_id,
                    is_public_session=snapshot.is_public,
                    metadata={"listener_count": snapshot.listener_count},
                ),
            )
        return record

    # =========================================================================
    # CREDITS
    # =========================================================================

    async def spend_credits(self, user_id: str, amount: int, reason: str) -> bool:
        """
        Spend credits on a premium redemption.

        Returns:
            True when debited, False when the balance is too low

        Raises:
            ValidationError: Non-positive amount or unknown reason
        """
        self.validate_user_id(user_id)
        self.validate_positive_int(amount, "amount")
        return await self._store.spend_credits(user_id, amount, reason)

    async def redeem_premium_month(self, user_id: str, renewal: bool = False) -> bool:
        price = self.get_config(
            "progression.credit_economy.CREDITS_PER_PREMIUM_MONTH",
            constants.CREDIT_ECONOMY["CREDITS_PER_PREMIUM_MONTH"],
        )
        reason = "premium_renewal" if renewal else "premium_upgrade"
        return await self.spend_credits(user_id, int(price), reason)

    async def reset_season_credits(self, user_id: Optional[str] = None) -> int:
        """
        Start a new credit season for one user, or for every user when
        `user_id` is None. Returns the number of records reset.
        """
        if user_id is not None:
            await self._store.reset_season_credits(self.validate_user_id(user_id))
            return 1

        user_ids = await self._store.list_user_ids()
        for uid in user_ids:
            await self._store.reset_season_credits(uid)
        self.log_operation("reset_season_credits", users_reset=len(user_ids))
        return len(user_ids)

    async def record_daily_login(self, user_id: str) -> UserProgression:
        return await self._store.record_daily_login(self.validate_user_id(user_id))

    # =========================================================================
    # OBSERVERS
    # =========================================================================

    def on_notification(self, user_id: str, callback: NotificationCallback) -> str:
        """Register the user's single observer, replacing any previous one."""
        return self._store.emitter.on_notification(self.validate_user_id(user_id), callback)

    def remove_listener(self, user_id: str, token: Optional[str] = None) -> bool:
        return self._store.emitter.remove_listener(user_id, token)


# ============================================================================
# Wiring
# ============================================================================


def build_progression_service(
    config_manager: Optional[ConfigManager] = None,
    *,
    repository: Optional[ProgressionRepository] = None,
    event_bus: Optional[EventBus] = None,
    clock: Optional[Callable[[], "datetime"]] = None,
) -> ProgressionService:
    """
    Assemble a ProgressionService with its store, bus and config.

    Example:
        >>> service = build_progression_service()
        >>> await service.simulate_fan_support("fan-1", "tip", 10)
    """
    config_manager = config_manager or ConfigManager()
    event_bus = event_bus or EventBus(config_manager)
    store = ProgressionStore(
        repository,
        config_manager=config_manager,
        event_bus=event_bus,
        clock=clock,
    )
    return ProgressionService(
        store,
        config_manager,
        event_bus,
        get_logger("seda_progression.modules.progression.service"),
    )


__all__ = [
    "FAN_SUPPORT_ACTIONS",
    "ProgressionService",
    "build_progression_service",
]

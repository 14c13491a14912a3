"""
Progression Store: the single writer of UserProgression.

Purpose
-------
Authoritative owner of every user's XP totals, badges and credit ledger.
All mutations go through this class; everything else reads snapshots.

Responsibilities
----------------
- Serialize writes per user with an asyncio.Lock registry
- Lazily create records, roll seasons, apply due decay, prune replay keys
- Apply rule-engine awards: XP partition, level-up badges and rewards,
  seasonal credit cap
- Debit credits for premium redemption
- Track daily-login streaks
- After the lock is released: hand notifications to the emitter and
  publish `progression.*` domain events on the EventBus

Non-Responsibilities
--------------------
- Reward arithmetic for a single action (XPRuleEngine)
- Storage technology (ProgressionRepository)
- Rendering notifications (observers)

Design Decisions
----------------
- Every write computes on a copy of the stored record and saves the copy
  only when the whole step succeeded, so a failure never leaves a
  partially-updated record.
- Credits beyond the seasonal cap still count toward `credits_earned` and
  are tracked in `credits_forfeited`, keeping
  `credits_balance == credits_earned - credits_spent - credits_forfeited`.
- Level-up credit rewards are granted only with a badge's first unlock, so
  re-climbing after decay earns nothing twice.
- Different users never share a lock.

Dependencies
------------
- LevelTable, XPRuleEngine, DecayPolicy (balance)
- ProgressionRepository (load/persist)
- NotificationEmitter, EventBus (post-commit delivery)
- ConfigManager (seasonal cap, season length, replay window)
"""

from __future__ import annotations

import asyncio
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from seda_progression.core.config.errors import ConfigValidationError
from seda_progression.core.logging.logger import LogContext, get_logger
from seda_progression.modules.progression import constants
from seda_progression.modules.progression import notifications as notify
from seda_progression.modules.progression.decay import NO_DECAY, DecayPolicy, DecayResult
from seda_progression.modules.progression.level_table import LevelTable
from seda_progression.modules.progression.models import (
    ActionCategory,
    ActionEvent,
    NotificationEvent,
    UserProgression,
    utcnow,
)
from seda_progression.modules.progression.notifications import NotificationEmitter
from seda_progression.modules.progression.repository import (
    InMemoryProgressionRepository,
    ProgressionRepository,
)
from seda_progression.modules.progression.rules import XPRuleEngine
from seda_progression.modules.shared.exceptions import (
    DuplicateEventError,
    InsufficientCreditsError,
    ValidationError,
)

if TYPE_CHECKING:
    from seda_progression.core.config.manager import ConfigManager
    from seda_progression.core.event.bus import EventBus

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def season_id_for(moment: datetime, season_length_months: int) -> str:
    """
    Calendar season key.

    Examples
    --------
    >>> season_id_for(datetime(2026, 10, 17), 3)
    '2026-S4'
    """
    return f"{moment.year}-S{(moment.month - 1) // season_length_months + 1}"


@dataclass
class _Outbox:
    """Work collected under the lock and delivered after it is released."""

    notifications: List[NotificationEvent] = field(default_factory=list)
    domain_events: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    def publish(self, event_name: str, **payload: Any) -> None:
        self.domain_events.append((event_name, {"event_name": event_name, **payload}))


class ProgressionStore:
    """
    Single point of truth for progression state.

    Examples
    --------
    >>> store = ProgressionStore(config_manager=config_manager, event_bus=event_bus)
    >>> record = await store.apply_event("fan-1", ActionEvent(type="fan_tip", value=10))
    >>> record.fan_support_xp
    50
    """

    def __init__(
        self,
        repository: Optional[ProgressionRepository] = None,
        *,
        config_manager: Optional["ConfigManager"] = None,
        event_bus: Optional["EventBus"] = None,
        emitter: Optional[NotificationEmitter] = None,
        level_table: Optional[LevelTable] = None,
        rule_engine: Optional[XPRuleEngine] = None,
        decay_policy: Optional[DecayPolicy] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._repository: ProgressionRepository = (
            repository if repository is not None else InMemoryProgressionRepository()
        )
        self._events = event_bus
        self._emitter = emitter or NotificationEmitter()
        self._levels = level_table or LevelTable.from_config(config_manager)
        self._rules = rule_engine or XPRuleEngine.from_config(config_manager)
        self._decay = decay_policy or DecayPolicy.from_config(config_manager)
        self._clock: Clock = clock or utcnow
        # Entries vanish once no caller holds or awaits the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

        economy = (
            config_manager.get_section("progression.credit_economy", constants.CREDIT_ECONOMY)
            if config_manager is not None
            else dict(constants.CREDIT_ECONOMY)
        )
        self._credit_cap = int(economy["SEASONAL_CREDIT_CAP"])
        self._season_length_months = int(economy["SEASON_LENGTH_MONTHS"])
        self._dedup_window = timedelta(
            seconds=(
                config_manager.get("progression.dedup_window_seconds", constants.DEDUP_WINDOW_SECONDS)
                if config_manager is not None
                else constants.DEDUP_WINDOW_SECONDS
            )
        )

        if self._credit_cap < 0:
            raise ConfigValidationError("SEASONAL_CREDIT_CAP cannot be negative")
        if not 1 <= self._season_length_months <= 12 or 12 % self._season_length_months:
            raise ConfigValidationError("SEASON_LENGTH_MONTHS must evenly divide 12")

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def level_table(self) -> LevelTable:
        return self._levels

    @property
    def rule_engine(self) -> XPRuleEngine:
        return self._rules

    @property
    def emitter(self) -> NotificationEmitter:
        return self._emitter

    @property
    def seasonal_credit_cap(self) -> int:
        return self._credit_cap

    def current_season_id(self, now: Optional[datetime] = None) -> str:
        return season_id_for(now or self._clock(), self._season_length_months)

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    @staticmethod
    def _validate_user_id(user_id: Any) -> str:
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("user_id", f"must be a non-empty string, got {user_id!r}")
        return user_id

    def _refresh_derived(self, record: UserProgression) -> UserProgression:
        record.level = self._levels.level_for(record.total_xp)
        record.current_badge = self._levels.badge_for(record.level)
        return record

    def _current_view(self, record: UserProgression, now: datetime) -> UserProgression:
        """Read-only view with an ended season already rolled over. Not persisted."""
        view = record.copy()
        season = self.current_season_id(now)
        if view.season_id != season:
            view.season_id = season
            view.season_credits = 0
        return self._refresh_derived(view)

    def _new_record(self, user_id: str, now: datetime) -> UserProgression:
        record = UserProgression(
            user_id=user_id,
            badges=[self._levels.initial_badge],
            season_id=self.current_season_id(now),
            created_at=now,
        )
        return self._refresh_derived(record)

    async def _load_or_create(self, user_id: str, now: datetime) -> Tuple[UserProgression, bool]:
        record = await self._repository.get(user_id)
        if record is not None:
            return self._refresh_derived(record), False

        logger.info("Creating progression record", extra={"user_id": user_id})
        return self._new_record(user_id, now), True

    def _roll_season(self, record: UserProgression, now: datetime) -> bool:
        season = self.current_season_id(now)
        if record.season_id == season:
            return False
        logger.info(
            "Season rolled over",
            extra={
                "user_id": record.user_id,
                "previous_season": record.season_id,
                "season": season,
                "season_credits": record.season_credits,
            },
        )
        record.season_id = season
        record.season_credits = 0
        return True

    def _prune_event_keys(self, record: UserProgression, now: datetime) -> bool:
        cutoff = now - self._dedup_window
        expired = [key for key, applied_at in record.recent_event_keys.items() if applied_at < cutoff]
        for key in expired:
            del record.recent_event_keys[key]
        return bool(expired)

    def _maintain(
        self, record: UserProgression, now: datetime, outbox: _Outbox
    ) -> bool:
        """Time-driven upkeep run before every write. Returns True if anything changed."""
        changed = self._roll_season(record, now)
        decay = self._apply_decay_to(record, now, outbox)
        changed = self._prune_event_keys(record, now) or changed
        return changed or decay.applied

    def _apply_decay_to(
        self, record: UserProgression, now: datetime, outbox: _Outbox
    ) -> DecayResult:
        old_level = record.level
        result = self._decay.apply(record, now)
        if not result.applied:
            return NO_DECAY

        self._refresh_derived(record)
        logger.info(
            "XP decay applied",
            extra={
                "user_id": record.user_id,
                "steps": result.steps,
                "xp_removed": result.xp_removed,
                "total_xp": record.total_xp,
                "old_level": old_level,
                "new_level": record.level,
            },
        )
        outbox.publish(
            constants.EVENT_XP_DECAYED,
            user_id=record.user_id,
            steps=result.steps,
            xp_removed=result.xp_removed,
            total_xp=record.total_xp,
            old_level=old_level,
            new_level=record.level,
        )
        return result

    def _check_duplicate(self, record: UserProgression, event: ActionEvent) -> None:
        key = event.dedup_key
        if key is not None and key in record.recent_event_keys:
            raise DuplicateEventError(record.user_id, key)

    @staticmethod
    def _debit(record: UserProgression, amount: int) -> None:
        if amount > record.credits_balance:
            raise InsufficientCreditsError(record.user_id, amount, record.credits_balance)
        record.credits_balance -= amount
        record.credits_spent += amount

    async def _commit(self, record: UserProgression) -> UserProgression:
        self._refresh_derived(record)
        record.assert_invariants()
        await self._repository.save(record)
        return record.copy()

    async def _dispatch(self, user_id: str, outbox: _Outbox) -> None:
        """Deliver collected work. Must be called without holding the user lock."""
        if outbox.notifications:
            await self._emitter.emit(user_id, outbox.notifications)
        if self._events is not None:
            for event_name, payload in outbox.domain_events:
                await self._events.publish(event_name, payload)

    # =========================================================================
    # READS
    # =========================================================================

    async def get_progression(self, user_id: str) -> UserProgression:
        """
        Snapshot of the user's record, creating a fresh one on first access.

        A fresh record has 0 XP, level 1 and the initial badge. A season that
        has ended reads as rolled over (`season_credits == 0`) even before the
        next write persists the rollover.
        """
        self._validate_user_id(user_id)
        record = await self._repository.get(user_id)
        if record is not None:
            return self._current_view(record, self._clock())

        async with self._lock_for(user_id):
            record, created = await self._load_or_create(user_id, self._clock())
            if created:
                return await self._commit(record)
            return self._current_view(record, self._clock())

    async def list_progressions(self) -> List[UserProgression]:
        now = self._clock()
        return [self._current_view(record, now) for record in await self._repository.list_all()]

    async def list_user_ids(self) -> List[str]:
        return await self._repository.list_user_ids()

    # =========================================================================
    # APPLY EVENT
    # =========================================================================

    async def apply_event(self, user_id: str, event: ActionEvent) -> UserProgression:
        """
        Apply one action atomically and return the resulting snapshot.

        Replays of an already-applied (session_id, type) pair and ineligible
        DJ events leave XP and credits unchanged.

        Raises
        ------
        ValidationError
            If the user id or event is malformed.
        UnknownEventTypeError
            If the event type has no XP rule.
        """
        self._validate_user_id(user_id)
        if not isinstance(event, ActionEvent):
            raise ValidationError("event", f"expected ActionEvent, got {type(event).__name__}")

        outbox = _Outbox()
        async with LogContext(user_id=user_id, session_id=event.session_id, operation="apply_event"):
            async with self._lock_for(user_id):
                snapshot = await self._apply_locked(user_id, event, outbox)
            await self._dispatch(user_id, outbox)
        return snapshot

    async def _apply_locked(
        self, user_id: str, event: ActionEvent, outbox: _Outbox
    ) -> UserProgression:
        now = self._clock()
        stored, created = await self._load_or_create(user_id, now)
        record = stored.copy()
        changed = self._maintain(record, now, outbox) or created

        try:
            self._check_duplicate(record, event)
        except DuplicateEventError as exc:
            logger.debug(
                "Duplicate event ignored",
                extra={"error_code": exc.error_code, "details": exc.details},
            )
            return await self._commit(record) if changed else record

        award = self._rules.evaluate(event, credit_carry=record.credit_xp_carry)
        if not award.eligible:
            outbox.notifications.append(notify.session_ineligible(user_id, award.reason or ""))
            logger.info(
                "Ineligible event recorded without XP",
                extra={"event_type": event.type.value, "reason": award.reason},
            )
            return await self._commit(record) if changed else record

        old_level = record.level

        # XP partition
        record.total_xp += award.xp_delta
        if award.category is ActionCategory.DJ:
            record.dj_points += award.xp_delta
        else:
            record.fan_support_xp += award.xp_delta
        record.credit_xp_carry = award.credit_carry
        self._refresh_derived(record)
        new_level = record.level

        # First unlock of each newly reached badge carries its credit reward
        unlocked = [
            info
            for info in self._levels.levels_between(old_level, new_level)
            if info.badge not in record.badges
        ]
        record.badges.extend(info.badge for info in unlocked)
        level_rewards = sum(info.credits_reward for info in unlocked)

        # Credit ledger with seasonal cap
        earned = award.credits_delta + level_rewards
        season_before = record.season_credits
        granted = min(earned, max(0, self._credit_cap - season_before))
        forfeited = earned - granted
        record.credits_earned += earned
        record.credits_balance += granted
        record.season_credits += granted
        record.credits_forfeited += forfeited
        cap_reached = earned > 0 and season_before < self._credit_cap <= record.season_credits

        if event.dedup_key is not None:
            record.recent_event_keys[event.dedup_key] = now
        record.last_active = now

        snapshot = await self._commit(record)

        # Notifications, in delivery order
        if award.xp_delta > 0:
            outbox.notifications.append(notify.xp_gained(user_id, award.xp_delta, event))
        if new_level > old_level:
            outbox.notifications.append(
                notify.level_up(user_id, new_level, self._levels.badge_for(new_level))
            )
        for info in unlocked:
            outbox.notifications.append(notify.badge_unlocked(user_id, info.badge, info.level))
        if granted > 0:
            outbox.notifications.append(notify.credits_earned(user_id, granted))
        if cap_reached:
            outbox.notifications.append(notify.seasonal_cap_reached(user_id, self._credit_cap))

        # Domain events
        outbox.publish(
            constants.EVENT_APPLIED,
            user_id=user_id,
            event_type=event.type.value,
            session_id=event.session_id,
            xp_delta=award.xp_delta,
            credits_granted=granted,
            credits_forfeited=forfeited,
            total_xp=snapshot.total_xp,
            level=snapshot.level,
            metadata=dict(event.metadata),
        )
        if new_level > old_level:
            outbox.publish(
                constants.EVENT_LEVEL_UP,
                user_id=user_id,
                old_level=old_level,
                new_level=new_level,
                badge=snapshot.current_badge,
            )
        for info in unlocked:
            outbox.publish(
                constants.EVENT_BADGE_UNLOCKED,
                user_id=user_id,
                badge=info.badge,
                level=info.level,
                credits_reward=info.credits_reward,
            )
        if earned > 0:
            outbox.publish(
                constants.EVENT_CREDITS_EARNED,
                user_id=user_id,
                earned=earned,
                granted=granted,
                forfeited=forfeited,
                season_credits=snapshot.season_credits,
            )
        if cap_reached:
            outbox.publish(
                constants.EVENT_SEASONAL_CAP_REACHED,
                user_id=user_id,
                season_id=snapshot.season_id,
                cap=self._credit_cap,
            )

        logger.info(
            "Progression event applied",
            extra={
                "event_type": event.type.value,
                "xp_delta": award.xp_delta,
                "total_xp": snapshot.total_xp,
                "old_level": old_level,
                "new_level": new_level,
                "credits_granted": granted,
                "credits_forfeited": forfeited,
            },
        )
        return snapshot

    # =========================================================================
    # CREDITS
    # =========================================================================

    async def spend_credits(self, user_id: str, amount: int, reason: str) -> bool:
        """
        Debit credits for a premium redemption.

        Returns False, without mutation, when the balance is too low.

        Raises
        ------
        ValidationError
            If `amount` is not a positive integer or `reason` is unknown.
        """
        self._validate_user_id(user_id)
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("amount", f"must be a positive integer, got {amount!r}")
        if reason not in constants.SPEND_REASONS:
            raise ValidationError(
                "reason", f"must be one of {sorted(constants.SPEND_REASONS)}, got {reason!r}"
            )

        outbox = _Outbox()
        async with LogContext(user_id=user_id, operation="spend_credits"):
            async with self._lock_for(user_id):
                now = self._clock()
                stored, created = await self._load_or_create(user_id, now)
                record = stored.copy()
                changed = self._maintain(record, now, outbox) or created

                try:
                    self._debit(record, amount)
                except InsufficientCreditsError as exc:
                    logger.info(
                        "Credit spend rejected",
                        extra={"error_code": exc.error_code, "details": exc.details},
                    )
                    if changed:
                        await self._commit(record)
                    success = False
                else:
                    snapshot = await self._commit(record)
                    outbox.notifications.append(notify.credits_spent(user_id, amount, reason))
                    outbox.publish(
                        constants.EVENT_CREDITS_SPENT,
                        user_id=user_id,
                        amount=amount,
                        reason=reason,
                        credits_balance=snapshot.credits_balance,
                    )
                    logger.info(
                        "Credits spent",
                        extra={
                            "amount": amount,
                            "reason": reason,
                            "credits_balance": snapshot.credits_balance,
                        },
                    )
                    success = True

            await self._dispatch(user_id, outbox)
        return success

    async def reset_season_credits(self, user_id: str) -> UserProgression:
        """Zero the seasonal counter and bind the record to the current season."""
        self._validate_user_id(user_id)
        outbox = _Outbox()
        async with LogContext(user_id=user_id, operation="reset_season_credits"):
            async with self._lock_for(user_id):
                now = self._clock()
                stored, _ = await self._load_or_create(user_id, now)
                record = stored.copy()
                previous = record.season_credits
                record.season_credits = 0
                record.season_id = self.current_season_id(now)
                snapshot = await self._commit(record)
                outbox.publish(
                    constants.EVENT_SEASON_RESET,
                    user_id=user_id,
                    season_id=snapshot.season_id,
                    previous_season_credits=previous,
                )
            await self._dispatch(user_id, outbox)
        return snapshot

    # =========================================================================
    # DECAY
    # =========================================================================

    async def apply_decay(self, user_id: str, now: Optional[datetime] = None) -> DecayResult:
        """Apply any due decay steps for one user under their lock."""
        self._validate_user_id(user_id)
        outbox = _Outbox()
        async with LogContext(user_id=user_id, operation="apply_decay"):
            async with self._lock_for(user_id):
                stored = await self._repository.get(user_id)
                if stored is None:
                    return NO_DECAY
                record = self._refresh_derived(stored).copy()
                result = self._apply_decay_to(record, now or self._clock(), outbox)
                if result.applied:
                    await self._commit(record)
            await self._dispatch(user_id, outbox)
        return result

    # =========================================================================
    # DAILY LOGIN
    # =========================================================================

    async def record_daily_login(self, user_id: str) -> UserProgression:
        """
        Update the login streak.

        Same day: unchanged. Next day: streak + 1. Longer gap: streak restarts at 1.
        """
        self._validate_user_id(user_id)
        outbox = _Outbox()
        async with LogContext(user_id=user_id, operation="record_daily_login"):
            async with self._lock_for(user_id):
                now = self._clock()
                stored, created = await self._load_or_create(user_id, now)
                record = stored.copy()
                today = now.date()

                if record.last_login_on == today:
                    snapshot = await self._commit(record) if created else record
                else:
                    if record.last_login_on == today - timedelta(days=1):
                        record.current_streak += 1
                    else:
                        record.current_streak = 1
                    record.longest_streak = max(record.longest_streak, record.current_streak)
                    record.last_login_on = today
                    snapshot = await self._commit(record)
                    outbox.publish(
                        constants.EVENT_DAILY_LOGIN,
                        user_id=user_id,
                        current_streak=snapshot.current_streak,
                        longest_streak=snapshot.longest_streak,
                    )
            await self._dispatch(user_id, outbox)
        return snapshot


__all__ = ["ProgressionStore", "season_id_for"]

"""
Inactivity decay.

Policy
------
- Grace period: no decay until `grace_days` after `last_active`.
- Afterwards one step per elapsed `period_days`. Step k ends at
  `last_active + grace + k * period`.
- A step removes `short_rate` of XP while inactivity at the step boundary is
  at most `long_inactivity_days`, and `long_rate` beyond that.
- Each step floors the loss separately for `dj_points` and
  `fan_support_xp`, so the XP partition holds and nothing goes below zero.
- Credits and badges are never touched. The level may drop.

Idempotency
-----------
`last_xp_decay` records the boundary of the last applied step, not the
time decay ran. Planning again for the same `now` finds no new step.

The DecayScheduler sweeps every known user periodically; the Progression
Store also applies due decay lazily on each write.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Mapping, Optional

from seda_progression.core.config.config import Config
from seda_progression.core.config.errors import ConfigValidationError
from seda_progression.core.logging.logger import LogContext, get_logger
from seda_progression.modules.progression.constants import DECAY_POLICY
from seda_progression.modules.progression.models import UserProgression

if TYPE_CHECKING:
    from seda_progression.core.config.manager import ConfigManager
    from seda_progression.modules.progression.store import ProgressionStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class DecayResult:
    """Outcome of applying decay to one record."""

    steps: int
    dj_points_removed: int
    fan_support_xp_removed: int
    last_xp_decay: Optional[datetime]

    @property
    def xp_removed(self) -> int:
        return self.dj_points_removed + self.fan_support_xp_removed

    @property
    def applied(self) -> bool:
        return self.steps > 0


NO_DECAY = DecayResult(steps=0, dj_points_removed=0, fan_support_xp_removed=0, last_xp_decay=None)


class DecayPolicy:
    """
    Step-wise XP decay for inactive users.

    Examples
    --------
    >>> policy = DecayPolicy()
    >>> record = UserProgression("dj-1", total_xp=1000, dj_points=1000, last_active=t0)
    >>> policy.apply(record, now=t0 + timedelta(days=14)).xp_removed
    10
    """

    def __init__(self, settings: Optional[Mapping[str, Any]] = None) -> None:
        merged = dict(DECAY_POLICY)
        merged.update(settings or {})

        self.grace = timedelta(days=merged["grace_days"])
        self.period = timedelta(days=merged["period_days"])
        self.long_inactivity = timedelta(days=merged["long_inactivity_days"])
        self.short_rate = float(merged["short_rate"])
        self.long_rate = float(merged["long_rate"])

        if self.period <= timedelta(0):
            raise ConfigValidationError("decay.period_days must be positive")
        if self.grace < timedelta(0) or self.long_inactivity < timedelta(0):
            raise ConfigValidationError("decay durations cannot be negative")
        for name, rate in (("short_rate", self.short_rate), ("long_rate", self.long_rate)):
            if not 0.0 <= rate <= 1.0:
                raise ConfigValidationError(f"decay.{name} must be within [0, 1], got {rate}")

    @classmethod
    def from_config(cls, config_manager: Optional["ConfigManager"]) -> "DecayPolicy":
        if config_manager is None:
            return cls()
        return cls(config_manager.get_section("progression.decay", DECAY_POLICY))

    def steps_due(self, last_active: datetime, now: datetime) -> int:
        """Total steps elapsed since `last_active` as of `now`."""
        inactive = now - last_active
        if inactive <= self.grace:
            return 0
        return (inactive - self.grace) // self.period

    def _steps_applied(self, record: UserProgression) -> int:
        last_active = record.last_active
        last_decay = record.last_xp_decay
        if last_active is None or last_decay is None or last_decay <= last_active:
            return 0
        return self.steps_due(last_active, last_decay)

    def rate_for_step(self, step: int) -> float:
        inactivity_at_boundary = self.grace + step * self.period
        if inactivity_at_boundary <= self.long_inactivity:
            return self.short_rate
        return self.long_rate

    def apply(self, record: UserProgression, now: datetime) -> DecayResult:
        """
        Apply every due step to `record` in place.

        Returns NO_DECAY when nothing was due.
        """
        if record.last_active is None:
            return NO_DECAY

        due = self.steps_due(record.last_active, now)
        already = self._steps_applied(record)
        if due <= already:
            return NO_DECAY

        dj_before = record.dj_points
        fan_before = record.fan_support_xp
        for step in range(already + 1, due + 1):
            rate = self.rate_for_step(step)
            record.dj_points -= int(record.dj_points * rate)
            record.fan_support_xp -= int(record.fan_support_xp * rate)

        record.total_xp = record.dj_points + record.fan_support_xp
        record.last_xp_decay = record.last_active + self.grace + due * self.period

        return DecayResult(
            steps=due - already,
            dj_points_removed=dj_before - record.dj_points,
            fan_support_xp_removed=fan_before - record.fan_support_xp,
            last_xp_decay=record.last_xp_decay,
        )


# ============================================================================
# SCHEDULER
# ============================================================================


@dataclass(frozen=True)
class DecayRunReport:
    users_scanned: int
    users_decayed: int
    xp_removed: int


class DecayScheduler:
    """
    Periodic decay sweep over every known user.

    Each user is decayed through `ProgressionStore.apply_decay`, which takes
    the same per-user lock as `apply_event`.

    Example:
        >>> scheduler = DecayScheduler(store, interval_seconds=3600)
        >>> scheduler.start()
        >>> ...
        >>> await scheduler.stop()
    """

    def __init__(
        self,
        store: "ProgressionStore",
        interval_seconds: Optional[float] = None,
    ) -> None:
        self._store = store
        self._interval = float(
            interval_seconds if interval_seconds is not None else Config.DECAY_INTERVAL_SECONDS
        )
        if self._interval <= 0:
            raise ConfigValidationError("Decay interval must be positive")

        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self._runs = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def run_count(self) -> int:
        return self._runs

    async def run_once(self, now: Optional[datetime] = None) -> DecayRunReport:
        """Decay every known user once."""
        user_ids = await self._store.list_user_ids()
        decayed = 0
        removed = 0

        async with LogContext(component="decay_scheduler", operation="decay_sweep"):
            for user_id in user_ids:
                result = await self._store.apply_decay(user_id, now=now)
                if result.applied:
                    decayed += 1
                    removed += result.xp_removed

            self._runs += 1
            logger.info(
                "Decay sweep completed",
                extra={
                    "users_scanned": len(user_ids),
                    "users_decayed": decayed,
                    "xp_removed": removed,
                },
            )

        return DecayRunReport(users_scanned=len(user_ids), users_decayed=decayed, xp_removed=removed)

    async def run_forever(self) -> None:
        """Sweep until `stop()` is called."""
        logger.info("DecayScheduler started", extra={"interval_seconds": self._interval})
        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_once()
                except Exception as exc:
                    logger.error(
                        "Decay sweep failed",
                        extra={"error": str(exc), "error_type": type(exc).__name__},
                        exc_info=True,
                    )

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    continue
        finally:
            logger.info("DecayScheduler stopped", extra={"runs": self._runs})

    def start(self) -> None:
        """Schedule `run_forever` as a background task on the running loop."""
        if self.is_running:
            logger.warning("DecayScheduler already running")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(
            self.run_forever(), name="progression-decay-scheduler"
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None


__all__ = [
    "DecayPolicy",
    "DecayResult",
    "DecayRunReport",
    "DecayScheduler",
    "NO_DECAY",
]

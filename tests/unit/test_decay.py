"""
Unit tests for inactivity decay and the decay scheduler.
"""

import asyncio
from datetime import timedelta

import pytest

from seda_progression.core.config.errors import ConfigValidationError
from seda_progression.modules.progression import constants
from seda_progression.modules.progression.decay import DecayPolicy, DecayScheduler
from seda_progression.modules.progression.models import UserProgression
from tests.conftest import START


def inactive_record(days: int, **fields) -> UserProgression:
    values = dict(
        user_id="dj-1",
        total_xp=1000,
        dj_points=600,
        fan_support_xp=400,
        badges=["Bronze Note", "Silver Note", "Gold Note", "Platinum Note", "Diamond Note"],
        last_active=START - timedelta(days=days),
    )
    values.update(fields)
    return UserProgression(**values)


@pytest.fixture
def policy() -> DecayPolicy:
    return DecayPolicy()


@pytest.mark.unit
class TestDecayPolicy:
    """Test step planning and application."""

    def test_no_decay_within_grace_period(self, policy):
        record = inactive_record(days=7)

        result = policy.apply(record, START)

        assert not result.applied
        assert record.total_xp == 1000
        assert record.last_xp_decay is None

    def test_one_step_after_first_period(self, policy):
        record = inactive_record(days=14)

        result = policy.apply(record, START)

        assert result.steps == 1
        assert record.dj_points == 594
        assert record.fan_support_xp == 396
        assert record.total_xp == 990
        assert result.xp_removed == 10

    def test_partial_period_does_not_count(self, policy):
        assert policy.steps_due(START - timedelta(days=13, hours=23), START) == 0

    def test_long_inactivity_uses_higher_rate(self, policy):
        assert policy.rate_for_step(3) == 0.01
        assert policy.rate_for_step(4) == 0.05

    def test_steps_compound_with_floors(self, policy):
        record = inactive_record(days=35, dj_points=1000, fan_support_xp=0)

        result = policy.apply(record, START)

        # days 14, 21, 28 at 1%; day 35 at 5%
        assert result.steps == 4
        assert record.dj_points == 924
        assert record.total_xp == 924

    def test_last_decay_is_step_boundary(self, policy):
        record = inactive_record(days=16)

        policy.apply(record, START)

        assert record.last_xp_decay == START - timedelta(days=2)

    def test_decay_is_idempotent_for_same_time(self, policy):
        record = inactive_record(days=40)
        policy.apply(record, START)
        snapshot = record.copy()

        result = policy.apply(record, START)

        assert not result.applied
        assert record == snapshot

    def test_later_run_applies_only_new_steps(self, policy):
        record = inactive_record(days=14, dj_points=1000, fan_support_xp=0)
        policy.apply(record, START)

        result = policy.apply(record, START + timedelta(days=7))

        assert result.steps == 1
        assert record.dj_points == 981

    def test_decay_never_touches_badges_or_credits(self, policy):
        record = inactive_record(
            days=200, credits_balance=30, credits_earned=30, season_credits=30
        )
        badges = list(record.badges)

        policy.apply(record, START)

        assert record.badges == badges
        assert record.credits_balance == 30
        assert record.total_xp < 1000
        assert record.total_xp == record.dj_points + record.fan_support_xp
        assert record.dj_points >= 0 and record.fan_support_xp >= 0

    def test_small_balances_floor_to_zero_loss(self, policy):
        record = inactive_record(days=14, total_xp=50, dj_points=50, fan_support_xp=0)

        result = policy.apply(record, START)

        assert result.steps == 1
        assert result.xp_removed == 0
        assert record.last_xp_decay is not None

    def test_never_active_user_is_skipped(self, policy):
        record = UserProgression(user_id="new")

        assert not policy.apply(record, START).applied

    def test_invalid_settings_rejected(self):
        with pytest.raises(ConfigValidationError):
            DecayPolicy({"period_days": 0})
        with pytest.raises(ConfigValidationError):
            DecayPolicy({"long_rate": 1.5})


@pytest.mark.asyncio
class TestDecayScheduler:
    """Test the periodic sweep."""

    async def seed(self, repository, user_id, days):
        await repository.save(
            UserProgression(
                user_id=user_id,
                total_xp=1000,
                dj_points=1000,
                badges=["Bronze Note"],
                season_id="2026-S1",
                last_active=START - timedelta(days=days),
            )
        )

    async def test_run_once_decays_inactive_users(self, store, repository):
        await self.seed(repository, "active", days=1)
        await self.seed(repository, "idle", days=14)

        report = await DecayScheduler(store, interval_seconds=60).run_once(now=START)

        assert report.users_scanned == 2
        assert report.users_decayed == 1
        assert report.xp_removed == 10
        assert (await repository.get("idle")).total_xp == 990
        assert (await repository.get("active")).total_xp == 1000

    async def test_second_sweep_is_noop(self, store, repository):
        await self.seed(repository, "idle", days=20)
        scheduler = DecayScheduler(store, interval_seconds=60)

        await scheduler.run_once(now=START)
        report = await scheduler.run_once(now=START)

        assert report.users_decayed == 0
        assert scheduler.run_count == 2

    async def test_decay_publishes_domain_event(self, store, repository, domain_events):
        await self.seed(repository, "idle", days=14)

        await DecayScheduler(store, interval_seconds=60).run_once(now=START)

        name, payload = domain_events.published[0]
        assert name == constants.EVENT_XP_DECAYED
        assert payload["xp_removed"] == 10
        assert payload["user_id"] == "idle"

    async def test_decay_can_lower_level_but_keeps_badges(self, store, repository):
        await repository.save(
            UserProgression(
                user_id="idle",
                total_xp=100,
                fan_support_xp=100,
                badges=["Bronze Note", "Silver Note"],
                season_id="2026-S1",
                last_active=START - timedelta(days=14),
            )
        )

        await store.apply_decay("idle", now=START)
        record = await store.get_progression("idle")

        assert record.total_xp == 99
        assert record.level == 1
        assert record.badges == ["Bronze Note", "Silver Note"]

    async def test_unknown_user_is_noop(self, store):
        result = await store.apply_decay("ghost", now=START)

        assert not result.applied

    async def test_start_and_stop(self, store, repository):
        await self.seed(repository, "idle", days=14)
        scheduler = DecayScheduler(store, interval_seconds=3600)

        scheduler.start()
        for _ in range(50):
            if scheduler.run_count:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

        assert scheduler.run_count == 1
        assert not scheduler.is_running


@pytest.mark.unit
def test_scheduler_interval_must_be_positive(store):
    with pytest.raises(ConfigValidationError):
        DecayScheduler(store, interval_seconds=0)

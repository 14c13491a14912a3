"""
Unit tests for ProgressionService.

Tests the public facade: event recording helpers, DJ session wrap-up,
premium redemption, read models and observer registration.
"""

import pytest

from seda_progression.core.config.manager import ConfigManager
from seda_progression.modules.progression.models import (
    NotificationType,
    SessionSnapshot,
    UserProgression,
)
from seda_progression.modules.progression.service import build_progression_service
from seda_progression.modules.shared.exceptions import ValidationError
from tests.conftest import START


def snapshot(**overrides) -> SessionSnapshot:
    values = dict(
        session_id="set-1",
        is_public=True,
        listener_count=5,
        duration_minutes=30,
        tracks_played=8,
        engagement_count=4,
        upvotes=3,
        downvotes=1,
    )
    values.update(overrides)
    return SessionSnapshot(**values)


@pytest.mark.asyncio
class TestRecordingActions:
    """Test apply_event and the simulation helpers."""

    async def test_apply_event_accepts_mapping(self, service):
        record = await service.apply_event("fan-1", {"type": "fan_tip", "value": 10})

        assert record.fan_support_xp == 50

    async def test_mapping_without_type_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.apply_event("fan-1", {"value": 10})

    async def test_add_xp_returns_nothing(self, service):
        result = await service.add_xp("fan-1", {"type": "fan_merch_purchase"})

        assert result is None
        assert (await service.get_progression("fan-1")).total_xp == 20

    async def test_simulated_sessions_get_distinct_ids(self, service):
        await service.simulate_dj_session("dj-1")
        record = await service.simulate_dj_session("dj-1")

        assert record.dj_points == 2

    async def test_simulated_session_with_fixed_id_applies_once(self, service):
        await service.simulate_dj_session("dj-1", session_id="live-1")
        record = await service.simulate_dj_session("dj-1", session_id="live-1")

        assert record.dj_points == 1

    async def test_private_simulated_session_notifies(self, service, notifications):
        recorder = notifications["dj-1"]

        record = await service.simulate_dj_session("dj-1", is_public=False)

        assert record.dj_points == 0
        assert recorder.types == [NotificationType.SESSION_INELIGIBLE]

    async def test_tip_defaults_to_five_dollars(self, service):
        record = await service.simulate_fan_support("fan-1", "tip")

        assert record.fan_support_xp == 25

    @pytest.mark.parametrize(
        "action, xp",
        [("tip", 100), ("track", 10), ("merch", 20), ("ticket", 25)],
    )
    async def test_fan_support_actions(self, service, action, xp):
        record = await service.simulate_fan_support("fan-1", action, 20)

        assert record.fan_support_xp == xp

    async def test_unknown_fan_action_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.simulate_fan_support("fan-1", "hug")


@pytest.mark.asyncio
class TestRecordDJSession:
    async def test_eligible_session_awards_plays_and_votes(self, service):
        record = await service.record_dj_session("dj-1", snapshot())

        # 8 plays + 3 upvotes; downvotes are worth 0
        assert record.dj_points == 11
        assert "set-1:dj_track_played" in record.recent_event_keys

    async def test_repeated_wrap_up_is_noop(self, service):
        await service.record_dj_session("dj-1", snapshot())
        record = await service.record_dj_session("dj-1", snapshot())

        assert record.dj_points == 11

    async def test_ineligible_session_reports_reason(self, service, notifications):
        recorder = notifications["dj-1"]

        record = await service.record_dj_session("dj-1", snapshot(listener_count=2))

        assert record.dj_points == 0
        assert recorder.types == [NotificationType.SESSION_INELIGIBLE]
        assert recorder.events[0].description == "Need at least 3 listeners"


@pytest.mark.asyncio
class TestPremiumRedemption:
    """Premium month priced at 50 credits."""

    @pytest.fixture
    def config_overrides(self):
        return {"progression.credit_economy.CREDITS_PER_PREMIUM_MONTH": 50}

    async def seed(self, repository, balance):
        record = UserProgression(
            user_id="fan-1",
            badges=["Bronze Note"],
            credits_earned=balance,
            credits_balance=balance,
            season_id="2026-S1",
            last_active=START,
            created_at=START,
        )
        await repository.save(record)
        return record

    async def test_short_balance_fails_without_change(self, service, repository):
        original = await self.seed(repository, 40)

        assert await service.redeem_premium_month("fan-1") is False
        assert await repository.get("fan-1") == original

    async def test_redemption_spends_configured_price(self, service, repository, notifications):
        await self.seed(repository, 60)
        recorder = notifications["fan-1"]

        assert await service.redeem_premium_month("fan-1", renewal=True) is True

        record = await service.get_progression("fan-1")
        assert record.credits_balance == 10
        assert record.credits_spent == 50
        assert recorder.events[0].reason == "premium_renewal"

    async def test_non_positive_spend_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.spend_credits("fan-1", 0, "premium_upgrade")


@pytest.mark.asyncio
class TestReadModels:
    async def test_progression_stats(self, service):
        await service.simulate_fan_support("fan-1", "tip", 20)

        stats = await service.get_progression_stats("fan-1")

        assert stats["total_xp"] == 100
        assert stats["level"] == 2
        assert stats["next_level"] == 3
        assert stats["next_badge"] == "Gold Note"
        assert stats["xp_to_next_level"] == 150
        assert stats["level_progress"] == 0.0
        assert stats["credits_to_season_cap"] == 119
        assert stats["can_earn_more_credits"] is True
        assert stats["is_max_level"] is False

    async def test_stats_after_season_boundary_show_fresh_headroom(self, service, repository, clock):
        await repository.save(
            UserProgression(
                user_id="fan-1",
                total_xp=300,
                fan_support_xp=300,
                badges=["Bronze Note", "Silver Note", "Gold Note"],
                credits_earned=125,
                credits_balance=125,
                season_credits=125,
                season_id="2026-S1",
                last_active=START,
                created_at=START,
            )
        )
        clock.now = START.replace(month=4, day=2)

        stats = await service.get_progression_stats("fan-1")

        assert stats["season_id"] == "2026-S2"
        assert stats["season_credits"] == 0
        assert stats["credits_to_season_cap"] == 125
        assert stats["can_earn_more_credits"] is True
        assert stats["credits_balance"] == 125
        assert (await repository.get("fan-1")).season_credits == 125

    async def test_leaderboards(self, service):
        await service.apply_event(
            "dj-1", {"type": "dj_track_played", "value": 30, "session_id": "s1"}
        )
        await service.simulate_fan_support("fan-1", "tip", 10)
        await service.simulate_fan_support("fan-2", "ticket")

        dj = await service.get_leaderboard("dj")
        fan = await service.get_leaderboard("fan", limit=2)
        combined = await service.get_leaderboard()

        assert [row["user_id"] for row in dj] == ["dj-1", "fan-1", "fan-2"]
        assert [(row["user_id"], row["score"]) for row in fan] == [("fan-1", 50), ("fan-2", 25)]
        assert [row["user_id"] for row in combined] == ["fan-1", "dj-1", "fan-2"]
        assert combined[0]["rank"] == 1

    async def test_unknown_leaderboard_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.get_leaderboard("artists")

    async def test_leaderboard_limit_must_be_positive(self, service):
        with pytest.raises(ValidationError):
            await service.get_leaderboard("fan", limit=0)


@pytest.mark.asyncio
class TestSeasonsAndObservers:
    async def test_reset_all_seasons(self, service):
        await service.simulate_fan_support("fan-1", "tip", 20)
        await service.simulate_fan_support("fan-2", "tip", 20)

        reset = await service.reset_season_credits()

        assert reset == 2
        for user_id in ("fan-1", "fan-2"):
            assert (await service.get_progression(user_id)).season_credits == 0

    async def test_remove_listener_stops_delivery(self, service):
        received = []
        service.on_notification("fan-1", received.append)

        assert service.remove_listener("fan-1") is True
        await service.simulate_fan_support("fan-1", "merch")

        assert received == []

    async def test_daily_login(self, service):
        record = await service.record_daily_login("fan-1")

        assert record.current_streak == 1

    async def test_constants_exposed(self, service):
        assert service.CREDIT_ECONOMY["SEASONAL_CREDIT_CAP"] == 125
        assert service.LEVEL_PROGRESSION[1]["xp_required"] == 100
        assert service.XP_REWARDS["FAN_TIP_PER_DOLLAR"] == 5


@pytest.mark.asyncio
async def test_build_progression_service_wires_defaults():
    service = build_progression_service(ConfigManager(load_yaml=False))

    record = await service.simulate_fan_support("fan-1", "ticket")

    assert record.fan_support_xp == 25
    assert record.badges == ["Bronze Note"]

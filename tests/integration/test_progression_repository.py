"""
Integration Tests for SqlAlchemyProgressionRepository
======================================================

Purpose
-------
Exercise the SQLAlchemy repository against a real SQLite database through
aiosqlite, and run the ProgressionStore on top of it.

Testing Strategy
----------------
- One file-backed SQLite database per test (tmp_path)
- Schema built with `create_schema`
- Records are compared field by field after a round-trip
"""

from datetime import date, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from seda_progression.database.base import create_schema
from seda_progression.modules.progression.models import ActionEvent, UserProgression
from seda_progression.modules.progression.repository import SqlAlchemyProgressionRepository
from seda_progression.modules.progression.store import ProgressionStore
from tests.conftest import START


@pytest_asyncio.fixture
async def database_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'progression.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_repository(database_engine) -> SqlAlchemyProgressionRepository:
    return SqlAlchemyProgressionRepository(
        async_sessionmaker(database_engine, expire_on_commit=False)
    )


def full_record(user_id: str = "dj-1") -> UserProgression:
    return UserProgression(
        user_id=user_id,
        total_xp=350,
        dj_points=300,
        fan_support_xp=50,
        badges=["Bronze Note", "Silver Note", "Gold Note"],
        credits_balance=15,
        credits_earned=120,
        credits_spent=100,
        credits_forfeited=5,
        season_credits=20,
        season_id="2026-S1",
        credit_xp_carry=50,
        last_xp_decay=START - timedelta(days=3),
        last_active=START - timedelta(days=17),
        recent_event_keys={"set-9:dj_track_played": START - timedelta(hours=2)},
        current_streak=4,
        longest_streak=9,
        last_login_on=date(2026, 1, 14),
        created_at=START - timedelta(days=60),
    )


@pytest.mark.integration
@pytest.mark.asyncio
class TestSqlRepository:
    async def test_missing_user_returns_none(self, sql_repository):
        assert await sql_repository.get("nobody") is None

    async def test_round_trip_preserves_every_field(self, sql_repository):
        original = full_record()

        await sql_repository.save(original)
        loaded = await sql_repository.get("dj-1")

        assert loaded is not None
        for name in (
            "total_xp",
            "dj_points",
            "fan_support_xp",
            "badges",
            "credits_balance",
            "credits_earned",
            "credits_spent",
            "credits_forfeited",
            "season_credits",
            "season_id",
            "credit_xp_carry",
            "last_xp_decay",
            "last_active",
            "recent_event_keys",
            "current_streak",
            "longest_streak",
            "last_login_on",
            "created_at",
        ):
            assert getattr(loaded, name) == getattr(original, name), name

    async def test_loaded_datetimes_are_timezone_aware(self, sql_repository):
        await sql_repository.save(full_record())

        loaded = await sql_repository.get("dj-1")

        assert loaded.last_active.tzinfo is not None
        assert loaded.recent_event_keys["set-9:dj_track_played"].tzinfo is not None

    async def test_save_updates_existing_row(self, sql_repository):
        record = full_record()
        await sql_repository.save(record)

        record.total_xp += 10
        record.fan_support_xp += 10
        record.badges.append("Platinum Note")
        await sql_repository.save(record)

        loaded = await sql_repository.get("dj-1")
        assert loaded.total_xp == 360
        assert loaded.fan_support_xp == 60
        assert loaded.badges[-1] == "Platinum Note"
        assert await sql_repository.list_user_ids() == ["dj-1"]

    async def test_listing_is_ordered_by_user_id(self, sql_repository):
        for user_id in ("fan-2", "dj-1", "fan-1"):
            await sql_repository.save(full_record(user_id))

        assert await sql_repository.list_user_ids() == ["dj-1", "fan-1", "fan-2"]
        assert [r.user_id for r in await sql_repository.list_all()] == ["dj-1", "fan-1", "fan-2"]


@pytest.mark.integration
@pytest.mark.asyncio
class TestStoreOverSql:
    @pytest.fixture
    def sql_store(self, sql_repository, config_manager, event_bus, emitter, clock):
        return ProgressionStore(
            sql_repository,
            config_manager=config_manager,
            event_bus=event_bus,
            emitter=emitter,
            clock=clock,
        )

    async def test_events_persist_across_store_instances(
        self, sql_store, sql_repository, config_manager, event_bus, emitter, clock
    ):
        await sql_store.apply_event(
            "fan-1", ActionEvent(type="fan_track_purchase", value=12, session_id="shop-1")
        )

        reopened = ProgressionStore(
            sql_repository,
            config_manager=config_manager,
            event_bus=event_bus,
            emitter=emitter,
            clock=clock,
        )
        record = await reopened.get_progression("fan-1")

        assert record.fan_support_xp == 120
        assert record.level == 2
        assert record.current_badge == "Silver Note"
        assert record.credits_balance == 6
        assert record.credit_xp_carry == 20

    async def test_replay_protection_survives_persistence(self, sql_store, clock):
        event = ActionEvent(type="fan_merch_purchase", session_id="shop-7")
        await sql_store.apply_event("fan-1", event)

        clock.advance(hours=1)
        record = await sql_store.apply_event("fan-1", event)

        assert record.fan_support_xp == 20

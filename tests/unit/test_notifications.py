"""
Unit tests for the notification emitter and notification builders.
"""

import pytest

from seda_progression.modules.progression import notifications as notify
from seda_progression.modules.progression.models import ActionEvent, NotificationType
from seda_progression.modules.progression.notifications import NotificationEmitter


@pytest.fixture
def events():
    return [
        notify.xp_gained("fan-1", 50, ActionEvent(type="fan_tip", value=10)),
        notify.level_up("fan-1", 2, "Silver Note"),
        notify.credits_earned("fan-1", 5),
    ]


@pytest.mark.unit
class TestBuilders:
    """Test notification titles and descriptions."""

    def test_xp_gained_describes_tip(self):
        event = notify.xp_gained("fan-1", 50, ActionEvent(type="fan_tip", value=10))

        assert event.type is NotificationType.XP_GAINED
        assert event.title == "+50 XP"
        assert event.description == "Tipped artist $10.00"
        assert event.xp == 50

    def test_level_up(self):
        event = notify.level_up("fan-1", 3, "Gold Note")

        assert event.title == "Level 3!"
        assert event.description == "You've reached Gold Note"

    def test_credits_spent_renewal(self):
        event = notify.credits_spent("fan-1", 100, "premium_renewal")

        assert event.title == "-100 Credits"
        assert event.description == "Premium renewed"

    def test_session_ineligible_carries_reason(self):
        event = notify.session_ineligible("dj-1", "Need at least 3 listeners")

        assert event.reason == "Need at least 3 listeners"
        assert event.xp == 0


@pytest.mark.asyncio
class TestEmitter:
    """Test single-observer delivery semantics."""

    async def test_delivers_batch_in_order(self, events):
        emitter = NotificationEmitter()
        received = []
        emitter.on_notification("fan-1", received.append)

        delivered = await emitter.emit("fan-1", events)

        assert delivered == 3
        assert received == events

    async def test_async_callbacks_are_awaited(self, events):
        emitter = NotificationEmitter()
        received = []

        async def observer(event):
            received.append(event.type)

        emitter.on_notification("fan-1", observer)
        await emitter.emit("fan-1", events)

        assert received == [
            NotificationType.XP_GAINED,
            NotificationType.LEVEL_UP,
            NotificationType.CREDITS_EARNED,
        ]

    async def test_new_registration_replaces_old(self, events):
        emitter = NotificationEmitter()
        first, second = [], []
        emitter.on_notification("fan-1", first.append)
        emitter.on_notification("fan-1", second.append)

        await emitter.emit("fan-1", events[:1])

        assert first == []
        assert second == events[:1]
        assert emitter.listener_count == 1

    async def test_events_dropped_after_removal(self, events):
        emitter = NotificationEmitter()
        received = []
        emitter.on_notification("fan-1", received.append)

        assert emitter.remove_listener("fan-1") is True
        delivered = await emitter.emit("fan-1", events)

        assert delivered == 0
        assert received == []
        assert not emitter.has_listener("fan-1")

    async def test_stale_token_cannot_remove_replacement(self):
        emitter = NotificationEmitter()
        old_token = emitter.on_notification("fan-1", lambda event: None)
        emitter.on_notification("fan-1", lambda event: None)

        assert emitter.remove_listener("fan-1", old_token) is False
        assert emitter.has_listener("fan-1")

    async def test_failing_observer_is_isolated(self, events):
        emitter = NotificationEmitter()
        received = []

        def flaky(event):
            if event.type is NotificationType.LEVEL_UP:
                raise RuntimeError("render failed")
            received.append(event.type)

        emitter.on_notification("fan-1", flaky)

        delivered = await emitter.emit("fan-1", events)

        assert delivered == 2
        assert received == [NotificationType.XP_GAINED, NotificationType.CREDITS_EARNED]

    async def test_other_users_not_notified(self, events):
        emitter = NotificationEmitter()
        received = []
        emitter.on_notification("fan-2", received.append)

        await emitter.emit("fan-1", events)

        assert received == []

    async def test_non_callable_rejected(self):
        with pytest.raises(TypeError):
            NotificationEmitter().on_notification("fan-1", "not a function")


@pytest.mark.asyncio
class TestStoreDelivery:
    """Notifications are delivered after the store releases the user lock."""

    async def test_observer_can_read_store_during_delivery(self, store, emitter):
        seen = []

        async def observer(event):
            record = await store.get_progression("fan-1")
            seen.append((event.type, record.total_xp))

        emitter.on_notification("fan-1", observer)

        await store.apply_event("fan-1", ActionEvent(type="fan_merch_purchase"))

        assert seen == [(NotificationType.XP_GAINED, 20)]

    async def test_observer_can_write_during_delivery(self, store, emitter):
        async def observer(event):
            if event.type is NotificationType.XP_GAINED and event.xp == 20:
                await store.apply_event("fan-1", ActionEvent(type="artist_reply_bonus"))

        emitter.on_notification("fan-1", observer)

        await store.apply_event("fan-1", ActionEvent(type="fan_merch_purchase"))

        assert (await store.get_progression("fan-1")).total_xp == 30

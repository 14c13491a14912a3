"""
Pytest Configuration and Fixtures for seda-progression Tests
============================================================

Purpose
-------
Shared fixtures for the progression test suite: configuration, a
controllable clock, the store and service, and recorders for notifications
and domain events.

Architecture Notes
------------------
- Unit tests run against InMemoryProgressionRepository (fast, isolated)
- Integration tests use SQLite through aiosqlite (see tests/integration)
- ConfigManager is built with `load_yaml=False` so tests never depend on
  the YAML files shipped in config/
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Tuple

import pytest

from seda_progression.core.config.manager import ConfigManager
from seda_progression.core.event.bus import EventBus
from seda_progression.core.logging.logger import get_logger
from seda_progression.modules.progression.models import NotificationEvent, NotificationType
from seda_progression.modules.progression.notifications import NotificationEmitter
from seda_progression.modules.progression.repository import InMemoryProgressionRepository
from seda_progression.modules.progression.service import ProgressionService
from seda_progression.modules.progression.store import ProgressionStore

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ.setdefault("ENVIRONMENT", "testing")
    os.environ.setdefault("LOG_LEVEL", "DEBUG")


# ============================================================================
# TEST DOUBLES
# ============================================================================


START = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class NotificationRecorder:
    """Observer that keeps every delivered notification."""

    def __init__(self) -> None:
        self.events: List[NotificationEvent] = []

    def __call__(self, event: NotificationEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> List[NotificationType]:
        return [event.type for event in self.events]

    def of_type(self, kind: NotificationType) -> List[NotificationEvent]:
        return [event for event in self.events if event.type is kind]

    def clear(self) -> None:
        self.events.clear()


class DomainEventRecorder:
    """Wildcard EventBus subscriber for `progression.*`."""

    def __init__(self) -> None:
        self.published: List[Tuple[str, Dict[str, Any]]] = []

    async def record(self, payload: Dict[str, Any]) -> None:
        self.published.append((payload["event_name"], payload))

    def names(self) -> List[str]:
        return [name for name, _ in self.published]


# ============================================================================
# CONFIG / CLOCK
# ============================================================================


@pytest.fixture
def config_overrides() -> Dict[str, Any]:
    """Per-test config overrides; tests override this fixture to change balance."""
    return {}


@pytest.fixture
def config_manager(config_overrides) -> ConfigManager:
    manager = ConfigManager(overrides=config_overrides, load_yaml=False)
    manager.load()
    return manager


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


# ============================================================================
# ENGINE FIXTURES
# ============================================================================


@pytest.fixture
def event_bus(config_manager) -> EventBus:
    return EventBus(config_manager)


@pytest.fixture
def domain_events(event_bus) -> DomainEventRecorder:
    recorder = DomainEventRecorder()
    event_bus.subscribe("progression.*", recorder.record)
    return recorder


@pytest.fixture
def repository() -> InMemoryProgressionRepository:
    return InMemoryProgressionRepository()


@pytest.fixture
def emitter() -> NotificationEmitter:
    return NotificationEmitter()


@pytest.fixture
def store(repository, config_manager, event_bus, emitter, clock) -> ProgressionStore:
    return ProgressionStore(
        repository,
        config_manager=config_manager,
        event_bus=event_bus,
        emitter=emitter,
        clock=clock,
    )


@pytest.fixture
def service(store, config_manager, event_bus) -> ProgressionService:
    return ProgressionService(
        store,
        config_manager,
        event_bus,
        get_logger("tests.progression.service"),
    )


@pytest.fixture
def notifications(emitter) -> Dict[str, NotificationRecorder]:
    """
    Recorder factory keyed by user id.

    Usage:
        recorder = notifications["fan-1"]
    """

    class _Recorders(dict):
        def __missing__(self, user_id: str) -> NotificationRecorder:
            recorder = NotificationRecorder()
            emitter.on_notification(user_id, recorder)
            self[user_id] = recorder
            return recorder

    return _Recorders()


# ============================================================================
# MOCKS
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """
    EventBus double with an awaitable `publish`.

    Usage:
        mock_event_bus.publish.assert_awaited_with("progression.level_up", ...)
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus

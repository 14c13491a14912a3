"""
Progression repositories: the load/persist boundary of the Progression Store.

Purpose
-------
The Store owns all progression rules; repositories only move complete
`UserProgression` snapshots in and out of storage. Two implementations:

- InMemoryProgressionRepository: process-local dict, the default engine
  storage and the backbone of the unit tests.
- SqlAlchemyProgressionRepository: async SQLAlchemy over the
  `user_progression` table.

Design Notes
------------
- Repositories store and return copies; callers never share mutable state
  with storage.
- Derived fields (`level`, `current_badge`) are not persisted. The Store
  refreshes them after every load.
- Serialization of concurrent writers for one user is the Store's job
  (per-user locks); repositories do no locking.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol

from sqlalchemy import select

from seda_progression.core.logging.logger import get_logger
from seda_progression.database.models.progression import UserProgressionRecord
from seda_progression.modules.progression.models import UserProgression

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class ProgressionRepository(Protocol):
    """Storage collaborator used by the Progression Store."""

    async def get(self, user_id: str) -> Optional[UserProgression]: ...

    async def save(self, record: UserProgression) -> None: ...

    async def list_all(self) -> List[UserProgression]: ...

    async def list_user_ids(self) -> List[str]: ...


# ============================================================================
# In-memory
# ============================================================================


class InMemoryProgressionRepository:
    """Dict-backed repository holding deep copies of each record."""

    def __init__(self) -> None:
        self._records: Dict[str, UserProgression] = {}

    async def get(self, user_id: str) -> Optional[UserProgression]:
        record = self._records.get(user_id)
        return record.copy() if record is not None else None

    async def save(self, record: UserProgression) -> None:
        self._records[record.user_id] = record.copy()

    async def list_all(self) -> List[UserProgression]:
        return [self._records[user_id].copy() for user_id in sorted(self._records)]

    async def list_user_ids(self) -> List[str]:
        return sorted(self._records)

    def __len__(self) -> int:
        return len(self._records)


# ============================================================================
# SQLAlchemy
# ============================================================================


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite returns naive datetimes; stored values are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_domain(row: UserProgressionRecord) -> UserProgression:
    return UserProgression(
        user_id=row.user_id,
        total_xp=row.total_xp,
        dj_points=row.dj_points,
        fan_support_xp=row.fan_support_xp,
        badges=list(row.badges or []),
        credits_balance=row.credits_balance,
        credits_earned=row.credits_earned,
        credits_spent=row.credits_spent,
        credits_forfeited=row.credits_forfeited,
        season_credits=row.season_credits,
        season_id=row.season_id,
        credit_xp_carry=row.credit_xp_carry,
        last_xp_decay=_as_utc(row.last_xp_decay),
        last_active=_as_utc(row.last_active),
        recent_event_keys={
            key: _as_utc(datetime.fromisoformat(applied_at))
            for key, applied_at in (row.recent_event_keys or {}).items()
        },
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_login_on=row.last_login_on,
        created_at=_as_utc(row.created_at),
    )


def _apply_to_row(row: UserProgressionRecord, record: UserProgression) -> None:
    row.total_xp = record.total_xp
    row.dj_points = record.dj_points
    row.fan_support_xp = record.fan_support_xp
    row.badges = list(record.badges)
    row.credits_balance = record.credits_balance
    row.credits_earned = record.credits_earned
    row.credits_spent = record.credits_spent
    row.credits_forfeited = record.credits_forfeited
    row.season_credits = record.season_credits
    row.season_id = record.season_id
    row.credit_xp_carry = record.credit_xp_carry
    row.last_xp_decay = record.last_xp_decay
    row.last_active = record.last_active
    row.recent_event_keys = {
        key: applied_at.isoformat() for key, applied_at in record.recent_event_keys.items()
    }
    row.current_streak = record.current_streak
    row.longest_streak = record.longest_streak
    row.last_login_on = record.last_login_on
    row.created_at = record.created_at


class SqlAlchemyProgressionRepository:
    """
    Async SQLAlchemy repository over `user_progression`.

    Each call opens its own session; `save` runs in a transaction.

    Example:
        >>> engine = create_async_engine("sqlite+aiosqlite:///progression.db")
        >>> await create_schema(engine)
        >>> repo = SqlAlchemyProgressionRepository(async_sessionmaker(engine, expire_on_commit=False))
    """

    def __init__(self, session_factory: "async_sessionmaker[AsyncSession]") -> None:
        self._session_factory = session_factory

    async def get(self, user_id: str) -> Optional[UserProgression]:
        async with self._session_factory() as session:
            row = await session.get(UserProgressionRecord, user_id)
            return _to_domain(row) if row is not None else None

    async def save(self, record: UserProgression) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(UserProgressionRecord, record.user_id)
                if row is None:
                    row = UserProgressionRecord(user_id=record.user_id)
                    session.add(row)
                _apply_to_row(row, record)

        logger.debug(
            "Progression record persisted",
            extra={"user_id": record.user_id, "total_xp": record.total_xp},
        )

    async def list_all(self) -> List[UserProgression]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserProgressionRecord).order_by(UserProgressionRecord.user_id)
            )
            return [_to_domain(row) for row in result.scalars().all()]

    async def list_user_ids(self) -> List[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserProgressionRecord.user_id).order_by(UserProgressionRecord.user_id)
            )
            return list(result.scalars().all())


__all__ = [
    "InMemoryProgressionRepository",
    "ProgressionRepository",
    "SqlAlchemyProgressionRepository",
]

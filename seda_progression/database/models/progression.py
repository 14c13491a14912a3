"""
UserProgressionRecord: persisted per-user progression state.

Schema only. Stores every non-derived field of the domain record; `level`
and `current_badge` are recomputed from `total_xp` on load and have no
columns.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, BigInteger, Date, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from seda_progression.database.base import Base, TimestampMixin


class UserProgressionRecord(Base, TimestampMixin):
    """
    Progression ledger row, one per user.

    Leaderboard queries order by `total_xp`, `dj_points` and
    `fan_support_xp`, hence the indexes.
    """

    __tablename__ = "user_progression"
    __table_args__ = (
        Index("ix_user_progression_total_xp", "total_xp"),
        Index("ix_user_progression_dj_points", "dj_points"),
        Index("ix_user_progression_fan_support_xp", "fan_support_xp"),
        Index("ix_user_progression_last_active", "last_active"),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # XP
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    dj_points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    fan_support_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    badges: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # Credit ledger
    credits_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    credits_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    credits_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    credits_forfeited: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    season_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    season_id: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    credit_xp_carry: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Activity
    last_xp_decay: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_active: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    recent_event_keys: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Daily login streak
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_login_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<UserProgressionRecord(user_id={self.user_id!r}, total_xp={self.total_xp}, "
            f"credits_balance={self.credits_balance})>"
        )

"""
Database models package.

SQLAlchemy 2.0 ORM models (Mapped[] + mapped_column()), schema only.
"""

from seda_progression.database.base import Base
from seda_progression.database.models.progression import UserProgressionRecord

__all__ = ["Base", "UserProgressionRecord"]

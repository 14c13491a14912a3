"""Persistence schema for the SQLAlchemy progression repository."""

from seda_progression.database.base import Base, TimestampMixin, create_schema

__all__ = ["Base", "TimestampMixin", "create_schema"]

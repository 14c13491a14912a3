"""
seda-progression Test Suite
===========================

Test Organization
-----------------
- tests/unit/          : Fast unit tests over the in-memory repository
- tests/unit/domain/   : Pure domain model tests
- tests/integration/   : SQLAlchemy repository against SQLite (aiosqlite)

Testing Philosophy
------------------
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""

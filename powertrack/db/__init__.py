"""
Persistence package: ORM models, async session factory, Alembic migrations.

CHANGELOG:
- 2026-04-02: Initial creation (STORY-001)

TODO:
- None
"""

"""
Best-effort Redis cache helpers.

CHANGELOG:
- 2026-04-12: Initial creation (STORY-011)

TODO:
- None
"""

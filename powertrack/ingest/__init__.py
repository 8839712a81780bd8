"""
Kafka ingestion daemon package.

CHANGELOG:
- 2026-04-04: Initial creation (STORY-005)

TODO:
- None
"""

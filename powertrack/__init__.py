"""
PowerTrack grid analytics backend.

Telemetry ingestion (Kafka -> TimescaleDB), analytics services, and the
FastAPI application that exposes them.

CHANGELOG:
- 2026-04-02: Initial creation (STORY-001)
"""

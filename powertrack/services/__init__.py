"""
Domain services: ingestion, aggregation, merge, outages, warnings, energy
statistics, pricing, reference data and reports.

CHANGELOG:
- 2026-04-04: Initial creation (STORY-005)

TODO:
- None
"""

"""
Health check endpoint for the PowerTrack API.

Provides a simple GET /health endpoint that returns {"status": "ok"} with
HTTP 200. Intended for container health checks and internal monitoring.

CHANGELOG:
- 2026-04-02: Initial creation (STORY-001)

TODO:
- None
"""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Return a simple health status."""
    return {"status": "ok"}

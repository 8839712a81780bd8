"""
Application configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Shared by the API process and the ingestion daemon; each process reads only
the values it needs.

CHANGELOG:
- 2026-04-20: Add usage lookback and green energy window (STORY-019)
- 2026-04-09: Add outage detection thresholds and clustering radius (STORY-014)
- 2026-04-02: Initial creation (STORY-001)

TODO:
- None
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """PowerTrack configuration.

    Attributes:
        database_url: SQLAlchemy async URL (postgresql+asyncpg://...).
        redis_url: Redis URL for the buying price cache.
        cache_ttl_s: TTL of cached buying price entries.
        kafka_bootstrap_servers: Comma-separated Kafka broker list.
        kafka_client_id: Client id reported to the brokers.
        consumer_restart_delay_s: Delay before a failed topic consumer is
            restarted by the supervisor.
        outage_threshold_min: Lookback window for standard consumers.
        outage_hp_threshold_min: Lookback window for high-priority consumers.
        outage_proximity_km: Maximum distance between two directly connected
            outage points.
        outage_min_points: Minimum cluster size (including the point itself).
        usage_lookback_min: Window used for grid utilisation warnings.
        green_energy_lookback_h: Default window for green energy statistics.
        periodic_reports_enabled: Start the report scheduler with the API.
        cors_origins: Comma-separated list of allowed CORS origins.
    """

    database_url: str
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl_s: int = 5

    kafka_bootstrap_servers: str = "localhost:9092"
    kafka_client_id: str = "powertrack"
    consumer_restart_delay_s: float = 5.0

    outage_threshold_min: int = 30
    outage_hp_threshold_min: int = 5
    outage_proximity_km: float = 1.0
    outage_min_points: int = 2

    usage_lookback_min: int = 60
    green_energy_lookback_h: int = 24

    periodic_reports_enabled: bool = False
    cors_origins: str = "http://localhost:3001"

    @field_validator("database_url")
    @classmethod
    def database_url_must_be_async(cls, v: str) -> str:
        """Require an asyncpg URL, the only driver the engine is built for."""
        if not v.startswith("postgresql+asyncpg://"):
            raise ValueError(
                "DATABASE_URL must use the postgresql+asyncpg:// scheme"
            )
        return v

    @field_validator("outage_threshold_min", "outage_hp_threshold_min")
    @classmethod
    def thresholds_must_be_positive(cls, v: int) -> int:
        """Validate outage lookback windows are at least one minute."""
        if v < 1:
            raise ValueError("Outage thresholds must be >= 1 minute")
        return v

    @field_validator("outage_proximity_km")
    @classmethod
    def proximity_must_be_positive(cls, v: float) -> float:
        """Validate the clustering radius is strictly positive."""
        if v <= 0:
            raise ValueError("OUTAGE_PROXIMITY_KM must be > 0")
        return v

    @field_validator("outage_min_points")
    @classmethod
    def min_points_must_be_valid(cls, v: int) -> int:
        """Validate DBSCAN minimum cluster size."""
        if v < 1:
            raise ValueError("OUTAGE_MIN_POINTS must be >= 1")
        return v

    @model_validator(mode="after")
    def _hp_window_not_longer(self) -> "Settings":
        """High-priority consumers must not tolerate longer outages."""
        if self.outage_hp_threshold_min > self.outage_threshold_min:
            raise ValueError(
                "OUTAGE_HP_THRESHOLD_MIN must be <= OUTAGE_THRESHOLD_MIN"
            )
        return self

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def kafka_broker_list(self) -> list[str]:
        return [
            b.strip() for b in self.kafka_bootstrap_servers.split(",") if b.strip()
        ]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings instance."""
    return Settings()

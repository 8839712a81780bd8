"""
SQLAlchemy ORM models for the PowerTrack database.

Reference tables (suburbs, consumers, generators, goal and warning catalog,
reports) are plain relational tables. Telemetry tables are TimescaleDB
hypertables partitioned on ``date`` with a composite primary key on
(entity, date) so that replayed stream messages are idempotent.

CHANGELOG:
- 2026-04-21: Add report table (STORY-021)
- 2026-04-18: Add goal_type and warning_type catalog (STORY-017)
- 2026-04-04: Add ingested_at audit column to telemetry tables (STORY-005)
- 2026-04-02: Initial creation (STORY-001)

TODO:
- None
"""

import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Double,
    ForeignKey,
    Integer,
    Numeric,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all PowerTrack ORM models."""

    pass


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class Suburb(Base):
    """Geographic grouping of consumers and generators."""

    __tablename__ = "suburb"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    postcode: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    latitude: Mapped[float] = mapped_column(Double, nullable=False)
    longitude: Mapped[float] = mapped_column(Double, nullable=False)

    def __repr__(self) -> str:
        return f"Suburb(id={self.id!r}, name={self.name!r})"


class Consumer(Base):
    """A metered premises.

    Attributes:
        id: Consumer identifier (stream message key).
        suburb_id: Suburb the premises belongs to.
        street_address: Postal address shown to operators.
        high_priority: Premises where an outage is critical (hospitals,
            life-support customers). Uses the shorter outage window.
        latitude: WGS84 latitude in degrees.
        longitude: WGS84 longitude in degrees.
        email_address: Contact address for periodic reports (nullable).
    """

    __tablename__ = "consumer"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    suburb_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("suburb.id"), nullable=False
    )
    street_address: Mapped[str] = mapped_column(Text, nullable=False)
    high_priority: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    latitude: Mapped[float] = mapped_column(Double, nullable=False)
    longitude: Mapped[float] = mapped_column(Double, nullable=False)
    email_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"Consumer(id={self.id!r}, suburb_id={self.suburb_id!r}, "
            f"high_priority={self.high_priority!r})"
        )


class GeneratorType(Base):
    """Generation technology (coal, wind, solar, ...)."""

    __tablename__ = "generator_type"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    renewable: Mapped[bool] = mapped_column(Boolean, nullable=False)


class EnergyGenerator(Base):
    """A generating unit located in a suburb."""

    __tablename__ = "energy_generator"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    suburb_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("suburb.id"), nullable=False
    )
    generator_type_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("generator_type.id"), nullable=False
    )


# ---------------------------------------------------------------------------
# Telemetry hypertables
# ---------------------------------------------------------------------------


class SuburbConsumption(Base):
    """Suburb-level consumption sample (kW at ``date``)."""

    __tablename__ = "suburb_consumption"

    suburb_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("suburb.id"), primary_key=True
    )
    date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True
    )
    amount: Mapped[float] = mapped_column(Numeric, nullable=False)
    ingested_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class ConsumerConsumption(Base):
    """Consumer-level consumption sample (kW at ``date``)."""

    __tablename__ = "consumer_consumption"

    consumer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("consumer.id"), primary_key=True
    )
    date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True
    )
    amount: Mapped[float] = mapped_column(Numeric, nullable=False)
    ingested_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class EnergyGeneration(Base):
    """Generator output sample (kW at ``date``)."""

    __tablename__ = "energy_generation"

    energy_generator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("energy_generator.id"), primary_key=True
    )
    date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True
    )
    amount: Mapped[float] = mapped_column(Numeric, nullable=False)
    ingested_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class SpotPrice(Base):
    """Wholesale spot price sample ($/kWh at ``date``)."""

    __tablename__ = "spot_price"

    date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True
    )
    amount: Mapped[float] = mapped_column(Numeric, nullable=False)
    ingested_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class SellingPrice(Base):
    """Retail selling price sample ($/kWh at ``date``)."""

    __tablename__ = "selling_price"

    date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True
    )
    amount: Mapped[float] = mapped_column(Numeric, nullable=False)
    ingested_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


# ---------------------------------------------------------------------------
# Goal / warning catalog
# ---------------------------------------------------------------------------


class GoalType(Base):
    """Operational goal grouping one or more warning types.

    Attributes:
        target_type: Audience of the goal, ``retailer`` or ``consumer``.
    """

    __tablename__ = "goal_type"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    target_type: Mapped[str] = mapped_column(Text, nullable=False)


class WarningType(Base):
    """Threshold rule evaluated by the warning service.

    Attributes:
        category: Rule identifier (outage_hp, high_cost, high_usage, ...).
        trigger_greater_than: Fire when the metric is above ``target``
            (True) or below it (False).
        target: Threshold value.
    """

    __tablename__ = "warning_type"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    goal_type_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("goal_type.id"), nullable=False
    )
    category: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    trigger_greater_than: Mapped[bool] = mapped_column(Boolean, nullable=False)
    target: Mapped[float] = mapped_column(Numeric, nullable=False)

    def __repr__(self) -> str:
        op = ">" if self.trigger_greater_than else "<"
        return f"WarningType(category={self.category!r}, {op} {self.target!r})"


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class Report(Base):
    """Stored report parameters. Report bodies are recomputed on read."""

    __tablename__ = "report"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    start_date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    end_date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    suburb_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("suburb.id"), nullable=True
    )
    consumer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("consumer.id"), nullable=True
    )

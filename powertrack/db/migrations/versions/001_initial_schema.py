"""
Initial schema: reference tables plus telemetry hypertables.

Enables the TimescaleDB extension, creates the suburb/consumer/generator
reference tables, the goal and warning catalog, the report table, and the
five telemetry tables. Telemetry tables get a composite primary key on
(entity, date) (or date alone for the system-wide price series) and are
converted to hypertables partitioned on ``date``.

Revision ID: 001
Revises: None
Create Date: 2026-04-02

CHANGELOG:
- 2026-04-21: Add report table (STORY-021)
- 2026-04-18: Add goal_type and warning_type tables (STORY-017)
- 2026-04-02: Initial creation (STORY-001)

TODO:
- None
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# Revision identifiers used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# Hypertable name -> chunk interval.
_HYPERTABLES: dict[str, str] = {
    "suburb_consumption": "7 days",
    "consumer_consumption": "1 day",
    "energy_generation": "7 days",
    "spot_price": "30 days",
    "selling_price": "30 days",
}


def _sample_columns() -> list[sa.Column]:
    """Columns shared by every telemetry table."""
    return [
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("amount", sa.Numeric(), nullable=False),
        sa.Column("ingested_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create extension, reference tables, telemetry hypertables."""
    op.execute("CREATE EXTENSION IF NOT EXISTS timescaledb")

    op.create_table(
        "suburb",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("postcode", sa.Integer(), nullable=False),
        sa.Column("state", sa.Text(), nullable=False),
        sa.Column("latitude", sa.Double(), nullable=False),
        sa.Column("longitude", sa.Double(), nullable=False),
    )
    op.create_table(
        "consumer",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "suburb_id", sa.Integer(), sa.ForeignKey("suburb.id"), nullable=False
        ),
        sa.Column("street_address", sa.Text(), nullable=False),
        sa.Column(
            "high_priority",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("latitude", sa.Double(), nullable=False),
        sa.Column("longitude", sa.Double(), nullable=False),
        sa.Column("email_address", sa.Text(), nullable=True),
    )
    op.create_table(
        "generator_type",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category", sa.Text(), nullable=False, unique=True),
        sa.Column("renewable", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "energy_generator",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column(
            "suburb_id", sa.Integer(), sa.ForeignKey("suburb.id"), nullable=False
        ),
        sa.Column(
            "generator_type_id",
            sa.Integer(),
            sa.ForeignKey("generator_type.id"),
            nullable=False,
        ),
    )

    op.create_table(
        "suburb_consumption",
        sa.Column(
            "suburb_id", sa.Integer(), sa.ForeignKey("suburb.id"), nullable=False
        ),
        *_sample_columns(),
        sa.PrimaryKeyConstraint("suburb_id", "date"),
    )
    op.create_table(
        "consumer_consumption",
        sa.Column(
            "consumer_id",
            sa.Integer(),
            sa.ForeignKey("consumer.id"),
            nullable=False,
        ),
        *_sample_columns(),
        sa.PrimaryKeyConstraint("consumer_id", "date"),
    )
    op.create_table(
        "energy_generation",
        sa.Column(
            "energy_generator_id",
            sa.Integer(),
            sa.ForeignKey("energy_generator.id"),
            nullable=False,
        ),
        *_sample_columns(),
        sa.PrimaryKeyConstraint("energy_generator_id", "date"),
    )
    op.create_table(
        "spot_price",
        *_sample_columns(),
        sa.PrimaryKeyConstraint("date"),
    )
    op.create_table(
        "selling_price",
        *_sample_columns(),
        sa.PrimaryKeyConstraint("date"),
    )

    op.create_table(
        "goal_type",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("target_type", sa.Text(), nullable=False),
        sa.CheckConstraint(
            "target_type IN ('retailer', 'consumer')",
            name="ck_goal_type_target_type",
        ),
    )
    op.create_table(
        "warning_type",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "goal_type_id",
            sa.Integer(),
            sa.ForeignKey("goal_type.id"),
            nullable=False,
        ),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("trigger_greater_than", sa.Boolean(), nullable=False),
        sa.Column("target", sa.Numeric(), nullable=False),
    )

    op.create_table(
        "report",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "suburb_id", sa.Integer(), sa.ForeignKey("suburb.id"), nullable=True
        ),
        sa.Column(
            "consumer_id",
            sa.Integer(),
            sa.ForeignKey("consumer.id"),
            nullable=True,
        ),
        sa.CheckConstraint(
            "suburb_id IS NULL OR consumer_id IS NULL",
            name="ck_report_single_scope",
        ),
    )

    for table, chunk in _HYPERTABLES.items():
        op.execute(
            "SELECT create_hypertable("
            f"'{table}', 'date', "
            f"chunk_time_interval => INTERVAL '{chunk}', "
            "if_not_exists => TRUE"
            ")"
        )


def downgrade() -> None:
    """Drop all PowerTrack tables.

    Note: Does not drop the timescaledb extension as other tables may use it.
    """
    for table in (
        "report",
        "warning_type",
        "goal_type",
        "selling_price",
        "spot_price",
        "energy_generation",
        "consumer_consumption",
        "suburb_consumption",
        "energy_generator",
        "generator_type",
        "consumer",
        "suburb",
    ):
        op.drop_table(table)

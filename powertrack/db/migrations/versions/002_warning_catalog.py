"""
Seed the goal and warning catalog.

Inserts the default goal types and the warning rules the warning service
understands. Targets are operational defaults and can be tuned in place
with plain UPDATE statements.

Revision ID: 002
Revises: 001
Create Date: 2026-04-18

CHANGELOG:
- 2026-04-24: Add high_spot_price rule (STORY-023)
- 2026-04-18: Initial creation (STORY-017)

TODO:
- None
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# Revision identifiers used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_goal_type = sa.table(
    "goal_type",
    sa.column("id", sa.Integer),
    sa.column("category", sa.Text),
    sa.column("description", sa.Text),
    sa.column("target_type", sa.Text),
)

_warning_type = sa.table(
    "warning_type",
    sa.column("id", sa.Integer),
    sa.column("goal_type_id", sa.Integer),
    sa.column("category", sa.Text),
    sa.column("description", sa.Text),
    sa.column("trigger_greater_than", sa.Boolean),
    sa.column("target", sa.Numeric),
)

GOAL_TYPES = [
    {
        "id": 1,
        "category": "reliability",
        "description": "Keep priority consumers supplied",
        "target_type": "retailer",
    },
    {
        "id": 2,
        "category": "grid_balance",
        "description": "Keep grid utilisation within safe bounds",
        "target_type": "retailer",
    },
    {
        "id": 3,
        "category": "cost",
        "description": "Keep energy affordable",
        "target_type": "retailer",
    },
    {
        "id": 4,
        "category": "sustainability",
        "description": "Increase the renewable share of generation",
        "target_type": "retailer",
    },
    {
        "id": 5,
        "category": "cost",
        "description": "Reduce household energy spend",
        "target_type": "consumer",
    },
]

WARNING_TYPES = [
    {
        "id": 1,
        "goal_type_id": 1,
        "category": "outage_hp",
        "description": "High priority consumer without power",
        "trigger_greater_than": True,
        "target": 0,
    },
    {
        "id": 2,
        "goal_type_id": 2,
        "category": "high_usage",
        "description": "Consumption is close to generation capacity",
        "trigger_greater_than": True,
        "target": 0.9,
    },
    {
        "id": 3,
        "goal_type_id": 2,
        "category": "low_usage",
        "description": "Generation far exceeds consumption",
        "trigger_greater_than": False,
        "target": 0.2,
    },
    {
        "id": 4,
        "goal_type_id": 3,
        "category": "high_spot_price",
        "description": "Wholesale spot price is high",
        "trigger_greater_than": True,
        "target": 0.3,
    },
    {
        "id": 5,
        "goal_type_id": 4,
        "category": "fossil_fuels",
        "description": "Target renewable share of generation",
        "trigger_greater_than": False,
        "target": 0.5,
    },
    {
        "id": 6,
        "goal_type_id": 5,
        "category": "high_cost",
        "description": "Energy cost is high",
        "trigger_greater_than": True,
        "target": 0.35,
    },
]


def upgrade() -> None:
    """Insert default goal and warning types."""
    op.bulk_insert(_goal_type, GOAL_TYPES)
    op.bulk_insert(_warning_type, WARNING_TYPES)


def downgrade() -> None:
    """Remove seeded rows."""
    op.execute(
        _warning_type.delete().where(
            _warning_type.c.id.in_([w["id"] for w in WARNING_TYPES])
        )
    )
    op.execute(
        _goal_type.delete().where(
            _goal_type.c.id.in_([g["id"] for g in GOAL_TYPES])
        )
    )

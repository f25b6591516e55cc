"""Create the goals table.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Table: goals
  - id            VARCHAR(64) PK
  - title         TEXT
  - description   TEXT
  - status        VARCHAR(32)  draft|awaiting_approval|approved|completed|archived
  - goal_type     VARCHAR(64)  business|manager_effectiveness|personal_growth_and_development
  - owner_id      VARCHAR(64)
  - user_name     VARCHAR(255)
  - avatar_url    VARCHAR(512) (nullable)
  - parent_id     VARCHAR(64)  (nullable, no FK)
  - progress      FLOAT
  - achievements  JSON
  - actions       JSON
  - children      JSON  (ladder summaries of child goals)
  - created_at    TIMESTAMP WITH TIME ZONE
  - updated_at    TIMESTAMP WITH TIME ZONE

Notes:
  - No FK on parent_id: a goal may point at a parent that was deleted.
  - status and goal_type stored as VARCHAR to avoid PostgreSQL enum migrations.
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "goals",
        sa.Column("id", sa.String(64), primary_key=True, nullable=False, comment="Goal id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "status",
            sa.String(32),
            nullable=False,
            server_default="draft",
            comment="draft | awaiting_approval | approved | completed | archived",
        ),
        sa.Column("goal_type", sa.String(64), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False, comment="Goal owner"),
        sa.Column("user_name", sa.String(255), nullable=False),
        sa.Column("avatar_url", sa.String(512), nullable=True),
        sa.Column(
            "parent_id",
            sa.String(64),
            nullable=True,
            comment="Parent goal id. No FK: dangling parents are tolerated",
        ),
        sa.Column("progress", sa.Float(), nullable=False, server_default="0"),
        sa.Column("achievements", sa.JSON(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column(
            "children",
            sa.JSON(),
            nullable=False,
            comment="Ladder summaries of child goals",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_index("idx_goals_owner", "goals", ["owner_id"])
    op.create_index("idx_goals_parent", "goals", ["parent_id"])


def downgrade() -> None:
    op.drop_index("idx_goals_parent", table_name="goals")
    op.drop_index("idx_goals_owner", table_name="goals")
    op.drop_table("goals")

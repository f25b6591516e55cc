"""Goal persistence model for the SQL goal store.

Ladder summaries, achievements and actions are stored as JSON columns: they
are always read and written together with their goal, and the summaries are
a denormalized copy by definition.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ambitions.database import Base
from ambitions.models.goal import Goal, GoalItem, GoalStatus, GoalType, LadderSummary


class GoalRecord(Base):
    """Persisted goal row."""

    __tablename__ = "goals"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, comment="Goal id")

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="draft",
        comment="draft | awaiting_approval | approved | completed | archived",
    )
    goal_type: Mapped[str] = mapped_column(String(64), nullable=False)

    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, comment="Goal owner")
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    parent_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Parent goal id. No FK: dangling parents are tolerated",
    )
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    achievements: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    actions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    children: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ladder summaries of child goals",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_goals_owner", "owner_id"),
        Index("idx_goals_parent", "parent_id"),
    )

    @classmethod
    def from_goal(cls, goal: Goal) -> GoalRecord:
        record = cls(id=goal.id)
        record.apply(goal)
        return record

    def apply(self, goal: Goal) -> None:
        """Copy every mutable field from ``goal`` onto this row."""
        self.title = goal.title
        self.description = goal.description
        self.status = str(goal.status)
        self.goal_type = str(goal.goal_type)
        self.owner_id = goal.owner_id
        self.user_name = goal.user_name
        self.avatar_url = goal.avatar_url
        self.parent_id = goal.parent_id
        self.progress = goal.progress
        self.achievements = [a.to_dict() for a in goal.achievements]
        self.actions = [a.to_dict() for a in goal.actions]
        self.children = [c.to_dict() for c in goal.children]
        self.created_at = goal.created_at
        self.updated_at = goal.updated_at

    def to_goal(self) -> Goal:
        return Goal(
            id=self.id,
            title=self.title,
            status=GoalStatus(self.status),
            goal_type=GoalType(self.goal_type),
            owner_id=self.owner_id,
            description=self.description,
            user_name=self.user_name,
            avatar_url=self.avatar_url,
            parent_id=self.parent_id,
            progress=self.progress,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
            achievements=[GoalItem.from_dict(a) for a in self.achievements or []],
            actions=[GoalItem.from_dict(a) for a in self.actions or []],
            children=[LadderSummary.from_dict(c) for c in self.children or []],
        )

    def __repr__(self) -> str:
        return f"<GoalRecord id={self.id} owner={self.owner_id} status={self.status!r}>"


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)

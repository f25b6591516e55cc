"""Goal domain model.

A ``Goal`` is the authoritative record. ``LadderSummary`` is the lightweight
copy of a child goal stored on its parent (``Goal.children``) so a parent can
be rendered without fetching every child. Summaries are never the source of
truth for any field; ``SUMMARY_FIELDS`` lists the fields mirrored from the
child on every mutation.

Lifecycle::

    draft -> awaiting_approval -> approved -> completed
          -> archived          -> draft (send back)
                               -> archived
                                  approved -> archived
    archived -> draft (unarchive)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class GoalStatus(StrEnum):
    DRAFT = "draft"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class GoalType(StrEnum):
    BUSINESS = "business"
    MANAGER_EFFECTIVENESS = "manager_effectiveness"
    PERSONAL_GROWTH_AND_DEVELOPMENT = "personal_growth_and_development"


# Statuses a goal may be created in. Everything else is reached via transitions.
INITIAL_STATUSES: frozenset[GoalStatus] = frozenset(
    {GoalStatus.DRAFT, GoalStatus.AWAITING_APPROVAL}
)

# Fields copied from a child goal into every summary that references it.
SUMMARY_FIELDS: tuple[str, ...] = (
    "title",
    "status",
    "goal_type",
    "description",
    "owner_id",
    "user_name",
    "avatar_url",
    "progress",
    "updated_at",
)

UNASSIGNED_NAME = "Unassigned"


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_goal_id() -> str:
    return f"goal_{uuid.uuid4().hex[:12]}"


def _dt_to_str(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _str_to_dt(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class GoalItem:
    """An achievement or action attached to a goal."""

    id: str
    title: str
    status: str = "pending"
    progress: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "status": self.status, "progress": self.progress}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GoalItem:
        return cls(
            id=data["id"],
            title=data["title"],
            status=data.get("status", "pending"),
            progress=data.get("progress"),
        )


@dataclass
class LadderSummary:
    """Denormalized copy of a child goal, stored on its parent."""

    id: str
    title: str
    status: GoalStatus
    goal_type: GoalType | None
    description: str
    owner_id: str
    user_name: str
    avatar_url: str | None
    progress: float
    created_at: datetime
    updated_at: datetime

    def mirror(self, goal: Goal) -> None:
        """Overwrite every mirrored field with the value from ``goal``."""
        for name in SUMMARY_FIELDS:
            setattr(self, name, getattr(goal, name))

    def matches(self, goal: Goal) -> bool:
        return all(getattr(self, name) == getattr(goal, name) for name in SUMMARY_FIELDS)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": str(self.status),
            "goal_type": str(self.goal_type) if self.goal_type else None,
            "description": self.description,
            "owner_id": self.owner_id,
            "user_name": self.user_name,
            "avatar_url": self.avatar_url,
            "progress": self.progress,
            "created_at": _dt_to_str(self.created_at),
            "updated_at": _dt_to_str(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LadderSummary:
        goal_type = data.get("goal_type")
        return cls(
            id=data["id"],
            title=data["title"],
            status=GoalStatus(data["status"]),
            goal_type=GoalType(goal_type) if goal_type else None,
            description=data.get("description", ""),
            owner_id=data["owner_id"],
            user_name=data.get("user_name", UNASSIGNED_NAME),
            avatar_url=data.get("avatar_url"),
            progress=data.get("progress", 0),
            created_at=_str_to_dt(data["created_at"]),  # type: ignore[arg-type]
            updated_at=_str_to_dt(data["updated_at"]),  # type: ignore[arg-type]
        )


@dataclass
class Goal:
    """Authoritative goal record."""

    id: str
    title: str
    status: GoalStatus
    goal_type: GoalType
    owner_id: str
    description: str = ""
    user_name: str = UNASSIGNED_NAME
    avatar_url: str | None = None
    parent_id: str | None = None
    progress: float = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    achievements: list[GoalItem] = field(default_factory=list)
    actions: list[GoalItem] = field(default_factory=list)
    children: list[LadderSummary] = field(default_factory=list)

    def summary(self) -> LadderSummary:
        return LadderSummary(
            id=self.id,
            title=self.title,
            status=self.status,
            goal_type=self.goal_type,
            description=self.description,
            owner_id=self.owner_id,
            user_name=self.user_name,
            avatar_url=self.avatar_url,
            progress=self.progress,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-safe dict (timestamps as ISO strings)."""
        return {
            "id": self.id,
            "title": self.title,
            "status": str(self.status),
            "goal_type": str(self.goal_type),
            "owner_id": self.owner_id,
            "description": self.description,
            "user_name": self.user_name,
            "avatar_url": self.avatar_url,
            "parent_id": self.parent_id,
            "progress": self.progress,
            "created_at": _dt_to_str(self.created_at),
            "updated_at": _dt_to_str(self.updated_at),
            "achievements": [a.to_dict() for a in self.achievements],
            "actions": [a.to_dict() for a in self.actions],
            "children": [c.to_dict() for c in self.children],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Goal:
        return cls(
            id=data["id"],
            title=data["title"],
            status=GoalStatus(data["status"]),
            goal_type=GoalType(data["goal_type"]),
            owner_id=data["owner_id"],
            description=data.get("description", ""),
            user_name=data.get("user_name", UNASSIGNED_NAME),
            avatar_url=data.get("avatar_url"),
            parent_id=data.get("parent_id"),
            progress=data.get("progress", 0),
            created_at=_str_to_dt(data["created_at"]),  # type: ignore[arg-type]
            updated_at=_str_to_dt(data["updated_at"]),  # type: ignore[arg-type]
            achievements=[GoalItem.from_dict(a) for a in data.get("achievements", [])],
            actions=[GoalItem.from_dict(a) for a in data.get("actions", [])],
            children=[LadderSummary.from_dict(c) for c in data.get("children", [])],
        )


# Names accepted by GoalStore.update(); ``id`` and ``created_at`` are immutable.
MUTABLE_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(Goal) if f.name not in ("id", "created_at")
)

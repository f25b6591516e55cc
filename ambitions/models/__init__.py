"""Domain and ORM models.

Importing this package registers every ORM model with ``Base.metadata`` so
Alembic autogenerate can discover them.
"""

from __future__ import annotations

from ambitions.models.goal import (
    Goal,
    GoalItem,
    GoalStatus,
    GoalType,
    LadderSummary,
)
from ambitions.models.goal_record import GoalRecord

__all__ = [
    "Goal",
    "GoalItem",
    "GoalRecord",
    "GoalStatus",
    "GoalType",
    "LadderSummary",
]

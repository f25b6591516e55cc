"""Read-side composition of a goal with its parent backlink."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from ambitions.models.goal import Goal
from ambitions.stores.base import GoalStore

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ParentLink:
    id: str
    title: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "title": self.title}


@dataclass
class GoalAggregate:
    """A goal as presented to callers: the record plus its parent backlink."""

    goal: Goal
    parent: ParentLink | None = None

    def to_dict(self) -> dict[str, Any]:
        data = self.goal.to_dict()
        data["parent"] = self.parent.to_dict() if self.parent else None
        return data


class GoalAggregateAssembler:
    def __init__(self, store: GoalStore) -> None:
        self._store = store

    async def assemble(self, goal: Goal) -> GoalAggregate:
        """Attach the ``{id, title}`` of the goal's parent, if it still exists.

        Children are returned exactly as stored on the goal.
        """
        if not goal.parent_id:
            return GoalAggregate(goal=goal)

        parent = await self._store.get(goal.parent_id)
        if parent is None:
            log.warning("assembler.parent_missing", goal_id=goal.id, parent_id=goal.parent_id)
            return GoalAggregate(goal=goal)
        return GoalAggregate(goal=goal, parent=ParentLink(id=parent.id, title=parent.title))

    async def assemble_many(self, goals: Iterable[Goal]) -> list[GoalAggregate]:
        """Assemble a batch, reading each distinct parent once."""
        goals = list(goals)
        titles: dict[str, str | None] = {g.id: g.title for g in goals}

        aggregates = []
        for goal in goals:
            parent_id = goal.parent_id
            if not parent_id:
                aggregates.append(GoalAggregate(goal=goal))
                continue
            if parent_id not in titles:
                parent = await self._store.get(parent_id)
                titles[parent_id] = parent.title if parent else None
            title = titles[parent_id]
            link = ParentLink(id=parent_id, title=title) if title is not None else None
            aggregates.append(GoalAggregate(goal=goal, parent=link))
        return aggregates

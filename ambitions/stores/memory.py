"""In-memory goal store.

Single-process store keyed by goal id. It is constructed once at startup and
injected into the services; nothing in the codebase reaches it through
module-level state. ``reset()`` exists for test harnesses only.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any

import structlog

from ambitions.models.goal import Goal
from ambitions.services.errors import StorageError
from ambitions.stores.base import GoalStore

log = structlog.get_logger(__name__)


class InMemoryGoalStore(GoalStore):
    """Dict-backed GoalStore. Every read and write goes through a deep copy."""

    def __init__(self, initial: Iterable[Goal] = ()) -> None:
        self._initial = [copy.deepcopy(g) for g in initial]
        self._goals: dict[str, Goal] = {}
        self.reset()

    async def get(self, goal_id: str) -> Goal | None:
        goal = self._goals.get(goal_id)
        return copy.deepcopy(goal) if goal is not None else None

    async def list_all(self) -> list[Goal]:
        goals = sorted(self._goals.values(), key=lambda g: g.created_at, reverse=True)
        return [copy.deepcopy(g) for g in goals]

    async def insert(self, goal: Goal) -> Goal:
        if goal.id in self._goals:
            raise StorageError(f"Goal {goal.id} already exists")
        self._goals[goal.id] = copy.deepcopy(goal)
        return copy.deepcopy(goal)

    async def update(self, goal_id: str, changes: dict[str, Any]) -> Goal | None:
        self._check_changes(changes)
        goal = self._goals.get(goal_id)
        if goal is None:
            return None
        for name, value in changes.items():
            setattr(goal, name, copy.deepcopy(value))
        return copy.deepcopy(goal)

    async def delete(self, goal_id: str) -> bool:
        return self._goals.pop(goal_id, None) is not None

    def reset(self) -> None:
        """Restore the store to the goals it was constructed with."""
        self._goals = {g.id: copy.deepcopy(g) for g in self._initial}
        log.debug("memory_store.reset", count=len(self._goals))

    def __len__(self) -> int:
        return len(self._goals)

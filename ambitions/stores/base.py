"""Goal store contract.

The goal store is the only shared mutable resource in the service. Engines
and services talk to it through this narrow interface and never assume a
particular backend:

- get(goal_id)          -> Goal | None
- list_all()            -> list[Goal], newest first
- insert(goal)          -> Goal
- update(goal_id, ...)  -> Goal | None   (partial: only the named fields)
- delete(goal_id)       -> bool

Implementations return detached copies: mutating a returned Goal never
changes stored state until it is written back. Backend failures are raised
as StorageError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ambitions.models.goal import MUTABLE_FIELDS, Goal
from ambitions.services.errors import StorageError


class GoalStore(ABC):
    """Abstract base class for goal storage backends."""

    @abstractmethod
    async def get(self, goal_id: str) -> Goal | None:
        """Return the goal with ``goal_id`` or None."""

    @abstractmethod
    async def list_all(self) -> list[Goal]:
        """Return every goal, newest first."""

    @abstractmethod
    async def insert(self, goal: Goal) -> Goal:
        """Persist a new goal. Raises StorageError if the id is taken."""

    @abstractmethod
    async def update(self, goal_id: str, changes: dict[str, Any]) -> Goal | None:
        """Apply a partial update and return the stored goal, or None if absent."""

    @abstractmethod
    async def delete(self, goal_id: str) -> bool:
        """Remove a goal. Returns False if it did not exist."""

    @staticmethod
    def _check_changes(changes: dict[str, Any]) -> None:
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise StorageError(f"Cannot update immutable or unknown fields: {sorted(unknown)}")

"""Goal store contract and implementations."""

from __future__ import annotations

from ambitions.stores.base import GoalStore
from ambitions.stores.factory import close_goal_store, create_goal_store
from ambitions.stores.locks import KeyedLock
from ambitions.stores.memory import InMemoryGoalStore
from ambitions.stores.sql import SqlGoalStore

__all__ = [
    "GoalStore",
    "InMemoryGoalStore",
    "KeyedLock",
    "SqlGoalStore",
    "close_goal_store",
    "create_goal_store",
]

"""SQL goal store (SQLAlchemy 2.0 async).

Each call opens its own session and commits before returning, so the store
behaves like the in-memory one: a returned Goal is detached, and writes are
visible to the next call. SQLAlchemy failures are logged with detail and
re-raised as StorageError.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ambitions.models.goal import Goal
from ambitions.models.goal_record import GoalRecord
from ambitions.services.errors import StorageError
from ambitions.stores.base import GoalStore

log = structlog.get_logger(__name__)


class SqlGoalStore(GoalStore):
    """GoalStore backed by the ``goals`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, goal_id: str) -> Goal | None:
        try:
            async with self._session_factory() as session:
                record = await session.get(GoalRecord, goal_id)
                return record.to_goal() if record is not None else None
        except SQLAlchemyError as exc:
            raise self._storage_error("get", exc, goal_id=goal_id) from exc

    async def list_all(self) -> list[Goal]:
        stmt = select(GoalRecord).order_by(GoalRecord.created_at.desc())
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [record.to_goal() for record in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise self._storage_error("list_all", exc) from exc

    async def insert(self, goal: Goal) -> Goal:
        try:
            async with self._session_factory() as session:
                record = GoalRecord.from_goal(goal)
                session.add(record)
                await session.commit()
                return record.to_goal()
        except IntegrityError as exc:
            raise StorageError(f"Goal {goal.id} already exists") from exc
        except SQLAlchemyError as exc:
            raise self._storage_error("insert", exc, goal_id=goal.id) from exc

    async def update(self, goal_id: str, changes: dict[str, Any]) -> Goal | None:
        self._check_changes(changes)
        try:
            async with self._session_factory() as session:
                record = await session.get(GoalRecord, goal_id)
                if record is None:
                    return None
                goal = record.to_goal()
                for name, value in changes.items():
                    setattr(goal, name, value)
                record.apply(goal)
                await session.commit()
                return record.to_goal()
        except SQLAlchemyError as exc:
            raise self._storage_error("update", exc, goal_id=goal_id) from exc

    async def delete(self, goal_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(delete(GoalRecord).where(GoalRecord.id == goal_id))
                await session.commit()
                return bool(result.rowcount)
        except SQLAlchemyError as exc:
            raise self._storage_error("delete", exc, goal_id=goal_id) from exc

    @staticmethod
    def _storage_error(operation: str, exc: Exception, **context: Any) -> StorageError:
        log.error("sql_store.failed", operation=operation, error=str(exc), **context)
        return StorageError(f"Goal store {operation} failed")

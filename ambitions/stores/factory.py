"""Goal store selection.

``goals_source`` picks the backend at startup; the chosen store is created
once and injected everywhere else.
"""

from __future__ import annotations

import structlog

from ambitions.config import GoalsSource, Settings
from ambitions.database import close_db, get_session_factory, init_db
from ambitions.stores.base import GoalStore
from ambitions.stores.memory import InMemoryGoalStore
from ambitions.stores.sql import SqlGoalStore

log = structlog.get_logger(__name__)


def create_goal_store(settings: Settings) -> GoalStore:
    """Build the goal store configured by ``settings.goals_source``."""
    if settings.goals_source == GoalsSource.SQL:
        init_db(settings)
        store: GoalStore = SqlGoalStore(get_session_factory())
    else:
        store = InMemoryGoalStore()

    log.info("goal_store.created", source=str(settings.goals_source))
    return store


async def close_goal_store(store: GoalStore) -> None:
    """Release whatever the store holds open."""
    if isinstance(store, SqlGoalStore):
        await close_db()

"""
Database engine and session management (SQLAlchemy 2.0 async).

Only used when ``goals_source=sql``. The in-memory store needs none of this.

Design decisions:
- All models import Base from here to keep metadata centralized
- SqlGoalStore opens one short session per store call and commits it, so a
  parent write in hierarchy propagation is a separate transaction from the
  child write (a failure there surfaces as hierarchy_sync_failed)
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from ambitions.config import Settings, get_settings

log = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    type_annotation_map: dict[Any, Any] = {}


def _build_engine(settings: Settings, *, for_test: bool = False) -> AsyncEngine:
    """Create an async SQLAlchemy engine from settings.

    Uses NullPool in test mode to avoid connection leaks between test cases.
    """
    kwargs: dict[str, Any] = {"echo": settings.db_echo_sql}
    if for_test:
        kwargs["poolclass"] = NullPool
    else:
        kwargs.update(
            {
                "pool_size": 5,
                "max_overflow": 10,
                "pool_pre_ping": True,
                "pool_recycle": 300,  # Recycle connections every 5 minutes
            }
        )
    return create_async_engine(settings.database_url, **kwargs)


# Module-level singletons, initialized in lifespan
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db(settings: Settings | None = None, *, for_test: bool = False) -> None:
    """Initialize the database engine and session factory.

    Called once during application startup (or test setup).
    """
    global _engine, _session_factory
    cfg = settings or get_settings()
    _engine = _build_engine(cfg, for_test=for_test)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=True,
    )
    log.info("database.initialized", url=cfg.database_url.split("@")[-1])


async def close_db() -> None:
    """Dispose the engine and release all connections."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        log.info("database.closed")
        _engine = None
        _session_factory = None


def get_engine() -> AsyncEngine:
    """Return the initialized engine (raises if not initialized)."""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the initialized session factory (raises if not initialized)."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory

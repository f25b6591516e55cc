"""Hierarchy consistency - keeps ladder summaries in line with their goals.

Every goal with a parent appears on that parent as a LadderSummary. The
summary is a copy, so each mutation of the child has to be mirrored onto
every parent that lists it. This component owns that copy:

- attach(child)      add (or refresh) the child's summary on child.parent_id
- propagate(goal)    overwrite the mirrored fields in every parent listing goal
- detach(child_id)   remove the child's summary from its parents

Parents are found through an in-memory child id -> parent ids index,
rebuilt from the store at startup and maintained by attach/detach, so a
mutation costs one lookup instead of a scan over every goal. The child's own
parent_id is always checked too, which also repairs a summary whose earlier
attach failed.

A parent write that fails after the child's own write succeeded is returned
as a HierarchySyncWarning and logged at error level. It never raises: the
child's change stays committed.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from ambitions.models.goal import Goal
from ambitions.services.errors import HierarchySyncWarning, StorageError
from ambitions.stores.base import GoalStore
from ambitions.stores.locks import KeyedLock

log = structlog.get_logger(__name__)


class HierarchyConsistency:
    """Maintains ``Goal.children`` on parents as their children change."""

    def __init__(self, store: GoalStore, locks: KeyedLock) -> None:
        self._store = store
        self._locks = locks
        self._parents_of: dict[str, set[str]] = {}

    # ------------------------------------------------------------------ #
    # Index
    # ------------------------------------------------------------------ #

    async def rebuild_index(self) -> int:
        """Rebuild the child -> parents index from every stored goal.

        Returns the number of indexed summaries.
        """
        index: dict[str, set[str]] = {}
        for goal in await self._store.list_all():
            for summary in goal.children:
                index.setdefault(summary.id, set()).add(goal.id)
        self._parents_of = index

        count = sum(len(parents) for parents in index.values())
        log.info("hierarchy.index_rebuilt", summaries=count)
        return count

    def parents_of(self, child_id: str) -> set[str]:
        return set(self._parents_of.get(child_id, ()))

    def forget_parent(self, parent_id: str) -> None:
        """Drop every index entry pointing at ``parent_id`` (it was deleted)."""
        for child_id in list(self._parents_of):
            self._forget(child_id, parent_id)

    def _remember(self, child_id: str, parent_id: str) -> None:
        self._parents_of.setdefault(child_id, set()).add(parent_id)

    def _forget(self, child_id: str, parent_id: str) -> None:
        parents = self._parents_of.get(child_id)
        if parents is None:
            return
        parents.discard(parent_id)
        if not parents:
            del self._parents_of[child_id]

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    async def attach(self, child: Goal) -> list[HierarchySyncWarning]:
        """Add the child's summary to ``child.parent_id``.

        Replaces an existing summary for the same child, so calling it twice
        leaves a single entry. A missing parent is tolerated: nothing is
        attached and a warning is logged.
        """
        parent_id = child.parent_id
        if not parent_id:
            return []

        try:
            async with self._locks.hold(parent_id):
                parent = await self._store.get(parent_id)
                if parent is None:
                    log.warning(
                        "hierarchy.parent_missing",
                        goal_id=child.id,
                        parent_id=parent_id,
                    )
                    return []

                children = [s for s in parent.children if s.id != child.id]
                children.append(child.summary())
                await self._store.update(parent_id, {"children": children})
        except StorageError as exc:
            return [self._sync_failed(child.id, parent_id, "attach", exc)]

        self._remember(child.id, parent_id)
        log.info("hierarchy.attached", goal_id=child.id, parent_id=parent_id)
        return []

    async def propagate(self, goal: Goal) -> list[HierarchySyncWarning]:
        """Mirror the goal's summary fields onto every parent that lists it."""
        candidates = self.parents_of(goal.id)
        if goal.parent_id:
            candidates.add(goal.parent_id)

        warnings: list[HierarchySyncWarning] = []
        for parent_id in sorted(candidates):
            try:
                await self._propagate_to(goal, parent_id)
            except StorageError as exc:
                warnings.append(self._sync_failed(goal.id, parent_id, "propagate", exc))
        return warnings

    async def _propagate_to(self, goal: Goal, parent_id: str) -> None:
        async with self._locks.hold(parent_id):
            parent = await self._store.get(parent_id)
            if parent is None:
                self._forget(goal.id, parent_id)
                return

            matched = False
            for summary in parent.children:
                if summary.id == goal.id:
                    summary.mirror(goal)
                    matched = True

            if not matched:
                if parent_id != goal.parent_id:
                    # Stale index entry: the parent no longer lists this goal
                    self._forget(goal.id, parent_id)
                    return
                parent.children.append(goal.summary())
                log.warning("hierarchy.summary_restored", goal_id=goal.id, parent_id=parent_id)

            await self._store.update(parent_id, {"children": parent.children})

        self._remember(goal.id, parent_id)
        log.debug("hierarchy.propagated", goal_id=goal.id, parent_id=parent_id)

    async def detach(
        self,
        child_id: str,
        parent_ids: Iterable[str] | None = None,
    ) -> list[HierarchySyncWarning]:
        """Remove the child's summary from ``parent_ids`` (default: every indexed parent)."""
        targets = set(parent_ids) if parent_ids is not None else self.parents_of(child_id)

        warnings: list[HierarchySyncWarning] = []
        for parent_id in sorted(targets):
            try:
                async with self._locks.hold(parent_id):
                    parent = await self._store.get(parent_id)
                    if parent is not None:
                        remaining = [s for s in parent.children if s.id != child_id]
                        if len(remaining) != len(parent.children):
                            await self._store.update(parent_id, {"children": remaining})
            except StorageError as exc:
                warnings.append(self._sync_failed(child_id, parent_id, "detach", exc))
                continue

            self._forget(child_id, parent_id)
            log.info("hierarchy.detached", goal_id=child_id, parent_id=parent_id)
        return warnings

    @staticmethod
    def _sync_failed(
        goal_id: str,
        parent_id: str,
        operation: str,
        exc: Exception,
    ) -> HierarchySyncWarning:
        log.error(
            "hierarchy.sync_failed",
            goal_id=goal_id,
            parent_id=parent_id,
            operation=operation,
            error=str(exc),
        )
        return HierarchySyncWarning(
            goal_id=goal_id,
            parent_id=parent_id,
            operation=operation,
            detail=str(exc),
        )

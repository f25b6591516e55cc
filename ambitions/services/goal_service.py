"""Goal service - create, edit, delete and read ambitions.

Wraps the store with the rules callers rely on:
- new goals start in draft or awaiting_approval (only draft when created
  for someone else); any later status change goes through the
  StatusTransitionEngine (change_status)
- field edits and deletes are limited to the owner (and, for edits, the
  people allowed to approve the owner's goals)
- every write that touches a ladder summary field is mirrored onto the
  goal's parents via HierarchyConsistency

Writes return a GoalResult: the assembled goal plus any hierarchy warnings.
"""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Any

import structlog

from ambitions.core.approvers import ApproverLookup
from ambitions.models.goal import (
    INITIAL_STATUSES,
    UNASSIGNED_NAME,
    Goal,
    GoalItem,
    GoalStatus,
    GoalType,
    new_goal_id,
    utcnow,
)
from ambitions.services.assembler import GoalAggregate, GoalAggregateAssembler
from ambitions.services.errors import (
    ForbiddenRoleError,
    GoalNotFoundError,
    GoalValidationError,
    HierarchySyncWarning,
)
from ambitions.services.hierarchy import HierarchyConsistency
from ambitions.services.people import PeopleDirectory
from ambitions.services.transitions import StatusTransitionEngine, parse_status, resolve_roles
from ambitions.stores.base import GoalStore
from ambitions.stores.locks import KeyedLock

log = structlog.get_logger(__name__)

EDITABLE_FIELDS = frozenset(
    {"title", "description", "progress", "achievements", "actions", "parent_id"}
)

MANAGER_AMBITIONS_TITLE = "Your manager has created business Ambitions that may interest you!"

# Held across the cycle check and the parent_id write of every reparent
LADDER_LOCK_KEY = "__ladder__"

_STATUS_LABELS = {
    GoalStatus.DRAFT: "Draft",
    GoalStatus.AWAITING_APPROVAL: "Awaiting Approval",
    GoalStatus.APPROVED: "Approved",
    GoalStatus.COMPLETED: "Completed",
    GoalStatus.ARCHIVED: "Archived",
}

_TYPE_LABELS = {
    GoalType.BUSINESS: "Business",
    GoalType.MANAGER_EFFECTIVENESS: "Manager effectiveness",
    GoalType.PERSONAL_GROWTH_AND_DEVELOPMENT: "Personal growth and development",
}


@dataclass
class NewGoal:
    """Fields accepted when creating a goal."""

    title: str
    goal_type: str | GoalType
    status: str | GoalStatus = GoalStatus.DRAFT
    description: str = ""
    assigned_to: str | None = None
    parent_id: str | None = None
    progress: float = 0
    achievements: list[dict[str, Any]] = field(default_factory=list)
    actions: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class GoalResult:
    aggregate: GoalAggregate
    warnings: list[HierarchySyncWarning] = field(default_factory=list)


def _parse_goal_type(value: str | GoalType | None) -> GoalType:
    allowed = [t.value for t in GoalType]
    if not value:
        raise GoalValidationError("Goal type is required", field="goalType", allowed=allowed)
    try:
        return GoalType(value)
    except ValueError:
        raise GoalValidationError(
            f"Invalid goal type: {value}", field="goalType", allowed=allowed
        ) from None


def _check_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise GoalValidationError("Title is required", field="title")
    return title.strip()


def _check_progress(progress: Any) -> float:
    if isinstance(progress, bool) or not isinstance(progress, int | float):
        raise GoalValidationError("Progress must be a number", field="progress")
    if not 0 <= progress <= 100:
        raise GoalValidationError("Progress must be between 0 and 100", field="progress")
    return progress


def _build_items(goal_id: str, prefix: str, raw: Iterable[dict[str, Any]], name: str) -> list[GoalItem]:
    items = []
    for index, entry in enumerate(raw):
        title = entry.get("title") if isinstance(entry, dict) else None
        if not title:
            raise GoalValidationError(f"Every {name} entry needs a title", field=name)
        items.append(
            GoalItem(
                id=f"{prefix}-{goal_id}-{index}",
                title=title,
                status=entry.get("status") or "pending",
                progress=entry.get("progress"),
            )
        )
    return items


class GoalService:
    """Goal CRUD plus status changes, with ladder summaries kept in sync."""

    def __init__(
        self,
        store: GoalStore,
        people: PeopleDirectory,
        approvers: ApproverLookup,
        hierarchy: HierarchyConsistency,
        locks: KeyedLock,
    ) -> None:
        self._store = store
        self._people = people
        self._approvers = approvers
        self._hierarchy = hierarchy
        self._locks = locks
        self._assembler = GoalAggregateAssembler(store)
        self._transitions = StatusTransitionEngine(store, people, approvers, hierarchy, locks)

    @property
    def transitions(self) -> StatusTransitionEngine:
        return self._transitions

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def get_goal(self, goal_id: str) -> GoalAggregate:
        """Return the assembled goal.

        Raises:
            GoalNotFoundError: If the goal does not exist.
        """
        goal = await self._require(goal_id)
        return await self._assembler.assemble(goal)

    async def list_goals(
        self,
        owner_email: str | None = None,
        status: str | None = None,
        goal_type: str | None = None,
    ) -> list[GoalAggregate]:
        """List goals newest first, optionally filtered by owner, status and type."""
        wanted_status = parse_status(status) if status else None
        wanted_type = _parse_goal_type(goal_type) if goal_type else None
        owner = owner_email.strip().lower() if owner_email else None

        goals = []
        for goal in await self._store.list_all():
            if wanted_status is not None and goal.status is not wanted_status:
                continue
            if wanted_type is not None and goal.goal_type is not wanted_type:
                continue
            if owner is not None and (self._people.email_for(goal.owner_id) or "").lower() != owner:
                continue
            goals.append(goal)

        log.debug(
            "goal_service.list_goals",
            owner_email=owner_email,
            status=status,
            goal_type=goal_type,
            count=len(goals),
        )
        return await self._assembler.assemble_many(goals)

    def goal_filters(self) -> dict[str, Any]:
        """Options for the goal list filter bar."""
        return {
            "avatar_selector": {
                "options": [
                    {
                        "uid": person.id,
                        "name": person.display_name,
                        "url": person.avatar_url,
                        "role": person.role,
                    }
                    for person in self._people.all()
                ],
                "show_items": 4,
            },
            "filters": [
                {
                    "label": "Status",
                    "test_id": "filter-status",
                    "options": [
                        {"label": label, "value": status.value}
                        for status, label in _STATUS_LABELS.items()
                    ],
                    "single": True,
                },
                {
                    "label": "Type",
                    "test_id": "filter-category",
                    "options": [
                        {"label": label, "value": goal_type.value}
                        for goal_type, label in _TYPE_LABELS.items()
                    ],
                    "single": True,
                },
            ],
        }

    async def manager_ambitions(self, email: str) -> dict[str, Any]:
        """Business goals owned by the caller's approvers, offered as ladder targets.

        Archived goals are left out.
        """
        approvers = await self._approvers.approvers_for(email)
        ambitions = []
        if approvers:
            for goal in await self._store.list_all():
                if goal.goal_type is not GoalType.BUSINESS or goal.status is GoalStatus.ARCHIVED:
                    continue
                owner_email = (self._people.email_for(goal.owner_id) or "").lower()
                if owner_email in approvers:
                    ambitions.append({"id": goal.id, "title": goal.title})

        log.debug("goal_service.manager_ambitions", email=email, count=len(ambitions))
        return {"title": MANAGER_AMBITIONS_TITLE, "ambitions": ambitions}

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    async def create_goal(self, payload: NewGoal, creator_email: str) -> GoalResult:
        """Create a goal owned by ``payload.assigned_to`` (default: the creator).

        A parent that does not exist is tolerated: the goal is created with
        the dangling parent id and no summary is attached anywhere.

        Raises:
            GoalValidationError: Missing title, unknown type, or a status other
                than draft / awaiting_approval.
            ForbiddenRoleError: A goal created for someone else is not a draft.
        """
        title = _check_title(payload.title)
        goal_type = _parse_goal_type(payload.goal_type)
        status = parse_status(payload.status)
        if status not in INITIAL_STATUSES:
            raise GoalValidationError(
                f"Goals cannot be created as {status.value}",
                field="status",
                allowed=sorted(s.value for s in INITIAL_STATUSES),
            )
        progress = _check_progress(payload.progress)

        creator_id = self._owner_id_for(creator_email)
        owner_id = self._owner_id_for(payload.assigned_to) if payload.assigned_to else creator_id
        if owner_id != creator_id and status is not GoalStatus.DRAFT:
            # Submitting for approval is the owner's move
            raise ForbiddenRoleError(
                "Only the owner may submit a goal for approval; "
                "goals created for someone else start in draft",
                required_role="owner",
            )

        goal_id = new_goal_id()
        user_name, avatar_url = self._owner_display(owner_id)
        now = utcnow()

        goal = Goal(
            id=goal_id,
            title=title,
            status=status,
            goal_type=goal_type,
            owner_id=owner_id,
            description=payload.description or "",
            user_name=user_name,
            avatar_url=avatar_url,
            parent_id=payload.parent_id or None,
            progress=progress,
            created_at=now,
            updated_at=now,
            achievements=_build_items(goal_id, "ach", payload.achievements, "achievements"),
            actions=_build_items(goal_id, "act", payload.actions, "actions"),
        )

        async with self._locks.hold(goal_id):
            goal = await self._store.insert(goal)
            log.info(
                "goal_service.create_goal",
                goal_id=goal_id,
                owner_id=owner_id,
                status=status.value,
                parent_id=goal.parent_id,
                creator=creator_email,
            )
            warnings = await self._hierarchy.attach(goal)

        return GoalResult(aggregate=await self._assembler.assemble(goal), warnings=warnings)

    async def update_goal(
        self,
        goal_id: str,
        changes: dict[str, Any],
        editor_email: str,
    ) -> GoalResult:
        """Edit non-status fields of a goal.

        ``changes`` may hold title, description, progress, achievements,
        actions and parent_id. Status changes go through change_status();
        the goal type is fixed at creation.

        Raises:
            GoalValidationError: Unknown or read-only field, bad value, or a
                parent that would create a cycle.
            GoalNotFoundError: If the goal does not exist.
            ForbiddenRoleError: The editor is neither owner nor approver.
        """
        for name in ("status", "goal_type"):
            if name in changes:
                raise GoalValidationError(
                    f"{name} cannot be changed by a field edit", field=name
                )
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise GoalValidationError(
                f"Unknown fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
                allowed=sorted(EDITABLE_FIELDS),
            )

        # Ladder lock first, then the goal: attach() below takes the parent lock
        # while the ladder lock is still held.
        ladder = self._locks.hold(LADDER_LOCK_KEY) if "parent_id" in changes else nullcontext()
        async with ladder, self._locks.hold(goal_id):
            goal = await self._require(goal_id)
            roles = await resolve_roles(goal, editor_email, self._people, self._approvers)
            if not (roles.is_owner or roles.is_manager):
                raise ForbiddenRoleError(
                    "Only the owner or an approver may edit this goal",
                    required_role="owner or manager",
                )

            updates = await self._validated_updates(goal, changes)
            if not updates:
                return GoalResult(aggregate=await self._assembler.assemble(goal))

            old_parent = goal.parent_id
            updates["updated_at"] = utcnow()
            updated = await self._store.update(goal_id, updates)
            if updated is None:
                raise GoalNotFoundError(goal_id)

            log.info(
                "goal_service.update_goal",
                goal_id=goal_id,
                fields=sorted(updates),
                editor=editor_email,
            )

            warnings: list[HierarchySyncWarning] = []
            if "parent_id" in updates and updated.parent_id != old_parent:
                if old_parent:
                    warnings += await self._hierarchy.detach(goal_id, [old_parent])
                warnings += await self._hierarchy.attach(updated)
            warnings += await self._hierarchy.propagate(updated)

        return GoalResult(aggregate=await self._assembler.assemble(updated), warnings=warnings)

    async def delete_goal(self, goal_id: str, requester_email: str) -> list[HierarchySyncWarning]:
        """Delete a goal and remove its summary from every parent.

        Children of the deleted goal keep their parent_id; their parent
        backlink is simply no longer assembled.

        Raises:
            GoalNotFoundError: If the goal does not exist.
            ForbiddenRoleError: The requester is not the owner.
        """
        async with self._locks.hold(goal_id):
            goal = await self._require(goal_id)
            roles = await resolve_roles(goal, requester_email, self._people, self._approvers)
            if not roles.is_owner:
                raise ForbiddenRoleError(
                    "Only the owner may delete this goal", required_role="owner"
                )

            if not await self._store.delete(goal_id):
                raise GoalNotFoundError(goal_id)
            log.info("goal_service.delete_goal", goal_id=goal_id, requester=requester_email)

            parents = self._hierarchy.parents_of(goal_id)
            if goal.parent_id:
                parents.add(goal.parent_id)
            warnings = await self._hierarchy.detach(goal_id, parents)
            self._hierarchy.forget_parent(goal_id)

        return warnings

    async def change_status(
        self,
        goal_id: str,
        status: str | GoalStatus | None,
        requester_email: str,
        comment: str | None = None,
    ) -> GoalResult:
        """Run a status transition and return the assembled goal."""
        result = await self._transitions.transition(goal_id, status, requester_email)
        if comment:
            log.info("goal_service.status_comment", goal_id=goal_id, comment=comment)
        return GoalResult(
            aggregate=await self._assembler.assemble(result.goal),
            warnings=result.warnings,
        )

    async def reconcile_goal(self, goal_id: str) -> list[HierarchySyncWarning]:
        """Re-apply the goal's summary to its parents after an earlier sync failure."""
        async with self._locks.hold(goal_id):
            goal = await self._require(goal_id)
            warnings = await self._hierarchy.attach(goal)
            warnings += await self._hierarchy.propagate(goal)
        log.info("goal_service.reconcile_goal", goal_id=goal_id, warnings=len(warnings))
        return warnings

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _require(self, goal_id: str) -> Goal:
        if not goal_id:
            raise GoalValidationError("Goal id is required", field="id")
        goal = await self._store.get(goal_id)
        if goal is None:
            raise GoalNotFoundError(goal_id)
        return goal

    def _owner_id_for(self, email: str) -> str:
        person = self._people.get_by_email(email)
        return person.id if person else email

    def _owner_display(self, owner_id: str) -> tuple[str, str | None]:
        person = self._people.get_by_id(owner_id) or self._people.get_by_email(owner_id)
        if person is None:
            return UNASSIGNED_NAME, None
        return person.display_name, person.avatar_url

    async def _validated_updates(self, goal: Goal, changes: dict[str, Any]) -> dict[str, Any]:
        updates: dict[str, Any] = {}
        if "title" in changes:
            updates["title"] = _check_title(changes["title"])
        if "description" in changes:
            updates["description"] = changes["description"] or ""
        if "progress" in changes:
            updates["progress"] = _check_progress(changes["progress"])
        if "achievements" in changes:
            updates["achievements"] = _build_items(
                goal.id, "ach", changes["achievements"] or [], "achievements"
            )
        if "actions" in changes:
            updates["actions"] = _build_items(goal.id, "act", changes["actions"] or [], "actions")
        if "parent_id" in changes:
            parent_id = changes["parent_id"] or None
            if parent_id is not None:
                await self._check_no_cycle(goal.id, parent_id)
            updates["parent_id"] = parent_id
        return updates

    async def _check_no_cycle(self, goal_id: str, parent_id: str) -> None:
        """Reject ``parent_id`` if it is the goal itself or one of its descendants.

        Callers hold LADDER_LOCK_KEY, so no other parent_id changes while the
        ancestor chain is walked.
        """
        seen: set[str] = set()
        current: str | None = parent_id
        while current is not None and current not in seen:
            if current == goal_id:
                raise GoalValidationError(
                    "A goal cannot be laddered under itself or one of its descendants",
                    field="parent_id",
                )
            seen.add(current)
            ancestor = await self._store.get(current)
            current = ancestor.parent_id if ancestor else None

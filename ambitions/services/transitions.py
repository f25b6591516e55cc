"""Status transition engine - the only way a goal's status changes.

Resolves who the requester is relative to the goal (owner, approver, both,
neither), asks the transition policy, and on allow writes the new status and
mirrors it onto every parent ladder summary.

Denials raise before anything is written. A parent that cannot be updated
after the status write does not undo the transition; it comes back in
``TransitionResult.warnings``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from ambitions.core.approvers import ApproverLookup
from ambitions.core.policy import DenyReason, evaluate_transition
from ambitions.models.goal import Goal, GoalStatus, utcnow
from ambitions.services.errors import (
    ForbiddenRoleError,
    GoalNotFoundError,
    GoalValidationError,
    HierarchySyncWarning,
    InvalidTransitionError,
)
from ambitions.services.hierarchy import HierarchyConsistency
from ambitions.services.people import PeopleDirectory
from ambitions.stores.base import GoalStore
from ambitions.stores.locks import KeyedLock

log = structlog.get_logger(__name__)


@dataclass
class TransitionResult:
    goal: Goal
    warnings: list[HierarchySyncWarning] = field(default_factory=list)


@dataclass(frozen=True)
class CallerRoles:
    """How a caller relates to one goal."""

    owner_email: str | None
    is_owner: bool
    is_manager: bool


async def resolve_roles(
    goal: Goal,
    caller_email: str,
    people: PeopleDirectory,
    approvers: ApproverLookup,
) -> CallerRoles:
    owner_email = people.email_for(goal.owner_id)
    caller = caller_email.strip().lower()
    is_owner = owner_email is not None and owner_email.strip().lower() == caller
    is_manager = await approvers.can_approve(caller_email, owner_email)
    return CallerRoles(owner_email=owner_email, is_owner=is_owner, is_manager=is_manager)


def parse_status(value: str | GoalStatus | None) -> GoalStatus:
    """Coerce a requested status, raising GoalValidationError if unknown."""
    allowed = [s.value for s in GoalStatus]
    if value is None or value == "":
        raise GoalValidationError("Status is required", field="status", allowed=allowed)
    try:
        return GoalStatus(value)
    except ValueError:
        raise GoalValidationError(
            f"Invalid status: {value}", field="status", allowed=allowed
        ) from None


class StatusTransitionEngine:
    """Applies policy-checked status changes to stored goals."""

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

    async def transition(
        self,
        goal_id: str,
        requested_status: str | GoalStatus,
        requester_email: str,
    ) -> TransitionResult:
        """Move ``goal_id`` to ``requested_status`` on behalf of ``requester_email``.

        Raises:
            GoalValidationError: Missing id or unknown status value.
            GoalNotFoundError: No goal with that id.
            InvalidTransitionError: The pair is not in the transition table.
            ForbiddenRoleError: The requester lacks the role the pair needs.
            StorageError: The store failed while reading or writing the goal.
        """
        if not goal_id:
            raise GoalValidationError("Goal id is required", field="id")
        requested = parse_status(requested_status)

        async with self._locks.hold(goal_id):
            goal = await self._store.get(goal_id)
            if goal is None:
                raise GoalNotFoundError(goal_id)

            roles = await resolve_roles(goal, requester_email, self._people, self._approvers)
            decision = evaluate_transition(
                goal.status,
                requested,
                is_owner=roles.is_owner,
                is_manager=roles.is_manager,
            )

            if not decision.allowed:
                log.info(
                    "transition.denied",
                    goal_id=goal_id,
                    from_status=goal.status.value,
                    to_status=requested.value,
                    reason=decision.reason.value if decision.reason else None,
                    requester=requester_email,
                )
                if decision.reason is DenyReason.FORBIDDEN_ROLE:
                    raise ForbiddenRoleError(
                        f"Only the {decision.required_role} may move a goal from "
                        f"{goal.status.value} to {requested.value}",
                        required_role=decision.required_role,
                    )
                raise InvalidTransitionError(goal.status.value, requested.value)

            now = utcnow()
            await self._store.update(goal_id, {"status": requested, "updated_at": now})
            goal.status = requested
            goal.updated_at = now

            log.info(
                "transition.applied",
                goal_id=goal_id,
                from_status=decision.from_status.value,
                to_status=requested.value,
                requester=requester_email,
                as_owner=roles.is_owner,
                as_manager=roles.is_manager,
            )

            warnings = await self._hierarchy.propagate(goal)

        return TransitionResult(goal=goal, warnings=warnings)

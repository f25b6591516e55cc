"""Transition policy - which goal status changes are legal, and for whom.

This module is the single enforcement table for goal status changes. It is
pure: it knows nothing about identities, stores or logging. Callers resolve
whether the requester is the goal's owner and/or an approver for that owner,
then ask evaluate_transition().

Transition matrix:
  From              | To                | Actor
  ------------------|-------------------|------------------
  draft             | awaiting_approval | owner
  draft             | archived          | owner
  awaiting_approval | approved          | manager
  awaiting_approval | draft             | manager (send back)
  awaiting_approval | archived          | owner or manager
  approved          | archived          | owner
  approved          | completed         | owner
  archived          | draft             | owner (unarchive)

There are no self-loops: re-submitting the current status is an
invalid transition, not a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from ambitions.models.goal import GoalStatus


class Actor(StrEnum):
    OWNER = "owner"
    MANAGER = "manager"


class DenyReason(StrEnum):
    INVALID_TRANSITION = "invalid_transition"
    FORBIDDEN_ROLE = "forbidden_role"


_OWNER = frozenset({Actor.OWNER})
_MANAGER = frozenset({Actor.MANAGER})
_EITHER = frozenset({Actor.OWNER, Actor.MANAGER})

# (from, to) -> actors allowed to make the move
_TRANSITIONS: dict[tuple[GoalStatus, GoalStatus], frozenset[Actor]] = {
    (GoalStatus.DRAFT, GoalStatus.AWAITING_APPROVAL): _OWNER,
    (GoalStatus.DRAFT, GoalStatus.ARCHIVED): _OWNER,
    (GoalStatus.AWAITING_APPROVAL, GoalStatus.APPROVED): _MANAGER,
    (GoalStatus.AWAITING_APPROVAL, GoalStatus.DRAFT): _MANAGER,
    (GoalStatus.AWAITING_APPROVAL, GoalStatus.ARCHIVED): _EITHER,
    (GoalStatus.APPROVED, GoalStatus.ARCHIVED): _OWNER,
    (GoalStatus.APPROVED, GoalStatus.COMPLETED): _OWNER,
    (GoalStatus.ARCHIVED, GoalStatus.DRAFT): _OWNER,
}


@dataclass(frozen=True)
class TransitionDecision:
    """Outcome of evaluating one requested status change."""

    from_status: GoalStatus
    to_status: GoalStatus
    allowed: bool
    reason: DenyReason | None = None
    required_actors: frozenset[Actor] = frozenset()

    @property
    def required_role(self) -> str:
        """Human-readable role requirement, e.g. 'owner or manager'."""
        return " or ".join(sorted(self.required_actors, key=list(Actor).index))


def legal_transitions() -> dict[tuple[GoalStatus, GoalStatus], frozenset[Actor]]:
    """Return a copy of the full transition table."""
    return dict(_TRANSITIONS)


def next_statuses(current: GoalStatus) -> dict[GoalStatus, frozenset[Actor]]:
    """Statuses reachable from ``current`` and who may move there."""
    return {to: actors for (frm, to), actors in _TRANSITIONS.items() if frm == current}


def evaluate_transition(
    current: GoalStatus,
    requested: GoalStatus,
    *,
    is_owner: bool,
    is_manager: bool,
) -> TransitionDecision:
    """Decide whether an actor may move a goal from ``current`` to ``requested``.

    An unknown pair is denied INVALID_TRANSITION regardless of role. A known
    pair attempted without any of the required roles is denied
    FORBIDDEN_ROLE.
    """
    actors = _TRANSITIONS.get((current, requested))
    if actors is None:
        return TransitionDecision(
            from_status=current,
            to_status=requested,
            allowed=False,
            reason=DenyReason.INVALID_TRANSITION,
        )

    held = set()
    if is_owner:
        held.add(Actor.OWNER)
    if is_manager:
        held.add(Actor.MANAGER)

    if actors.isdisjoint(held):
        return TransitionDecision(
            from_status=current,
            to_status=requested,
            allowed=False,
            reason=DenyReason.FORBIDDEN_ROLE,
            required_actors=actors,
        )

    return TransitionDecision(
        from_status=current,
        to_status=requested,
        allowed=True,
        required_actors=actors,
    )

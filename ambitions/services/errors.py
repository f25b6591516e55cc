"""Goal service error taxonomy.

Every exception carries a machine-readable ``code`` that the API layer maps
to an HTTP status. Validation and policy errors are raised before any write,
so none of them needs a rollback.

``HierarchySyncWarning`` is deliberately not an exception: a parent summary
that could not be updated is reported next to the successful primary result
instead of failing it.
"""

from __future__ import annotations

from dataclasses import dataclass


class GoalServiceError(Exception):
    """Base class for goal service failures."""

    code = "goal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"code": self.code, "message": self.message}


class GoalValidationError(GoalServiceError):
    """Malformed request: missing or unknown value. Always caller-fixable."""

    code = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        field: str,
        allowed: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.allowed = allowed

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data["field"] = self.field
        if self.allowed is not None:
            data["allowed"] = self.allowed
        return data


class GoalNotFoundError(GoalServiceError):
    """Raised when a requested goal does not exist."""

    code = "not_found"

    def __init__(self, goal_id: str) -> None:
        super().__init__(f"Goal {goal_id} not found")
        self.goal_id = goal_id


class ForbiddenRoleError(GoalServiceError):
    """The caller lacks the role an otherwise legal operation requires."""

    code = "forbidden_role"

    def __init__(self, message: str, *, required_role: str) -> None:
        super().__init__(message)
        self.required_role = required_role

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data["required_role"] = self.required_role
        return data


class InvalidTransitionError(GoalServiceError):
    """The (from, to) status pair is not in the transition table."""

    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(f"Invalid status transition: {from_status} -> {to_status}")
        self.from_status = from_status
        self.to_status = to_status

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data["from"] = self.from_status
        data["to"] = self.to_status
        return data


class StorageError(GoalServiceError):
    """The goal store itself failed. Opaque to API callers."""

    code = "storage_error"


@dataclass(frozen=True)
class HierarchySyncWarning:
    """A parent's ladder summary could not be brought in line with its child."""

    goal_id: str
    parent_id: str
    operation: str  # attach | propagate | detach
    detail: str

    code = "hierarchy_sync_failed"

    def to_dict(self) -> dict[str, str]:
        return {
            "code": self.code,
            "goal_id": self.goal_id,
            "parent_id": self.parent_id,
            "operation": self.operation,
            "message": f"Parent {self.parent_id} summary not updated ({self.operation})",
        }

"""Goal (ambition) API endpoints.

GET    /api/v1/goals                      - List goals (filter by owner, status, type)
POST   /api/v1/goals                      - Create a goal
GET    /api/v1/goals/filters              - Filter bar options
GET    /api/v1/goals/manager-ambitions    - Approvers' business goals to ladder under
GET    /api/v1/goals/{id}                 - Get one goal with its parent backlink
PATCH  /api/v1/goals/{id}                 - Edit title, description, progress, items, parent
DELETE /api/v1/goals/{id}                 - Delete a goal (owner only)
PATCH  /api/v1/goals/{id}/status          - Change status through the transition policy
POST   /api/v1/goals/{id}/reconcile       - Re-sync the goal's ladder summaries

All endpoints require a Bearer token. Request and response bodies use
camelCase keys. Errors come back as {"detail": {"code": ..., "message": ...}}.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ambitions.api.dependencies import get_goal_service
from ambitions.auth.dependencies import CallerIdentity, get_current_caller
from ambitions.services.errors import GoalServiceError, StorageError
from ambitions.services.goal_service import GoalResult, GoalService, NewGoal

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/goals", tags=["goals"])

_HTTP_STATUS = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "invalid_transition": status.HTTP_400_BAD_REQUEST,
    "forbidden_role": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
}


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GoalItemIn(_CamelModel):
    title: str = Field(..., min_length=1, max_length=1024)
    status: str | None = None
    progress: str | None = None


class CreateGoalRequest(_CamelModel):
    title: str = Field(..., max_length=512)
    # Type and status stay plain strings so unknown values are reported
    # together with the allowed ones.
    goal_type: str | None = None
    status: str = "draft"
    description: str = Field("", max_length=8192)
    assigned_to: str | None = None
    parent_id: str | None = None
    progress: float = 0
    achievements: list[GoalItemIn] = Field(default_factory=list, alias="goalAchievements")
    actions: list[GoalItemIn] = Field(default_factory=list, alias="goalActions")


class UpdateGoalRequest(_CamelModel):
    title: str | None = Field(None, max_length=512)
    description: str | None = Field(None, max_length=8192)
    progress: float | None = None
    parent_id: str | None = None
    achievements: list[GoalItemIn] | None = Field(None, alias="goalAchievements")
    actions: list[GoalItemIn] | None = Field(None, alias="goalActions")
    status: str | None = None
    goal_type: str | None = None


class UpdateStatusRequest(BaseModel):
    status: str | None = None
    comment: str | None = Field(None, max_length=4096)


class GoalItemOut(_CamelModel):
    id: str
    title: str
    status: str
    progress: str | None = None


class LadderSummaryOut(_CamelModel):
    id: str
    title: str
    status: str
    goal_type: str | None
    description: str
    owner_id: str
    user_name: str
    avatar_url: str | None
    progress: float
    created_at: datetime
    updated_at: datetime


class ParentLinkOut(_CamelModel):
    id: str
    title: str


class SyncWarningOut(_CamelModel):
    code: str
    goal_id: str
    parent_id: str
    operation: str
    message: str


class GoalResponse(_CamelModel):
    id: str
    title: str
    status: str
    goal_type: str
    owner_id: str
    description: str
    user_name: str
    avatar_url: str | None
    parent_id: str | None
    parent: ParentLinkOut | None = None
    progress: float
    created_at: datetime
    updated_at: datetime
    achievements: list[GoalItemOut] = Field(default_factory=list, alias="goalAchievements")
    actions: list[GoalItemOut] = Field(default_factory=list, alias="goalActions")
    children: list[LadderSummaryOut] = Field(default_factory=list, alias="ladderedGoals")
    warnings: list[SyncWarningOut] = Field(default_factory=list)


class DeleteGoalResponse(_CamelModel):
    id: str
    deleted: bool = True
    warnings: list[SyncWarningOut] = Field(default_factory=list)


class ReconcileResponse(_CamelModel):
    id: str
    warnings: list[SyncWarningOut] = Field(default_factory=list)


class AvatarOption(_CamelModel):
    uid: str
    name: str
    url: str | None
    role: str | None


class AvatarSelector(_CamelModel):
    options: list[AvatarOption]
    show_items: int


class FilterOption(_CamelModel):
    label: str
    value: str


class FilterGroup(_CamelModel):
    label: str
    test_id: str = Field(..., alias="data-testid")
    options: list[FilterOption]
    single: bool = True


class GoalFiltersResponse(_CamelModel):
    avatar_selector: AvatarSelector
    filters: list[FilterGroup]


class AmbitionLink(_CamelModel):
    id: str
    title: str


class ManagerAmbitionsResponse(_CamelModel):
    title: str
    ambitions: list[AmbitionLink]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_http(exc: GoalServiceError) -> HTTPException:
    if isinstance(exc, StorageError):
        # Detail was logged by the store; callers only get a generic failure
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": exc.code, "message": "Internal server error"},
        )
    return HTTPException(
        status_code=_HTTP_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=exc.to_dict(),
    )


def _goal_response(result: GoalResult) -> GoalResponse:
    data: dict[str, Any] = result.aggregate.to_dict()
    data["warnings"] = [w.to_dict() for w in result.warnings]
    return GoalResponse.model_validate(data)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=list[GoalResponse])
async def list_goals(
    owner: str | None = Query(None, description="Only goals owned by this email"),
    goal_status: str | None = Query(None, alias="status"),
    goal_type: str | None = Query(None, alias="goalType"),
    caller: CallerIdentity = Depends(get_current_caller),
    service: GoalService = Depends(get_goal_service),
) -> list[GoalResponse]:
    """List goals, newest first."""
    try:
        aggregates = await service.list_goals(
            owner_email=owner, status=goal_status, goal_type=goal_type
        )
    except GoalServiceError as exc:
        raise _to_http(exc) from exc

    return [_goal_response(GoalResult(aggregate=a)) for a in aggregates]


@router.post("", response_model=GoalResponse, status_code=status.HTTP_201_CREATED)
async def create_goal(
    request: CreateGoalRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    service: GoalService = Depends(get_goal_service),
) -> GoalResponse:
    """Create a goal in draft (or awaiting_approval when submitted straight away)."""
    payload = NewGoal(
        title=request.title,
        goal_type=request.goal_type or "",
        status=request.status,
        description=request.description,
        assigned_to=request.assigned_to,
        parent_id=request.parent_id,
        progress=request.progress,
        achievements=[item.model_dump() for item in request.achievements],
        actions=[item.model_dump() for item in request.actions],
    )
    try:
        result = await service.create_goal(payload, caller.email)
    except GoalServiceError as exc:
        raise _to_http(exc) from exc

    return _goal_response(result)


@router.get("/filters", response_model=GoalFiltersResponse)
async def goal_filters(
    caller: CallerIdentity = Depends(get_current_caller),
    service: GoalService = Depends(get_goal_service),
) -> GoalFiltersResponse:
    return GoalFiltersResponse.model_validate(service.goal_filters())


@router.get("/manager-ambitions", response_model=ManagerAmbitionsResponse)
async def manager_ambitions(
    caller: CallerIdentity = Depends(get_current_caller),
    service: GoalService = Depends(get_goal_service),
) -> ManagerAmbitionsResponse:
    """Business ambitions of the caller's approvers, for laddering new goals."""
    try:
        data = await service.manager_ambitions(caller.email)
    except GoalServiceError as exc:
        raise _to_http(exc) from exc
    return ManagerAmbitionsResponse.model_validate(data)


@router.get("/{goal_id}", response_model=GoalResponse)
async def get_goal(
    goal_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    service: GoalService = Depends(get_goal_service),
) -> GoalResponse:
    try:
        aggregate = await service.get_goal(goal_id)
    except GoalServiceError as exc:
        raise _to_http(exc) from exc
    return _goal_response(GoalResult(aggregate=aggregate))


@router.patch("/{goal_id}", response_model=GoalResponse)
async def update_goal(
    goal_id: str,
    request: UpdateGoalRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    service: GoalService = Depends(get_goal_service),
) -> GoalResponse:
    """Edit a goal's fields. Status changes use PATCH /goals/{id}/status."""
    changes = request.model_dump(exclude_unset=True)
    try:
        result = await service.update_goal(goal_id, changes, caller.email)
    except GoalServiceError as exc:
        raise _to_http(exc) from exc
    return _goal_response(result)


@router.delete("/{goal_id}", response_model=DeleteGoalResponse)
async def delete_goal(
    goal_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    service: GoalService = Depends(get_goal_service),
) -> DeleteGoalResponse:
    try:
        warnings = await service.delete_goal(goal_id, caller.email)
    except GoalServiceError as exc:
        raise _to_http(exc) from exc
    return DeleteGoalResponse.model_validate(
        {"id": goal_id, "warnings": [w.to_dict() for w in warnings]}
    )


@router.patch("/{goal_id}/status", response_model=GoalResponse)
async def update_goal_status(
    goal_id: str,
    request: UpdateStatusRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    service: GoalService = Depends(get_goal_service),
) -> GoalResponse:
    """Move a goal to a new status.

    400 for an unknown status or a transition that is not allowed from the
    current status, 403 when the caller lacks the owner/manager role the
    transition needs, 404 when the goal does not exist.
    """
    try:
        result = await service.change_status(
            goal_id, request.status, caller.email, comment=request.comment
        )
    except GoalServiceError as exc:
        raise _to_http(exc) from exc
    return _goal_response(result)


@router.post("/{goal_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_goal(
    goal_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    service: GoalService = Depends(get_goal_service),
) -> ReconcileResponse:
    """Re-apply the goal's ladder summary to its parents."""
    try:
        warnings = await service.reconcile_goal(goal_id)
    except GoalServiceError as exc:
        raise _to_http(exc) from exc
    return ReconcileResponse.model_validate(
        {"id": goal_id, "warnings": [w.to_dict() for w in warnings]}
    )

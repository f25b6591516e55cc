"""Dependencies that hand route handlers the objects built at startup."""

from __future__ import annotations

from fastapi import Request

from ambitions.services.goal_service import GoalService


def get_goal_service(request: Request) -> GoalService:
    return request.app.state.goal_service  # type: ignore[no-any-return]

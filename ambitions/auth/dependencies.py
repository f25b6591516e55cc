"""FastAPI dependencies for caller authentication.

get_current_caller extracts the Bearer token, validates it and returns the
caller's identity. Whether the caller may act on a particular goal is
decided later by the goal service, not here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import Depends, HTTPException, Request, status

from ambitions.auth.oidc import TokenValidationError, validate_token
from ambitions.config import Settings, get_settings
from ambitions.telemetry import bind_user_context

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated caller, as asserted by the identity provider."""

    email: str
    subject: str
    name: str | None = None

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> CallerIdentity:
        return cls(
            email=str(claims["email"]).strip().lower(),
            subject=str(claims["sub"]),
            name=claims.get("name"),
        )


async def get_current_caller(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> CallerIdentity:
    """Resolve the Bearer token to a CallerIdentity. Raises HTTP 401 on any failure."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = auth_header.removeprefix("Bearer ").strip()
    try:
        claims = await validate_token(token, settings)
    except TokenValidationError as exc:
        log.info("auth.token_rejected", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    caller = CallerIdentity.from_claims(claims)
    bind_user_context(caller.email)
    return caller

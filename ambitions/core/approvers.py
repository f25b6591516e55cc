"""Approver lookup - who may approve (or send back) whose goals.

The transition policy only receives booleans; this module answers the one
question it needs resolved: "may this approver act as manager for goals
owned by this person?". The lookup is injected so a real org-chart or HR
integration can replace the configured one without touching the engine.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

import structlog

from ambitions.config import Settings

log = structlog.get_logger(__name__)


class ApproverLookup(Protocol):
    async def can_approve(self, approver_email: str, owner_email: str | None) -> bool: ...

    async def approvers_for(self, owner_email: str) -> set[str]: ...


def _norm(email: str) -> str:
    return email.strip().lower()


class ConfiguredApproverLookup:
    """Approval relationships taken from settings.

    - ``approver_emails`` may approve goals of anyone except themselves
    - ``reporting_lines`` maps an owner email to the emails that approve
      that owner's goals

    Nobody approves their own goal, even if listed as an approver.
    """

    def __init__(
        self,
        approver_emails: Iterable[str] = (),
        reporting_lines: Mapping[str, Iterable[str]] | None = None,
    ) -> None:
        self._global = {_norm(e) for e in approver_emails}
        self._lines = {
            _norm(owner): {_norm(a) for a in approvers}
            for owner, approvers in (reporting_lines or {}).items()
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> ConfiguredApproverLookup:
        return cls(settings.goal_approver_emails, settings.goal_reporting_lines)

    async def can_approve(self, approver_email: str, owner_email: str | None) -> bool:
        approver = _norm(approver_email)
        if not approver:
            return False
        if owner_email is not None and _norm(owner_email) == approver:
            return False
        if approver in self._global:
            return True
        if owner_email is None:
            return False
        return approver in self._lines.get(_norm(owner_email), set())

    async def approvers_for(self, owner_email: str) -> set[str]:
        owner = _norm(owner_email)
        return (self._global | self._lines.get(owner, set())) - {owner}

"""People directory - owner id to email, display name and avatar.

Goals store an owner id; the transition engine needs the owner's email to
decide "is the requester the owner", and ladder summaries show the owner's
name and avatar. The directory is loaded once at startup, optionally from a
YAML file:

    people:
      - id: user-1
        email: manager@employee.test
        name: James
        lastname: Miller
        profile_image_url: profile.png
        role: Manager
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import structlog
import yaml

from ambitions.config import Settings
from ambitions.models.goal import UNASSIGNED_NAME

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Person:
    id: str
    email: str
    name: str = ""
    lastname: str = ""
    profile_image_url: str | None = None
    role: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.name} {self.lastname}".strip() or UNASSIGNED_NAME

    @property
    def avatar_url(self) -> str | None:
        if not self.profile_image_url:
            return None
        return f"/profile-img/{self.profile_image_url}"


class PeopleDirectory:
    """Read-only lookup of people by id or (case-insensitive) email."""

    def __init__(self, people: Iterable[Person] = ()) -> None:
        self._by_id: dict[str, Person] = {}
        self._by_email: dict[str, Person] = {}
        for person in people:
            self._by_id[person.id] = person
            self._by_email[person.email.lower()] = person

    @classmethod
    def from_yaml(cls, path: str | Path) -> PeopleDirectory:
        """Load people from a YAML file with a top-level ``people`` list.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If an entry is missing ``id`` or ``email``.
        """
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        people = []
        for entry in raw.get("people", []):
            if not entry.get("id") or not entry.get("email"):
                raise ValueError(f"People directory entry needs id and email: {entry!r}")
            people.append(
                Person(
                    id=str(entry["id"]),
                    email=entry["email"],
                    name=entry.get("name", ""),
                    lastname=entry.get("lastname", ""),
                    profile_image_url=entry.get("profile_image_url"),
                    role=entry.get("role"),
                )
            )
        log.info("people_directory.loaded", path=str(path), count=len(people))
        return cls(people)

    @classmethod
    def from_settings(cls, settings: Settings) -> PeopleDirectory:
        if settings.people_directory_path:
            return cls.from_yaml(settings.people_directory_path)
        return cls()

    def get_by_id(self, person_id: str) -> Person | None:
        return self._by_id.get(person_id)

    def get_by_email(self, email: str) -> Person | None:
        return self._by_email.get(email.strip().lower())

    def email_for(self, person_id: str) -> str | None:
        """Email of ``person_id``.

        Callers missing from the directory own their goals under their email
        address, so an id that is itself an email resolves to itself.
        """
        person = self._by_id.get(person_id)
        if person is not None:
            return person.email
        return person_id if "@" in person_id else None

    def all(self) -> list[Person]:
        return list(self._by_id.values())

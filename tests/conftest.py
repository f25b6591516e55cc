"""
Shared test fixtures for pytest.

Provides the goal domain wiring used across test modules:
- fake_settings: Test environment configuration
- people: Directory with alice (owner), manager and bob
- approvers: manager@example.test approves everyone; alice approves bob
- store / flaky_store: In-memory goal stores (the flaky one fails chosen writes)
- yielding_store / yielding_service: Store that yields on every call, for races
- hierarchy, engine, service: Components wired around the store
- make_goal: Build a Goal with sensible defaults
- make_token: Create test JWT tokens
- test_app, client, alice_client, manager_client: FastAPI app + httpx clients
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import jwt
import pytest
from fastapi import FastAPI

from ambitions.config import Environment, Settings, get_settings
from ambitions.core.approvers import ConfiguredApproverLookup
from ambitions.models.goal import Goal, GoalStatus, GoalType
from ambitions.services.errors import StorageError
from ambitions.services.goal_service import GoalService
from ambitions.services.hierarchy import HierarchyConsistency
from ambitions.services.people import PeopleDirectory, Person
from ambitions.services.transitions import StatusTransitionEngine
from ambitions.stores.locks import KeyedLock
from ambitions.stores.memory import InMemoryGoalStore

ALICE = "alice@example.test"
MANAGER = "manager@example.test"
BOB = "bob@example.test"
STRANGER = "stranger@example.test"

TEST_JWT_SECRET = "test-jwt-secret"
TEST_AUDIENCE = "ambitions-api"


# ------------------------------------------------------------------ #
# Session-scoped: clear settings cache between test sessions
# ------------------------------------------------------------------ #

@pytest.fixture(autouse=True, scope="session")
def _clear_settings_cache():
    """Clear the lru_cache on get_settings so test overrides take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ------------------------------------------------------------------ #
# Settings & domain wiring
# ------------------------------------------------------------------ #

@pytest.fixture
def fake_settings() -> Settings:
    """Test environment settings with safe defaults."""
    return Settings(
        environment=Environment.TEST,
        dev_jwt_secret=TEST_JWT_SECRET,
        oidc_audience=TEST_AUDIENCE,
        goal_approver_emails=[MANAGER],
        goal_reporting_lines={BOB: [ALICE]},
        debug=True,
    )


@pytest.fixture
def people() -> PeopleDirectory:
    return PeopleDirectory(
        [
            Person(
                id="u-alice",
                email=ALICE,
                name="Alice",
                lastname="Smith",
                profile_image_url="alice.png",
                role="Senior Engineer",
            ),
            Person(
                id="u-manager",
                email=MANAGER,
                name="Mona",
                lastname="Manager",
                profile_image_url="profile.png",
                role="Manager",
            ),
            Person(id="u-bob", email=BOB, name="Bob", lastname="Jones", role="Engineer"),
        ]
    )


@pytest.fixture
def approvers() -> ConfiguredApproverLookup:
    return ConfiguredApproverLookup(approver_emails=[MANAGER], reporting_lines={BOB: [ALICE]})


class FlakyGoalStore(InMemoryGoalStore):
    """In-memory store whose updates fail for selected goal ids."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_updates_for: set[str] = set()

    async def update(self, goal_id: str, changes: dict[str, Any]) -> Goal | None:
        if goal_id in self.fail_updates_for:
            raise StorageError(f"Goal store update failed for {goal_id}")
        return await super().update(goal_id, changes)


@pytest.fixture
def flaky_store() -> FlakyGoalStore:
    return FlakyGoalStore()


class YieldingGoalStore(InMemoryGoalStore):
    """In-memory store that gives up the event loop on every read and write.

    Lets concurrent operations interleave the way they would against a real
    database.
    """

    async def get(self, goal_id: str) -> Goal | None:
        await asyncio.sleep(0)
        return await super().get(goal_id)

    async def list_all(self) -> list[Goal]:
        await asyncio.sleep(0)
        return await super().list_all()

    async def update(self, goal_id: str, changes: dict[str, Any]) -> Goal | None:
        await asyncio.sleep(0)
        result = await super().update(goal_id, changes)
        await asyncio.sleep(0)
        return result


@pytest.fixture
def yielding_store() -> YieldingGoalStore:
    return YieldingGoalStore()


@pytest.fixture
def yielding_service(yielding_store, people, approvers) -> GoalService:
    """GoalService wired around a YieldingGoalStore, with its own locks."""
    locks = KeyedLock()
    hierarchy = HierarchyConsistency(yielding_store, locks)
    return GoalService(yielding_store, people, approvers, hierarchy, locks)


@pytest.fixture
def store() -> InMemoryGoalStore:
    return InMemoryGoalStore()


@pytest.fixture
def locks() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def hierarchy(store, locks) -> HierarchyConsistency:
    return HierarchyConsistency(store, locks)


@pytest.fixture
def engine(store, people, approvers, hierarchy, locks) -> StatusTransitionEngine:
    return StatusTransitionEngine(store, people, approvers, hierarchy, locks)


@pytest.fixture
def service(store, people, approvers, hierarchy, locks) -> GoalService:
    return GoalService(store, people, approvers, hierarchy, locks)


_BASE_TIME = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


@pytest.fixture
def make_goal() -> Callable[..., Goal]:
    """Factory for goals. Each call is one minute newer than the previous one."""
    counter = iter(range(10_000))

    def _make(
        goal_id: str,
        *,
        status: GoalStatus = GoalStatus.DRAFT,
        owner_id: str = "u-alice",
        goal_type: GoalType = GoalType.BUSINESS,
        parent_id: str | None = None,
        title: str | None = None,
        progress: float = 0,
    ) -> Goal:
        created = _BASE_TIME + timedelta(minutes=next(counter))
        return Goal(
            id=goal_id,
            title=title or f"Goal {goal_id}",
            status=status,
            goal_type=goal_type,
            owner_id=owner_id,
            description=f"Description of {goal_id}",
            user_name="Alice Smith" if owner_id == "u-alice" else "Unassigned",
            parent_id=parent_id,
            progress=progress,
            created_at=created,
            updated_at=created,
        )

    return _make


# ------------------------------------------------------------------ #
# JWTs
# ------------------------------------------------------------------ #

def make_token(
    email: str,
    sub: str | None = None,
    *,
    secret: str = TEST_JWT_SECRET,
    audience: str = TEST_AUDIENCE,
    expires_in: int = 3600,
    **extra: Any,
) -> str:
    """Create a test JWT token using HS256."""
    now = int(datetime.now(UTC).timestamp())
    payload = {
        "sub": sub or f"ext-{email.split('@')[0]}",
        "email": email,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        "jti": str(uuid.uuid4()),
        **extra,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(email: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(email)}"}


@pytest.fixture
def token_for() -> Callable[..., str]:
    return make_token


@pytest.fixture
def headers_for() -> Callable[[str], dict[str, str]]:
    return auth_headers


# ------------------------------------------------------------------ #
# App & HTTP clients
# ------------------------------------------------------------------ #

@pytest.fixture
def test_app(fake_settings: Settings, service: GoalService, store, monkeypatch) -> FastAPI:
    """FastAPI app with test settings and the fixture-built goal service.

    httpx's ASGITransport does not run the lifespan, so the state it would
    populate is set directly.
    """
    from ambitions.main import create_app

    get_settings.cache_clear()
    monkeypatch.setattr("ambitions.main.get_settings", lambda: fake_settings)

    app = create_app()
    app.dependency_overrides[get_settings] = lambda: fake_settings
    app.state.goal_store = store
    app.state.goal_service = service
    return app


@pytest.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Unauthenticated async HTTP client."""
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
async def alice_client(test_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
        headers=auth_headers(ALICE),
    ) as ac:
        yield ac


@pytest.fixture
async def manager_client(test_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
        headers=auth_headers(MANAGER),
    ) as ac:
        yield ac

"""Shared fixtures for the test suite."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from app.container import get_orchestrator
from app.fitness.cache import DerivedValueCache
from app.fitness.models import ActivityLevel, Gender, Goal, Profile
from app.fitness.orchestrator import UserDataOrchestrator
from app.fitness.store import InMemoryProfileStore
from app.main import app

STEP_IDS = ("profile", "goals", "diet_preferences", "workout_preferences")


# ---------------------------------------------------------------------------
# Fake clock & fake DB session (no real Postgres needed)
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSession:
    """Minimal stand-in for AsyncSession used in store tests."""

    def __init__(self, rows: list[dict[str, Any]] | None = None):
        self._rows = rows or []
        self.executed: list[tuple[str, dict | None]] = []
        self.commits = 0

    async def execute(self, stmt, params=None):
        self.executed.append((str(stmt), params))
        return FakeResult(self._rows)

    async def commit(self):
        self.commits += 1

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


class FakeResult:
    def __init__(self, rows: list[dict[str, Any]]):
        self._rows = rows
        self._keys = list(rows[0].keys()) if rows else []

    def keys(self):
        return self._keys

    def fetchone(self):
        if not self._rows:
            return None
        return tuple(self._rows[0][k] for k in self._keys)

    def fetchall(self):
        return [tuple(r[k] for k in self._keys) for r in self._rows]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_profile(**overrides) -> Profile:
    defaults = dict(
        gender=Gender.male,
        age=30,
        height=175.0,
        weight=80.0,
        activity_level=ActivityLevel.moderate,
    )
    defaults.update(overrides)
    return Profile(**defaults)


def make_goal(**overrides) -> Goal:
    defaults = dict(target_weight=70.0, weekly_loss_rate=0.5, time_frame=20, deficit_percentage=20.0)
    defaults.update(overrides)
    return Goal(**defaults)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def cache(clock):
    return DerivedValueCache(default_ttl=300.0, clock=clock)


@pytest.fixture()
def store():
    return InMemoryProfileStore()


@pytest.fixture()
def orchestrator(store, cache):
    return UserDataOrchestrator(store=store, cache=cache, step_ids=STEP_IDS, ttl_seconds=300.0)


@pytest.fixture()
def override_orchestrator(orchestrator):
    """Override the FastAPI dependency so no lifespan wiring is needed."""
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield orchestrator
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_orchestrator):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

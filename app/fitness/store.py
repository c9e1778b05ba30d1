"""Persistence port for raw profile, goal and onboarding records.

`ProfileStore` is the contract the orchestrator depends on. Two
implementations: an in-memory store for development and tests, and a
PostgreSQL store over SQLAlchemy async sessions.

Tables (SqlProfileStore):
  user_profiles     user_id PK, gender, age, height, weight, activity_level, body_fat_percentage
  user_goals        user_id PK, target_weight, weekly_loss_rate, time_frame,
                    diet_preference, deficit_percentage, current_weight
  onboarding_steps  (user_id, step_id) PK, completed_at
"""

from __future__ import annotations

from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.fitness.models import Goal, Profile


class ProfileStore(Protocol):
    async def load_profile(self, user_id: str) -> Profile | None: ...

    async def save_profile(self, user_id: str, profile: Profile) -> None: ...

    async def load_goal(self, user_id: str) -> Goal | None: ...

    async def save_goal(self, user_id: str, goal: Goal) -> None: ...

    async def load_completed_steps(self, user_id: str) -> list[str]: ...

    async def add_completed_step(self, user_id: str, step_id: str) -> None: ...


class InMemoryProfileStore:
    """Dict-backed store. Single process only."""

    def __init__(self) -> None:
        self._profiles: dict[str, Profile] = {}
        self._goals: dict[str, Goal] = {}
        self._steps: dict[str, list[str]] = {}

    async def load_profile(self, user_id: str) -> Profile | None:
        return self._profiles.get(user_id)

    async def save_profile(self, user_id: str, profile: Profile) -> None:
        self._profiles[user_id] = profile

    async def load_goal(self, user_id: str) -> Goal | None:
        return self._goals.get(user_id)

    async def save_goal(self, user_id: str, goal: Goal) -> None:
        self._goals[user_id] = goal

    async def load_completed_steps(self, user_id: str) -> list[str]:
        return list(self._steps.get(user_id, []))

    async def add_completed_step(self, user_id: str, step_id: str) -> None:
        steps = self._steps.setdefault(user_id, [])
        if step_id not in steps:
            steps.append(step_id)


SCHEMA_STATEMENTS = (
    "CREATE TABLE IF NOT EXISTS user_profiles ("
    " user_id TEXT PRIMARY KEY,"
    " gender TEXT, age INTEGER, height DOUBLE PRECISION, weight DOUBLE PRECISION,"
    " activity_level TEXT, body_fat_percentage DOUBLE PRECISION,"
    " updated_at TIMESTAMPTZ NOT NULL DEFAULT now())",
    "CREATE TABLE IF NOT EXISTS user_goals ("
    " user_id TEXT PRIMARY KEY,"
    " target_weight DOUBLE PRECISION NOT NULL, weekly_loss_rate DOUBLE PRECISION NOT NULL,"
    " time_frame INTEGER NOT NULL, diet_preference TEXT NOT NULL,"
    " deficit_percentage DOUBLE PRECISION NOT NULL, current_weight DOUBLE PRECISION,"
    " updated_at TIMESTAMPTZ NOT NULL DEFAULT now())",
    "CREATE TABLE IF NOT EXISTS onboarding_steps ("
    " user_id TEXT NOT NULL, step_id TEXT NOT NULL,"
    " completed_at TIMESTAMPTZ NOT NULL DEFAULT now(),"
    " PRIMARY KEY (user_id, step_id))",
)


class SqlProfileStore:
    """PostgreSQL store. Opens one session per call and commits writes before returning."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def ensure_schema(self) -> None:
        async with self._sessionmaker() as session:
            for stmt in SCHEMA_STATEMENTS:
                await session.execute(text(stmt))
            await session.commit()

    async def _fetch_one(self, query: str, params: dict[str, Any]) -> dict[str, Any] | None:
        async with self._sessionmaker() as session:
            result = await session.execute(text(query), params)
            row = result.fetchone()
            if row is None:
                return None
            return dict(zip(result.keys(), row))

    async def _write(self, query: str, params: dict[str, Any]) -> None:
        async with self._sessionmaker() as session:
            await session.execute(text(query), params)
            await session.commit()

    async def load_profile(self, user_id: str) -> Profile | None:
        row = await self._fetch_one(
            "SELECT gender, age, height, weight, activity_level, body_fat_percentage "
            "FROM user_profiles WHERE user_id = :user_id",
            {"user_id": user_id},
        )
        if row is None:
            return None
        return Profile(**row)

    async def save_profile(self, user_id: str, profile: Profile) -> None:
        params = profile.model_dump(mode="json")
        params["user_id"] = user_id
        await self._write(
            "INSERT INTO user_profiles "
            "(user_id, gender, age, height, weight, activity_level, body_fat_percentage) "
            "VALUES (:user_id, :gender, :age, :height, :weight, :activity_level, :body_fat_percentage) "
            "ON CONFLICT (user_id) DO UPDATE SET "
            "gender = EXCLUDED.gender, age = EXCLUDED.age, height = EXCLUDED.height, "
            "weight = EXCLUDED.weight, activity_level = EXCLUDED.activity_level, "
            "body_fat_percentage = EXCLUDED.body_fat_percentage, updated_at = now()",
            params,
        )

    async def load_goal(self, user_id: str) -> Goal | None:
        row = await self._fetch_one(
            "SELECT target_weight, weekly_loss_rate, time_frame, diet_preference, "
            "deficit_percentage, current_weight "
            "FROM user_goals WHERE user_id = :user_id",
            {"user_id": user_id},
        )
        if row is None:
            return None
        return Goal(**row)

    async def save_goal(self, user_id: str, goal: Goal) -> None:
        params = goal.model_dump(mode="json")
        params["user_id"] = user_id
        await self._write(
            "INSERT INTO user_goals "
            "(user_id, target_weight, weekly_loss_rate, time_frame, diet_preference, "
            "deficit_percentage, current_weight) "
            "VALUES (:user_id, :target_weight, :weekly_loss_rate, :time_frame, :diet_preference, "
            ":deficit_percentage, :current_weight) "
            "ON CONFLICT (user_id) DO UPDATE SET "
            "target_weight = EXCLUDED.target_weight, weekly_loss_rate = EXCLUDED.weekly_loss_rate, "
            "time_frame = EXCLUDED.time_frame, diet_preference = EXCLUDED.diet_preference, "
            "deficit_percentage = EXCLUDED.deficit_percentage, "
            "current_weight = EXCLUDED.current_weight, updated_at = now()",
            params,
        )

    async def load_completed_steps(self, user_id: str) -> list[str]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                text(
                    "SELECT step_id FROM onboarding_steps "
                    "WHERE user_id = :user_id ORDER BY completed_at"
                ),
                {"user_id": user_id},
            )
            return [row[0] for row in result.fetchall()]

    async def add_completed_step(self, user_id: str, step_id: str) -> None:
        # DO NOTHING keeps the first completion time; steps are never removed.
        await self._write(
            "INSERT INTO onboarding_steps (user_id, step_id) VALUES (:user_id, :step_id) "
            "ON CONFLICT (user_id, step_id) DO NOTHING",
            {"user_id": user_id, "step_id": step_id},
        )

"""Explicit wiring of the orchestrator and its collaborators.

The orchestrator lives on ``app.state`` and reaches handlers through the
``get_orchestrator`` dependency; tests swap it via dependency_overrides.
"""

from __future__ import annotations

from fastapi import Request

from app.config import Settings
from app.fitness.cache import DerivedValueCache
from app.fitness.orchestrator import UserDataOrchestrator
from app.fitness.store import InMemoryProfileStore, ProfileStore


def build_store(cfg: Settings) -> ProfileStore:
    if cfg.store_backend == "sql":
        from app.db import make_sessionmaker
        from app.fitness.store import SqlProfileStore

        return SqlProfileStore(make_sessionmaker(cfg.database_url))
    if cfg.store_backend == "memory":
        return InMemoryProfileStore()
    raise ValueError(f"Unknown store_backend: {cfg.store_backend}")


def build_orchestrator(cfg: Settings, store: ProfileStore | None = None) -> UserDataOrchestrator:
    return UserDataOrchestrator(
        store=store if store is not None else build_store(cfg),
        cache=DerivedValueCache(default_ttl=cfg.cache_ttl_seconds),
        step_ids=cfg.onboarding_steps,
        ttl_seconds=cfg.cache_ttl_seconds,
        calorie_floor=cfg.metrics_calorie_floor,
        eager_recompute=cfg.metrics_eager_recompute,
        max_weekly_loss_rate=cfg.goals_max_weekly_loss_rate,
        max_time_frame=cfg.goals_max_time_frame_weeks,
    )


def get_orchestrator(request: Request) -> UserDataOrchestrator:
    return request.app.state.orchestrator

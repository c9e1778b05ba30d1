"""User-data orchestrator: the only place engine, cache, tracker and store meet.

Write path: persist, then invalidate every cached artifact of the user,
then return. Read path: cache hit, or load inputs, compute, and store
under the version stamp taken before loading so a result computed from
inputs that were overwritten meanwhile is never cached.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Iterable

from app.fitness import engine
from app.fitness.cache import (
    DATED_KINDS,
    DEFAULT_TTL_SECONDS,
    PROJECTION_KIND,
    DerivedValueCache,
    dated_key,
    dated_prefix,
    metrics_key,
)
from app.fitness.errors import CacheUnavailableError, IncompleteInputError, RecordNotFoundError
from app.fitness.models import DerivedMetrics, Goal, OnboardingProgress, Profile, WeightProjection
from app.fitness.onboarding import OnboardingStepTracker
from app.fitness.store import ProfileStore

logger = logging.getLogger(__name__)


class UserDataOrchestrator:
    def __init__(
        self,
        store: ProfileStore,
        cache: DerivedValueCache,
        step_ids: Iterable[str],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        calorie_floor: int = 0,
        eager_recompute: bool = False,
        max_weekly_loss_rate: float = 2.0,
        max_time_frame: int = 104,
    ):
        self.store = store
        self.cache = cache
        self.step_ids = tuple(step_ids)
        self.ttl_seconds = ttl_seconds
        self.calorie_floor = calorie_floor
        self.eager_recompute = eager_recompute
        self.max_weekly_loss_rate = max_weekly_loss_rate
        self.max_time_frame = max_time_frame

    # ------------------------------------------------------------------
    # Raw records
    # ------------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Profile:
        profile = await self.store.load_profile(user_id)
        if profile is None:
            raise RecordNotFoundError("profile", user_id)
        return profile

    async def get_goal(self, user_id: str) -> Goal:
        goal = await self.store.load_goal(user_id)
        if goal is None:
            raise RecordNotFoundError("goal", user_id)
        return goal

    async def on_profile_updated(self, user_id: str, profile: Profile) -> DerivedMetrics | None:
        await self.store.save_profile(user_id, profile)
        self.invalidate_user(user_id)
        return await self._maybe_recompute(user_id)

    async def on_goal_updated(self, user_id: str, goal: Goal) -> DerivedMetrics | None:
        engine.validate_goal(goal, self.max_weekly_loss_rate, self.max_time_frame)
        await self.store.save_goal(user_id, goal)
        self.invalidate_user(user_id)
        return await self._maybe_recompute(user_id)

    def invalidate_user(self, user_id: str) -> None:
        """Drop the user's metrics and every per-date artifact. Synchronous."""
        try:
            self.cache.invalidate(metrics_key(user_id))
            dropped = sum(self.cache.invalidate_by_prefix(dated_prefix(kind, user_id)) for kind in DATED_KINDS)
        except CacheUnavailableError:
            logger.warning("cache unavailable; nothing to invalidate for user %s", user_id)
            return
        logger.info("invalidated cached metrics for user %s (+%d dated artifacts)", user_id, dropped)

    async def _maybe_recompute(self, user_id: str) -> DerivedMetrics | None:
        if not self.eager_recompute:
            return None
        try:
            return await self.get_derived_metrics(user_id)
        except (RecordNotFoundError, IncompleteInputError) as exc:
            logger.debug("eager recompute skipped for user %s: %s", user_id, exc)
            return None

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    async def get_derived_metrics(self, user_id: str) -> DerivedMetrics:
        metrics = await self._read_through(
            metrics_key(user_id),
            user_id,
            lambda profile, goal: engine.compute(profile, goal, self.calorie_floor),
        )
        if metrics.unsafe_deficit:
            logger.warning("user %s: calorie target clamped to %d kcal", user_id, metrics.calorie_target)
        return metrics

    async def get_weight_projection(self, user_id: str, start_date: date) -> WeightProjection:
        return await self._read_through(
            dated_key(PROJECTION_KIND, user_id, start_date),
            user_id,
            lambda profile, goal: engine.project(profile, goal, start_date),
        )

    async def _read_through(
        self,
        key: str,
        user_id: str,
        build: Callable[[Profile, Goal], Any],
    ) -> Any:
        cache_ok = True
        stamp = 0
        try:
            cached = self.cache.get(key)
            if cached is not None:
                return cached
            stamp = self.cache.reserve(key)
        except CacheUnavailableError:
            logger.warning("cache unavailable; computing %s without caching", key)
            cache_ok = False

        try:
            profile = await self.get_profile(user_id)
            goal = await self.get_goal(user_id)
            value = build(profile, goal)

            if cache_ok:
                try:
                    if not self.cache.put(key, value, self.ttl_seconds, expected_version=stamp):
                        logger.debug("discarded %s: inputs changed while computing", key)
                except CacheUnavailableError:
                    logger.warning("cache unavailable; %s not stored", key)
        finally:
            if cache_ok:
                self.cache.release(key)
        return value

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------

    async def _tracker(self, user_id: str) -> OnboardingStepTracker:
        completed = await self.store.load_completed_steps(user_id)
        return OnboardingStepTracker(self.step_ids, completed)

    async def mark_onboarding_step_complete(self, user_id: str, step_id: str) -> OnboardingProgress:
        tracker = await self._tracker(user_id)
        if tracker.mark_complete(step_id):
            await self.store.add_completed_step(user_id, step_id)
            if tracker.has_completed_all():
                logger.info("user %s completed onboarding", user_id)
        return tracker.progress()

    async def get_onboarding_progress(self, user_id: str) -> OnboardingProgress:
        tracker = await self._tracker(user_id)
        return tracker.progress()

"""User-data HTTP router: profile, goal, derived metrics, onboarding."""

from __future__ import annotations

from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query

from app.auth import verify_api_key
from app.container import get_orchestrator
from app.fitness.errors import (
    FitnessError,
    IncompleteInputError,
    InvalidGoalError,
    RecordNotFoundError,
    UnknownStepError,
)
from app.fitness.models import (
    DerivedMetrics,
    Goal,
    OnboardingProgress,
    Profile,
    UpdateResult,
    WeightProjection,
)
from app.fitness.orchestrator import UserDataOrchestrator
from app.fitness.steps import list_steps

router = APIRouter(tags=["users"])


def _parse_date(value: str, name: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid date for '{name}': {value}")


def _http_error(exc: FitnessError) -> HTTPException:
    if isinstance(exc, (RecordNotFoundError, UnknownStepError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, IncompleteInputError):
        return HTTPException(status_code=409, detail={"message": str(exc), "missing": exc.missing})
    if isinstance(exc, InvalidGoalError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


# ---------------------------------------------------------------------------
# /users/{user_id}/profile, /users/{user_id}/goal
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/profile", response_model=Profile)
async def read_profile(
    user_id: str,
    orchestrator: UserDataOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key),
) -> Profile:
    try:
        return await orchestrator.get_profile(user_id)
    except FitnessError as exc:
        raise _http_error(exc) from exc


@router.put("/users/{user_id}/profile", response_model=UpdateResult)
async def write_profile(
    user_id: str,
    profile: Profile,
    orchestrator: UserDataOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key),
) -> UpdateResult:
    metrics = await orchestrator.on_profile_updated(user_id, profile)
    return UpdateResult(user_id=user_id, metrics=metrics)


@router.get("/users/{user_id}/goal", response_model=Goal)
async def read_goal(
    user_id: str,
    orchestrator: UserDataOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key),
) -> Goal:
    try:
        return await orchestrator.get_goal(user_id)
    except FitnessError as exc:
        raise _http_error(exc) from exc


@router.put("/users/{user_id}/goal", response_model=UpdateResult)
async def write_goal(
    user_id: str,
    goal: Goal,
    orchestrator: UserDataOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key),
) -> UpdateResult:
    try:
        metrics = await orchestrator.on_goal_updated(user_id, goal)
    except FitnessError as exc:
        raise _http_error(exc) from exc
    return UpdateResult(user_id=user_id, metrics=metrics)


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/metrics", response_model=DerivedMetrics)
async def read_metrics(
    user_id: str,
    orchestrator: UserDataOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key),
) -> DerivedMetrics:
    try:
        return await orchestrator.get_derived_metrics(user_id)
    except FitnessError as exc:
        raise _http_error(exc) from exc


@router.get("/users/{user_id}/projection", response_model=WeightProjection)
async def read_projection(
    user_id: str,
    orchestrator: UserDataOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key),
    start: str | None = Query(default=None, description="Start date (YYYY-MM-DD, default: today UTC)"),
) -> WeightProjection:
    start_date = _parse_date(start, "start") if start else datetime.now(timezone.utc).date()
    try:
        return await orchestrator.get_weight_projection(user_id, start_date)
    except FitnessError as exc:
        raise _http_error(exc) from exc


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------


@router.get("/onboarding/steps")
async def onboarding_steps(
    orchestrator: UserDataOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key),
) -> list[dict]:
    steps = list_steps(orchestrator.step_ids)
    return [{"id": s.id, "label": s.label, "description": s.description} for s in steps]


@router.get("/users/{user_id}/onboarding", response_model=OnboardingProgress)
async def read_onboarding(
    user_id: str,
    orchestrator: UserDataOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key),
) -> OnboardingProgress:
    return await orchestrator.get_onboarding_progress(user_id)


@router.post("/users/{user_id}/onboarding/{step_id}", response_model=OnboardingProgress)
async def complete_onboarding_step(
    user_id: str,
    step_id: str,
    orchestrator: UserDataOrchestrator = Depends(get_orchestrator),
    _: str = Depends(verify_api_key),
) -> OnboardingProgress:
    try:
        return await orchestrator.mark_onboarding_step_complete(user_id, step_id)
    except FitnessError as exc:
        raise _http_error(exc) from exc

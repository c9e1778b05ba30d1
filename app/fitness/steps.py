"""Onboarding step catalogue: configuration only."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from app.config import settings


@dataclass(frozen=True, slots=True)
class OnboardingStep:
    id: str
    label: str
    description: str = ""


KNOWN_STEPS: dict[str, OnboardingStep] = {
    "profile": OnboardingStep(
        id="profile",
        label="Profile",
        description="Age, gender, height, weight and activity level.",
    ),
    "goals": OnboardingStep(
        id="goals",
        label="Goals",
        description="Target weight, weekly rate and time frame.",
    ),
    "diet_preferences": OnboardingStep(
        id="diet_preferences",
        label="Diet preferences",
        description="Diet style used for the macro split.",
    ),
    "workout_preferences": OnboardingStep(
        id="workout_preferences",
        label="Workout preferences",
        description="Training split and weekly sessions.",
    ),
}


def configured_step_ids() -> tuple[str, ...]:
    """Step ids required for onboarding to count as complete, in order."""
    return tuple(settings.onboarding_steps)


def get_step(step_id: str) -> OnboardingStep:
    return KNOWN_STEPS.get(step_id) or OnboardingStep(id=step_id, label=step_id.replace("_", " ").title())


def list_steps(step_ids: Iterable[str] | None = None) -> list[OnboardingStep]:
    """Catalogue entries for `step_ids`, defaulting to the configured steps."""
    if step_ids is None:
        step_ids = configured_step_ids()
    return [get_step(s) for s in step_ids]

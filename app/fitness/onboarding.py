"""Onboarding step completion tracker.

State is a subset of a fixed set of step ids. Steps can only be added:
there is no operation that un-completes a step.
"""

from __future__ import annotations

from typing import Iterable

from app.fitness.errors import UnknownStepError
from app.fitness.models import OnboardingProgress


class OnboardingStepTracker:
    def __init__(self, step_ids: Iterable[str], completed: Iterable[str] = ()):
        self._step_ids: tuple[str, ...] = tuple(dict.fromkeys(step_ids))
        self._completed: set[str] = set()
        # Previously stored steps that are no longer in the catalogue are ignored.
        for step_id in completed:
            if step_id in self._step_ids:
                self._completed.add(step_id)

    @property
    def step_ids(self) -> tuple[str, ...]:
        return self._step_ids

    def mark_complete(self, step_id: str) -> bool:
        """Mark `step_id` complete. Returns True if this call changed the state."""
        if step_id not in self._step_ids:
            raise UnknownStepError(step_id)
        if step_id in self._completed:
            return False
        self._completed.add(step_id)
        return True

    def has_completed_step(self, step_id: str) -> bool:
        return step_id in self._completed

    def has_completed_all(self) -> bool:
        return all(s in self._completed for s in self._step_ids)

    def completion_ratio(self) -> float:
        if not self._step_ids:
            return 1.0
        return len(self._completed) / len(self._step_ids)

    def completed_steps(self) -> list[str]:
        return [s for s in self._step_ids if s in self._completed]

    def remaining_steps(self) -> list[str]:
        return [s for s in self._step_ids if s not in self._completed]

    def progress(self) -> OnboardingProgress:
        return OnboardingProgress(
            ratio=self.completion_ratio(),
            completed_steps=self.completed_steps(),
            remaining_steps=self.remaining_steps(),
            complete=self.has_completed_all(),
        )

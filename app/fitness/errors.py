"""Domain errors for the metrics engine, cache and onboarding tracker."""

from __future__ import annotations


class FitnessError(Exception):
    """Base class for every error raised by app.fitness."""


class IncompleteInputError(FitnessError):
    """Engine invoked with required profile fields missing."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required profile fields: {', '.join(missing)}")


class InvalidGoalError(FitnessError):
    """Goal parameters outside sane bounds; rejected before the engine runs."""


class RecordNotFoundError(FitnessError):
    """No stored profile or goal for the user."""

    def __init__(self, record: str, user_id: str):
        self.record = record
        self.user_id = user_id
        super().__init__(f"No {record} stored for user {user_id}")


class UnknownStepError(FitnessError):
    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Unknown onboarding step: {step_id}")


class CacheUnavailableError(FitnessError):
    """The derived-value cache cannot serve requests (e.g. closed)."""


class UnsafeDeficitWarning(UserWarning):
    """Deficit would push the calorie target below the safety floor."""

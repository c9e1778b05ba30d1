"""Derived-metrics engine: pure functions over a profile/goal pair.

TDEE, deficit and calorie target round half-up (``floor(x + 0.5)``).
BMR is never rounded.
"""

from __future__ import annotations

import math
import warnings
from datetime import date, timedelta

from app.fitness.errors import IncompleteInputError, InvalidGoalError, UnsafeDeficitWarning
from app.fitness.models import DerivedMetrics, Gender, Goal, MacroTargets, Profile, WeightProjection
from app.fitness.tables import (
    ACTIVITY_MULTIPLIERS,
    DEFAULT_ACTIVITY_MULTIPLIER,
    GOAL_TOLERANCE_KG,
    KCAL_PER_KG_FAT,
    MAX_GOAL_WEEKS,
    PROTEIN_G_PER_KG,
    get_macro_split,
)

REQUIRED_PROFILE_FIELDS = ("weight", "height", "age", "gender", "activity_level")


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


# ---------------------------------------------------------------------------
# Energy expenditure
# ---------------------------------------------------------------------------

def bmr(weight: float, height: float, age: int, gender: Gender | str) -> float:
    """Mifflin–St Jeor basal metabolic rate in kcal/day (unrounded)."""
    base = 10 * weight + 6.25 * height - 5 * age
    if Gender(gender) == Gender.male:
        return base + 5
    return base - 161


def activity_multiplier(level: str | None) -> float:
    """Multiplier for an activity level. Unknown or missing levels count as sedentary."""
    if level is None:
        return DEFAULT_ACTIVITY_MULTIPLIER
    key = level.value if hasattr(level, "value") else str(level)
    return ACTIVITY_MULTIPLIERS.get(key, DEFAULT_ACTIVITY_MULTIPLIER)


def tdee(bmr_kcal: float, level: str | None) -> int:
    return round_half_up(bmr_kcal * activity_multiplier(level))


def daily_deficit(tdee_kcal: int, deficit_percentage: float) -> int:
    return round_half_up(tdee_kcal * deficit_percentage / 100)


def calorie_target(tdee_kcal: int, deficit_kcal: int, floor: int = 0) -> tuple[int, bool]:
    """Return (target, clamped). The target is never below `floor`."""
    target = round_half_up(tdee_kcal - deficit_kcal)
    if target < floor:
        return floor, True
    return target, False


def weekly_weight_loss_kg(deficit_kcal: float) -> float:
    return deficit_kcal * 7 / KCAL_PER_KG_FAT


def projected_days_to_goal(current_weight: float, target_weight: float, weekly_loss_rate: float) -> int:
    """Days until target at a linear weekly rate. 0 when met or no progress is possible."""
    if weekly_loss_rate <= 0 or current_weight <= target_weight:
        return 0
    return math.ceil((current_weight - target_weight) / weekly_loss_rate * 7)


# ---------------------------------------------------------------------------
# Body composition & macros
# ---------------------------------------------------------------------------

def bmi(weight: float, height: float) -> float:
    height_m = height / 100
    return round(weight / (height_m * height_m), 1)


def lean_mass(weight: float, body_fat_percentage: float) -> float:
    return round(weight * (100 - body_fat_percentage) / 100, 1)


def fat_mass(weight: float, body_fat_percentage: float) -> float:
    return round(weight * body_fat_percentage / 100, 1)


def macro_targets(weight: float, calories: int, diet: str | None = None) -> MacroTargets:
    """Split `calories` by diet preference; protein is set from body weight (1.8 g/kg)."""
    split = get_macro_split(diet)
    fat_kcal = round_half_up(calories * split.fat_pct / 100)
    carb_kcal = round_half_up(calories * split.carb_pct / 100)
    return MacroTargets(
        protein_grams=round_half_up(weight * PROTEIN_G_PER_KG),
        fat_grams=round_half_up(fat_kcal / 9),
        carb_grams=round_half_up(carb_kcal / 4),
        protein_percentage=split.protein_pct,
        fat_percentage=split.fat_pct,
        carb_percentage=split.carb_pct,
    )


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------

def project_weight_loss(
    start_weight: float,
    target_weight: float,
    weeks: int,
    weekly_loss_rate: float,
) -> list[float]:
    """Week-by-week weights (index 0 = start). Loss shrinks with body weight, stops at target."""
    if weeks <= 0:
        return [start_weight]

    floor_weight = min(start_weight, target_weight)
    weights = [start_weight]
    current = start_weight
    rate = max(weekly_loss_rate, 0.0)
    for _ in range(weeks):
        current -= (current / start_weight) * rate
        if current < floor_weight:
            current = floor_weight
        weights.append(round(current, 1))
    return weights


def weeks_to_goal(
    current_weight: float,
    target_weight: float,
    weekly_pct: float,
    max_weeks: int = MAX_GOAL_WEEKS,
) -> int:
    """Weeks to reach `target_weight` losing `weekly_pct` percent of current weight each week.

    Counts stop within GOAL_TOLERANCE_KG of the target, or at `max_weeks`
    when the rate never gets there. 0 when the target is not below the
    current weight.
    """
    if target_weight >= current_weight:
        return 0

    simulated = current_weight
    weeks = 0
    while simulated > target_weight and weeks < max_weeks:
        simulated -= simulated * weekly_pct / 100
        weeks += 1
        if simulated <= target_weight + GOAL_TOLERANCE_KG:
            break
    return weeks


# ---------------------------------------------------------------------------
# Validation & top-level compute
# ---------------------------------------------------------------------------

def missing_profile_fields(profile: Profile) -> list[str]:
    return [name for name in REQUIRED_PROFILE_FIELDS if getattr(profile, name) is None]


def validate_goal(
    goal: Goal,
    max_weekly_loss_rate: float = 2.0,
    max_time_frame: int = 104,
) -> None:
    """Reject goals outside sane bounds. A zero or negative rate is allowed (no progress)."""
    if goal.time_frame < 0:
        raise InvalidGoalError(f"time_frame must be >= 0 weeks, got {goal.time_frame}")
    if goal.time_frame > max_time_frame:
        raise InvalidGoalError(f"time_frame must be <= {max_time_frame} weeks, got {goal.time_frame}")
    if goal.weekly_loss_rate > max_weekly_loss_rate:
        raise InvalidGoalError(
            f"weekly_loss_rate must be <= {max_weekly_loss_rate} kg/week, got {goal.weekly_loss_rate}"
        )
    if not 0 <= goal.deficit_percentage <= 100:
        raise InvalidGoalError(f"deficit_percentage must be within 0-100, got {goal.deficit_percentage}")


def compute(profile: Profile, goal: Goal, calorie_floor: int = 0) -> DerivedMetrics:
    """Derive all metrics for a profile/goal pair.

    Raises IncompleteInputError when a required profile field is absent.
    When the deficit would push the calorie target under `calorie_floor`
    the target is clamped, an UnsafeDeficitWarning is emitted and the
    result is flagged with ``unsafe_deficit``.
    """
    missing = missing_profile_fields(profile)
    if missing:
        raise IncompleteInputError(missing)

    bmr_kcal = bmr(profile.weight, profile.height, profile.age, profile.gender)
    tdee_kcal = tdee(bmr_kcal, profile.activity_level)
    deficit = daily_deficit(tdee_kcal, goal.deficit_percentage)
    target, clamped = calorie_target(tdee_kcal, deficit, calorie_floor)

    messages: list[str] = []
    if clamped:
        msg = (
            f"Deficit of {deficit} kcal/day would put the calorie target below "
            f"{calorie_floor} kcal/day; target clamped."
        )
        warnings.warn(msg, UnsafeDeficitWarning, stacklevel=2)
        messages.append(msg)

    current_weight = goal.current_weight if goal.current_weight is not None else profile.weight

    lean = fat = None
    if profile.body_fat_percentage is not None:
        lean = lean_mass(profile.weight, profile.body_fat_percentage)
        fat = fat_mass(profile.weight, profile.body_fat_percentage)

    return DerivedMetrics(
        bmr=bmr_kcal,
        tdee=tdee_kcal,
        daily_deficit=deficit,
        calorie_target=target,
        weekly_weight_loss_kg=weekly_weight_loss_kg(deficit),
        projected_days_to_goal=projected_days_to_goal(current_weight, goal.target_weight, goal.weekly_loss_rate),
        bmi=bmi(profile.weight, profile.height),
        lean_mass=lean,
        fat_mass=fat,
        macros=macro_targets(profile.weight, target, goal.diet_preference),
        unsafe_deficit=clamped,
        warnings=messages,
    )


def project(profile: Profile, goal: Goal, start_date: date) -> WeightProjection:
    """Weight trajectory over the goal time frame, starting on `start_date`."""
    if profile.weight is None and goal.current_weight is None:
        raise IncompleteInputError(["weight"])

    current_weight = goal.current_weight if goal.current_weight is not None else profile.weight
    weights = project_weight_loss(current_weight, goal.target_weight, goal.time_frame, goal.weekly_loss_rate)

    weeks: int | None = None
    if current_weight <= goal.target_weight:
        goal_date: date | None = start_date
        weeks = 0
    elif goal.weekly_loss_rate <= 0:
        goal_date = None
    else:
        days = projected_days_to_goal(current_weight, goal.target_weight, goal.weekly_loss_rate)
        goal_date = start_date + timedelta(days=days)
        # The starting rate as a share of body weight, shrinking as weight drops.
        weeks = weeks_to_goal(current_weight, goal.target_weight, goal.weekly_loss_rate / current_weight * 100)

    return WeightProjection(
        start_date=start_date,
        target_weight=goal.target_weight,
        weekly_weights=weights,
        projected_goal_date=goal_date,
        weeks_to_goal=weeks,
    )

"""Profile, goal and derived-metrics contract: Pydantic v2 models."""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field


class Gender(str, Enum):
    male = "male"
    female = "female"


class ActivityLevel(str, Enum):
    sedentary = "sedentary"
    light = "light"
    moderate = "moderate"
    active = "active"
    very_active = "very-active"


class DietPreference(str, Enum):
    standard = "standard"
    keto = "keto"
    vegan = "vegan"
    vegetarian = "vegetarian"
    paleo = "paleo"
    mediterranean = "mediterranean"


class Profile(BaseModel):
    """Raw body profile. Fields may be absent; the engine refuses to guess them."""

    model_config = {"frozen": True}

    gender: Gender | None = None
    age: int | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)  # cm
    weight: float | None = Field(default=None, gt=0)  # kg
    activity_level: ActivityLevel | None = None
    body_fat_percentage: float | None = Field(default=None, ge=3, le=60)


class Goal(BaseModel):
    """Weight goal. Bounds on rate/time frame are checked by engine.validate_goal."""

    model_config = {"frozen": True}

    target_weight: float = Field(gt=0)  # kg
    weekly_loss_rate: float = 0.5  # kg/week, <= 0 means no progress
    time_frame: int = 12  # weeks
    diet_preference: DietPreference = DietPreference.standard
    deficit_percentage: float = 20.0  # % of TDEE
    current_weight: float | None = Field(default=None, gt=0)  # kg, falls back to Profile.weight


class MacroTargets(BaseModel):
    model_config = {"frozen": True}

    protein_grams: int
    fat_grams: int
    carb_grams: int
    protein_percentage: float
    fat_percentage: float
    carb_percentage: float


class DerivedMetrics(BaseModel):
    """Engine output. Replaced wholesale on recomputation, never edited."""

    model_config = {"frozen": True}

    bmr: float
    tdee: int
    daily_deficit: int
    calorie_target: int
    weekly_weight_loss_kg: float
    projected_days_to_goal: int = Field(ge=0)

    bmi: float | None = None
    lean_mass: float | None = None
    fat_mass: float | None = None
    macros: MacroTargets | None = None

    unsafe_deficit: bool = False
    warnings: list[str] = Field(default_factory=list)


class WeightProjection(BaseModel):
    """Week-by-week weight trajectory starting on `start_date`."""

    model_config = {"frozen": True}

    start_date: date
    target_weight: float
    weekly_weights: list[float] = Field(default_factory=list)
    projected_goal_date: date | None = None
    weeks_to_goal: int | None = None


class OnboardingProgress(BaseModel):
    ratio: float = Field(ge=0.0, le=1.0)
    completed_steps: list[str] = Field(default_factory=list)
    remaining_steps: list[str] = Field(default_factory=list)
    complete: bool = False


class UpdateResult(BaseModel):
    """Acknowledgement of a profile/goal write. `metrics` is set only when eagerly recomputed."""

    user_id: str
    invalidated: bool = True
    metrics: DerivedMetrics | None = None

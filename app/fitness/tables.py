"""Static lookup tables. Configuration only, no logic."""

from __future__ import annotations

from dataclasses import dataclass

from app.fitness.models import ActivityLevel, DietPreference

DEFAULT_ACTIVITY_MULTIPLIER = 1.2

ACTIVITY_MULTIPLIERS: dict[str, float] = {
    ActivityLevel.sedentary.value: 1.2,  # Little or no exercise
    ActivityLevel.light.value: 1.375,  # Light exercise 1-3 days/week
    ActivityLevel.moderate.value: 1.55,  # Moderate exercise 3-5 days/week
    ActivityLevel.active.value: 1.725,  # Hard exercise 6-7 days/week
    ActivityLevel.very_active.value: 1.9,  # Physical job or twice-daily training
}

KCAL_PER_KG_FAT = 7700.0
PROTEIN_G_PER_KG = 1.8

# Week-by-week goal simulation: two-year cap, stop within 0.1 kg of target.
MAX_GOAL_WEEKS = 104
GOAL_TOLERANCE_KG = 0.1


@dataclass(frozen=True, slots=True)
class MacroSplit:
    protein_pct: float
    fat_pct: float
    carb_pct: float


MACRO_SPLITS: dict[DietPreference, MacroSplit] = {
    DietPreference.standard: MacroSplit(protein_pct=30, fat_pct=30, carb_pct=40),
    DietPreference.keto: MacroSplit(protein_pct=25, fat_pct=70, carb_pct=5),
    DietPreference.paleo: MacroSplit(protein_pct=35, fat_pct=40, carb_pct=25),
    DietPreference.vegan: MacroSplit(protein_pct=20, fat_pct=30, carb_pct=50),
    DietPreference.vegetarian: MacroSplit(protein_pct=20, fat_pct=30, carb_pct=50),
    DietPreference.mediterranean: MacroSplit(protein_pct=25, fat_pct=35, carb_pct=40),
}


def get_macro_split(diet: DietPreference | str | None) -> MacroSplit:
    try:
        return MACRO_SPLITS[DietPreference(diet)]
    except ValueError:
        return MACRO_SPLITS[DietPreference.standard]

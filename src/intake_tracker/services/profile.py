"""Profile-based calorie and macro targets."""

import logging
import math
from dataclasses import dataclass, field

from intake_tracker.domain.nutrition import Macros
from intake_tracker.domain.profile import (
    DEFAULT_TARGETS,
    Gender,
    Goal,
    Lifestyle,
    NutritionTargets,
    Profile,
)

_logger = logging.getLogger(__name__)

ASSUMED_AGE_YEARS = 25
KCAL_PER_GRAM_PROTEIN = 4
KCAL_PER_GRAM_CARBS = 4
KCAL_PER_GRAM_FAT = 9

_SEX_OFFSET = {Gender.MALE: 5, Gender.FEMALE: -161}
_ACTIVITY_FACTOR = {Lifestyle.GENERAL: 1.2, Lifestyle.ATHLETE: 1.55}
_GOAL_MODIFIER = {Goal.LOSE: 0.85, Goal.MAINTAIN: 1.0, Goal.GAIN: 1.15}
# (protein, carbs, fat) share of calories.
_MACRO_SPLIT = {
    Goal.LOSE: (0.4, 0.3, 0.3),
    Goal.MAINTAIN: (0.3, 0.4, 0.3),
    Goal.GAIN: (0.3, 0.5, 0.2),
}


def target_calories(profile: Profile) -> int:
    """Return the daily calorie target (Mifflin-St Jeor at a fixed age)."""
    bmr = (
        10 * profile.weight_kg
        + 6.25 * profile.height_cm
        - 5 * ASSUMED_AGE_YEARS
        + _SEX_OFFSET[profile.gender]
    )
    return _round_half_up(
        bmr * _ACTIVITY_FACTOR[profile.lifestyle] * _GOAL_MODIFIER[profile.goal]
    )


def target_macros(calories: float, goal: Goal) -> Macros:
    """Split a calorie target into macro grams for a goal."""
    protein_share, carbs_share, fat_share = _MACRO_SPLIT[goal]
    return Macros(
        protein=_round_half_up(calories * protein_share / KCAL_PER_GRAM_PROTEIN),
        carbs=_round_half_up(calories * carbs_share / KCAL_PER_GRAM_CARBS),
        fat=_round_half_up(calories * fat_share / KCAL_PER_GRAM_FAT),
    )


def targets_for(profile: Profile) -> NutritionTargets:
    """Return calorie and macro targets for a profile."""
    calories = target_calories(profile)
    return NutritionTargets(
        calories=calories, macros=target_macros(calories, profile.goal)
    )


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass
class ProfileService:
    """Holds the current profile and its derived targets."""

    profile: Profile | None = None
    targets: NutritionTargets = field(default=DEFAULT_TARGETS)

    @property
    def is_setup(self) -> bool:
        return self.profile is not None

    def update(self, profile: Profile) -> NutritionTargets:
        """Replace the profile and recompute targets."""
        targets = targets_for(profile)
        self.profile = profile
        self.targets = targets
        _logger.info(
            "Profile updated: goal=%s lifestyle=%s target=%s",
            profile.goal.value,
            profile.lifestyle.value,
            targets.calories,
        )
        return targets

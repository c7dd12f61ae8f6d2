"""Physiological profile and nutrition targets."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from intake_tracker.domain.nutrition import Macros


class Gender(Enum):
    MALE = "male"
    FEMALE = "female"


class Goal(Enum):
    LOSE = "lose"
    MAINTAIN = "maintain"
    GAIN = "gain"


class Lifestyle(Enum):
    GENERAL = "general"
    ATHLETE = "athlete"


class Profile(BaseModel):
    """User profile, always replaced as a whole."""

    model_config = ConfigDict(frozen=True)

    gender: Gender
    weight_kg: float = Field(gt=0)
    height_cm: float = Field(gt=0)
    goal: Goal = Goal.MAINTAIN
    lifestyle: Lifestyle = Lifestyle.GENERAL


@dataclass(frozen=True)
class NutritionTargets:
    """Daily calorie and macro targets."""

    calories: int
    macros: Macros


DEFAULT_TARGETS = NutritionTargets(
    calories=2400, macros=Macros(protein=150, carbs=200, fat=65)
)

"""Domain models for nutrition estimates."""

import math
from dataclasses import dataclass
from datetime import datetime

UNKNOWN_FOOD_NAME = "Unknown food"


@dataclass(frozen=True)
class Macros:
    """Macronutrients in grams."""

    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    def is_finite(self) -> bool:
        values = (self.protein, self.carbs, self.fat)
        return all(math.isfinite(value) for value in values)

    def __add__(self, other: "Macros") -> "Macros":
        return Macros(
            protein=self.protein + other.protein,
            carbs=self.carbs + other.carbs,
            fat=self.fat + other.fat,
        )


@dataclass(frozen=True)
class NutritionEstimate:
    """Nutrition facts for one food item or one exercise burn."""

    name: str
    calories: float
    macros: Macros
    captured_at: datetime
    confidence: float = 0.0
    evaluation: str = ""

    def is_confirmable(self) -> bool:
        """Return True when the estimate can become a food ledger entry."""
        name = self.name.strip()
        return (
            math.isfinite(self.calories)
            and self.calories >= 0
            and self.macros.is_finite()
            and bool(name)
            and name != UNKNOWN_FOOD_NAME
        )

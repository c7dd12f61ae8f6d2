"""Pydantic models for API request payloads."""

from pydantic import BaseModel, ConfigDict, Field

from intake_tracker.domain.ledger import ActivityEnvironment


class MacrosIn(BaseModel):
    """Macro grams supplied by the user."""

    model_config = ConfigDict(allow_inf_nan=False)

    protein: float = Field(default=0, ge=0)
    carbs: float = Field(default=0, ge=0)
    fat: float = Field(default=0, ge=0)


class EstimateEdit(BaseModel):
    """User edits applied to an analysed estimate before confirming."""

    model_config = ConfigDict(allow_inf_nan=False)

    name: str | None = None
    calories: float | None = None
    macros: MacrosIn | None = None


class CaptureUrlRequest(BaseModel):
    """Image URL to fetch and analyse."""

    url: str


class FoodEntryRequest(BaseModel):
    """Manually entered food item."""

    model_config = ConfigDict(allow_inf_nan=False)

    name: str = Field(min_length=1)
    calories: float = Field(ge=0)
    macros: MacrosIn = Field(default_factory=MacrosIn)


class ExerciseEntryRequest(BaseModel):
    """Manually entered exercise burn."""

    model_config = ConfigDict(allow_inf_nan=False)

    name: str = Field(min_length=1)
    calories: float
    environment: ActivityEnvironment = ActivityEnvironment.INDOOR
    duration_minutes: int = Field(default=0, ge=0)

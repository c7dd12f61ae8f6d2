"""Models for nutrition analysis results."""

import math
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from intake_tracker.domain.nutrition import UNKNOWN_FOOD_NAME, NutritionEstimate


class ErrorKind(Enum):
    """Why an analysis attempt produced no estimate."""

    MISSING_CREDENTIAL = "missing_credential"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AnalysisSuccess:
    """Analysis produced a usable estimate."""

    estimate: NutritionEstimate


@dataclass(frozen=True)
class AnalysisFailure:
    """Analysis failed with a typed reason."""

    kind: ErrorKind
    message: str


AnalysisOutcome = AnalysisSuccess | AnalysisFailure


def _to_number(value: object) -> float:
    """Coerce loosely typed model output to a non-negative float."""
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return max(number, 0.0)


class MacrosPayload(BaseModel):
    """Macros block as returned by the analysis service."""

    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    @field_validator("protein", "carbs", "fat", mode="before")
    @classmethod
    def _coerce(cls, value: object) -> float:
        return _to_number(value)


class AnalysisPayload(BaseModel):
    """Service reply for a single food image.

    The service schema is not guaranteed, so every field is optional and
    coerced: numbers default to 0 and text fields to placeholders.
    """

    name: str = UNKNOWN_FOOD_NAME
    calories: float = 0.0
    macros: MacrosPayload = Field(default_factory=MacrosPayload)
    confidence: float = 0.0
    evaluation: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: object) -> str:
        if value is None:
            return UNKNOWN_FOOD_NAME
        text = str(value).strip()
        return text or UNKNOWN_FOOD_NAME

    @field_validator("evaluation", mode="before")
    @classmethod
    def _coerce_evaluation(cls, value: object) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("calories", "confidence", mode="before")
    @classmethod
    def _coerce_number(cls, value: object) -> float:
        return _to_number(value)

    @field_validator("macros", mode="before")
    @classmethod
    def _coerce_macros(cls, value: object) -> object:
        return value if isinstance(value, dict) else {}

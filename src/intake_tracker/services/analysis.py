"""Nutrition analysis of food photos using a multimodal LLM."""

import asyncio
import base64
import json
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from pydantic import ValidationError

from intake_tracker.domain.analysis import (
    AnalysisFailure,
    AnalysisOutcome,
    AnalysisPayload,
    AnalysisSuccess,
    ErrorKind,
)
from intake_tracker.domain.capture import EncodedImage
from intake_tracker.domain.nutrition import Macros, NutritionEstimate

_logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0

ANALYSIS_PROMPT = (
    "You are a professional nutritionist. Analyze the food in this image:\n"
    "1. Identify the main dish by name.\n"
    "2. Estimate its calories (kcal) and macronutrients "
    "(protein, carbs, fat in grams).\n"
    "3. Give a short professional evaluation (under 20 words).\n"
    "Reply with a single JSON object only, no Markdown, in this shape:\n"
    '{"name": "food name", "calories": 100, '
    '"macros": {"protein": 10, "carbs": 20, "fat": 5}, '
    '"confidence": 95, "evaluation": "short evaluation"}'
)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


class VisionTransportError(RuntimeError):
    """Raised by vision clients when the service cannot be reached."""


class VisionServiceError(RuntimeError):
    """Raised by vision clients when the service rejects a request."""


class MalformedResponseError(ValueError):
    """Raised when a reply does not contain a usable JSON object."""


class VisionClient(Protocol):
    """Interface for LLM image analysis."""

    async def complete(
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        prompt: str,
    ) -> str:
        """Return the model's text reply for an image and prompt."""


@dataclass
class NutritionAnalysisClient:
    """Turns a preprocessed image into a typed analysis outcome.

    ``client`` is None when no API key is configured; such calls fail fast
    with MISSING_CREDENTIAL and never reach the network. Every other error
    is converted to an AnalysisFailure so callers never see raw exceptions.
    """

    client: VisionClient | None
    model: str
    reasoning_effort: str | None = None
    store: bool = False
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def has_credential(self) -> bool:
        return self.client is not None

    async def analyze(self, image: EncodedImage) -> AnalysisOutcome:
        """Estimate nutrition facts for an already-resized image."""
        if self.client is None:
            _logger.warning("Analysis skipped: no API key configured")
            return AnalysisFailure(
                ErrorKind.MISSING_CREDENTIAL,
                "No API key is configured for the analysis service.",
            )

        try:
            async with asyncio.timeout(self.timeout_seconds):
                text = await self.client.complete(
                    model=self.model,
                    reasoning_effort=self.reasoning_effort,
                    store=self.store,
                    image_data_url=to_data_url(image),
                    prompt=ANALYSIS_PROMPT,
                )
            estimate = parse_estimate(text, captured_at=datetime.now(tz=UTC))
        except TimeoutError:
            _logger.warning("Analysis timed out after %ss", self.timeout_seconds)
            return AnalysisFailure(
                ErrorKind.TIMEOUT,
                f"Analysis did not finish within {self.timeout_seconds:g} seconds.",
            )
        except MalformedResponseError as exc:
            _logger.warning("Analysis reply unusable: %s", exc)
            return AnalysisFailure(ErrorKind.MALFORMED_RESPONSE, str(exc))
        except VisionTransportError as exc:
            _logger.warning("Analysis service unreachable: %s", exc)
            return AnalysisFailure(ErrorKind.NETWORK_ERROR, str(exc))
        except VisionServiceError as exc:
            _logger.warning("Analysis service error: %s", exc)
            return AnalysisFailure(ErrorKind.UNKNOWN, str(exc))
        except Exception as exc:
            _logger.exception("Analysis failed unexpectedly")
            return AnalysisFailure(ErrorKind.UNKNOWN, str(exc) or type(exc).__name__)

        _logger.info(
            "Analysis succeeded: name=%s calories=%s",
            estimate.name,
            estimate.calories,
        )
        return AnalysisSuccess(estimate)


def parse_estimate(text: str, captured_at: datetime) -> NutritionEstimate:
    """Parse a model reply into an estimate, coercing missing fields."""
    if not text or not text.strip():
        raise MalformedResponseError("Reply is empty")
    try:
        raw = json.loads(extract_json(text))
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Reply is not valid JSON: {exc.msg}") from exc
    if not isinstance(raw, dict):
        raise MalformedResponseError("Reply is not a JSON object")
    try:
        payload = AnalysisPayload.model_validate(raw)
    except ValidationError as exc:
        raise MalformedResponseError("Reply does not match the schema") from exc
    return NutritionEstimate(
        name=payload.name,
        calories=payload.calories,
        macros=Macros(
            protein=payload.macros.protein,
            carbs=payload.macros.carbs,
            fat=payload.macros.fat,
        ),
        captured_at=captured_at,
        confidence=payload.confidence,
        evaluation=payload.evaluation,
    )


def extract_json(text: str) -> str:
    """Return the substring between the first '{' and the last '}'."""
    cleaned = _FENCE_OPEN.sub("", text.strip())
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise MalformedResponseError(
            f"Reply does not contain a JSON object: {cleaned[:100]!r}"
        )
    return cleaned[start : end + 1]


def to_data_url(image: EncodedImage) -> str:
    """Convert an encoded image to a base64 data URL."""
    encoded = base64.b64encode(image.data).decode("utf-8")
    return f"data:{image.mime_type};base64,{encoded}"

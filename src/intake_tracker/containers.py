"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from intake_tracker.adapters.http_image_fetcher import HttpxImageFetcher
from intake_tracker.adapters.openai_vision_client import OpenAIVisionClient
from intake_tracker.config import Settings
from intake_tracker.services.acquisition import ImageAcquisition
from intake_tracker.services.analysis import NutritionAnalysisClient
from intake_tracker.services.capture import CaptureController
from intake_tracker.services.ledger import LedgerService
from intake_tracker.services.preprocess import ImagePreprocessor
from intake_tracker.services.profile import ProfileService

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies and in-memory state."""

    settings: Settings
    acquisition: ImageAcquisition
    preprocessor: ImagePreprocessor
    analysis_client: NutritionAnalysisClient
    ledger_service: LedgerService
    profile_service: ProfileService
    capture_controller: CaptureController
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    image_fetcher = HttpxImageFetcher.create(
        timeout=resolved_settings.image_fetch_timeout_seconds
    )
    vision_client: OpenAIVisionClient | None = None
    if resolved_settings.openai_api_key:
        vision_client = OpenAIVisionClient.create(resolved_settings.openai_api_key)
    else:
        _logger.warning("OPENAI_API_KEY is not set; food analysis is disabled")

    acquisition = ImageAcquisition(fetcher=image_fetcher)
    preprocessor = ImagePreprocessor(
        max_dimension=resolved_settings.image_max_dimension,
        quality=resolved_settings.image_jpeg_quality,
    )
    analysis_client = NutritionAnalysisClient(
        client=vision_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
        timeout_seconds=resolved_settings.analysis_timeout_seconds,
    )
    ledger_service = LedgerService()
    profile_service = ProfileService()
    capture_controller = CaptureController(
        acquisition=acquisition,
        preprocessor=preprocessor,
        analysis_client=analysis_client,
        ledger_service=ledger_service,
    )

    async def close_resources() -> None:
        await image_fetcher.close()
        if vision_client is not None:
            await vision_client.close()

    return AppContainer(
        settings=resolved_settings,
        acquisition=acquisition,
        preprocessor=preprocessor,
        analysis_client=analysis_client,
        ledger_service=ledger_service,
        profile_service=profile_service,
        capture_controller=capture_controller,
        close_resources=close_resources,
    )

"""Shared test fixtures."""

import asyncio
import io
import json
from dataclasses import dataclass, field

import pytest
from PIL import Image

from intake_tracker.config import Settings
from intake_tracker.containers import AppContainer
from intake_tracker.domain.analysis import AnalysisOutcome
from intake_tracker.domain.capture import CameraFacing, CaptureSession
from intake_tracker.domain.ledger import LedgerEntry
from intake_tracker.services.acquisition import (
    CameraDevice,
    CameraStream,
    ImageAcquisition,
    ImageFetcher,
)
from intake_tracker.services.analysis import NutritionAnalysisClient, VisionClient
from intake_tracker.services.capture import CaptureController
from intake_tracker.services.ledger import LedgerService
from intake_tracker.services.preprocess import ImagePreprocessor
from intake_tracker.services.profile import ProfileService

SALAD_REPLY = json.dumps(
    {
        "name": "Chicken salad",
        "calories": 250,
        "macros": {"protein": 10, "carbs": 30, "fat": 5},
        "confidence": 90,
        "evaluation": "Lean and balanced.",
    }
)


def make_image(
    width: int = 64, height: int = 48, fmt: str = "PNG", mode: str = "RGB"
) -> bytes:
    """Return encoded bytes of a solid-color image."""
    color = (200, 120, 40, 128) if mode == "RGBA" else (200, 120, 40)
    picture = Image.new(mode, (width, height), color)
    output = io.BytesIO()
    picture.save(output, format=fmt)
    return output.getvalue()


@dataclass
class FakeVisionClient(VisionClient):
    """Fake vision client returning a fixed reply."""

    reply: str = SALAD_REPLY
    calls: list[dict[str, object]] = field(default_factory=list)

    async def complete(
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        prompt: str,
    ) -> str:
        self.calls.append(
            {"model": model, "image_data_url": image_data_url, "prompt": prompt}
        )
        return self.reply


@dataclass
class _PendingCall:
    started: asyncio.Event = field(default_factory=asyncio.Event)
    release: asyncio.Event = field(default_factory=asyncio.Event)
    reply: str = SALAD_REPLY


@dataclass
class GatedVisionClient(VisionClient):
    """Vision client whose calls block until the test releases them."""

    pending: list[_PendingCall] = field(default_factory=list)

    def prepare(self, reply: str) -> _PendingCall:
        call = _PendingCall(reply=reply)
        self.pending.append(call)
        return call

    async def complete(
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        prompt: str,
    ) -> str:
        call = next(item for item in self.pending if not item.started.is_set())
        call.started.set()
        await call.release.wait()
        return call.reply


@dataclass
class HangingVisionClient(VisionClient):
    """Vision client that never answers."""

    cancelled: bool = False

    async def complete(
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        prompt: str,
    ) -> str:
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return ""


@dataclass
class RaisingVisionClient(VisionClient):
    """Vision client that raises a configured error."""

    error: Exception

    async def complete(
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        prompt: str,
    ) -> str:
        raise self.error


@dataclass
class FakeImageFetcher(ImageFetcher):
    """Fake fetcher serving static bytes."""

    content: bytes = field(default_factory=make_image)
    content_type: str | None = "image/png"
    urls: list[str] = field(default_factory=list)

    async def fetch(self, url: str) -> tuple[bytes, str | None]:
        self.urls.append(url)
        return self.content, self.content_type


@dataclass
class FakeCameraStream(CameraStream):
    """Camera stream producing a fixed frame."""

    facing: CameraFacing
    frame: bytes = field(default_factory=make_image)
    stopped: bool = False

    def read_frame(self) -> bytes:
        return self.frame

    def stop(self) -> None:
        self.stopped = True


@dataclass
class FakeCameraDevice(CameraDevice):
    """Camera device that records every stream it opens."""

    streams: list[FakeCameraStream] = field(default_factory=list)

    def open(self, facing: CameraFacing) -> FakeCameraStream:
        stream = FakeCameraStream(facing=facing)
        self.streams.append(stream)
        return stream

    @property
    def live_streams(self) -> list[FakeCameraStream]:
        return [stream for stream in self.streams if not stream.stopped]


@dataclass
class RecordingListener:
    """Capture listener that records events."""

    started: list[CaptureSession] = field(default_factory=list)
    resolved: list[tuple[CaptureSession, AnalysisOutcome]] = field(
        default_factory=list
    )
    confirmed: list[LedgerEntry] = field(default_factory=list)

    def on_capture_started(self, session: CaptureSession) -> None:
        self.started.append(session)

    def on_analysis_resolved(
        self, session: CaptureSession, outcome: AnalysisOutcome
    ) -> None:
        self.resolved.append((session, outcome))

    def on_confirmed(self, entry: LedgerEntry) -> None:
        self.confirmed.append(entry)


def build_controller(
    client: VisionClient | None,
    timeout_seconds: float = 5.0,
    ledger_service: LedgerService | None = None,
) -> CaptureController:
    """Wire a capture controller around a vision client."""
    return CaptureController(
        acquisition=ImageAcquisition(fetcher=FakeImageFetcher()),
        preprocessor=ImagePreprocessor(),
        analysis_client=NutritionAnalysisClient(
            client=client, model="test-model", timeout_seconds=timeout_seconds
        ),
        ledger_service=ledger_service or LedgerService(),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(openai_api_key="openai-key", _env_file=None)


@pytest.fixture
def vision_client() -> FakeVisionClient:
    return FakeVisionClient()


@pytest.fixture
def container(settings: Settings, vision_client: FakeVisionClient) -> AppContainer:
    acquisition = ImageAcquisition(fetcher=FakeImageFetcher())
    preprocessor = ImagePreprocessor(
        max_dimension=settings.image_max_dimension,
        quality=settings.image_jpeg_quality,
    )
    analysis_client = NutritionAnalysisClient(
        client=vision_client,
        model=settings.openai_model,
        reasoning_effort=settings.openai_reasoning_effort,
        store=settings.openai_store,
        timeout_seconds=settings.analysis_timeout_seconds,
    )
    ledger_service = LedgerService()
    capture_controller = CaptureController(
        acquisition=acquisition,
        preprocessor=preprocessor,
        analysis_client=analysis_client,
        ledger_service=ledger_service,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        acquisition=acquisition,
        preprocessor=preprocessor,
        analysis_client=analysis_client,
        ledger_service=ledger_service,
        profile_service=ProfileService(),
        capture_controller=capture_controller,
        close_resources=close_resources,
    )

"""Domain models for image capture sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from intake_tracker.domain.analysis import AnalysisOutcome, AnalysisSuccess


class ImageSource(Enum):
    """Where an image came from."""

    CAMERA = "camera"
    FILE = "file"
    UPLOAD = "upload"
    URL = "url"


class CameraFacing(Enum):
    """Camera direction."""

    USER = "user"
    ENVIRONMENT = "environment"

    def opposite(self) -> "CameraFacing":
        if self is CameraFacing.USER:
            return CameraFacing.ENVIRONMENT
        return CameraFacing.USER


@dataclass(frozen=True)
class EncodedImage:
    """Encoded image bytes with their origin."""

    data: bytes
    mime_type: str
    source: ImageSource
    mirrored: bool = False


class CapturePhase(Enum):
    """Phases of the capture view."""

    IDLE = "idle"
    CAPTURING = "capturing"
    PENDING = "pending"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class CaptureSession:
    """One attempt to acquire and analyze a single image."""

    id: UUID
    generation: int
    raw_image: EncodedImage
    started_at: datetime


@dataclass(frozen=True)
class CaptureViewState:
    """Snapshot of the capture pipeline for the view layer."""

    phase: CapturePhase
    session: CaptureSession | None = None
    resized_image: EncodedImage | None = None
    outcome: AnalysisOutcome | None = None

    @property
    def can_confirm(self) -> bool:
        return (
            self.phase is CapturePhase.RESOLVED
            and isinstance(self.outcome, AnalysisSuccess)
            and self.outcome.estimate.is_confirmable()
        )

"""Image acquisition from camera streams, files, uploads and URLs."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Protocol

from intake_tracker.domain.capture import CameraFacing, EncodedImage, ImageSource

_logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


class ImageAcquisitionError(RuntimeError):
    """Raised when an image cannot be obtained from its source."""


class CameraUnavailableError(ImageAcquisitionError):
    """Raised when a frame is requested without a live camera stream."""


class ImageFetcher(Protocol):
    """Interface for downloading remote images."""

    async def fetch(self, url: str) -> tuple[bytes, str | None]:
        """Return image bytes and the reported content type."""


class CameraStream(Protocol):
    """A live camera stream."""

    facing: CameraFacing

    def read_frame(self) -> bytes:
        """Return the current frame encoded as an image."""

    def stop(self) -> None:
        """Stop every track of the stream."""


class CameraDevice(Protocol):
    """Opens camera streams."""

    def open(self, facing: CameraFacing) -> CameraStream:
        """Start a stream for the given facing."""


@dataclass
class CameraSlot:
    """Exclusive owner of at most one live camera stream."""

    device: CameraDevice
    _stream: CameraStream | None = field(default=None, init=False)

    @property
    def active(self) -> bool:
        return self._stream is not None

    @property
    def facing(self) -> CameraFacing | None:
        return self._stream.facing if self._stream else None

    def start(self, facing: CameraFacing = CameraFacing.ENVIRONMENT) -> None:
        """Release any current stream, then open a new one."""
        self.release()
        self._stream = self.device.open(facing)
        _logger.info("Camera started: facing=%s", facing.value)

    def switch_facing(self) -> None:
        """Restart the stream with the opposite facing."""
        current = self.facing or CameraFacing.USER
        self.start(current.opposite())

    def release(self) -> None:
        """Stop and forget the current stream."""
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            _logger.info("Camera released: facing=%s", stream.facing.value)

    def capture_frame(self) -> EncodedImage:
        """Grab the current frame as an encoded image."""
        if self._stream is None:
            raise CameraUnavailableError("Camera is not active")
        data = self._stream.read_frame()
        if not data:
            raise CameraUnavailableError("Camera returned an empty frame")
        return EncodedImage(
            data=data,
            mime_type=detect_mime_type(data),
            source=ImageSource.CAMERA,
            mirrored=self._stream.facing is CameraFacing.USER,
        )

    def __enter__(self) -> "CameraSlot":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.release()


@dataclass
class ImageAcquisition:
    """Normalizes every image source to an EncodedImage."""

    fetcher: ImageFetcher

    def from_bytes(
        self, data: bytes, source: ImageSource = ImageSource.UPLOAD
    ) -> EncodedImage:
        """Wrap raw image bytes."""
        if not data:
            raise ImageAcquisitionError("Image is empty")
        return EncodedImage(data=data, mime_type=detect_mime_type(data), source=source)

    def from_file(self, path: str | Path) -> EncodedImage:
        """Read an image from a local file."""
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise ImageAcquisitionError(f"Cannot read image file {path}") from exc
        return self.from_bytes(data, source=ImageSource.FILE)

    async def from_url(self, url: str) -> EncodedImage:
        """Download an image from a remote URL."""
        if not url.startswith(("http://", "https://")):
            raise ImageAcquisitionError("Image URL must be http(s)")
        data, content_type = await self.fetcher.fetch(url)
        if content_type and not content_type.startswith("image/"):
            raise ImageAcquisitionError(f"URL did not return an image ({content_type})")
        _logger.info("Image fetched: url=%s bytes=%s", url, len(data))
        return self.from_bytes(data, source=ImageSource.URL)


def detect_mime_type(data: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return DEFAULT_MIME_TYPE

"""Client-side image downscaling before analysis."""

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from intake_tracker.domain.capture import EncodedImage

_logger = logging.getLogger(__name__)

DEFAULT_MAX_DIMENSION = 640
DEFAULT_JPEG_QUALITY = 50


class ImagePreprocessError(ValueError):
    """Raised when an image cannot be decoded or re-encoded."""


@dataclass(frozen=True)
class ImagePreprocessor:
    """Bounds image payload size before it is sent for analysis.

    Capping the longer edge and re-encoding at a low JPEG quality keeps the
    request small so analysis returns faster, at the cost of some estimate
    precision. Both knobs come from settings.
    """

    max_dimension: int = DEFAULT_MAX_DIMENSION
    quality: int = DEFAULT_JPEG_QUALITY

    def resize(
        self,
        image: EncodedImage,
        max_dimension: int | None = None,
        quality: int | None = None,
    ) -> EncodedImage:
        """Scale the longer edge down to the cap and re-encode as JPEG."""
        limit = max_dimension or self.max_dimension
        jpeg_quality = quality or self.quality
        try:
            with Image.open(io.BytesIO(image.data)) as source:
                picture = ImageOps.exif_transpose(source)
                picture = _to_rgb(picture)
                if image.mirrored:
                    picture = ImageOps.mirror(picture)
                original_size = picture.size
                # thumbnail keeps aspect ratio and never upscales.
                picture.thumbnail((limit, limit), Image.Resampling.LANCZOS)
                output = io.BytesIO()
                picture.save(output, format="JPEG", quality=jpeg_quality, optimize=True)
        except Image.DecompressionBombError as exc:
            raise ImagePreprocessError("Image dimensions are too large") from exc
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise ImagePreprocessError("Image could not be decoded") from exc

        _logger.info(
            "Image resized: source=%s from=%sx%s to=%sx%s bytes=%s->%s",
            image.source.value,
            original_size[0],
            original_size[1],
            picture.size[0],
            picture.size[1],
            len(image.data),
            output.tell(),
        )
        return EncodedImage(
            data=output.getvalue(),
            mime_type="image/jpeg",
            source=image.source,
        )


def _to_rgb(picture: Image.Image) -> Image.Image:
    """Flatten transparency onto white and convert to RGB."""
    if picture.mode == "P":
        picture = picture.convert("RGBA")
    if picture.mode in ("RGBA", "LA"):
        background = Image.new("RGB", picture.size, (255, 255, 255))
        background.paste(picture, mask=picture.split()[-1])
        return background
    if picture.mode != "RGB":
        return picture.convert("RGB")
    return picture.copy()

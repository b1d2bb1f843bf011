"""Photo normalization for wish uploads.

Uploaded photos are decoded with Pillow, rotated upright from their EXIF
orientation, bounded to a maximum width and re-encoded into a compact format.
The result must fit under a final byte ceiling; one extra lower-quality JPEG
pass is attempted before the upload is refused.

Public class: `ImageNormalizer`

Example:
    normalizer = ImageNormalizer()
    result = normalizer.normalize(raw_bytes, "image/png")
    result.data, result.extension, result.content_type
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError
from pillow_heif import register_heif_opener

from wishwall.errors import UnsupportedMediaError

logger = logging.getLogger(__name__)

register_heif_opener()

MAX_INPUT_BYTES = 20 * 1024 * 1024
MAX_OUTPUT_BYTES = 3 * 1024 * 1024
MAX_WIDTH = 1600
MAX_INPUT_PIXELS = 50_000_000

JPEG_QUALITY = 82
FALLBACK_JPEG_QUALITY = 72
WEBP_QUALITY = 82
PNG_COMPRESS_LEVEL = 8

# QuickTime-tagged uploads are HEIC stills from iOS devices.
HEIC_TYPES = {
    "image/heic",
    "image/heif",
    "image/heic-sequence",
    "image/heif-sequence",
    "image/quicktime",
}
HEIC_FORMATS = {"HEIF", "HEIC"}


@dataclass(frozen=True)
class NormalizedImage:
    data: bytes
    extension: str
    content_type: str


class ImageNormalizer:
    """Decode, orient, resize and re-encode uploaded photos.

    Args:
        max_width: Widest output allowed; narrower images are never upscaled.
        max_input_bytes: Uploads above this size are rejected before decoding.
        max_output_bytes: Ceiling on the encoded result.
        max_pixels: Decoded pixel-count ceiling.
        background: Color used when flattening alpha for JPEG output.
    """

    def __init__(
        self,
        max_width: int = MAX_WIDTH,
        max_input_bytes: int = MAX_INPUT_BYTES,
        max_output_bytes: int = MAX_OUTPUT_BYTES,
        max_pixels: int = MAX_INPUT_PIXELS,
        background: tuple[int, int, int] = (255, 255, 255),
    ):
        self.max_width = max_width
        self.max_input_bytes = max_input_bytes
        self.max_output_bytes = max_output_bytes
        self.max_pixels = max_pixels
        self.background = background

    def check_upload(self, content_type: Optional[str], size: int) -> None:
        """Cheap preconditions, run before any bytes are decoded.

        Raises:
            UnsupportedMediaError: Not an image type, or larger than the input limit.
        """
        if not (content_type or "").lower().startswith("image/"):
            raise UnsupportedMediaError("Only images allowed")
        if size > self.max_input_bytes:
            raise UnsupportedMediaError("Image too large")

    def normalize(self, data: bytes, content_type: str) -> NormalizedImage:
        """Return the re-encoded photo ready for upload.

        Args:
            data: Raw uploaded bytes.
            content_type: MIME type declared by the client.

        Raises:
            UnsupportedMediaError: The upload is not a decodable image, is too
                large in bytes or pixels, or cannot be compressed under the
                output ceiling.
        """
        self.check_upload(content_type, len(data))
        image, source_format = self._decode(data)
        image = self._bound_width(image)
        kind = _source_kind(content_type, source_format)

        if kind == "png":
            as_jpeg = self._encode_jpeg(image, JPEG_QUALITY)
            as_png = self._encode_png(image)
            result = as_png if len(as_png.data) < len(as_jpeg.data) else as_jpeg
        elif kind == "webp":
            result = self._encode_webp(image)
        else:
            result = self._encode_jpeg(image, JPEG_QUALITY)

        if len(result.data) > self.max_output_bytes:
            logger.info(
                "Normalized %s is %d bytes, retrying as JPEG q%d",
                result.extension,
                len(result.data),
                FALLBACK_JPEG_QUALITY,
            )
            result = self._encode_jpeg(image, FALLBACK_JPEG_QUALITY)
            if len(result.data) > self.max_output_bytes:
                raise UnsupportedMediaError("Image too large after compression.")
        return result

    def _decode(self, data: bytes) -> tuple[Image.Image, str]:
        try:
            image = Image.open(io.BytesIO(data))
        except Image.DecompressionBombError as exc:
            raise UnsupportedMediaError("Image dimensions too large") from exc
        except (UnidentifiedImageError, OSError) as exc:
            raise UnsupportedMediaError("Could not read image") from exc

        # Header is parsed lazily; reject before pixel data is loaded.
        if image.width * image.height > self.max_pixels:
            raise UnsupportedMediaError("Image dimensions too large")

        source_format = image.format or ""
        try:
            image = ImageOps.exif_transpose(image)
            image.load()
        except (Image.DecompressionBombError, OSError, SyntaxError) as exc:
            raise UnsupportedMediaError("Could not read image") from exc
        return image, source_format

    def _bound_width(self, image: Image.Image) -> Image.Image:
        if image.width <= self.max_width:
            return image
        height = max(1, round(image.height * self.max_width / image.width))
        return image.resize((self.max_width, height), Image.LANCZOS)

    def _flatten(self, image: Image.Image) -> Image.Image:
        if image.mode == "RGB":
            return image
        if image.mode in ("RGBA", "LA") or (
            image.mode == "P" and "transparency" in image.info
        ):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, self.background)
            background.paste(rgba, mask=rgba.split()[3])
            return background
        return image.convert("RGB")

    def _encode_jpeg(self, image: Image.Image, quality: int) -> NormalizedImage:
        out = io.BytesIO()
        self._flatten(image).save(
            out, format="JPEG", quality=quality, optimize=True, progressive=True
        )
        return NormalizedImage(out.getvalue(), "jpg", "image/jpeg")

    def _encode_png(self, image: Image.Image) -> NormalizedImage:
        if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            image = image.convert("RGBA")
        out = io.BytesIO()
        image.save(out, format="PNG", compress_level=PNG_COMPRESS_LEVEL)
        return NormalizedImage(out.getvalue(), "png", "image/png")

    def _encode_webp(self, image: Image.Image) -> NormalizedImage:
        if image.mode not in ("RGB", "RGBA"):
            has_alpha = image.mode in ("LA", "PA") or "transparency" in image.info
            image = image.convert("RGBA" if has_alpha else "RGB")
        out = io.BytesIO()
        image.save(out, format="WEBP", quality=WEBP_QUALITY)
        return NormalizedImage(out.getvalue(), "webp", "image/webp")


def _source_kind(content_type: Optional[str], source_format: str) -> str:
    """Pick the output family from the declared type, then the decoded format."""
    mime = (content_type or "").lower().split(";", 1)[0].strip()
    fmt = source_format.upper()
    if mime in HEIC_TYPES or fmt in HEIC_FORMATS:
        return "heic"
    if mime == "image/png" or (mime in ("", "image/*") and fmt == "PNG"):
        return "png"
    if mime == "image/webp" or (mime in ("", "image/*") and fmt == "WEBP"):
        return "webp"
    return "jpeg"

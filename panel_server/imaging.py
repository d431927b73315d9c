"""
Image pipeline: decode uploaded bytes and derive bounded-width WebP renditions.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Iterable

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

OUTPUT_FORMAT = "WEBP"
OUTPUT_EXTENSION = "webp"


class ImageDecodeError(Exception):
    """Raised when uploaded bytes cannot be decoded as an image."""


@dataclass(frozen=True)
class RenditionSpec:
    name: str
    max_width: int
    quality: int
    suffix: str = ""

    def filename(self, panel_id: str) -> str:
        return f"{panel_id}{self.suffix}.{OUTPUT_EXTENSION}"


@dataclass(frozen=True)
class RenderedImage:
    spec: RenditionSpec
    data: bytes
    width: int
    height: int


FULL = RenditionSpec(name="full", max_width=1080, quality=75)
THUMB = RenditionSpec(name="thumb", max_width=400, quality=60, suffix="_thumb")


def decode_image(data: bytes) -> Image.Image:
    """
    Decodes raw bytes into a fully loaded Pillow image (first frame only).

    Raises:
        ImageDecodeError: If the payload is empty, truncated, not an image or
            trips Pillow's decompression-bomb guard.
    """
    if not data:
        raise ImageDecodeError("empty payload")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(str(e)) from e
    except (OSError, SyntaxError, ValueError) as e:
        # Pillow reports truncated or corrupt data through these.
        raise ImageDecodeError(str(e)) from e
    return image


def _has_transparency(image: Image.Image) -> bool:
    if image.mode in ("RGBA", "LA", "PA"):
        return True
    return image.mode == "P" and "transparency" in image.info


def _normalize_mode(image: Image.Image) -> Image.Image:
    target = "RGBA" if _has_transparency(image) else "RGB"
    if image.mode == target:
        return image
    return image.convert(target)


def scaled_size(width: int, height: int, max_width: int) -> tuple[int, int]:
    """Fit width into max_width keeping the aspect ratio; never upscales."""
    if width <= max_width:
        return width, height
    new_height = max(1, round(height * max_width / width))
    return max_width, new_height


def render(image: Image.Image, spec: RenditionSpec) -> RenderedImage:
    """Resizes and encodes one rendition of an already decoded image."""
    normalized = _normalize_mode(image)
    size = scaled_size(normalized.width, normalized.height, spec.max_width)
    if size != normalized.size:
        normalized = normalized.resize(size, Image.Resampling.LANCZOS)

    output = io.BytesIO()
    normalized.save(output, format=OUTPUT_FORMAT, quality=spec.quality)
    return RenderedImage(
        spec=spec,
        data=output.getvalue(),
        width=normalized.width,
        height=normalized.height,
    )


def derive_renditions(
    data: bytes, specs: Iterable[RenditionSpec] = (FULL, THUMB)
) -> list[RenderedImage]:
    """
    Decodes the upload once and renders every requested rendition.

    Every input format is re-encoded, including WebP sources, so all stored
    files share one format and extension.
    """
    image = decode_image(data)
    try:
        logger.debug(
            "Decoded %s image %dx%d (%s)",
            image.format,
            image.width,
            image.height,
            image.mode,
        )
        try:
            return [render(image, spec) for spec in specs]
        except (OSError, ValueError) as e:
            raise ImageDecodeError(str(e)) from e
    finally:
        image.close()

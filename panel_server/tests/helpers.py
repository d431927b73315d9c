"""
Shared fixtures for the panel service tests.
"""

from __future__ import annotations

import io
import os
from unittest import mock

from PIL import Image, ImageDraw

from panel_server.config import Settings


def png_bytes(width: int, height: int, mode: str = "RGB") -> bytes:
    """Returns a PNG with a gradient and a few shapes, so it compresses like a drawing."""
    gradient = Image.linear_gradient("L").resize((width, height))
    image = Image.merge("RGB", (gradient, gradient.rotate(90).resize((width, height)), gradient))
    draw = ImageDraw.Draw(image)
    for i in range(1, 6):
        box = (width * i // 12, height * i // 12, width * (12 - i) // 12, height * (12 - i) // 12)
        draw.ellipse(box, outline=(255, 40 * i, 0), width=max(1, width // 200))
    if mode != "RGB":
        image = image.convert(mode)
    output = io.BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as image:
        return image.size


def make_settings(data_dir: str, **overrides) -> Settings:
    """Settings rooted in a temporary directory, ignoring the developer's env."""
    with mock.patch.dict(os.environ, {}, clear=True):
        return Settings(_env_file=None, data_dir=data_dir, **overrides)

"""Image encoder service.

Re-encodes fetched question and page images with Pillow so every image
sent to the tutor backend is a bounded-size JPEG carried inline as a
base64 string.

Public class: `ImageEncoder`

Example:
    encoder = ImageEncoder(max_size=(2048, 2048))
    b64_jpeg = encoder.encode(raw_png_bytes)
"""
from __future__ import annotations

import base64
import io
from typing import Tuple

from PIL import Image


class ImageEncoder:
    """Convert raw image bytes into base64 JPEG payloads.

    Args:
        max_size: Maximum width and height; larger images are downscaled
            preserving aspect ratio. Defaults to (2048, 2048).
        quality: JPEG quality used for the re-encoded image.
        background: Color used when flattening images with alpha. Defaults to white.
    """

    def __init__(
        self,
        max_size: Tuple[int, int] = (2048, 2048),
        quality: int = 85,
        background: Tuple[int, int, int] | None = None,
    ):
        self.max_size = max_size
        self.quality = quality
        self.background = background or (255, 255, 255)

    def encode(self, data: bytes) -> str:
        """Encode raw image bytes (PNG, JPEG, WebP, ...) as a base64 JPEG string.

        Raises:
            ValueError: If the bytes are empty or not a supported image format.
        """
        if not data:
            raise ValueError("Image bytes are required for encoding.")

        try:
            src = Image.open(io.BytesIO(data))
            src.load()
        except Exception as exc:
            raise ValueError("Bytes are not a supported image format") from exc

        src = src.convert("RGBA")
        src.thumbnail(self.max_size, Image.LANCZOS)

        # JPEG has no alpha channel
        flattened = Image.new("RGB", src.size, self.background)
        flattened.paste(src, mask=src.split()[3])

        out_io = io.BytesIO()
        flattened.save(out_io, format="JPEG", quality=self.quality, optimize=True)
        return base64.b64encode(out_io.getvalue()).decode("utf-8")


def to_image_data_url(b64_jpeg: str) -> str:
    """Wrap a base64 JPEG payload as a data URL suitable for vision input."""
    return f"data:image/jpeg;base64,{b64_jpeg}"

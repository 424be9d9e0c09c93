"""Bitmap data model: a rasterized page in RGB pixels."""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image


@dataclass(frozen=True)
class Bitmap:
    """Rasterized page content.

    Coordinate system matches the rendered pixmap: origin top-left, one byte
    per channel, RGB, no alpha, row stride ``width * 3``.

    Attributes:
        width: Width in pixels
        height: Height in pixels
        samples: Raw RGB bytes, row-major
        scale: Scale factor the page was rasterized at (pixels per point)
        page_number: Source page number (1-indexed)
    """

    width: int
    height: int
    samples: bytes
    scale: float = 1.0
    page_number: int = 1

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Bitmap size must be non-negative, got {self.width}x{self.height}")
        expected = self.width * self.height * 3
        if len(self.samples) != expected:
            raise ValueError(
                f"Sample buffer size mismatch: expected {expected} bytes, got {len(self.samples)}"
            )

    @property
    def stride(self) -> int:
        return self.width * 3

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def pixel(self, x: int, y: int) -> tuple:
        """Return the (r, g, b) value at x, y."""
        offset = y * self.stride + x * 3
        return tuple(self.samples[offset:offset + 3])

    def to_image(self) -> Image.Image:
        """Convert to a Pillow image (copy)."""
        return Image.frombytes("RGB", (self.width, self.height), self.samples)

    def encode(self, fmt: str = "PNG", **kwargs) -> bytes:
        """Encode as an image file (PNG, JPEG, WEBP, ...)."""
        buffer = io.BytesIO()
        self.to_image().save(buffer, format=fmt, **kwargs)
        return buffer.getvalue()

    def to_png(self) -> bytes:
        return self.encode("PNG")

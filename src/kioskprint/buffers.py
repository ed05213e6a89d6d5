"""
kioskprint
buffers.py
----------
Pixel containers shared by the classifier, the PDF renderers and the
compositor.

A PixelBuffer is always interleaved RGBA, row-major, 4 bytes per pixel,
straight (not premultiplied) alpha.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .errors import InvalidBuffer


@dataclass(frozen=True)
class PixelBuffer:
    """Immutable RGBA pixel data plus its dimensions."""
    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        n = len(self.data)
        if n % 4 != 0:
            raise InvalidBuffer(f"RGBA buffer length {n} is not a multiple of 4")
        if self.width < 0 or self.height < 0:
            raise InvalidBuffer(f"Negative buffer dimensions: {self.width}x{self.height}")
        if n != self.width * self.height * 4:
            raise InvalidBuffer(
                f"RGBA buffer length {n} does not match {self.width}x{self.height}x4"
            )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def as_array(self) -> np.ndarray:
        """Return a read-only HxWx4 uint8 view over the data."""
        arr = np.frombuffer(self.data, dtype=np.uint8)
        return arr.reshape(self.height, self.width, 4)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "PixelBuffer":
        """
        Build a buffer from an HxW (gray), HxWx3 (RGB) or HxWx4 (RGBA) uint8
        array. Gray and RGB inputs get an opaque alpha channel.
        """
        a = np.asarray(arr)
        if a.dtype != np.uint8:
            raise InvalidBuffer(f"Expected uint8 pixels, got {a.dtype}")
        if a.ndim == 2:
            a = np.stack([a, a, a], axis=-1)
        if a.ndim != 3 or a.shape[2] not in (3, 4):
            raise InvalidBuffer(f"Unsupported pixel array shape: {a.shape}")
        h, w = a.shape[:2]
        if a.shape[2] == 3:
            alpha = np.full((h, w, 1), 255, dtype=np.uint8)
            a = np.concatenate([a, alpha], axis=2)
        return cls(width=int(w), height=int(h), data=np.ascontiguousarray(a).tobytes())

    @classmethod
    def from_raw(cls, data: bytes, width: int, height: int) -> "PixelBuffer":
        return cls(width=int(width), height=int(height), data=bytes(data))


@dataclass(frozen=True)
class SourceImage:
    """A decoded photo waiting to be placed in a collage slot."""
    pixels: PixelBuffer
    name: Optional[str] = None

    @property
    def width(self) -> int:
        return self.pixels.width

    @property
    def height(self) -> int:
        return self.pixels.height

    def __str__(self) -> str:
        label = self.name or "<image>"
        return f"{label} ({self.width}x{self.height})"


__all__ = ["PixelBuffer", "SourceImage"]

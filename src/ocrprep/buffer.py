"""
In-memory raster representation shared by every pipeline stage.

A PixelBuffer wraps a contiguous ``uint8`` numpy array laid out row-major:
``(height, width)`` for grayscale and ``(height, width, 3)`` for RGB.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)

GRAYSCALE = 1
RGB = 3
SUPPORTED_CHANNELS = (GRAYSCALE, RGB)


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """
    Immutable 8-bit raster image.

    Transforms never modify ``pixels`` in place; they build a new buffer.
    Buffers compare by content and are not hashable.
    """
    width: int
    height: int
    channels: int
    pixels: np.ndarray

    __hash__ = None

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {self.width}x{self.height}")
        if self.channels not in SUPPORTED_CHANNELS:
            raise ValueError(f"Unsupported channel count: {self.channels}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 samples, got {self.pixels.dtype}")
        if self.pixels.shape != self.shape:
            raise ValueError(f"Sample array shape {self.pixels.shape} does not match {self.shape}")

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """
        Wrap a numpy array as a buffer.

        Accepts ``(h, w)``, ``(h, w, 1)`` and ``(h, w, 3)`` arrays. The data is
        copied into a contiguous ``uint8`` array.
        """
        array = np.asarray(array)
        if array.ndim == 3 and array.shape[2] == 1:
            array = array[:, :, 0]
        if array.ndim == 2:
            channels = GRAYSCALE
        elif array.ndim == 3:
            channels = array.shape[2]
        else:
            raise ValueError(f"Unexpected image shape: {array.shape}")

        if array.dtype != np.uint8:
            array = np.clip(array, 0, 255).astype(np.uint8)
        pixels = np.ascontiguousarray(array).copy()
        return cls(width=pixels.shape[1], height=pixels.shape[0], channels=channels, pixels=pixels)

    @classmethod
    def from_bytes(cls, width: int, height: int, channels: int, data: bytes) -> "PixelBuffer":
        """Build a buffer from raw row-major samples."""
        expected = width * height * channels
        if len(data) != expected:
            raise ValueError(f"Expected {expected} bytes for {width}x{height}x{channels}, got {len(data)}")
        flat = np.frombuffer(data, dtype=np.uint8)
        shape = (height, width) if channels == GRAYSCALE else (height, width, channels)
        return cls(width=width, height=height, channels=channels, pixels=flat.reshape(shape).copy())

    @property
    def shape(self) -> Tuple[int, ...]:
        if self.channels == GRAYSCALE:
            return (self.height, self.width)
        return (self.height, self.width, self.channels)

    @property
    def samples(self) -> np.ndarray:
        """Flat row-major view of all samples."""
        return self.pixels.reshape(-1)

    @property
    def is_grayscale(self) -> bool:
        return self.channels == GRAYSCALE

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def __eq__(self, other) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (
            self.shape == other.shape
            and self.channels == other.channels
            and np.array_equal(self.pixels, other.pixels)
        )

    def __repr__(self) -> str:
        return f"PixelBuffer(width={self.width}, height={self.height}, channels={self.channels})"

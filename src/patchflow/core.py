"""Core data structures for patch-based image processing.

Pixel buffers are numpy ``uint8`` arrays laid out as ``(height, width, 4)``:
row-major, four RGBA bytes per pixel.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

CHANNELS = 4

PixelArray = np.ndarray


def as_rgba(array: np.ndarray) -> np.ndarray:
    """Promote a pixel array to a ``(H, W, 4)`` uint8 RGBA array.

    Grayscale ``(H, W)`` / ``(H, W, 1)`` and RGB ``(H, W, 3)`` inputs get an
    opaque alpha channel. Floating point data is read as the ``[0, 1]`` range,
    wider unsigned integers keep their most significant byte and signed
    integers are clipped to ``[0, 255]``.
    """
    array = np.asarray(array)
    if array.ndim == 2:
        array = array[:, :, np.newaxis]
    if array.ndim != 3:
        raise ValueError(f"Expected a 2D or 3D pixel array, got shape {array.shape}")

    if array.dtype != np.uint8:
        if np.issubdtype(array.dtype, np.floating):
            array = np.clip(np.rint(array * 255.0), 0, 255).astype(np.uint8)
        elif array.dtype == np.bool_:
            array = array.astype(np.uint8) * 255
        elif np.issubdtype(array.dtype, np.unsignedinteger):
            # keep the high byte, as 16-bit PNG decoding does
            array = (array >> (8 * (array.dtype.itemsize - 1))).astype(np.uint8)
        else:
            array = np.clip(array, 0, 255).astype(np.uint8)

    channels = array.shape[2]
    if channels == CHANNELS:
        return array
    if channels == 1:
        array = np.repeat(array, 3, axis=2)
        channels = 3
    if channels == 3:
        alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
        return np.concatenate([array, alpha], axis=2)
    raise ValueError(f"Unsupported channel count {channels}, expected 1, 3 or 4")


class TilePosition(NamedTuple):
    """Top-left corner of a tile in image coordinates."""

    x: int
    y: int


Recipe = tuple[TilePosition, ...]


@dataclass(frozen=True, eq=False)
class Image:
    """Immutable RGBA raster.

    Parameters
    ----------
    pixels : np.ndarray
        ``(height, width, 4)`` uint8 array. The image keeps a read-only copy, so
        later writes to the caller's array do not reach it.
    name : str, default=""
        Optional file name carried along for output naming.
    """

    pixels: PixelArray
    name: str = ""

    def __post_init__(self) -> None:
        pixels = np.asarray(self.pixels)
        if pixels.dtype != np.uint8:
            raise ValueError(f"Image pixels must be uint8, got {pixels.dtype}")
        if pixels.ndim != 3 or pixels.shape[2] != CHANNELS:
            raise ValueError(
                f"Image pixels must have shape (height, width, {CHANNELS}), got {pixels.shape}"
            )
        owned = np.array(pixels, copy=True, order="C")
        owned.flags.writeable = False
        object.__setattr__(self, "pixels", owned)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        """Spatial shape as ``(height, width)``."""
        return (self.height, self.width)

    @property
    def nbytes(self) -> int:
        return int(self.pixels.nbytes)

    @classmethod
    def from_array(cls, array: np.ndarray, name: str = "") -> Image:
        """Build an image from any grayscale, RGB or RGBA array."""
        return cls(as_rgba(array), name=name)

    @classmethod
    def from_bytes(cls, data: bytes, width: int, height: int, name: str = "") -> Image:
        """Build an image from a raw RGBA byte buffer."""
        expected = width * height * CHANNELS
        if len(data) != expected:
            raise ValueError(
                f"Buffer holds {len(data)} bytes, expected {expected} for {width}x{height} RGBA"
            )
        pixels = np.frombuffer(data, dtype=np.uint8).reshape(height, width, CHANNELS)
        return cls(pixels, name=name)

    @classmethod
    def blank(cls, width: int, height: int, name: str = "") -> Image:
        return cls(np.zeros((height, width, CHANNELS), dtype=np.uint8), name=name)

    def to_bytes(self) -> bytes:
        """Raw row-major RGBA bytes."""
        return self.pixels.tobytes()

    def __repr__(self) -> str:
        label = f" name={self.name!r}" if self.name else ""
        return f"Image({self.width}x{self.height}{label})"


@dataclass
class Tile:
    """A square block of pixels taken from an image at ``position``.

    ``pixels`` is a private copy, so transformations may modify it in place.
    """

    position: TilePosition
    pixels: PixelArray

    @property
    def x(self) -> int:
        return self.position.x

    @property
    def y(self) -> int:
        return self.position.y

    @property
    def size(self) -> int:
        """Edge length in pixels."""
        return int(self.pixels.shape[0])

    def with_pixels(self, pixels: np.ndarray) -> Tile:
        """New tile at the same position holding ``pixels``."""
        return Tile(position=self.position, pixels=as_rgba(pixels))

    def __repr__(self) -> str:
        return f"Tile(x={self.x}, y={self.y}, size={self.size})"

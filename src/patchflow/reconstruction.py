"""Image reconstruction from processed tiles."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import numpy as np

from patchflow.core import CHANNELS, Image, Tile, TilePosition, as_rgba

logger = logging.getLogger(__name__)


class Stitcher:
    """Paste square tiles into a zero-initialised ``width x height`` canvas.

    Every paste overwrites whatever is already there, so where tiles overlap the
    pixel comes from the last tile pasted over it. No blending is done.
    """

    def __init__(self, width: int, height: int, tile_size: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas size must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self.tile_size = tile_size
        self.pasted = 0
        self._buffer = np.zeros((height, width, CHANNELS), dtype=np.uint8, order="C")

    def paste(self, position: TilePosition, tile: Tile | np.ndarray) -> None:
        x, y = position
        size = self.tile_size
        if x < 0 or y < 0 or x + size > self.width or y + size > self.height:
            raise ValueError(
                f"Tile at ({x}, {y}) with size {size} falls outside the "
                f"{self.width}x{self.height} canvas"
            )

        pixels = as_rgba(tile.pixels if isinstance(tile, Tile) else tile)
        if pixels.shape != (size, size, CHANNELS):
            raise ValueError(
                f"Tile at ({x}, {y}) has shape {pixels.shape}, expected {(size, size, CHANNELS)}"
            )

        np.copyto(self._buffer[y : y + size, x : x + size], pixels)
        self.pasted += 1

    def result(self, name: str = "") -> Image:
        """Snapshot the canvas as an immutable image."""
        logger.debug(
            "Stitched %d tiles into %dx%d image", self.pasted, self.width, self.height
        )
        return Image(self._buffer, name=name)


def stitch(
    tiles: Iterable[tuple[TilePosition, Tile | np.ndarray]],
    width: int,
    height: int,
    tile_size: int,
    name: str = "",
) -> Image:
    """Reconstruct a full image from ``(position, tile)`` pairs in the given order."""
    stitcher = Stitcher(width, height, tile_size)
    for position, tile in tiles:
        stitcher.paste(position, tile)
    return stitcher.result(name=name)

"""Tile grid planning.

Coordinates are computed per axis and combined row by row (Y outer, X inner).
That order matters: during stitching later tiles overwrite earlier ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from patchflow.core import Recipe, TilePosition
from patchflow.errors import InvalidConfiguration
from patchflow.utils import validate_overlap

logger = logging.getLogger(__name__)


def axis_positions(dim: int, tile_size: int, min_overlap: int = 0) -> list[int]:
    """Tile start offsets along one axis of length ``dim``.

    Steps by ``tile_size - min_overlap`` while the tile stays strictly inside
    the axis, then adds the clamped offset ``dim - tile_size`` unless the last
    step already landed on it.
    """
    validate_overlap(min_overlap, tile_size)
    if tile_size > dim:
        raise InvalidConfiguration(f"tile size ({tile_size}) cannot exceed axis length ({dim})")

    step = tile_size - min_overlap
    positions = [0]
    position = 0
    while True:
        position += step
        if position + tile_size >= dim:
            break
        positions.append(position)

    last = dim - tile_size
    if positions[-1] != last:
        positions.append(last)
    return positions


def build_recipe(width: int, height: int, tile_size: int, min_overlap: int = 0) -> Recipe:
    """Ordered tile positions covering a ``width x height`` image."""
    xs = axis_positions(width, tile_size, min_overlap)
    ys = axis_positions(height, tile_size, min_overlap)
    recipe = tuple(TilePosition(x, y) for y in ys for x in xs)
    logger.debug(
        "Planned %d tiles (%d columns x %d rows) for %dx%d image, tile=%d, min_overlap=%d",
        len(recipe), len(xs), len(ys), width, height, tile_size, min_overlap,
    )
    return recipe


@dataclass(frozen=True)
class GridSpec:
    """Square tiling parameters, reusable across images."""

    tile_size: int
    min_overlap: int = 0

    def __post_init__(self) -> None:
        validate_overlap(self.min_overlap, self.tile_size)

    @property
    def step(self) -> int:
        return self.tile_size - self.min_overlap

    def grid_shape(self, width: int, height: int) -> tuple[int, int]:
        """Number of tile ``(rows, columns)`` for an image."""
        return (
            len(axis_positions(height, self.tile_size, self.min_overlap)),
            len(axis_positions(width, self.tile_size, self.min_overlap)),
        )

    def build_recipe(self, width: int, height: int) -> Recipe:
        return build_recipe(width, height, self.tile_size, self.min_overlap)

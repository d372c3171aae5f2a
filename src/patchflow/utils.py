"""Validation helpers and memory estimation."""

import warnings

import numpy as np

from patchflow.core import CHANNELS
from patchflow.errors import InvalidConfiguration


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def validate_overlap(min_overlap: int, tile_size: int) -> None:
    """Validate the tile edge length and the minimum overlap between tiles."""
    if not _is_int(tile_size):
        raise InvalidConfiguration(f"tile size must be an integer, got {tile_size!r}")
    if tile_size <= 0:
        raise InvalidConfiguration(f"tile size must be positive, got {tile_size}")
    if not _is_int(min_overlap):
        raise InvalidConfiguration(f"min_overlap must be an integer, got {min_overlap!r}")
    if min_overlap < 0:
        raise InvalidConfiguration(f"min_overlap must be non-negative, got {min_overlap}")
    if min_overlap >= tile_size:
        raise InvalidConfiguration(
            f"min_overlap ({min_overlap}) must be less than tile size ({tile_size})."
        )


def validate_tile_size(tile_size: int, image_shape: tuple[int, int]) -> None:
    """Validate that a square tile fits inside an image of shape ``(height, width)``."""
    height, width = image_shape
    if tile_size > height:
        raise InvalidConfiguration(f"tile size ({tile_size}) cannot exceed image height ({height})")
    if tile_size > width:
        raise InvalidConfiguration(f"tile size ({tile_size}) cannot exceed image width ({width})")

    if tile_size < 16 and min(height, width) > 256:
        warnings.warn(
            f"Very small tile size ({tile_size}) for a {width}x{height} image may impact performance",
            UserWarning,
            stacklevel=2,
        )


def estimate_memory_usage(
    image_shape: tuple[int, int],
    tile_size: int,
    min_overlap: int = 0,
    workers: int = 1,
) -> dict[str, float | int]:
    """Estimate memory needed to process an RGBA image of shape ``(height, width)``.

    Peak usage counts the source image, the stitched output, and one extracted
    plus one transformed tile per concurrent worker.
    """
    from patchflow.tiling import build_recipe

    height, width = image_shape
    validate_overlap(min_overlap, tile_size)
    validate_tile_size(tile_size, image_shape)

    bytes_per_mb = 1024 * 1024
    image_bytes = height * width * CHANNELS
    tile_bytes = tile_size * tile_size * CHANNELS
    total_tiles = len(build_recipe(width, height, tile_size, min_overlap))
    peak_bytes = 2 * image_bytes + 2 * tile_bytes * max(1, workers)

    return {
        "original_image_mb": image_bytes / bytes_per_mb,
        "output_image_mb": image_bytes / bytes_per_mb,
        "tile_mb": tile_bytes / bytes_per_mb,
        "total_tiles": total_tiles,
        "peak_memory_mb": peak_bytes / bytes_per_mb,
        "processed_pixels_ratio": total_tiles * tile_size * tile_size / (height * width),
    }

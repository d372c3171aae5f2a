"""patchflow: overlapping tile planning, resource-bounded scheduling and stitching."""

from patchflow.callback import (
    CompositeCallback,
    MetricsCallback,
    PatchflowCallback,
    ProcessingStats,
    ProgressCallback,
)
from patchflow.codec import decode_image, encode_image, read_image, write_image
from patchflow.config import PatchConfig
from patchflow.core import Image, Recipe, Tile, TilePosition
from patchflow.errors import Cancelled, InvalidConfiguration, PatchflowError, TaskFailure
from patchflow.metrics import LOSSLESS_THRESHOLD, mean_absolute_error
from patchflow.model import Patchify
from patchflow.reconstruction import Stitcher, stitch
from patchflow.scheduler import CancellationToken, ResourceQueue
from patchflow.tiling import GridSpec, axis_positions, build_recipe
from patchflow.utils import estimate_memory_usage

__version__ = "0.1.0"

__all__ = [
    "Cancelled",
    "CancellationToken",
    "CompositeCallback",
    "GridSpec",
    "Image",
    "InvalidConfiguration",
    "LOSSLESS_THRESHOLD",
    "MetricsCallback",
    "PatchConfig",
    "PatchflowCallback",
    "PatchflowError",
    "Patchify",
    "ProcessingStats",
    "ProgressCallback",
    "Recipe",
    "ResourceQueue",
    "Stitcher",
    "TaskFailure",
    "Tile",
    "TilePosition",
    "axis_positions",
    "build_recipe",
    "decode_image",
    "encode_image",
    "estimate_memory_usage",
    "mean_absolute_error",
    "read_image",
    "stitch",
    "write_image",
]

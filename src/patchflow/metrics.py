"""Image comparison metrics."""

from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np

from patchflow.codec import decode_image, read_image
from patchflow.core import Image

# Mean absolute error below this counts as a lossless reconstruction.
LOSSLESS_THRESHOLD = 0.000001

ImageSource = Union[Image, bytes, str, Path]


def _load(source: ImageSource) -> Image:
    if isinstance(source, Image):
        return source
    if isinstance(source, (bytes, bytearray, memoryview)):
        return decode_image(bytes(source))
    if isinstance(source, (str, Path)):
        return read_image(source)
    raise TypeError(f"Cannot compare {type(source).__name__}; expected an Image, encoded bytes or a path")


def mean_absolute_error(value: ImageSource, golden: ImageSource) -> float:
    """Mean absolute difference over the RGB channels; alpha is ignored.

    Either side may be an :class:`Image`, encoded image bytes or a file path.
    """
    value = _load(value)
    golden = _load(golden)
    if value.width != golden.width or value.height != golden.height:
        raise ValueError(
            f"Image dimensions do not match. Expected: {golden.width}x{golden.height}, "
            f"Actual: {value.width}x{value.height}"
        )

    total_rgb_channels = value.width * value.height * 3
    if total_rgb_channels == 0:
        raise ValueError("Image has no pixels.")

    diff = np.abs(value.pixels[..., :3].astype(np.int16) - golden.pixels[..., :3].astype(np.int16))
    return float(diff.sum()) / total_rgb_channels


def is_lossless(value: ImageSource, golden: ImageSource) -> bool:
    return mean_absolute_error(value, golden) < LOSSLESS_THRESHOLD

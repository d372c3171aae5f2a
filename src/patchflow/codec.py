"""Encoding and decoding of images.

OpenCV handles the common raster formats (PNG, JPEG, BMP, WebP); TIFF files go
through tifffile. OpenCV works in BGR(A) order, conversion to RGBA happens here.
"""

from __future__ import annotations

import logging
from pathlib import Path

import cv2
import numpy as np
import tifffile

from patchflow.core import Image, as_rgba

logger = logging.getLogger(__name__)

TIFF_SUFFIXES = {".tif", ".tiff"}


def _to_rgba(decoded: np.ndarray) -> np.ndarray:
    if decoded.ndim == 3 and decoded.shape[2] == 4:
        return cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA)
    if decoded.ndim == 3 and decoded.shape[2] == 3:
        return as_rgba(cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB))
    return as_rgba(decoded)


def encode_image(image: Image, ext: str = ".png") -> bytes:
    """Encode an image, lossless for ``.png``."""
    bgra = cv2.cvtColor(np.ascontiguousarray(image.pixels), cv2.COLOR_RGBA2BGRA)
    ok, buffer = cv2.imencode(ext, bgra)
    if not ok:
        raise ValueError(f"Could not encode {image!r} as {ext}")
    return buffer.tobytes()


def decode_image(data: bytes, name: str = "") -> Image:
    """Decode an encoded image (PNG, JPEG, ...) into RGBA pixels."""
    decoded = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    if decoded is None:
        raise ValueError(f"Could not decode image data{f' for {name}' if name else ''}")
    if decoded.dtype != np.uint8:
        # 16-bit PNGs
        decoded = (decoded >> 8).astype(np.uint8)
    return Image(np.ascontiguousarray(_to_rgba(decoded)), name=name)


def read_image(path: str | Path) -> Image:
    """Load an image file; the file name becomes the image name."""
    path = Path(path)
    if path.suffix.lower() in TIFF_SUFFIXES:
        array = tifffile.imread(path)
        logger.debug("Read TIFF %s with shape %s", path, array.shape)
        return Image.from_array(array, name=path.name)
    return decode_image(path.read_bytes(), name=path.name)


def write_image(image: Image, path: str | Path) -> Path:
    """Write an image, picking the format from the file suffix."""
    path = Path(path)
    if path.suffix.lower() in TIFF_SUFFIXES:
        tifffile.imwrite(path, np.ascontiguousarray(image.pixels), photometric="rgb", extrasamples=[2])
    else:
        path.write_bytes(encode_image(image, ext=path.suffix or ".png"))
    logger.debug("Wrote %r to %s", image, path)
    return path

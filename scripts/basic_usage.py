#!/usr/bin/env python3
"""Basic usage example for patchflow.

This script demonstrates:
- Planning overlapping tiles over an RGBA image
- Running a per-tile transform and stitching the result back
- Checking the reconstruction with the mean absolute error
"""

import asyncio
import logging
import sys
from pathlib import Path

import cv2

from patchflow import Patchify, ProgressCallback, mean_absolute_error, read_image, write_image
from patchflow.examples import generate_gradient_image, identity_tile


def blur_tile(tile):
    """Gaussian blur on the RGB channels of one tile."""
    pixels = tile.pixels.copy()
    pixels[..., :3] = cv2.GaussianBlur(pixels[..., :3], (7, 7), 0)
    return pixels


async def main():
    """Tile an image, process every tile, and write the stitched output."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if len(sys.argv) > 1:
        image = read_image(sys.argv[1])
    else:
        image = generate_gradient_image(1024, 768)

    print("patchflow Basic Usage Example")
    print("=" * 40)
    print(f"Image: {image!r}, {image.nbytes / 1024 / 1024:.1f} MB")

    patchify = Patchify(image, tile_size=256, min_overlap=32, name="basic")
    patchify.summary()

    # Identity must reproduce the source exactly
    restored = await patchify.process(identity_tile)
    print(f"Identity MAE: {mean_absolute_error(restored, image):.6f}")

    blurred = await patchify.process(blur_tile, callbacks=[ProgressCallback(show_rate=True)])
    output = write_image(blurred, Path("output") / f"blurred_{image.name or 'image.png'}")
    print(f"Wrote {output}")


if __name__ == "__main__":
    Path("output").mkdir(exist_ok=True)
    asyncio.run(main())

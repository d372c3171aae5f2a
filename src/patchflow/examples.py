"""Synthetic images, sample transforms and resources for demos and tests."""

from __future__ import annotations

import asyncio

import numpy as np

from patchflow.core import Image, Tile


def generate_gradient_image(width: int, height: int, name: str = "gradient.png") -> Image:
    """Opaque RGBA gradient where every pixel depends on its coordinates."""
    ys, xs = np.mgrid[0:height, 0:width]
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[..., 0] = (xs * 50) % 256
    pixels[..., 1] = (ys * 70) % 256
    pixels[..., 2] = (xs * 30 + ys * 40) % 256
    pixels[..., 3] = 255
    return Image(pixels, name=name)


def generate_noise_image(width: int, height: int, seed: int = 42, name: str = "noise.png") -> Image:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return Image(pixels, name=name)


def invert_tile(tile: Tile) -> Tile:
    """Invert RGB, keep alpha."""
    pixels = tile.pixels.copy()
    pixels[..., :3] = 255 - pixels[..., :3]
    return tile.with_pixels(pixels)


def identity_tile(tile: Tile) -> Tile:
    return tile


class DelayResource:
    """Stand-in for a slow model session: ``await resource(ms)`` sleeps.

    Tracks how many calls run on it at once, which must never exceed one when
    it is lent out by a :class:`patchflow.scheduler.ResourceQueue`.
    """

    def __init__(self, name: str = "resource") -> None:
        self.name = name
        self.active = 0
        self.max_active = 0
        self.calls = 0

    async def __call__(self, ms: float) -> None:
        self.active += 1
        self.calls += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(ms / 1000)
        finally:
            self.active -= 1

    def __repr__(self) -> str:
        return f"DelayResource({self.name!r}, calls={self.calls})"

"""Patch-based image processing engine.

This module implements patchflow's main processing pipeline:
- Patchify: plans overlapping tiles over an image and exposes the recipe
- process: runs a per-tile transform in recipe order and stitches the result
- process_with: fans tiles out through a ResourceQueue, stitches in recipe order
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from typing import Any, Union

import numpy as np

from patchflow.callback import CompositeCallback, PatchflowCallback, ProcessingStats
from patchflow.config import PatchConfig
from patchflow.core import Image, Recipe, Tile, TilePosition
from patchflow.errors import Cancelled, TaskFailure
from patchflow.reconstruction import Stitcher
from patchflow.scheduler import CancellationToken, ResourceQueue
from patchflow.tiling import axis_positions, build_recipe
from patchflow.utils import validate_overlap, validate_tile_size

logger = logging.getLogger(__name__)

TileResult = Union[Tile, np.ndarray]
Transform = Callable[[Tile], Union[TileResult, Awaitable[TileResult]]]
ResourceTransform = Callable[[Tile, Any], Union[TileResult, Awaitable[TileResult]]]


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


class Patchify:
    """Tile planner and stitcher for one image.

    Splits ``image`` into square tiles of ``tile_size`` pixels that overlap by at
    least ``min_overlap`` pixels and always reach the right and bottom edges
    exactly. Transformed tiles are pasted back in recipe order (rows top to
    bottom, columns left to right), so later tiles win on overlaps.

    Parameters
    ----------
    image : Image
        Source image.
    tile_size : int
        Edge length of each tile.
    min_overlap : int, default=0
        Minimum overlap between neighbouring tiles. Must be smaller than
        ``tile_size``.
    name : str, default="Patchify"
        Name of the planner for logging/debugging.

    Raises
    ------
    InvalidConfiguration
        If ``min_overlap >= tile_size`` or the tile does not fit in the image.

    Examples
    --------
    >>> patchify = Patchify(image, tile_size=512, min_overlap=64)
    >>> result = await patchify.process(denoise_tile)

    >>> # Share two model sessions between all tiles
    >>> queue = ResourceQueue([session_a, session_b])
    >>> result = await patchify.process_with(queue, lambda tile, session: session.run(tile))
    """

    def __init__(
        self,
        image: Image,
        tile_size: int,
        min_overlap: int = 0,
        name: str = "Patchify",
    ) -> None:
        validate_overlap(min_overlap, tile_size)
        validate_tile_size(tile_size, image.shape)

        self.image = image
        self.tile_size = int(tile_size)
        self.min_overlap = int(min_overlap)
        self.name = name

        self._x_positions = tuple(axis_positions(image.width, self.tile_size, self.min_overlap))
        self._y_positions = tuple(axis_positions(image.height, self.tile_size, self.min_overlap))
        self._recipe: Recipe = build_recipe(image.width, image.height, self.tile_size, self.min_overlap)

    @classmethod
    def from_config(cls, image: Image, config: PatchConfig) -> Patchify:
        return cls(image, tile_size=config.tile_size, min_overlap=config.min_overlap)

    @property
    def recipe(self) -> Recipe:
        """Ordered tile positions, Y outer and X inner."""
        return self._recipe

    @property
    def x_positions(self) -> tuple[int, ...]:
        return self._x_positions

    @property
    def y_positions(self) -> tuple[int, ...]:
        return self._y_positions

    def __len__(self) -> int:
        return len(self._recipe)

    def extract(self, position: TilePosition | tuple[int, int]) -> Tile:
        """Copy the tile whose top-left corner is at ``position``."""
        x, y = position
        size = self.tile_size
        if x < 0 or y < 0 or x + size > self.image.width or y + size > self.image.height:
            raise ValueError(
                f"Tile at ({x}, {y}) with size {size} falls outside the "
                f"{self.image.width}x{self.image.height} image"
            )
        pixels = self.image.pixels[y : y + size, x : x + size].copy()
        return Tile(position=TilePosition(x, y), pixels=pixels)

    def tiles(self) -> Iterator[Tile]:
        """Lazily extract every tile in recipe order."""
        for position in self._recipe:
            yield self.extract(position)

    def _new_stats(self, workers: int = 1) -> ProcessingStats:
        return ProcessingStats(
            start_time=time.perf_counter(),
            total_tiles=len(self._recipe),
            image_size=(self.image.width, self.image.height),
            tile_size=self.tile_size,
            min_overlap=self.min_overlap,
            workers=workers,
        )

    @staticmethod
    def _as_tile(output: Any, tile: Tile) -> Tile:
        if isinstance(output, Tile):
            return output
        if output is None:
            raise TypeError(
                f"Transform returned None for tile at ({tile.x}, {tile.y}); "
                "return the processed Tile or pixel array"
            )
        return tile.with_pixels(output)

    async def process(
        self,
        transform: Transform,
        callbacks: list[PatchflowCallback] | None = None,
    ) -> Image:
        """Apply ``transform`` to every tile and stitch the outputs.

        Parameters
        ----------
        transform : Callable[[Tile], Tile | np.ndarray]
            Called exactly once per recipe entry, in recipe order. May be a
            coroutine function. Its exceptions abort the reconstruction.
        callbacks : list[PatchflowCallback], optional
            Callbacks for progress tracking.

        Returns
        -------
        Image
            Reconstructed image with the source dimensions and name.
        """
        callback = CompositeCallback(callbacks)
        tile_listeners = callback.has_tile_listeners()
        stats = self._new_stats()
        total = stats.total_tiles
        stitcher = Stitcher(self.image.width, self.image.height, self.tile_size)

        callback.on_processing_start(stats)
        try:
            for index, position in enumerate(self._recipe):
                tile = self.extract(position)
                if tile_listeners:
                    callback.on_tile_start(tile, index, total)

                processed = self._as_tile(await _maybe_await(transform(tile)), tile)
                stitcher.paste(position, processed)
                stats.processed_tiles = index + 1

                if tile_listeners:
                    callback.on_tile_end(processed, index, total)
        except Exception as exc:
            stats.end_time = time.perf_counter()
            stats.errors.append(str(exc))
            callback.on_processing_error(exc, stats)
            raise

        stats.end_time = time.perf_counter()
        callback.on_processing_end(stats)
        return stitcher.result(name=self.image.name)

    def run(
        self,
        transform: Transform,
        callbacks: list[PatchflowCallback] | None = None,
    ) -> Image:
        """Blocking variant of :meth:`process` for code without an event loop."""
        return asyncio.run(self.process(transform, callbacks=callbacks))

    async def process_with(
        self,
        queue: ResourceQueue,
        transform: ResourceTransform,
        cancel_token: CancellationToken | None = None,
        callbacks: list[PatchflowCallback] | None = None,
    ) -> Image:
        """Process tiles concurrently through ``queue`` and stitch them in recipe order.

        Each tile becomes one task; ``transform(tile, resource)`` receives the
        resource lent by the queue. Tiles are extracted only once their task has
        a resource. Completion order does not affect the output.

        Raises
        ------
        TaskFailure
            When a tile's transform raises. Tiles still waiting are cancelled,
            the first failure in recipe order is chained as ``__cause__``.
        Cancelled
            When ``cancel_token`` fires before every tile was dispatched.
        """
        callback = CompositeCallback(callbacks)
        tile_listeners = callback.has_tile_listeners()
        stats = self._new_stats(workers=queue.pool_size)
        total = stats.total_tiles
        token = CancellationToken.linked(cancel_token)

        def make_task(index: int, position: TilePosition):
            async def task(resource):
                tile = self.extract(position)
                if tile_listeners:
                    callback.on_tile_start(tile, index, total)
                processed = self._as_tile(await _maybe_await(transform(tile, resource)), tile)
                stats.processed_tiles += 1
                if tile_listeners:
                    callback.on_tile_end(processed, index, total)
                return processed

            return task

        callback.on_processing_start(stats)
        futures = [
            queue.submit(make_task(index, position), token)
            for index, position in enumerate(self._recipe)
        ]
        try:
            await asyncio.wait(futures, return_when=asyncio.FIRST_EXCEPTION)
            if any(f.done() and not f.cancelled() and f.exception() is not None for f in futures):
                token.cancel("another tile failed")
            await asyncio.gather(*futures, return_exceptions=True)
        finally:
            token.detach()
            for future in futures:
                if not future.done():
                    future.cancel()

        error = self._first_error(futures, cancel_token)
        if error is not None:
            stats.end_time = time.perf_counter()
            stats.errors.append(str(error))
            callback.on_processing_error(error, stats)
            raise error

        stitcher = Stitcher(self.image.width, self.image.height, self.tile_size)
        for position, future in zip(self._recipe, futures):
            stitcher.paste(position, future.result())

        stats.end_time = time.perf_counter()
        callback.on_processing_end(stats)
        return stitcher.result(name=self.image.name)

    def _first_error(
        self, futures: list[asyncio.Future], cancel_token: CancellationToken | None
    ) -> Exception | None:
        cancelled = False
        for position, future in zip(self._recipe, futures):
            if future.cancelled():
                cancelled = True
                continue
            exc = future.exception()
            if exc is None:
                continue
            if isinstance(exc, Cancelled):
                cancelled = True
                continue
            failure = TaskFailure(f"Tile at ({position.x}, {position.y}) failed: {exc}", position)
            failure.__cause__ = exc
            return failure
        if cancelled:
            return Cancelled(cancel_token.reason if cancel_token is not None else None)
        return None

    def summary(self) -> None:
        """Print planner configuration summary."""
        print(f"Patchify: {self.name}")
        print("=" * 50)
        print(f"Image:          {self.image.width}x{self.image.height}")
        print(f"Tile size:      {self.tile_size}")
        print(f"Min overlap:    {self.min_overlap}")
        print(f"Columns:        {list(self._x_positions)}")
        print(f"Rows:           {list(self._y_positions)}")
        print(f"Tiles:          {len(self._recipe)}")
        print("=" * 50)

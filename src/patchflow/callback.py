"""Callbacks for monitoring patch processing.

Callbacks receive lifecycle events from :meth:`patchflow.model.Patchify.process`
and :meth:`patchflow.model.Patchify.process_with`. Every hook is optional.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from patchflow.core import Tile

logger = logging.getLogger(__name__)


@dataclass
class ProcessingStats:
    """Counters and timings for one processing run."""

    start_time: float | None = None
    end_time: float | None = None
    total_tiles: int = 0
    processed_tiles: int = 0
    image_size: tuple[int, int] | None = None
    tile_size: int | None = None
    min_overlap: int | None = None
    workers: int = 1
    errors: list[str] = field(default_factory=list)

    @property
    def elapsed_time(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return end - self.start_time

    @property
    def tiles_per_second(self) -> float:
        elapsed = self.elapsed_time
        return self.processed_tiles / elapsed if elapsed > 0 else 0.0


class PatchflowCallback:
    """Base class for processing callbacks."""

    def on_processing_start(self, stats: ProcessingStats) -> None:
        pass

    def on_processing_end(self, stats: ProcessingStats) -> None:
        pass

    def on_processing_error(self, error: Exception, stats: ProcessingStats) -> None:
        pass

    def on_tile_start(self, tile: Tile, index: int, total: int) -> None:
        pass

    def on_tile_end(self, tile: Tile, index: int, total: int) -> None:
        pass


class CompositeCallback(PatchflowCallback):
    """Fan events out to several callbacks.

    A failing callback is logged and skipped; it never aborts processing.
    """

    def __init__(self, callbacks: list[PatchflowCallback] | None = None) -> None:
        self.callbacks = list(callbacks or [])

    def has_tile_listeners(self) -> bool:
        """Whether any callback overrides a per-tile hook."""
        for callback in self.callbacks:
            cls = type(callback)
            if (
                getattr(cls, "on_tile_start", None) is not PatchflowCallback.on_tile_start
                or getattr(cls, "on_tile_end", None) is not PatchflowCallback.on_tile_end
            ):
                return True
        return False

    def _dispatch(self, method: str, *args) -> None:
        for callback in self.callbacks:
            try:
                getattr(callback, method)(*args)
            except Exception as exc:
                logger.warning("Callback %s.%s failed: %s", type(callback).__name__, method, exc)

    def on_processing_start(self, stats: ProcessingStats) -> None:
        self._dispatch("on_processing_start", stats)

    def on_processing_end(self, stats: ProcessingStats) -> None:
        self._dispatch("on_processing_end", stats)

    def on_processing_error(self, error: Exception, stats: ProcessingStats) -> None:
        self._dispatch("on_processing_error", error, stats)

    def on_tile_start(self, tile: Tile, index: int, total: int) -> None:
        self._dispatch("on_tile_start", tile, index, total)

    def on_tile_end(self, tile: Tile, index: int, total: int) -> None:
        self._dispatch("on_tile_end", tile, index, total)


class ProgressCallback(PatchflowCallback):
    """Print progress to stdout."""

    def __init__(self, verbose: bool = True, show_rate: bool = True) -> None:
        self.verbose = verbose
        self.show_rate = show_rate
        self._start_time: float | None = None
        self._completed = 0

    def on_processing_start(self, stats: ProcessingStats) -> None:
        self._start_time = time.perf_counter()
        self._completed = 0
        if self.verbose:
            print(f"Starting processing: {stats.total_tiles} tiles")

    def on_tile_end(self, tile: Tile, index: int, total: int) -> None:
        self._completed += 1
        if not self.verbose:
            return
        message = f"Tile {self._completed}/{total} done at ({tile.x}, {tile.y})"
        if self.show_rate and self._start_time is not None:
            elapsed = time.perf_counter() - self._start_time
            if elapsed > 0:
                message += f" [{self._completed / elapsed:.1f} tiles/sec]"
        print(message)

    def on_processing_end(self, stats: ProcessingStats) -> None:
        if self.verbose:
            print(f"Processing complete: {stats.processed_tiles} tiles in {stats.elapsed_time:.2f}s")

    def on_processing_error(self, error: Exception, stats: ProcessingStats) -> None:
        if self.verbose:
            print(f"Processing failed after {stats.processed_tiles} tiles: {error}")


class MetricsCallback(PatchflowCallback):
    """Collect per-tile durations and run-level metrics."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose
        self.stats = ProcessingStats()
        self._tile_started: dict[tuple[int, int], float] = {}
        self._tile_times: list[float] = []

    def on_processing_start(self, stats: ProcessingStats) -> None:
        self.stats = stats
        self._tile_started.clear()
        self._tile_times.clear()

    def on_tile_start(self, tile: Tile, index: int, total: int) -> None:
        self._tile_started[tile.position] = time.perf_counter()

    def on_tile_end(self, tile: Tile, index: int, total: int) -> None:
        started = self._tile_started.pop(tile.position, None)
        if started is not None:
            self._tile_times.append(time.perf_counter() - started)

    def on_processing_end(self, stats: ProcessingStats) -> None:
        self.stats = stats
        if self.verbose:
            metrics = self.get_detailed_metrics()
            print(
                f"{metrics['tiles_processed']} tiles in {metrics['total_time_s']:.3f}s, "
                f"mean tile {metrics['mean_tile_time_s'] * 1000:.1f} ms"
            )

    def get_detailed_metrics(self) -> dict[str, float | int]:
        times = self._tile_times
        return {
            "total_time_s": self.stats.elapsed_time,
            "tiles_processed": self.stats.processed_tiles,
            "tiles_per_second": self.stats.tiles_per_second,
            "mean_tile_time_s": sum(times) / len(times) if times else 0.0,
            "max_tile_time_s": max(times) if times else 0.0,
            "min_tile_time_s": min(times) if times else 0.0,
        }

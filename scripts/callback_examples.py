"""Examples of the patchflow callback system.

Shows progress output, metrics collection, custom callbacks and grouping
callbacks with CompositeCallback.
"""

import numpy as np

from patchflow.callback import (
    CompositeCallback,
    MetricsCallback,
    PatchflowCallback,
    ProgressCallback,
)
from patchflow.examples import generate_gradient_image
from patchflow.model import Patchify


class DarkTileCounter(PatchflowCallback):
    """Count tiles whose mean brightness falls below a threshold."""

    def __init__(self, threshold=64):
        self.threshold = threshold
        self.dark_tiles = []

    def on_tile_end(self, tile, index, total):
        if tile.pixels[..., :3].mean() < self.threshold:
            self.dark_tiles.append(tile.position)


def example_basic_callbacks():
    """Basic progress output."""
    print("=== Basic Callback Usage ===\n")

    image = generate_gradient_image(512, 512)
    patchify = Patchify(image, tile_size=128, min_overlap=16)

    def brighten(tile):
        pixels = tile.pixels.astype(np.uint16)
        pixels[..., :3] = np.minimum(pixels[..., :3] * 3 // 2, 255)
        return pixels.astype(np.uint8)

    result = patchify.run(brighten, callbacks=[ProgressCallback(verbose=True, show_rate=True)])
    print(f"Result: {result!r}\n")


def example_metrics():
    """Per-tile timing statistics."""
    print("=== Metrics Example ===\n")

    patchify = Patchify(generate_gradient_image(2048, 2048), tile_size=256, min_overlap=32)
    metrics = MetricsCallback()
    patchify.run(lambda tile: tile, callbacks=[metrics])

    for key, value in metrics.get_detailed_metrics().items():
        print(f"{key}: {value}")
    print()


def example_composite():
    """Group several callbacks, including a custom one."""
    print("=== Composite Callbacks ===\n")

    counter = DarkTileCounter(threshold=100)
    monitor = CompositeCallback([ProgressCallback(show_rate=False), MetricsCallback(verbose=True), counter])

    patchify = Patchify(generate_gradient_image(640, 480), tile_size=160, min_overlap=20)
    patchify.run(lambda tile: tile, callbacks=[monitor])
    print(f"Dark tiles: {counter.dark_tiles}\n")


if __name__ == "__main__":
    example_basic_callbacks()
    example_metrics()
    example_composite()

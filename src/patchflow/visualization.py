"""Debug visualization for tile layouts."""

from __future__ import annotations

from typing import TYPE_CHECKING

import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle

if TYPE_CHECKING:
    from matplotlib.axes import Axes

    from patchflow.model import Patchify


def plot_recipe(patchify: Patchify, ax: Axes | None = None, show_order: bool = False) -> Axes:
    """
    Plot the image with every tile of the recipe overlaid (blue), the first
    tile in green and the last one in red.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))

    image = patchify.image
    ax.imshow(image.pixels)
    ax.set_xlim(0, image.width)
    ax.set_ylim(image.height, 0)
    ax.set_aspect("equal")
    ax.axis("off")

    size = patchify.tile_size
    last = len(patchify.recipe) - 1
    for index, (x, y) in enumerate(patchify.recipe):
        edgecolor = "green" if index == 0 else "red" if index == last else "blue"
        ax.add_patch(
            Rectangle((x, y), size, size, fill=False, edgecolor=edgecolor, linewidth=0.8)
        )
        if show_order:
            ax.text(x + 2, y + 2, str(index), color=edgecolor, fontsize=6, va="top")

    ax.set_title(
        f"{len(patchify.recipe)} tiles of {size}px, min overlap {patchify.min_overlap}px"
    )
    return ax

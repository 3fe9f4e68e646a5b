# smallpng/sampling.py
from __future__ import annotations

"""
Pixel subsampling for clustering.

Exports:
  subsample_cluster_pixels(colors, max_pixels, rng)
"""

import numpy as np

from .core_types import ColorVectors


def subsample_cluster_pixels(
    colors: ColorVectors, max_pixels: int, rng: np.random.Generator
) -> ColorVectors:
    """
    Uniformly pick at most max_pixels rows.

    Partial Fisher-Yates: slot i swaps with a uniform index in [i, N), so the
    first max_pixels rows end up as an unbiased sample. Shuffles colors in
    place and returns a view of the prefix. Returns colors unchanged when it
    already fits.
    """
    n = int(colors.shape[0])
    if n <= max_pixels:
        return colors

    picks = rng.integers(np.arange(max_pixels), n)
    for i, j in enumerate(picks.tolist()):
        if i != j:
            tmp = colors[i].copy()
            colors[i] = colors[j]
            colors[j] = tmp
    return colors[:max_pixels]


__all__ = ["subsample_cluster_pixels"]

# smallpng/seeding.py
from __future__ import annotations

"""
k-means++ seeding.

Exports:
  unique_colors(colors)
  squared_distances(colors, center)
  CenterDistances
  kmeans_plus_plus_init(colors, num_centers, rng)
"""

import numpy as np

from .core_types import ColorVectors


def unique_colors(colors: ColorVectors) -> ColorVectors:
    """Distinct rows of an (N,4) vector array, in first-seen order."""
    if colors.shape[0] == 0:
        return colors.copy()
    _, first = np.unique(colors, axis=0, return_index=True)
    return colors[np.sort(first)].copy()


def squared_distances(colors: ColorVectors, center: np.ndarray) -> np.ndarray:
    """Squared distance from every row to one centre, as float64."""
    diff = colors - center.astype(np.float32, copy=False)
    return np.einsum("ij,ij->i", diff, diff).astype(np.float64)


class CenterDistances:
    """Per-point squared distance to the nearest chosen centre, plus their sum."""

    def __init__(self, colors: ColorVectors, center: np.ndarray) -> None:
        self.colors = colors
        self.distances = squared_distances(colors, center)
        self.distance_sum = float(self.distances.sum())

    def update(self, new_center: np.ndarray) -> None:
        np.minimum(
            self.distances, squared_distances(self.colors, new_center), out=self.distances
        )
        self.distance_sum = float(self.distances.sum())

    def sample(self, rng: np.random.Generator) -> int:
        """
        Index drawn with probability proportional to its distance.

        Walks the running remainder u - cumsum(distances) and returns the first
        index where it goes negative; the last index if rounding never gets there.
        """
        remainder = rng.random() * self.distance_sum
        hits = np.flatnonzero(remainder - np.cumsum(self.distances) < 0)
        if hits.size == 0:
            return int(self.distances.shape[0] - 1)
        return int(hits[0])


def kmeans_plus_plus_init(
    colors: ColorVectors, num_centers: int, rng: np.random.Generator
) -> ColorVectors:
    """Pick num_centers rows of colors: first uniformly, the rest weighted by distance."""
    centers = np.empty((num_centers, colors.shape[1]), dtype=np.float32)
    centers[0] = colors[int(rng.integers(colors.shape[0]))]
    dists = CenterDistances(colors, centers[0])
    for i in range(1, num_centers):
        centers[i] = colors[dists.sample(rng)]
        dists.update(centers[i])
    return centers


__all__ = [
    "unique_colors",
    "squared_distances",
    "CenterDistances",
    "kmeans_plus_plus_init",
]

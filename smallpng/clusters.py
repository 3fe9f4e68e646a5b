# smallpng/clusters.py
from __future__ import annotations

"""
Parallel k-means over colour vectors.

Exports:
  nearest_center_indices(colors, centers, chunk=...)
  ColorClusters
  refine(clusters, max_iters, workers, debug=False)

One iterate() call is a Lloyd step: the population is split into contiguous
spans, each span is scanned on a worker thread against a frozen copy of the
centres, partial sums/counts/error are merged under a lock, and only after
every worker has returned are the centres recomputed.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Tuple

import numpy as np

from .core_types import ColorVectors, assert_color_vectors
from .seeding import kmeans_plus_plus_init, unique_colors
from .utils import debug_log, split_rows_into_parts

# Rows per broadcasted distance block; keeps (chunk, K, 4) float32 near 8 MB at K=256.
NEAREST_CHUNK = 2048


def nearest_center_indices(
    colors: ColorVectors,
    centers: ColorVectors,
    chunk: int = NEAREST_CHUNK,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Nearest centre for each row by squared distance.

    Ties go to the lowest centre index. Returns (indices intp[N], dist2 float64[N]).
    """
    n = int(colors.shape[0])
    idx = np.empty((n,), dtype=np.intp)
    best = np.empty((n,), dtype=np.float64)
    for start in range(0, n, chunk):
        block = colors[start : start + chunk]
        diff = block[:, None, :] - centers[None, :, :]
        dist2 = np.einsum("ijk,ijk->ij", diff, diff)
        # argmin returns the first minimum
        arg = np.argmin(dist2, axis=1)
        idx[start : start + block.shape[0]] = arg
        best[start : start + block.shape[0]] = dist2[np.arange(block.shape[0]), arg]
    return idx, best


class ColorClusters:
    """Cluster centres plus the (possibly subsampled) population they summarise."""

    def __init__(self, centers: ColorVectors, all_colors: ColorVectors) -> None:
        self.centers = assert_color_vectors(centers).copy()
        self.all_colors = assert_color_vectors(all_colors)

    @classmethod
    def from_colors(
        cls, all_colors: ColorVectors, num_centers: int, rng: np.random.Generator
    ) -> "ColorClusters":
        """
        Seed centres for all_colors.

        When the population has no more distinct colours than num_centers, the
        distinct colours are the centres and no random seeding happens.
        """
        if all_colors.shape[0] == 0:
            raise ValueError("cannot cluster an empty set of colours")
        if num_centers <= 0:
            raise ValueError(f"num_centers must be positive, got {num_centers}")
        uniques = unique_colors(all_colors)
        if uniques.shape[0] <= num_centers:
            return cls(uniques, all_colors)
        return cls(kmeans_plus_plus_init(all_colors, num_centers, rng), all_colors)

    @property
    def num_centers(self) -> int:
        return int(self.centers.shape[0])

    def _partial_sums(
        self, span: Tuple[int, int], centers: ColorVectors
    ) -> Tuple[np.ndarray, np.ndarray, float]:
        start, end = span
        colors = self.all_colors[start:end]
        k = centers.shape[0]
        idx, dist2 = nearest_center_indices(colors, centers)
        counts = np.bincount(idx, minlength=k)
        # bincount sums in float64; centres are stored back as float32 in iterate()
        sums = np.empty((k, colors.shape[1]), dtype=np.float64)
        for ch in range(colors.shape[1]):
            sums[:, ch] = np.bincount(idx, weights=colors[:, ch], minlength=k)
        return sums, counts, float(dist2.sum())

    def iterate(self, workers: int = 1) -> float:
        """
        One k-means step. Returns the mean squared error of the assignment
        made against the centres as they were before this step.
        """
        k = self.num_centers
        n = int(self.all_colors.shape[0])
        if n == 0:
            raise ValueError("cannot iterate over an empty set of colours")
        frozen = self.centers.copy()
        frozen.setflags(write=False)

        center_sum = np.zeros((k, self.all_colors.shape[1]), dtype=np.float64)
        center_count = np.zeros((k,), dtype=np.int64)
        total_error = 0.0
        result_lock = threading.Lock()

        def scan(span: Tuple[int, int]) -> None:
            nonlocal total_error
            sums, counts, err = self._partial_sums(span, frozen)
            with result_lock:
                center_sum[:] += sums
                center_count[:] += counts
                total_error += err

        spans = split_rows_into_parts(n, workers)
        if workers <= 1 or len(spans) <= 1:
            for span in spans:
                scan(span)
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                # list() drains the iterator so worker exceptions surface here
                list(pool.map(scan, spans))

        filled = center_count > 0
        self.centers[filled] = (
            center_sum[filled] / center_count[filled][:, None]
        ).astype(np.float32)
        return total_error / float(n)


def refine(
    clusters: ColorClusters,
    max_iters: int,
    workers: int = 1,
    debug: bool = False,
) -> List[float]:
    """
    Run k-means until the loss stops strictly decreasing or max_iters extra
    steps have run. Returns the loss of every step taken.
    """
    loss = clusters.iterate(workers)
    history = [loss]
    if debug:
        debug_log(f"kmeans step 0  loss={loss:.6g}")
    for step in range(1, max_iters + 1):
        new_loss = clusters.iterate(workers)
        history.append(new_loss)
        if debug:
            debug_log(f"kmeans step {step}  loss={new_loss:.6g}")
        if new_loss >= loss:
            break
        loss = new_loss
    return history


__all__ = [
    "NEAREST_CHUNK",
    "nearest_center_indices",
    "ColorClusters",
    "refine",
]

# smallpng/palette.py
from __future__ import annotations

"""
Palette construction for one image.

Exports:
  build_palette(centers, color_space, palette_size)
  assign_indices(vectors, centers)
  palette_image(rgba, config=None, rng=None, debug=False)

Flow:
  pixels -> colour vectors -> subsample -> k-means++ seed -> k-means refine
  -> palette rows (padded to palette_size) -> nearest-centre index for every
  pixel of the full-resolution image.
"""

import time
from typing import Optional

import numpy as np

from .clusters import ColorClusters, nearest_center_indices, refine
from .colour_space import ColorSpace, rgba_to_vectors_threaded
from .core_types import (
    ColorVectors,
    IndexGrid,
    Palette,
    PaletteConfig,
    PalettedImage,
    assert_f32_image_rgba,
)
from .sampling import subsample_cluster_pixels
from .utils import (
    debug_log,
    format_seconds_compact,
    key_value_pairs_to_string,
)


def build_palette(
    centers: ColorVectors, color_space: ColorSpace, palette_size: int
) -> Palette:
    """
    Centres -> exactly palette_size RGBA rows, in centre order.

    Slots past the last centre repeat row 0 so no entry is left undefined.
    """
    n = int(centers.shape[0])
    if n == 0:
        raise ValueError("cannot build a palette from zero centres")
    if n > palette_size:
        raise ValueError(f"{n} centres do not fit a palette of {palette_size}")
    palette = np.empty((palette_size, 4), dtype=np.uint8)
    palette[:n] = color_space.to_colors(centers)
    palette[n:] = palette[0]
    return palette


def assign_indices(vectors: ColorVectors, centers: ColorVectors) -> IndexGrid:
    """
    Nearest-centre index for every pixel vector of an (H,W,4) grid.
    Returns an (H,W) index grid.
    """
    height, width = vectors.shape[0], vectors.shape[1]
    flat = vectors.reshape(-1, vectors.shape[-1])
    idx, _ = nearest_center_indices(flat, centers)
    return idx.reshape(height, width)


def palette_image(
    rgba: np.ndarray,
    config: Optional[PaletteConfig] = None,
    rng: Optional[np.random.Generator] = None,
    debug: bool = False,
) -> PalettedImage:
    """
    Build a clustered palette for an image and index every pixel into it.

    Args:
      rgba  : float [H,W,4] channels in 0..1
      config: palette settings; zero fields fall back to defaults
      rng   : random source for sampling and seeding; fresh if omitted
      debug : print per-stage timing and per-step loss
    Returns:
      PalettedImage with a (palette_size,4) uint8 palette and (H,W) indices.
    """
    cfg = (config or PaletteConfig()).validate()
    image = assert_f32_image_rgba(np.asarray(rgba))
    height, width = image.shape[0], image.shape[1]
    if height * width == 0:
        raise ValueError(f"cannot build a palette for an empty {width}x{height} image")
    if rng is None:
        rng = np.random.default_rng()

    space = cfg.color_space
    workers = int(cfg.workers)
    t0 = time.perf_counter()

    vectors = rgba_to_vectors_threaded(image, space, workers)
    # subsampling shuffles in place, so it gets its own copy
    population = subsample_cluster_pixels(
        vectors.reshape(-1, 4).copy(), cfg.max_cluster_pixels, rng
    )
    t_sample = time.perf_counter()

    clusters = ColorClusters.from_colors(population, cfg.palette_size, rng)
    t_seed = time.perf_counter()

    history = refine(clusters, cfg.max_kmeans_iters, workers=workers, debug=debug)
    t_refine = time.perf_counter()

    palette = build_palette(clusters.centers, space, cfg.palette_size)
    indices = assign_indices(vectors, clusters.centers)
    t_assign = time.perf_counter()

    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Size", f"{width}x{height}"),
                    ("Samples", int(population.shape[0])),
                    ("Centres", clusters.num_centers),
                    ("Steps", len(history)),
                    ("Loss", history[-1]),
                ]
            )
        )
        debug_log(
            f"convert+sample={format_seconds_compact(t_sample - t0)}  "
            f"seed={format_seconds_compact(t_seed - t_sample)}  "
            f"refine={format_seconds_compact(t_refine - t_seed)}  "
            f"assign={format_seconds_compact(t_assign - t_refine)}"
        )

    return PalettedImage(palette=palette, indices=indices)


__all__ = ["build_palette", "assign_indices", "palette_image"]

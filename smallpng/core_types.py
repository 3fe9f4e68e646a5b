# smallpng/core_types.py
from __future__ import annotations

"""
Core type aliases, small value objects, and lightweight helpers.
"""

import os
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from .colour_space import ColorSpace

# Defaults

DEFAULT_PALETTE_SIZE = 256
DEFAULT_MAX_KMEANS_ITERS = 5
DEFAULT_MAX_CLUSTER_PIXELS = 100_000

# Basic aliases

F32Image = NDArray[np.float32]  # (H, W, 4) channels in 0..1
U8Image = NDArray[np.uint8]  # (H, W, 4)
ColorVectors = NDArray[np.float32]  # (N, 4) in the active colour space
Palette = NDArray[np.uint8]  # (P, 4) RGBA
IndexGrid = NDArray[np.intp]  # (H, W) palette indices


def default_workers() -> int:
    """Leave a few cores free for the system; returns a sensible worker count."""
    n = os.cpu_count() or 4
    reserve = 1 if n <= 6 else 2 if n <= 12 else 3 if n <= 18 else 4
    return max(1, n - reserve)


# Value objects


@dataclass(frozen=True)
class PaletteConfig:
    """
    Knobs for palette construction.

    color_space=None picks CIELAB and workers=None picks default_workers().
    max_kmeans_iters=0 runs the single initial k-means step only.
    """

    palette_size: int = DEFAULT_PALETTE_SIZE
    max_kmeans_iters: int = DEFAULT_MAX_KMEANS_ITERS
    max_cluster_pixels: int = DEFAULT_MAX_CLUSTER_PIXELS
    color_space: Optional["ColorSpace"] = None
    workers: Optional[int] = None

    def with_defaults(self) -> "PaletteConfig":
        from .colour_space import ColorSpace

        return replace(
            self,
            color_space=(
                self.color_space if self.color_space is not None else ColorSpace.CIELAB
            ),
            workers=self.workers if self.workers is not None else default_workers(),
        )

    def validate(self) -> "PaletteConfig":
        """Fill defaults and reject values the clustering cannot honour."""
        cfg = self.with_defaults()
        if cfg.palette_size <= 0:
            raise ValueError(f"palette_size must be positive, got {cfg.palette_size}")
        if cfg.max_kmeans_iters < 0:
            raise ValueError(
                f"max_kmeans_iters must be non-negative, got {cfg.max_kmeans_iters}"
            )
        if cfg.max_cluster_pixels <= 0:
            raise ValueError(
                f"max_cluster_pixels must be positive, got {cfg.max_cluster_pixels}"
            )
        if cfg.workers is None or cfg.workers < 1:
            raise ValueError(f"workers must be at least 1, got {cfg.workers}")
        return cfg


@dataclass(frozen=True)
class PalettedImage:
    """Indexed image: palette rows plus a per-pixel index grid."""

    palette: Palette  # (P, 4) uint8
    indices: IndexGrid  # (H, W)

    @property
    def height(self) -> int:
        return int(self.indices.shape[0])

    @property
    def width(self) -> int:
        return int(self.indices.shape[1])

    def to_rgba(self) -> U8Image:
        """Expand indices through the palette into a (H, W, 4) uint8 image."""
        return self.palette[self.indices]


def assert_f32_image_rgba(image: np.ndarray) -> F32Image:
    """Validate a float (H,W,4) image and return it typed as F32Image."""
    if image.ndim != 3 or image.shape[-1] != 4 or image.dtype.kind != "f":
        raise TypeError("expected float (H,W,4) image")
    return image.astype(np.float32, copy=False)  # type: ignore[return-value]


def assert_color_vectors(vectors: np.ndarray) -> ColorVectors:
    """Validate an (N,4) vector array and return it as float32."""
    if vectors.ndim != 2 or vectors.shape[-1] != 4:
        raise TypeError("expected (N,4) colour vectors")
    return vectors.astype(np.float32, copy=False)  # type: ignore[return-value]


__all__ = [
    # defaults
    "DEFAULT_PALETTE_SIZE",
    "DEFAULT_MAX_KMEANS_ITERS",
    "DEFAULT_MAX_CLUSTER_PIXELS",
    "default_workers",
    # aliases / types
    "F32Image",
    "U8Image",
    "ColorVectors",
    "Palette",
    "IndexGrid",
    # value objects
    "PaletteConfig",
    "PalettedImage",
    # helpers
    "assert_f32_image_rgba",
    "assert_color_vectors",
]

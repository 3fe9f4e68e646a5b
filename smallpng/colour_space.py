# smallpng/colour_space.py
from __future__ import annotations

"""
Colour spaces used for clustering (D65).

Exports:
  gamma_expand(srgb)          sRGB (0..1) -> linear RGB
  gamma_compress(linear)      linear RGB -> sRGB (0..1)
  linear_rgb_to_xyz(rgb)
  xyz_to_linear_rgb(xyz)
  xyz_to_lab(xyz)
  lab_to_xyz(lab)
  ColorSpace                  RGB | CIELAB, with to_vectors / to_colors
  rgba_to_vectors_threaded(rgba, space, workers)

All helpers are vectorised over a trailing channel axis and work in float64
internally; vectors handed to the clusterer are float32.
"""

import enum
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from .core_types import ColorVectors, U8Image
from .utils import split_rows_into_parts

# Linear sRGB primaries <-> XYZ (D65), XYZ on the 0..1 scale.
RGB_TO_XYZ = np.array(
    [
        [0.41239080, 0.35758434, 0.18048079],
        [0.21263901, 0.71516868, 0.07219232],
        [0.01933082, 0.11919478, 0.95053215],
    ],
    dtype=np.float64,
)
XYZ_TO_RGB = np.array(
    [
        [3.24096994, -1.53738318, -0.49861076],
        [-0.96924364, 1.8759675, 0.04155506],
        [0.05563008, -0.20397696, 1.05697151],
    ],
    dtype=np.float64,
)

# Reference white (D65), scaled to match XYZ in 0..1.
WHITE_D65 = np.array([95.0489, 100.0, 108.8840], dtype=np.float64) / 100.0

# Alpha is stretched so it weighs about as much as an L*a*b* axis.
LAB_ALPHA_SCALE = 128.0

_DELTA = 6.0 / 29.0


# sRGB gamma


def gamma_expand(srgb: np.ndarray) -> np.ndarray:
    """sRGB (non-linear 0..1) to linear RGB. Vectorised, float64."""
    u = np.asarray(srgb, dtype=np.float64)
    with np.errstate(invalid="ignore"):
        return np.where(u <= 0.04045, u / 12.92, ((u + 0.055) / 1.055) ** 2.4)


def gamma_compress(linear: np.ndarray) -> np.ndarray:
    """Linear RGB to sRGB (non-linear 0..1). Negative inputs stay on the linear segment."""
    u = np.asarray(linear, dtype=np.float64)
    with np.errstate(invalid="ignore"):
        return np.where(
            u <= 0.0031308,
            12.92 * u,
            1.055 * np.power(np.maximum(u, 0.0), 1.0 / 2.4) - 0.055,
        )


# Linear RGB <-> XYZ


def linear_rgb_to_xyz(rgb: np.ndarray) -> np.ndarray:
    """Linear RGB[...,3] to XYZ[...,3]."""
    return np.asarray(rgb, dtype=np.float64) @ RGB_TO_XYZ.T


def xyz_to_linear_rgb(xyz: np.ndarray) -> np.ndarray:
    """XYZ[...,3] to linear RGB[...,3]. May leave [0,1] for out-of-gamut input."""
    return np.asarray(xyz, dtype=np.float64) @ XYZ_TO_RGB.T


# XYZ <-> Lab


def _lab_f(t: np.ndarray) -> np.ndarray:
    with np.errstate(invalid="ignore"):
        return np.where(
            t > _DELTA**3, np.cbrt(t), t / (3.0 * _DELTA**2) + 4.0 / 29.0
        )


def _lab_f_inv(f: np.ndarray) -> np.ndarray:
    return np.where(f > _DELTA, f**3, 3.0 * _DELTA**2 * (f - 4.0 / 29.0))


def xyz_to_lab(xyz: np.ndarray) -> np.ndarray:
    """XYZ[...,3] (0..1 scale) to CIE L*a*b*[...,3] under D65."""
    scaled = np.asarray(xyz, dtype=np.float64) / WHITE_D65
    fx, fy, fz = (_lab_f(scaled[..., i]) for i in range(3))
    out = np.empty(scaled.shape, dtype=np.float64)
    out[..., 0] = 116.0 * fy - 16.0
    out[..., 1] = 500.0 * (fx - fy)
    out[..., 2] = 200.0 * (fy - fz)
    return out


def lab_to_xyz(lab: np.ndarray) -> np.ndarray:
    """CIE L*a*b*[...,3] to XYZ[...,3] (0..1 scale) under D65."""
    lab = np.asarray(lab, dtype=np.float64)
    fy = (lab[..., 0] + 16.0) / 116.0
    fx = fy + lab[..., 1] / 500.0
    fz = fy - lab[..., 2] / 200.0
    out = np.empty(lab.shape, dtype=np.float64)
    out[..., 0] = _lab_f_inv(fx)
    out[..., 1] = _lab_f_inv(fy)
    out[..., 2] = _lab_f_inv(fz)
    return out * WHITE_D65


# Quantisation


def quantize_channels(values: np.ndarray) -> U8Image:
    """Clamp 0..1 channels and map to 8-bit with floor(x * 255.999)."""
    clipped = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
    return np.floor(clipped * 255.999).astype(np.uint8)


# Colour spaces


class ColorSpace(enum.Enum):
    """Vector space used for pixel distances and averages."""

    RGB = "rgb"
    CIELAB = "lab"

    @classmethod
    def parse(cls, name: str) -> "ColorSpace":
        key = name.strip().lower()
        if key == "cielab":
            key = "lab"
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"unknown colour space {name!r} (expected 'rgb' or 'lab')")

    def to_vectors(self, rgba: np.ndarray) -> ColorVectors:
        """
        RGBA channels in 0..1, shape (...,4), to colour vectors (...,4) float32.
        """
        arr = np.asarray(rgba, dtype=np.float64)
        if arr.shape[-1] != 4:
            raise TypeError(f"expected (...,4) RGBA channels, got {arr.shape}")
        if self is ColorSpace.RGB:
            return arr.astype(np.float32)

        out = np.empty(arr.shape, dtype=np.float64)
        out[..., :3] = xyz_to_lab(linear_rgb_to_xyz(gamma_expand(arr[..., :3])))
        out[..., 3] = arr[..., 3] * LAB_ALPHA_SCALE
        return out.astype(np.float32)

    def to_channels(self, vectors: np.ndarray) -> np.ndarray:
        """Colour vectors (...,4) back to unclamped RGBA channels, float64."""
        vec = np.asarray(vectors, dtype=np.float64)
        if self is ColorSpace.RGB:
            return vec.copy()

        out = np.empty(vec.shape, dtype=np.float64)
        out[..., :3] = gamma_compress(xyz_to_linear_rgb(lab_to_xyz(vec[..., :3])))
        out[..., 3] = vec[..., 3] / LAB_ALPHA_SCALE
        return out

    def to_colors(self, vectors: np.ndarray) -> U8Image:
        """Colour vectors (...,4) to displayable 8-bit RGBA (...,4), clamped."""
        return quantize_channels(self.to_channels(vectors))


# Threaded helpers


def rgba_to_vectors_threaded(
    rgba: np.ndarray, space: ColorSpace, workers: int
) -> ColorVectors:
    """
    Threaded image -> vector conversion by splitting rows.

    Args:
      rgba: float array [H,W,4] in 0..1
      space: target colour space
      workers: number of threads; if <=1 or H<256, runs single-threaded
    Returns:
      float32 array [H,W,4]
    """
    height = int(rgba.shape[0])
    if workers <= 1 or height < 256 or space is ColorSpace.RGB:
        return space.to_vectors(rgba)

    chunks = split_rows_into_parts(height, workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(space.to_vectors, rgba[s:e]) for s, e in chunks]
        parts = [f.result() for f in futures]
    return np.vstack(parts).astype(np.float32, copy=False)


__all__ = [
    "RGB_TO_XYZ",
    "XYZ_TO_RGB",
    "WHITE_D65",
    "LAB_ALPHA_SCALE",
    "gamma_expand",
    "gamma_compress",
    "linear_rgb_to_xyz",
    "xyz_to_linear_rgb",
    "xyz_to_lab",
    "lab_to_xyz",
    "quantize_channels",
    "ColorSpace",
    "rgba_to_vectors_threaded",
]

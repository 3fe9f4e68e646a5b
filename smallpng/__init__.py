# smallpng/__init__.py
"""
smallpng package.

Purpose:
  Shrink PNG files by clustering their colours into a small palette and
  writing an indexed PNG. See compress_png.py for the CLI.

Public API:
  palette_image   : cluster an RGBA float image into a PalettedImage.
  compress_image  : file in, indexed PNG out.
  ColorSpace      : RGB or CIELAB clustering space.
  PaletteConfig   : palette size, iteration cap, sample cap, space, workers.
  PalettedImage   : palette rows plus per-pixel index grid.
  colour_space    : sRGB / linear / XYZ / Lab transforms.
  sampling        : unbiased subsampling of pixel vectors.
  seeding         : k-means++ initial centres.
  clusters        : threaded k-means refinement.
  image_io        : Pillow-backed load / save helpers.
  utils           : shared helpers (formatting, partitioning, logging).

Quick start:
  from smallpng import compress_image, PaletteConfig, ColorSpace
  compress_image(Path("in.png"), Path("out.png"), PaletteConfig(palette_size=64))
"""

__version__ = "0.1.0"

# Re-export namespaces for convenience.
from . import core_types
from . import colour_space
from . import sampling
from . import seeding
from . import clusters
from . import image_io
from . import utils

from .core_types import (  # noqa: E402,F401
    DEFAULT_MAX_CLUSTER_PIXELS,
    DEFAULT_MAX_KMEANS_ITERS,
    DEFAULT_PALETTE_SIZE,
    PaletteConfig,
    PalettedImage,
)
from .colour_space import ColorSpace  # noqa: E402,F401
from .palette import palette_image  # noqa: E402,F401
from .compress import compress_image  # noqa: E402,F401

__all__ = [
    "__version__",
    "core_types",
    "colour_space",
    "sampling",
    "seeding",
    "clusters",
    "image_io",
    "utils",
    "DEFAULT_PALETTE_SIZE",
    "DEFAULT_MAX_KMEANS_ITERS",
    "DEFAULT_MAX_CLUSTER_PIXELS",
    "PaletteConfig",
    "PalettedImage",
    "ColorSpace",
    "palette_image",
    "compress_image",
]

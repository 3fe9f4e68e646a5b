# smallpng/compress.py
from __future__ import annotations

"""
File-level entry point: read an image, palettise it, write an indexed PNG.
"""

from pathlib import Path
from typing import Optional

import numpy as np

from .core_types import PaletteConfig
from .image_io import float_to_u8, load_image_rgba, save_image_rgba, save_paletted_png
from .palette import palette_image


def compress_image(
    in_path: Path,
    out_path: Path,
    config: Optional[PaletteConfig] = None,
    *,
    no_palette: bool = False,
    rng: Optional[np.random.Generator] = None,
    debug: bool = False,
) -> Path:
    """
    Read in_path and save the compressed version to out_path.

    With no_palette the pixels are kept as they are and only re-encoded at
    best compression. Pillow errors propagate unchanged. Returns the path
    actually written.
    """
    rgba = load_image_rgba(Path(in_path))
    if no_palette:
        return save_image_rgba(Path(out_path), float_to_u8(rgba))
    paletted = palette_image(rgba, config, rng=rng, debug=debug)
    return save_paletted_png(Path(out_path), paletted)


__all__ = ["compress_image"]

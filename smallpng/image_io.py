# smallpng/image_io.py
from __future__ import annotations

import io
from pathlib import Path

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .core_types import F32Image, PalettedImage, U8Image

"""
Image I/O helpers: RGBA in sRGB as float channels in 0..1, indexed PNG output.
"""

try:
    from PIL import ImageCms  # ICC conversion if profile present
except ImportError:  # pragma: no cover
    ImageCms = None  # type: ignore[assignment]

# Pillow modes that carry 16-bit greyscale samples.
_GREY16_MODES = ("I;16", "I;16B", "I;16L", "I")

# PNG PLTE holds at most 256 entries.
MAX_PNG_PALETTE = 256


def _convert_to_srgb_rgba(im: Image.Image) -> Image.Image:
    im = ImageOps.exif_transpose(im)
    icc_bytes = im.info.get("icc_profile")

    if icc_bytes and ImageCms is not None and im.mode in ("RGB", "RGBA"):
        try:
            src_prof = ImageCms.ImageCmsProfile(io.BytesIO(icc_bytes))
            dst_prof = ImageCms.createProfile("sRGB")
            im2 = ImageCms.profileToProfile(
                im,
                src_prof,
                dst_prof,
                renderingIntent=ImageCms.Intent.PERCEPTUAL,
                outputMode="RGBA",
            )
            if im2 is None:
                return im.convert("RGBA")
            return im2
        except (OSError, ImageCms.PyCMSError):
            return im.convert("RGBA")

    return im.convert("RGBA")


def load_image_rgba(path: Path) -> F32Image:
    """
    Load an image as float32 [H,W,4] RGBA in 0..1.

    16-bit greyscale keeps its full precision; everything else goes through
    8-bit RGBA.
    """
    with Image.open(path) as im0:
        im0.load()
        if im0.mode in _GREY16_MODES:
            grey = np.array(im0, dtype=np.float64) / 65535.0
            out = np.ones(grey.shape + (4,), dtype=np.float32)
            out[..., :3] = np.clip(grey, 0.0, 1.0)[..., None]
            return out
        im = _convert_to_srgb_rgba(im0)
    arr = np.array(im, dtype=np.uint8)
    return (arr.astype(np.float32) / 255.0).astype(np.float32)


def save_paletted_png(path: Path, image: PalettedImage) -> Path:
    """
    Write an indexed PNG (mode "P") with an RGBA palette at best compression.
    Returns the written path (suffix forced to .png).
    """
    if path.suffix.lower() != ".png":
        path = path.with_suffix(".png")
    palette = np.ascontiguousarray(image.palette, dtype=np.uint8)
    if palette.shape[0] > MAX_PNG_PALETTE:
        raise ValueError(
            f"PNG palettes hold at most {MAX_PNG_PALETTE} colours, got {palette.shape[0]}"
        )
    idx = np.ascontiguousarray(image.indices, dtype=np.uint8)
    im = Image.frombytes("P", (image.width, image.height), idx.tobytes())
    im.putpalette(palette.tobytes(), rawmode="RGBA")
    im.save(path, format="PNG", optimize=True)
    return path


def save_image_rgba(path: Path, rgba: U8Image) -> Path:
    """Write a uint8 [H,W,4] image as an RGBA PNG at best compression."""
    if path.suffix.lower() != ".png":
        path = path.with_suffix(".png")
    Image.fromarray(np.ascontiguousarray(rgba, dtype=np.uint8)).save(
        path, format="PNG", optimize=True
    )
    return path


def float_to_u8(rgba: F32Image) -> U8Image:
    """Float 0..1 channels to uint8 by rounding."""
    return np.clip(np.rint(np.asarray(rgba) * 255.0), 0, 255).astype(np.uint8)


def is_image_file(path: Path) -> bool:
    try:
        with Image.open(path) as im:
            im.seek(0)
            im.load()
        return True
    except (UnidentifiedImageError, OSError):
        return False


__all__ = [
    "MAX_PNG_PALETTE",
    "load_image_rgba",
    "save_paletted_png",
    "save_image_rgba",
    "float_to_u8",
    "is_image_file",
]

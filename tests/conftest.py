from __future__ import annotations

import numpy as np
import pytest


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


def solid_image(colors_u8, shape) -> np.ndarray:
    """Float RGBA image tiling the given uint8 RGBA colours row-major."""
    colors = np.asarray(colors_u8, dtype=np.uint8)
    height, width = shape
    n = height * width
    idx = np.arange(n) % colors.shape[0]
    return (colors[idx].reshape(height, width, 4).astype(np.float32) / 255.0).astype(
        np.float32
    )


@pytest.fixture
def make_solid_image():
    return solid_image

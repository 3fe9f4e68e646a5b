from __future__ import annotations

import numpy as np
import pytest

from smallpng.colour_space import (
    LAB_ALPHA_SCALE,
    ColorSpace,
    gamma_compress,
    gamma_expand,
    lab_to_xyz,
    linear_rgb_to_xyz,
    rgba_to_vectors_threaded,
    xyz_to_lab,
    xyz_to_linear_rgb,
)


def test_xyz_to_lab_known_vector():
    lab = xyz_to_lab(np.array([0.77, 0.9278, 0.1385]))
    expected = np.array([97.13824698129729, -21.555908334832285, 94.48248544644461])
    assert np.all(np.abs(lab - expected) <= 0.01)


def test_lab_xyz_inverses(rng):
    xyz = rng.random((50, 3))
    back = lab_to_xyz(xyz_to_lab(xyz))
    assert np.max(np.abs(back - xyz)) <= 1e-4


def test_xyz_rgb_inverses(rng):
    rgb = rng.random((50, 3))
    back = xyz_to_linear_rgb(linear_rgb_to_xyz(rgb))
    assert np.max(np.abs(back - rgb)) <= 1e-4


def test_gamma_inverses(rng):
    srgb = np.concatenate([rng.random(200), [0.0, 0.04045, 0.04, 1.0]])
    back = gamma_compress(gamma_expand(srgb))
    assert np.max(np.abs(back - srgb)) <= 1e-5


def test_gamma_segments():
    assert gamma_expand(np.array(0.02)) == pytest.approx(0.02 / 12.92)
    assert gamma_expand(np.array(1.0)) == pytest.approx(1.0)
    assert gamma_compress(np.array(0.001)) == pytest.approx(12.92 * 0.001)
    assert gamma_compress(np.array(1.0)) == pytest.approx(1.0)


def test_white_maps_to_l100():
    lab = ColorSpace.CIELAB.to_vectors(np.array([[1.0, 1.0, 1.0, 1.0]]))
    assert lab[0, 0] == pytest.approx(100.0, abs=0.01)
    assert abs(lab[0, 1]) < 0.05 and abs(lab[0, 2]) < 0.05
    assert lab[0, 3] == pytest.approx(LAB_ALPHA_SCALE)


@pytest.mark.parametrize("space", [ColorSpace.RGB, ColorSpace.CIELAB])
def test_vector_round_trip_float(space, rng):
    rgba = rng.random((100, 4))
    back = space.to_channels(space.to_vectors(rgba))
    assert np.max(np.abs(back - rgba)) <= 1e-4


@pytest.mark.parametrize("space", [ColorSpace.RGB, ColorSpace.CIELAB])
def test_eight_bit_colours_survive_round_trip(space, rng):
    colors = rng.integers(0, 256, size=(500, 4), dtype=np.uint8)
    colors[:4] = [[0, 0, 0, 0], [255, 255, 255, 255], [254, 1, 128, 253], [0, 255, 0, 255]]
    vectors = space.to_vectors(colors.astype(np.float32) / 255.0)
    assert vectors.dtype == np.float32
    np.testing.assert_array_equal(space.to_colors(vectors), colors)


def test_vector_colour_vector_round_trip(rng):
    space = ColorSpace.CIELAB
    vectors = space.to_vectors(rng.random((50, 4)))
    again = space.to_vectors(space.to_channels(vectors))
    assert np.max(np.abs(again - vectors)) <= 1e-3


def test_rgb_quantisation_uses_floor():
    out = ColorSpace.RGB.to_colors(np.array([[1.0, 0.5, 0.0, 0.999]], dtype=np.float32))
    np.testing.assert_array_equal(out, [[255, 127, 0, 255]])


def test_out_of_gamut_lab_is_clamped():
    vectors = np.array(
        [[150.0, 0.0, 0.0, 2.0 * LAB_ALPHA_SCALE], [-20.0, 80.0, -120.0, -5.0]],
        dtype=np.float32,
    )
    channels = ColorSpace.CIELAB.to_channels(vectors)
    assert channels.max() > 1.0 and channels.min() < 0.0
    out = ColorSpace.CIELAB.to_colors(vectors)
    np.testing.assert_array_equal(out[0], [255, 255, 255, 255])
    assert out[1, 3] == 0


def test_to_vectors_rejects_wrong_channel_count():
    with pytest.raises(TypeError):
        ColorSpace.RGB.to_vectors(np.zeros((3, 3)))


@pytest.mark.parametrize(
    "name,expected",
    [("rgb", ColorSpace.RGB), ("LAB", ColorSpace.CIELAB), ("cielab", ColorSpace.CIELAB)],
)
def test_parse(name, expected):
    assert ColorSpace.parse(name) is expected


def test_parse_unknown():
    with pytest.raises(ValueError):
        ColorSpace.parse("hsv")


def test_threaded_conversion_matches_single(rng):
    rgba = rng.random((300, 7, 4)).astype(np.float32)
    single = ColorSpace.CIELAB.to_vectors(rgba)
    threaded = rgba_to_vectors_threaded(rgba, ColorSpace.CIELAB, workers=4)
    assert threaded.shape == (300, 7, 4)
    np.testing.assert_allclose(threaded, single, atol=1e-5)

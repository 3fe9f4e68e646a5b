from __future__ import annotations

import numpy as np
import pytest

from smallpng.clusters import ColorClusters, nearest_center_indices, refine


def _blobs(rng, n_per: int = 200) -> np.ndarray:
    means = np.array(
        [[10, 10, 10, 100], [60, 20, -20, 100], [30, -40, 40, 50]], dtype=np.float32
    )
    pts = [m + rng.normal(scale=4.0, size=(n_per, 4)) for m in means]
    return np.concatenate(pts).astype(np.float32)


def test_nearest_ties_go_to_lowest_index():
    centers = np.array([[1, 1, 1, 1], [1, 1, 1, 1], [3, 3, 3, 3]], dtype=np.float32)
    colors = np.array([[1, 1, 1, 1], [2, 2, 2, 2]], dtype=np.float32)
    idx, dist2 = nearest_center_indices(colors, centers)
    np.testing.assert_array_equal(idx, [0, 0])
    np.testing.assert_array_equal(dist2, [0.0, 4.0])


def test_nearest_handles_multiple_chunks(rng):
    colors = rng.random((1000, 4)).astype(np.float32)
    centers = rng.random((7, 4)).astype(np.float32)
    idx_small, d_small = nearest_center_indices(colors, centers, chunk=64)
    idx_big, d_big = nearest_center_indices(colors, centers, chunk=4096)
    np.testing.assert_array_equal(idx_small, idx_big)
    np.testing.assert_allclose(d_small, d_big)


def test_few_distinct_colours_become_centres(rng):
    colors = np.repeat(
        np.array([[1, 0, 0, 1], [0, 1, 0, 1]], dtype=np.float32), 5, axis=0
    )
    clusters = ColorClusters.from_colors(colors, 4, rng)
    assert clusters.num_centers == 2
    assert {tuple(c) for c in clusters.centers.tolist()} == {(1, 0, 0, 1), (0, 1, 0, 1)}


def test_from_colors_rejects_empty(rng):
    with pytest.raises(ValueError):
        ColorClusters.from_colors(np.zeros((0, 4), dtype=np.float32), 4, rng)


def test_from_colors_seeds_k_centres(rng):
    clusters = ColorClusters.from_colors(_blobs(rng), 5, rng)
    assert clusters.centers.shape == (5, 4)
    assert clusters.centers.dtype == np.float32


def test_iterate_recomputes_means():
    colors = np.array(
        [[0, 0, 0, 0], [2, 0, 0, 0], [10, 0, 0, 0], [14, 0, 0, 0]], dtype=np.float32
    )
    centers = np.array([[1, 0, 0, 0], [11, 0, 0, 0]], dtype=np.float32)
    clusters = ColorClusters(centers, colors)
    loss = clusters.iterate()
    # errors against the old centres: 1 + 1 + 1 + 9
    assert loss == pytest.approx(12.0 / 4.0)
    np.testing.assert_allclose(clusters.centers, [[1, 0, 0, 0], [12, 0, 0, 0]])


def test_empty_centre_keeps_previous_value():
    colors = np.array([[0, 0, 0, 0], [1, 0, 0, 0]], dtype=np.float32)
    centers = np.array([[0, 0, 0, 0], [100, 100, 100, 100]], dtype=np.float32)
    clusters = ColorClusters(centers, colors)
    clusters.iterate()
    np.testing.assert_allclose(clusters.centers[0], [0.5, 0, 0, 0])
    np.testing.assert_array_equal(clusters.centers[1], [100, 100, 100, 100])


@pytest.mark.parametrize("k", [1, 3, 8])
def test_loss_never_increases(rng, k):
    colors = _blobs(rng)
    clusters = ColorClusters.from_colors(colors, k, rng)
    losses = [clusters.iterate() for _ in range(10)]
    for prev, cur in zip(losses, losses[1:]):
        assert cur <= prev + 1e-6 * max(1.0, prev)


def test_parallel_and_serial_steps_agree(rng):
    colors = _blobs(rng, 500)
    seed_centers = ColorClusters.from_colors(colors, 6, rng).centers
    serial = ColorClusters(seed_centers, colors)
    parallel = ColorClusters(seed_centers, colors)
    for _ in range(3):
        loss_s = serial.iterate(workers=1)
        loss_p = parallel.iterate(workers=4)
        assert loss_p == pytest.approx(loss_s, rel=1e-6)
        np.testing.assert_allclose(parallel.centers, serial.centers, atol=1e-4)


def test_iterate_does_not_touch_population(rng):
    colors = _blobs(rng)
    before = colors.copy()
    clusters = ColorClusters.from_colors(colors, 4, rng)
    clusters.iterate(workers=3)
    np.testing.assert_array_equal(clusters.all_colors, before)


def test_refine_stops_when_loss_stalls(rng):
    colors = np.repeat(
        np.array([[1, 0, 0, 1], [0, 1, 0, 1]], dtype=np.float32), 5, axis=0
    )
    clusters = ColorClusters.from_colors(colors, 2, rng)
    history = refine(clusters, max_iters=5)
    assert history == [0.0, 0.0]


def test_refine_respects_iteration_cap(rng):
    clusters = ColorClusters.from_colors(_blobs(rng), 8, rng)
    assert len(refine(clusters, max_iters=0)) == 1
    assert len(refine(clusters, max_iters=2)) <= 3


def test_repeated_colour_mean_stays_exact_float32():
    colour = np.array([[0.1, 0.7, 0.3, 0.9]], dtype=np.float32)
    colors = np.repeat(colour, 20_001, axis=0)
    clusters = ColorClusters(colour + np.float32(0.25), colors)
    clusters.iterate(workers=3)
    assert clusters.centers.dtype == np.float32
    np.testing.assert_array_equal(clusters.centers, colour)

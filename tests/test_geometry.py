import math

import jax.numpy as jnp
import numpy as np

from corridorgeom.geometry import (
    discrete_curvature,
    point_segment_dist2,
    point_segment_param,
    polyline_length,
    polyline_segments_dist2,
    turning_angles,
)


def test_point_segment_dist2_on_segment() -> None:
    a = jnp.array([0.0, 0.0], dtype=jnp.float32)
    b = jnp.array([2.0, 0.0], dtype=jnp.float32)
    p = jnp.array([1.0, 0.0], dtype=jnp.float32)
    assert np.isclose(float(point_segment_dist2(p, a, b)), 0.0)


def test_point_segment_dist2_off_segment() -> None:
    a = jnp.array([0.0, 0.0], dtype=jnp.float32)
    b = jnp.array([2.0, 0.0], dtype=jnp.float32)
    p = jnp.array([1.0, 3.0], dtype=jnp.float32)
    assert np.isclose(float(point_segment_dist2(p, a, b)), 9.0)


def test_point_segment_param_clamps() -> None:
    a = jnp.array([0.0, 0.0], dtype=jnp.float32)
    b = jnp.array([2.0, 0.0], dtype=jnp.float32)
    before = jnp.array([-5.0, 1.0], dtype=jnp.float32)
    after = jnp.array([7.0, 1.0], dtype=jnp.float32)
    assert float(point_segment_param(before, a, b)) == 0.0
    assert float(point_segment_param(after, a, b)) == 1.0


def test_polyline_segments_dist2_per_edge() -> None:
    x = jnp.array([[0.0, 0.0], [10.0, 0.0], [10.0, 10.0]], dtype=jnp.float32)
    p = jnp.array([12.0, 5.0], dtype=jnp.float32)
    d2 = polyline_segments_dist2(p, x)
    assert d2.shape == (2,)
    np.testing.assert_allclose(np.array(d2), [4.0 + 25.0, 4.0], rtol=1e-5)


def test_polyline_length_open() -> None:
    x = jnp.array([[0.0, 0.0], [3.0, 0.0], [3.0, 4.0]], dtype=jnp.float32)
    assert np.isclose(float(polyline_length(x, closed=False)), 7.0)


def test_polyline_length_closed() -> None:
    x = jnp.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]], dtype=jnp.float32)
    assert np.isclose(float(polyline_length(x, closed=False)), 3.0)
    assert np.isclose(float(polyline_length(x, closed=True)), 4.0)


def test_turning_angles_right_angle() -> None:
    x = jnp.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0]], dtype=jnp.float32)
    th = turning_angles(x)
    assert th.shape == (1,)
    assert np.isclose(float(th[0]), math.pi / 2.0, atol=1e-5)


def test_discrete_curvature_straight_line() -> None:
    x = jnp.linspace(0.0, 4.0, 5, dtype=jnp.float32)
    points = jnp.stack([x, jnp.zeros_like(x)], axis=1)
    kappa = discrete_curvature(points)
    assert kappa.shape == (3,)
    assert float(jnp.max(jnp.abs(kappa))) < 1e-3


def test_discrete_curvature_circle() -> None:
    r = 20.0
    th = np.linspace(0.0, math.pi / 2.0, 31)
    pts = jnp.asarray(np.stack([r * np.cos(th), r * np.sin(th)], axis=1), dtype=jnp.float32)
    kappa = np.asarray(discrete_curvature(pts))
    np.testing.assert_allclose(kappa, 1.0 / r, rtol=1e-2)

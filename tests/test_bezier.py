import math

import numpy as np
import pytest

from corridorgeom.bezier import (
    CurveSegment,
    arc_length_table,
    beziers_to_svg_path_d,
    length,
    length_to,
    normal_at,
    parameter_at_length,
    point_at,
    points_at,
    polyline_to_segments,
    straight_segment,
    tangent_at,
    unit_tangent_at,
)

K = 4.0 * (math.sqrt(2.0) - 1.0) / 3.0  # quarter-circle handle length


def _quarter_circle(r: float) -> CurveSegment:
    return CurveSegment((r, 0.0), (r, K * r), (K * r, r), (0.0, r))


def test_straight_bezier_length_matches_chord() -> None:
    seg = CurveSegment((0.0, 0.0), (33.0, 0.0), (67.0, 0.0), (100.0, 0.0))
    assert length(seg) == pytest.approx(100.0, rel=1e-3)
    assert seg.length == pytest.approx(100.0, rel=1e-9)


def test_quarter_circle_length() -> None:
    seg = _quarter_circle(10.0)
    assert length(seg) == pytest.approx(math.pi * 5.0, rel=1e-3)


def test_collapsed_segment_rejected() -> None:
    with pytest.raises(ValueError):
        CurveSegment((1.0, 1.0), (1.0, 1.0), (1.0, 1.0), (1.0, 1.0))
    with pytest.raises(ValueError):
        CurveSegment((0.0, 0.0), (0.0002, 0.0), (0.0, 0.0003), (0.0001, 0.0))


def test_non_finite_segment_rejected() -> None:
    with pytest.raises(ValueError):
        CurveSegment((0.0, 0.0), (1.0, math.nan), (2.0, 0.0), (3.0, 0.0))


def test_from_points_shape_checked() -> None:
    with pytest.raises(ValueError):
        CurveSegment.from_points(np.zeros((3, 2)))


def test_segment_is_hashable_and_normalised() -> None:
    a = CurveSegment.from_points(np.array([[0, 0], [1, 0], [2, 0], [3, 0]]))
    b = CurveSegment((0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (3.0, 0.0))
    assert a == b
    assert hash(a) == hash(b)
    assert isinstance(a.p0[0], float)
    assert not a.control_points.flags.writeable


def test_point_at_endpoints_and_vectorised() -> None:
    seg = _quarter_circle(10.0)
    assert np.allclose(point_at(seg, 0.0), [10.0, 0.0])
    assert np.allclose(point_at(seg, 1.0), [0.0, 10.0])
    us = np.linspace(0.0, 1.0, 7)
    batch = points_at(seg, us)
    single = np.array([point_at(seg, float(u)) for u in us])
    assert np.allclose(batch, single)


def test_tangent_zero_for_handle_on_knot_falls_back() -> None:
    seg = CurveSegment((0.0, 0.0), (0.0, 0.0), (100.0, 0.0), (100.0, 0.0))
    assert np.allclose(tangent_at(seg, 0.0), [0.0, 0.0])
    assert np.allclose(unit_tangent_at(seg, 0.0), [1.0, 0.0])
    assert np.allclose(unit_tangent_at(seg, 1.0), [1.0, 0.0])


def test_normal_is_right_of_travel_in_y_down_frame() -> None:
    seg = straight_segment((0.0, 0.0), (100.0, 0.0))
    # travelling +x with y pointing down the screen, the right-hand side is +y
    assert np.allclose(normal_at(seg, 0.5), [0.0, 1.0])


def test_arc_length_table_monotone() -> None:
    us, cum = arc_length_table(_quarter_circle(25.0))
    assert us[0] == 0.0 and us[-1] == 1.0
    assert cum[0] == 0.0
    assert np.all(np.diff(cum) > 0.0)


def test_arc_length_table_panel_count_grows_with_length() -> None:
    short, _ = arc_length_table(straight_segment((0.0, 0.0), (5.0, 0.0)))
    long, _ = arc_length_table(straight_segment((0.0, 0.0), (500.0, 0.0)))
    assert long.size > short.size


@pytest.mark.parametrize("fraction", [0.0, 0.1, 0.33, 0.5, 0.9, 1.0])
def test_parameter_at_length_inverts_length_to(fraction: float) -> None:
    seg = CurveSegment((0.0, 0.0), (10.0, 30.0), (60.0, -20.0), (80.0, 5.0))
    d = fraction * seg.length
    u = parameter_at_length(seg, d)
    assert 0.0 <= u <= 1.0
    assert length_to(seg, u) == pytest.approx(d, abs=1e-7)


def test_parameter_at_length_clamps() -> None:
    seg = straight_segment((0.0, 0.0), (10.0, 0.0))
    assert parameter_at_length(seg, -5.0) == 0.0
    assert parameter_at_length(seg, 50.0) == 1.0


def test_straight_segment_handles() -> None:
    seg = straight_segment((0.0, 0.0), (100.0, 0.0))
    assert np.allclose(seg.c1, [30.0, 0.0])
    assert np.allclose(seg.c2, [70.0, 0.0])


def test_reversed_segment_has_same_length() -> None:
    seg = CurveSegment((0.0, 0.0), (10.0, 30.0), (60.0, -20.0), (80.0, 5.0))
    assert seg.reversed().length == pytest.approx(seg.length, rel=1e-9)
    assert seg.reversed().p0 == seg.p3


def test_polyline_to_segments_endpoints_and_count() -> None:
    P = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 1.0], [3.0, 1.0]])
    segs = polyline_to_segments(P, handle_scale=1.0)
    assert len(segs) == P.shape[0] - 1
    for i, seg in enumerate(segs):
        assert np.allclose(seg.p0, P[i])
        assert np.allclose(seg.p3, P[i + 1])


def test_handle_scale_zero_gives_straight_segments() -> None:
    P = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
    segs = polyline_to_segments(P, handle_scale=0.0)
    for seg in segs:
        assert np.allclose(np.asarray(seg.c1)[1], 0.0)
        assert np.allclose(np.asarray(seg.c2)[1], 0.0)
        assert seg.length == pytest.approx(1.0, rel=1e-9)


def test_polyline_to_segments_skips_repeated_vertices() -> None:
    P = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
    segs = polyline_to_segments(P, handle_scale=1.0)
    assert len(segs) == 2


def test_c1_continuity_when_not_clamped() -> None:
    P = np.array([[0.0, 0.0], [1.0, 0.2], [2.0, 0.0], [3.0, 0.2], [4.0, 0.0]])
    segs = polyline_to_segments(P, handle_scale=1.0, max_handle_ratio=10.0)
    for i in range(1, len(P) - 1):
        prev, nxt = segs[i - 1], segs[i]
        p = np.asarray(prev.p3)
        assert np.allclose(nxt.p0, p)
        d_left = 3.0 * (p - np.asarray(prev.c2))
        d_right = 3.0 * (np.asarray(nxt.c1) - p)
        assert np.allclose(d_left, d_right, atol=1e-9)


def test_svg_path_string() -> None:
    segs = [straight_segment((0.0, 0.0), (10.0, 0.0)), straight_segment((10.0, 0.0), (10.0, 10.0))]
    d = beziers_to_svg_path_d(segs, precision=1)
    assert d.startswith("M 0.0,0.0")
    assert d.count(" C ") == 2
    assert d.endswith("10.0,10.0")
    assert beziers_to_svg_path_d([]) == ""

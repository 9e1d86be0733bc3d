import numpy as np
import pytest

from corridorgeom.bezier import CurveSegment, straight_segment
from corridorgeom.centreline import (
    Centreline,
    ControlPoint,
    smooth_control_points,
    straight_road,
)


def _l_shape() -> Centreline:
    return Centreline(
        (
            straight_segment((0.0, 0.0), (50.0, 0.0)),
            straight_segment((50.0, 0.0), (50.0, 50.0)),
        )
    )


def test_lengths_and_endpoints() -> None:
    cl = _l_shape()
    assert len(cl) == 2
    assert np.allclose(cl.segment_lengths, [50.0, 50.0])
    assert np.allclose(cl.cumulative_lengths, [0.0, 50.0, 100.0])
    assert cl.total_length == pytest.approx(100.0)
    assert cl.start_point == (0.0, 0.0)
    assert cl.end_point == (50.0, 50.0)
    assert not cl.is_degenerate
    assert [seg for seg in cl] == list(cl.segments)


def test_continuity_is_enforced() -> None:
    with pytest.raises(ValueError):
        Centreline(
            (
                straight_segment((0.0, 0.0), (50.0, 0.0)),
                straight_segment((51.0, 0.0), (100.0, 0.0)),
            )
        )


def test_segments_must_be_curve_segments() -> None:
    with pytest.raises(ValueError):
        Centreline(([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0], [3.0, 0.0]],))  # type: ignore[arg-type]


def test_from_segments_drops_collapsed_and_keeps_anchor() -> None:
    raw = [
        [[5.0, 5.0], [5.0, 5.0], [5.0, 5.0], [5.0, 5.0]],
        [[5.0, 5.0], [10.0, 5.0], [15.0, 5.0], [20.0, 5.0]],
    ]
    cl = Centreline.from_segments(raw)
    assert len(cl) == 1
    assert cl.anchor == (5.0, 5.0)
    assert cl.total_length == pytest.approx(15.0)


def test_only_collapsed_segments_give_degenerate_centreline() -> None:
    cl = Centreline.from_segments([[[3.0, 4.0]] * 4])
    assert len(cl) == 0
    assert cl.is_degenerate
    assert cl.total_length == 0.0
    assert cl.start_point == (3.0, 4.0)
    assert cl.end_point == (3.0, 4.0)


def test_empty_centreline() -> None:
    cl = Centreline()
    assert cl.is_degenerate
    assert cl.anchor is None
    assert cl.start_point == (0.0, 0.0)
    assert cl.to_svg_path_d() == ""


def test_from_segments_rejects_bad_shape() -> None:
    with pytest.raises(ValueError):
        Centreline.from_segments([[[0.0, 0.0], [1.0, 0.0]]])


def test_with_segments_bumps_revision() -> None:
    cl = _l_shape()
    edited = cl.with_segments([straight_segment((0.0, 0.0), (80.0, 0.0))])
    assert edited.revision == cl.revision + 1
    assert edited != cl
    assert edited.total_length == pytest.approx(80.0)
    # unchanged geometry at a new revision is still a new value
    same = cl.with_segments(cl.segments)
    assert same != cl


def test_revision_must_be_non_negative() -> None:
    with pytest.raises(ValueError):
        Centreline(revision=-1)


def test_from_control_points_uses_handles() -> None:
    points = [
        ControlPoint((0.0, 0.0), handle_out=(30.0, 0.0)),
        ControlPoint((100.0, 0.0), handle_in=(-30.0, 0.0)),
    ]
    cl = Centreline.from_control_points(points)
    seg = cl.segments[0]
    assert seg.c1 == (30.0, 0.0)
    assert seg.c2 == (70.0, 0.0)
    assert cl.total_length == pytest.approx(100.0)


def test_from_control_points_without_handles_is_straight() -> None:
    cl = Centreline.from_control_points([ControlPoint((0.0, 0.0)), ControlPoint((0.0, 40.0))])
    assert cl.total_length == pytest.approx(40.0)


def test_straight_road_handles() -> None:
    knots = straight_road((0.0, 0.0), (100.0, 0.0))
    assert knots[0].handle_out == pytest.approx((30.0, 0.0))
    assert knots[1].handle_in == pytest.approx((-30.0, 0.0))
    cl = Centreline.from_control_points(knots)
    assert cl.total_length == pytest.approx(100.0)


def test_smooth_control_points_handle_layout() -> None:
    knots = smooth_control_points([(0.0, 0.0), (10.0, 0.0), (20.0, 10.0)], tension=0.3)
    first, mid, last = knots
    assert first.handle_in is None and first.handle_out is not None
    assert last.handle_out is None and last.handle_in is not None
    assert np.allclose(first.handle_out, [3.0, 0.0])
    # interior handles are opposite and along next - prev
    h_in = np.asarray(mid.handle_in)
    h_out = np.asarray(mid.handle_out)
    direction = np.array([20.0, 10.0]) / np.hypot(20.0, 10.0)
    assert np.allclose(h_out / np.linalg.norm(h_out), direction)
    assert np.allclose(h_in / np.linalg.norm(h_in), -direction)
    assert np.linalg.norm(h_in) == pytest.approx(3.0)
    assert np.linalg.norm(h_out) == pytest.approx(0.3 * np.hypot(10.0, 10.0))


def test_smoothed_centreline_passes_through_knots() -> None:
    pts = [(0.0, 0.0), (30.0, 10.0), (60.0, 0.0), (90.0, 10.0)]
    cl = Centreline.from_control_points(smooth_control_points(pts))
    assert len(cl) == 3
    for seg, (a, b) in zip(cl, zip(pts, pts[1:])):
        assert seg.p0 == a
        assert seg.p3 == b


def test_from_polyline_straight_edges() -> None:
    cl = Centreline.from_polyline([[0.0, 0.0], [30.0, 0.0], [30.0, 40.0]])
    assert len(cl) == 2
    assert cl.total_length == pytest.approx(70.0)
    assert cl.anchor == (0.0, 0.0)


def test_svg_path_d() -> None:
    d = _l_shape().to_svg_path_d(precision=0)
    assert d == "M 0,0 C 15,0 35,0 50,0 C 50,15 50,35 50,50"


def test_segment_type_exposed() -> None:
    assert isinstance(_l_shape().segments[0], CurveSegment)

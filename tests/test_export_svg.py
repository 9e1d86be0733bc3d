from pathlib import Path

import numpy as np

from corridorgeom.bezier import straight_segment
from corridorgeom.centreline import Centreline
from corridorgeom.corridor import CycleLane
from corridorgeom.export_svg import (
    export_corridor_svg,
    polyline_to_path_d,
    surface_to_path_d,
)


def test_polyline_path_d_format() -> None:
    P = np.array([[0.0, 0.0], [1.0, 2.5]])
    assert polyline_to_path_d(P) == "M 0.000,0.000 L 1.000,2.500"
    assert polyline_to_path_d(P, closed=True, precision=1) == "M 0.0,0.0 L 1.0,2.5 Z"


def test_polyline_path_d_empty() -> None:
    assert polyline_to_path_d(np.zeros((0, 2))) == ""


def test_surface_goes_out_along_left_and_back_along_right() -> None:
    left = np.array([[0.0, -1.0], [10.0, -1.0]])
    right = np.array([[0.0, 1.0], [10.0, 1.0]])
    d = surface_to_path_d(left, right, precision=0)
    assert d == "M 0,-1 L 10,-1 L 10,1 L 0,1 Z"


def test_surface_needs_two_points_per_edge() -> None:
    assert surface_to_path_d(np.zeros((1, 2)), np.zeros((3, 2))) == ""


def test_export_writes_svg(tmp_path: Path) -> None:
    cl = Centreline((straight_segment((0.0, 0.0), (100.0, 0.0)),))
    out = tmp_path / "corridor.svg"
    export_corridor_svg(
        str(out),
        cl,
        6.5,
        cycle_lane=CycleLane(width=1.5),
        elements=[("bollard", (50.0, 2.0))],
    )
    text = out.read_text(encoding="utf-8")
    assert "viewBox" in text
    # carriageway, cycle lane, centreline
    assert text.count("<path") == 3
    assert "<circle" in text
    assert "bollard" in text


def test_export_empty_centreline(tmp_path: Path) -> None:
    out = tmp_path / "empty.svg"
    export_corridor_svg(str(out), Centreline(), 6.5)
    text = out.read_text(encoding="utf-8")
    assert "viewBox" in text
    assert "<path" not in text

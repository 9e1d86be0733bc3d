import math
from pathlib import Path

import numpy as np
import pytest

from corridorgeom.bezier import point_at
from corridorgeom.svg_io import centreline_from_path_d, load_centreline_svg, load_svg_scale_m


def _write_svg(tmp_path: Path, body: str, header: str = "") -> str:
    path = tmp_path / "road.svg"
    path.write_text(
        f'<svg xmlns="http://www.w3.org/2000/svg" {header}>{body}</svg>',
        encoding="utf-8",
    )
    return str(path)


def test_cubic_path() -> None:
    cl = centreline_from_path_d("M 0,0 C 33,0 67,0 100,0")
    assert len(cl) == 1
    assert cl.total_length == pytest.approx(100.0, rel=1e-9)


def test_line_becomes_straight_cubic() -> None:
    cl = centreline_from_path_d("M 0 0 L 100 0 L 100 50")
    assert len(cl) == 2
    assert cl.total_length == pytest.approx(150.0, rel=1e-9)
    assert np.allclose(cl.segments[0].c1, [100.0 / 3.0, 0.0])


def test_quadratic_is_elevated_exactly() -> None:
    cl = centreline_from_path_d("M 0 0 Q 50 50 100 0")
    seg = cl.segments[0]
    assert np.allclose(point_at(seg, 0.5), [50.0, 25.0])
    assert np.allclose(point_at(seg, 0.25), [25.0, 18.75])


def test_arc_is_refit() -> None:
    cl = centreline_from_path_d("M 0 0 A 50 50 0 0 1 100 0")
    assert cl.total_length == pytest.approx(50.0 * math.pi, rel=5e-3)
    assert np.allclose(cl.start_point, [0.0, 0.0], atol=1e-9)
    assert np.allclose(cl.end_point, [100.0, 0.0], atol=1e-6)


def test_only_first_subpath_is_used() -> None:
    cl = centreline_from_path_d("M 0 0 L 10 0 M 20 0 L 30 0")
    assert cl.total_length == pytest.approx(10.0)


def test_zero_length_pieces_are_dropped() -> None:
    cl = centreline_from_path_d("M 0 0 L 0 0 L 100 0")
    assert len(cl) == 1
    assert cl.total_length == pytest.approx(100.0)


def test_scale() -> None:
    cl = centreline_from_path_d("M 0 0 L 100 0", scale=0.5)
    assert cl.total_length == pytest.approx(50.0)
    with pytest.raises(ValueError):
        centreline_from_path_d("M 0 0 L 100 0", scale=0.0)


def test_empty_path_raises() -> None:
    with pytest.raises(ValueError):
        centreline_from_path_d("")


def test_load_centreline_svg_by_id(tmp_path: Path) -> None:
    svg = _write_svg(
        tmp_path,
        '<path id="kerb" d="M 0 0 L 10 0"/><path id="centre" d="M 0 0 L 40 0 L 40 30"/>',
    )
    assert load_centreline_svg(svg, scale=1.0).total_length == pytest.approx(10.0)
    assert load_centreline_svg(svg, path_id="centre", scale=1.0).total_length == pytest.approx(70.0)
    with pytest.raises(ValueError):
        load_centreline_svg(svg, path_id="missing", scale=1.0)


def test_load_centreline_svg_uses_physical_units(tmp_path: Path) -> None:
    svg = _write_svg(
        tmp_path,
        '<path d="M 0 0 L 100 0"/>',
        header='width="100mm" height="50mm" viewBox="0 0 100 50"',
    )
    # 1 user unit = 1 mm on paper; a 1:1000 plan means 10 m per paper cm
    assert load_svg_scale_m(svg) == pytest.approx(0.001)
    assert load_svg_scale_m(svg, metres_per_cm=10.0) == pytest.approx(1.0)
    assert load_centreline_svg(svg).total_length == pytest.approx(0.1)


def test_scale_unknown_without_units(tmp_path: Path) -> None:
    svg = _write_svg(tmp_path, '<path d="M 0 0 L 100 0"/>', header='viewBox="0 0 100 50"')
    assert load_svg_scale_m(svg) is None
    assert load_centreline_svg(svg).total_length == pytest.approx(100.0)


def test_svg_without_paths_raises(tmp_path: Path) -> None:
    svg = _write_svg(tmp_path, '<g/>')
    with pytest.raises(ValueError):
        load_centreline_svg(svg)

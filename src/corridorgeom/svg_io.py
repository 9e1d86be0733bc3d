from __future__ import annotations

import re

import numpy as np
from svgpathtools import (  # type: ignore[reportMissingTypeStubs]
    Arc,
    CubicBezier,
    Line,
    Path,
    QuadraticBezier,
    parse_path,
    svg2paths2,
)

from .bezier import CurveSegment, polyline_to_segments
from .centreline import Centreline
from .utils import debug

LINE_HANDLE_RATIO = 1.0 / 3.0
ARC_SAMPLE_SPACING = 0.5  # user units between samples when flattening arcs


def _xy(z: complex, scale: float) -> list[float]:
    return [float(z.real) * scale, float(z.imag) * scale]


def _path_segments(p: Path, scale: float) -> list[CurveSegment | list[list[float]]]:
    out: list[CurveSegment | list[list[float]]] = []
    for seg in p:
        if isinstance(seg, CubicBezier):
            out.append([_xy(seg.start, scale), _xy(seg.control1, scale),
                        _xy(seg.control2, scale), _xy(seg.end, scale)])
        elif isinstance(seg, Line):
            a, b = seg.start, seg.end
            out.append([
                _xy(a, scale),
                _xy(a + LINE_HANDLE_RATIO * (b - a), scale),
                _xy(b - LINE_HANDLE_RATIO * (b - a), scale),
                _xy(b, scale),
            ])
        elif isinstance(seg, QuadraticBezier):
            # degree elevation is exact
            a, q, b = seg.start, seg.control, seg.end
            out.append([
                _xy(a, scale),
                _xy(a + 2.0 / 3.0 * (q - a), scale),
                _xy(b + 2.0 / 3.0 * (q - b), scale),
                _xy(b, scale),
            ])
        elif isinstance(seg, Arc):
            L = max(float(seg.length(error=1e-4)), 1e-6)
            n = max(4, int(np.ceil(L / ARC_SAMPLE_SPACING)))
            pts = np.array([_xy(seg.point(t), scale) for t in np.linspace(0.0, 1.0, n + 1)])
            out.extend(polyline_to_segments(pts, handle_scale=1.0))
        else:
            raise ValueError(f"unsupported path segment {type(seg).__name__}")
    return out


def centreline_from_path_d(d: str, scale: float = 1.0) -> Centreline:
    """
    Centreline from an SVG path 'd' string.
    Lines and quadratics become cubics exactly; arcs are flattened and refit.
    Only the first continuous subpath is used. `scale` is metres per user unit.
    """
    if not scale > 0:
        raise ValueError("scale must be > 0")
    if not d.strip():
        raise ValueError("path has no segments")
    p = parse_path(d)
    if len(p) == 0:
        raise ValueError("path has no segments")
    subpaths = p.continuous_subpaths()
    if len(subpaths) > 1:
        debug.log(f"svg_io: using first of {len(subpaths)} subpaths")
    return Centreline.from_segments(_path_segments(subpaths[0], scale))


def load_centreline_svg(
    svg_path: str,
    path_id: str | None = None,
    scale: float | None = None,
) -> Centreline:
    """
    Centreline from the first <path> in an SVG file, or the one with `path_id`.
    Without `scale`, physical units in the SVG header are used (see
    `load_svg_scale_m`), falling back to one metre per user unit.
    """
    paths, attributes, _svg_attributes = svg2paths2(svg_path)
    if len(paths) == 0:
        raise ValueError("No <path> found in SVG.")
    index = 0
    if path_id is not None:
        ids = [a.get("id") for a in attributes]
        if path_id not in ids:
            raise ValueError(f"No <path id={path_id!r}> in SVG.")
        index = ids.index(path_id)
    if scale is None:
        scale = load_svg_scale_m(svg_path) or 1.0
    d = attributes[index].get("d")
    if not d:
        d = paths[index].d()
    debug.log(f"svg_io: path {index} of {len(paths)}, scale={scale:.6g} m/unit")
    return centreline_from_path_d(d, scale=scale)


def load_svg_scale_m(svg_path: str, metres_per_cm: float = 0.01) -> float | None:
    """
    Returns metres per SVG user unit if physical units are available.
    Uses width/height units and viewBox, then applies `metres_per_cm`
    (0.01 for a 1:1 drawing, larger for a scaled plan).
    """
    svg_result = svg2paths2(svg_path)
    svg_attributes = svg_result[2] if len(svg_result) > 2 else {}
    viewbox = _parse_viewbox(svg_attributes.get("viewBox") or svg_attributes.get("viewbox"))

    width = svg_attributes.get("width")
    height = svg_attributes.get("height")

    if viewbox is None:
        w_user = _parse_length(width)
        h_user = _parse_length(height)
        if w_user is not None and h_user is not None:
            viewbox = (0.0, 0.0, w_user, h_user)

    if viewbox is None:
        return None

    width_cm = _parse_length_to_cm(width)
    height_cm = _parse_length_to_cm(height)

    scales: list[float] = []
    if width_cm is not None and viewbox[2] > 0:
        scales.append((width_cm * metres_per_cm) / viewbox[2])
    if height_cm is not None and viewbox[3] > 0:
        scales.append((height_cm * metres_per_cm) / viewbox[3])

    if not scales:
        return None

    return float(sum(scales) / len(scales))


def _parse_viewbox(viewbox_raw: str | None) -> tuple[float, float, float, float] | None:
    if not viewbox_raw:
        return None
    parts = viewbox_raw.replace(",", " ").split()
    if len(parts) != 4:
        return None
    try:
        minx, miny, w, h = (float(p) for p in parts)
    except ValueError:
        return None
    return minx, miny, w, h


def _parse_length(value: str | None) -> float | None:
    parsed = _parse_length_with_unit(value)
    if parsed is None:
        return None
    return parsed[0]


def _parse_length_with_unit(value: str | None) -> tuple[float, str] | None:
    if value is None or "%" in value:
        return None
    match = re.match(
        r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)([a-zA-Z]*)\s*$",
        value,
    )
    if not match:
        return None
    return float(match.group(1)), match.group(2)


def _parse_length_to_cm(value: str | None) -> float | None:
    parsed = _parse_length_with_unit(value)
    if parsed is None:
        return None
    number, unit = parsed
    factor = _UNIT_TO_CM.get(unit.lower())
    if factor is None:
        return None
    return number * factor


_UNIT_TO_CM: dict[str, float] = {
    "px": 2.54 / 96.0,
    "pt": 2.54 / 72.0,
    "pc": 2.54 / 6.0,
    "mm": 0.1,
    "cm": 1.0,
    "in": 2.54,
    "m": 100.0,
}

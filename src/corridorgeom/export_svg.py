from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import svgwrite  # type: ignore[reportMissingTypeStubs]
from jaxtyping import Float, jaxtyped

from .centreline import Centreline
from .chainage import projector_for
from .corridor import CycleLane, carriageway_edges, cycle_lane_edges
from .geom_types import XY, typechecker
from .utils import debug


@jaxtyped(typechecker=typechecker)
def polyline_to_path_d(
    points: Float[np.ndarray, "N 2"],
    *,
    closed: bool = False,
    precision: int = 3,
) -> str:
    """SVG path 'd' string through the given vertices."""
    if points.shape[0] == 0:
        return ""
    fmt = f".{int(precision)}f"
    parts = [f"M {points[0, 0]:{fmt}},{points[0, 1]:{fmt}}"]
    parts.extend(f"L {x:{fmt}},{y:{fmt}}" for x, y in points[1:])
    if closed:
        parts.append("Z")
    return " ".join(parts)


@jaxtyped(typechecker=typechecker)
def surface_to_path_d(
    left: Float[np.ndarray, "N 2"],
    right: Float[np.ndarray, "M 2"],
    *,
    precision: int = 3,
) -> str:
    """Closed outline: left edge forward, right edge back."""
    if left.shape[0] < 2 or right.shape[0] < 2:
        return ""
    return polyline_to_path_d(np.vstack([left, right[::-1]]), closed=True, precision=precision)


def export_corridor_svg(
    out_path: str,
    centreline: Centreline,
    carriageway_width: float,
    cycle_lane: CycleLane | None = None,
    interval: float = 2.0,
    elements: Sequence[tuple[str, XY]] | None = None,
    pad: float = 5.0,
    carriageway_fill: str = "#d9d9d9",
    cycle_lane_fill: str = "#c0392b",
    centreline_stroke: str = "#ffffff",
    centreline_dasharray: str | None = "3,3",
    element_fill: str = "#1f77b4",
    stroke_width: float = 0.15,
) -> None:
    """
    Plan view of a corridor in metres: carriageway surface, optional cycle
    lane, dashed centreline and elements as labelled dots.
    `elements`: (label, absolute point) pairs.
    """
    edges = carriageway_edges(centreline, carriageway_width, interval)
    lane_edges = (
        cycle_lane_edges(centreline, carriageway_width, cycle_lane, interval)
        if cycle_lane is not None
        else None
    )

    groups = [edges.left, edges.right]
    if lane_edges is not None:
        groups += [lane_edges.left, lane_edges.right]
    groups.append(np.array([seg.control_points for seg in centreline]).reshape(-1, 2))
    if elements:
        groups.append(np.array([p for _label, p in elements], dtype=np.float64))
    allp = np.vstack([g for g in groups if g.shape[0] > 0] or [np.zeros((1, 2))])
    minx, miny = allp.min(axis=0)
    maxx, maxy = allp.max(axis=0)
    viewbox = (
        float(minx - pad),
        float(miny - pad),
        float((maxx - minx) + 2 * pad),
        float((maxy - miny) + 2 * pad),
    )

    dwg = svgwrite.Drawing(out_path, profile="tiny")
    dwg.attribs["viewBox"] = f"{viewbox[0]} {viewbox[1]} {viewbox[2]} {viewbox[3]}"

    if not edges.is_empty:
        dwg.add(dwg.path(d=surface_to_path_d(edges.left, edges.right), fill=carriageway_fill))
    if lane_edges is not None and not lane_edges.is_empty:
        dwg.add(
            dwg.path(
                d=surface_to_path_d(lane_edges.left, lane_edges.right),
                fill=cycle_lane_fill,
                fill_opacity=0.6,
            )
        )

    if len(centreline) > 0:
        line_kwargs: dict[str, object] = {
            "stroke": centreline_stroke,
            "fill": "none",
            "stroke_width": stroke_width,
        }
        if centreline_dasharray is not None:
            line_kwargs["stroke_dasharray"] = centreline_dasharray
        dwg.add(dwg.path(d=centreline.to_svg_path_d(), **line_kwargs))

    r = max(carriageway_width / 10.0, 0.2)
    for label, (x, y) in elements or []:
        dwg.add(dwg.circle(center=(float(x), float(y)), r=r, fill=element_fill))
        dwg.add(dwg.text(label, insert=(float(x) + r, float(y) - r), font_size=r * 2))

    dwg.save()
    debug.log(
        f"export_svg: {out_path} length={projector_for(centreline).length:.3f} m "
        f"elements={len(elements or [])}"
    )

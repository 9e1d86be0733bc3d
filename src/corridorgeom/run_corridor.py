from __future__ import annotations

import argparse
import json
import math
from collections.abc import Sequence
from typing import Any, Protocol, TypedDict, cast

import jax.numpy as jnp
import numpy as np

from .centreline import Centreline
from .chainage import ChainageProjector, DEFAULT_SAMPLE_SPACING
from .corridor import carriageway_polygon, cycle_lane_polygon, offset_polyline
from .document import DesignDocument
from .export_svg import export_corridor_svg
from .geo import GeoCentreline
from .geometry import discrete_curvature
from .utils import debug, debug_helpers


class CliArgs(Protocol):
    document: str
    project: list[list[float]] | None
    station: list[list[float]] | None
    svg: str | None
    interval: float
    sample_spacing: float
    verbose: bool


class CliArgsDict(TypedDict):
    document: str
    project: list[list[float]] | None
    station: list[list[float]] | None
    svg: str | None
    interval: float
    sample_spacing: float
    verbose: bool


class Summary(TypedDict):
    kind: str
    mode: str
    length: float
    segments: int
    elements: int
    carriageway_area: float
    cycle_lane_area: float
    min_radius: float | None


def min_radius(centreline: Centreline, interval: float) -> float | None:
    """Tightest radius along the centreline from sampled discrete curvature."""
    pts = offset_polyline(centreline, 0.0, interval, max_turn_deg=0.0)
    if pts.shape[0] < 3:
        return None
    pts = pts - pts[0]
    kappa = np.asarray(discrete_curvature(jnp.asarray(pts, dtype=jnp.float32)))
    debug_helpers.log_array("curvature", kappa)
    k_max = float(np.max(kappa))
    if k_max <= 1e-9:
        return None
    return 1.0 / k_max


def summarise(doc: DesignDocument, interval: float) -> Summary:
    cl = doc.centreline
    lane = doc.cycle_lane
    if isinstance(cl, GeoCentreline):
        # square metres come from the local plane, not lon/lat
        road_area = carriageway_polygon(cl.path, doc.carriageway_width, interval).area
        lane_area = (
            cycle_lane_polygon(cl.path, doc.carriageway_width, lane, interval).area if lane else 0.0
        )
        return {
            "kind": "summary",
            "mode": doc.mode,
            "length": cl.length,
            "segments": max(cl.coordinates.shape[0] - 1, 0),
            "elements": len(doc.elements),
            "carriageway_area": float(road_area),
            "cycle_lane_area": float(lane_area),
            "min_radius": None,
        }
    return {
        "kind": "summary",
        "mode": doc.mode,
        "length": cl.total_length,
        "segments": len(cl),
        "elements": len(doc.elements),
        "carriageway_area": float(carriageway_polygon(cl, doc.carriageway_width, interval).area),
        "cycle_lane_area": (
            float(cycle_lane_polygon(cl, doc.carriageway_width, lane, interval).area) if lane else 0.0
        ),
        "min_radius": min_radius(cl, interval),
    }


def project_point(
    doc: DesignDocument,
    projector: ChainageProjector | None,
    xy: Sequence[float],
) -> dict[str, Any]:
    if isinstance(doc.centreline, GeoCentreline):
        gc = doc.centreline.lnglat_to_chainage(xy)
        return {"kind": "project", "query": list(xy), "s": gc.s, "t": gc.t, "bearing": gc.bearing}
    assert projector is not None
    cp = projector.to_chainage(np.asarray(xy, dtype=np.float64))
    return {
        "kind": "project",
        "query": list(xy),
        "s": cp.s,
        "t": cp.t,
        "point": list(cp.point),
        "distance": cp.distance,
    }


def station_point(
    doc: DesignDocument,
    projector: ChainageProjector | None,
    st: Sequence[float],
) -> dict[str, Any]:
    s, t = float(st[0]), float(st[1])
    if isinstance(doc.centreline, GeoCentreline):
        lnglat = doc.centreline.chainage_to_lnglat(s, t)
        return {
            "kind": "station",
            "s": s,
            "t": t,
            "point": list(lnglat),
            "bearing": doc.centreline.bearing_at_chainage(s),
        }
    assert projector is not None
    frame = projector.to_point(s, t)
    return {
        "kind": "station",
        "s": s,
        "t": t,
        "point": list(frame.point),
        "bearing": frame.bearing,
    }


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="corridorgeom-run",
        description="Query chainage coordinates of a corridor design document",
    )
    ap.add_argument("--document", required=True, help="Design document JSON")
    ap.add_argument(
        "--project",
        nargs=2,
        type=float,
        action="append",
        metavar=("X", "Y"),
        help="Point to convert to chainage (lon lat in map mode); repeatable",
    )
    ap.add_argument(
        "--station",
        nargs=2,
        type=float,
        action="append",
        metavar=("S", "T"),
        help="Chainage to convert to a point; repeatable",
    )
    ap.add_argument("--svg", default=None, help="Write a plan-view SVG (canvas mode)")
    ap.add_argument(
        "--interval",
        type=float,
        default=2.0,
        help="Station spacing for edges and polygons (m)",
    )
    ap.add_argument(
        "--sample-spacing",
        type=float,
        default=DEFAULT_SAMPLE_SPACING,
        help="Forward projection sample spacing (m)",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Enable debug logs")
    return ap


def main(argv: Sequence[str] | None = None) -> None:
    ap = build_parser()
    args = cast(CliArgs, ap.parse_args(argv))
    debug.set_verbose(args.verbose)

    if not (math.isfinite(args.interval) and args.interval > 0):
        ap.error("--interval must be positive")
    if not (math.isfinite(args.sample_spacing) and args.sample_spacing > 0):
        ap.error("--sample-spacing must be positive")

    cli_args = cast(CliArgsDict, vars(args))
    debug.log(f"args: {json.dumps(cli_args, sort_keys=True)}")

    try:
        doc = DesignDocument.load(args.document)
    except (OSError, ValueError) as e:
        ap.error(f"cannot load {args.document}: {e}")

    projector = None
    if isinstance(doc.centreline, Centreline):
        projector = ChainageProjector(doc.centreline, sample_spacing=args.sample_spacing)

    print(json.dumps(summarise(doc, args.interval)))
    for xy in args.project or []:
        print(json.dumps(project_point(doc, projector, xy)))
    for st in args.station or []:
        print(json.dumps(station_point(doc, projector, st)))
    for element in doc.elements:
        print(
            json.dumps(
                {
                    "kind": "element",
                    "id": element.id,
                    "product_id": element.product_id,
                    "point": list(doc.resolve_position(element, projector)),
                }
            )
        )

    if args.svg is not None:
        if not isinstance(doc.centreline, Centreline):
            ap.error("--svg is only available for canvas documents")
        export_corridor_svg(
            args.svg,
            doc.centreline,
            doc.carriageway_width,
            cycle_lane=doc.cycle_lane,
            interval=args.interval,
            elements=[(e.id, doc.resolve_position(e, projector)) for e in doc.elements],
        )
        print(json.dumps({"kind": "svg", "path": args.svg}))


if __name__ == "__main__":
    main()

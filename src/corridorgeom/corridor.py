from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal, Protocol

import jax.numpy as jnp
import numpy as np
from shapely.geometry import Polygon

from .centreline import Centreline
from .chainage import StationFrame, projector_for
from .geometry import polyline_length, turning_angles
from .utils import debug

Side = Literal["nearside", "offside"]

DEFAULT_INTERVAL = 2.0  # metres between edge stations
DEFAULT_MAX_TURN_DEG = 3.0


class StationPath(Protocol):
    @property
    def length(self) -> float: ...

    def breakpoints(self) -> np.ndarray: ...

    def to_point(
        self, s: float, t: float = 0.0, *, extrapolate: bool = False
    ) -> StationFrame: ...


@dataclass(frozen=True)
class CycleLane:
    """Cycle lane beside the carriageway.

    `nearside` is the left of travel (negative offsets), `offside` the right.
    `buffer_width` is the gap between the carriageway edge and the lane.
    """

    width: float
    side: Side = "nearside"
    buffer_width: float = 0.0

    def __post_init__(self) -> None:
        if self.side not in ("nearside", "offside"):
            raise ValueError(f"side must be 'nearside' or 'offside', got {self.side!r}")

    def _sign(self) -> float:
        return -1.0 if self.side == "nearside" else 1.0

    def inner_offset(self, carriageway_width: float) -> float:
        return self._sign() * (carriageway_width / 2.0 + self.buffer_width)

    def outer_offset(self, carriageway_width: float) -> float:
        return self._sign() * (carriageway_width / 2.0 + self.buffer_width + self.width)


@dataclass(frozen=True, eq=False)
class CorridorEdges:
    """Left and right edge polylines; both empty when nothing is renderable."""

    left: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    right: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))

    @property
    def is_empty(self) -> bool:
        return self.left.shape[0] < 2 or self.right.shape[0] < 2

    def lengths(self) -> tuple[float, float]:
        if self.is_empty:
            return 0.0, 0.0
        # float32 kernel: work relative to the first station
        origin = self.left[0]
        return (
            float(polyline_length(jnp.asarray(self.left - origin, dtype=jnp.float32))),
            float(polyline_length(jnp.asarray(self.right - origin, dtype=jnp.float32))),
        )

    def to_polygon(self) -> Polygon:
        if self.is_empty:
            return Polygon()
        ring = np.vstack([self.left, self.right[::-1]])
        poly = Polygon(ring)
        if not poly.is_valid:
            poly = poly.buffer(0)  # tight curves can fold the inner edge
        return poly


@dataclass(frozen=True)
class SnapTarget:
    name: str
    offset: float


def as_station_path(path: Centreline | StationPath) -> StationPath:
    if isinstance(path, Centreline):
        return projector_for(path)
    return path


def station_chainages(
    path: Centreline | StationPath,
    interval: float = DEFAULT_INTERVAL,
    max_turn_deg: float = DEFAULT_MAX_TURN_DEG,
) -> np.ndarray:
    """
    Chainages at a fixed interval, plus segment joints and the end.
    Intervals whose stations turn by more than `max_turn_deg` are subdivided.
    """
    sp = as_station_path(path)
    total = sp.length
    if not (total > 0 and math.isfinite(interval) and interval > 0):
        return np.zeros(0)

    base = np.union1d(np.arange(0.0, total, interval), sp.breakpoints())
    base = np.union1d(base[(base >= 0.0) & (base < total)], [total])
    if base.size < 3 or not max_turn_deg > 0:
        return base

    pts = np.array([sp.to_point(float(s)).point for s in base], dtype=np.float64)
    pts = pts - pts[0]
    turn = np.zeros(base.size)
    turn[1:-1] = np.asarray(turning_angles(jnp.asarray(pts, dtype=jnp.float32)))
    per_gap = np.maximum(turn[:-1], turn[1:])
    splits = np.ceil(per_gap / math.radians(max_turn_deg)).astype(int)

    out: list[np.ndarray] = []
    for k in range(base.size - 1):
        n = max(int(splits[k]), 1)
        out.append(np.linspace(base[k], base[k + 1], n + 1)[:-1])
    out.append(base[-1:])
    stations = np.concatenate(out)
    if stations.size > base.size:
        debug.log(f"corridor: densified {base.size} -> {stations.size} stations")
    return stations


def offset_polyline(
    path: Centreline | StationPath,
    offset: float,
    interval: float = DEFAULT_INTERVAL,
    max_turn_deg: float = DEFAULT_MAX_TURN_DEG,
) -> np.ndarray:
    """Centreline stations moved `offset` metres along the normal, shape (N,2)."""
    sp = as_station_path(path)
    stations = station_chainages(sp, interval, max_turn_deg)
    if stations.size == 0 or not math.isfinite(offset):
        return np.zeros((0, 2))
    return np.array([sp.to_point(float(s), offset).point for s in stations], dtype=np.float64)


def carriageway_edges(
    path: Centreline | StationPath,
    width: float,
    interval: float = DEFAULT_INTERVAL,
    max_turn_deg: float = DEFAULT_MAX_TURN_DEG,
) -> CorridorEdges:
    sp = as_station_path(path)
    if not (math.isfinite(width) and width > 0) or not sp.length > 0:
        return CorridorEdges()
    half = width / 2.0
    return CorridorEdges(
        left=offset_polyline(sp, -half, interval, max_turn_deg),
        right=offset_polyline(sp, half, interval, max_turn_deg),
    )


def cycle_lane_edges(
    path: Centreline | StationPath,
    carriageway_width: float,
    lane: CycleLane,
    interval: float = DEFAULT_INTERVAL,
    max_turn_deg: float = DEFAULT_MAX_TURN_DEG,
) -> CorridorEdges:
    sp = as_station_path(path)
    if not (math.isfinite(lane.width) and lane.width > 0) or not sp.length > 0:
        return CorridorEdges()
    if carriageway_width < 0 or lane.buffer_width < 0:
        return CorridorEdges()
    a = lane.inner_offset(carriageway_width)
    b = lane.outer_offset(carriageway_width)
    lo, hi = min(a, b), max(a, b)
    return CorridorEdges(
        left=offset_polyline(sp, lo, interval, max_turn_deg),
        right=offset_polyline(sp, hi, interval, max_turn_deg),
    )


def carriageway_polygon(
    path: Centreline | StationPath,
    width: float,
    interval: float = DEFAULT_INTERVAL,
) -> Polygon:
    return carriageway_edges(path, width, interval).to_polygon()


def cycle_lane_polygon(
    path: Centreline | StationPath,
    carriageway_width: float,
    lane: CycleLane,
    interval: float = DEFAULT_INTERVAL,
) -> Polygon:
    return cycle_lane_edges(path, carriageway_width, lane, interval).to_polygon()


def snap_targets(carriageway_width: float, lane: CycleLane | None = None) -> list[SnapTarget]:
    """Named lateral offsets that placement tools snap to."""
    half = carriageway_width / 2.0
    targets = [
        SnapTarget("Centreline", 0.0),
        SnapTarget("Carriageway Left", -half),
        SnapTarget("Carriageway Right", half),
    ]
    if lane is not None:
        targets.append(SnapTarget("Cycle Lane Inner", lane.inner_offset(carriageway_width)))
        targets.append(SnapTarget("Cycle Lane Outer", lane.outer_offset(carriageway_width)))
    return targets


def nearest_snap_target(
    t: float,
    targets: list[SnapTarget],
    tolerance: float,
) -> SnapTarget | None:
    best: SnapTarget | None = None
    for target in targets:
        gap = abs(target.offset - t)
        if gap <= tolerance and (best is None or gap < abs(best.offset - t)):
            best = target
    return best

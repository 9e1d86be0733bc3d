"""Chainage projection on a Bezier centreline.

Chainage coordinates are (s, t):
- s: distance along the centreline from its start (metres)
- t: signed lateral offset (metres), positive to the right of travel

The engine frame is y-down, as on the drawing canvas, so the right-of-travel
normal is the unit tangent rotated by +90 degrees: n = (-ty, tx).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
from scipy.optimize import minimize_scalar  # type: ignore[reportMissingTypeStubs]

from .bezier import (
    CurveSegment,
    lengths_at,
    left_normal,
    length_to,
    normal_at,
    parameter_at_length,
    point_at,
    points_at,
    unit_tangent_at,
)
from .centreline import Centreline
from .geom_types import XY
from .utils import debug, debug_helpers

DEFAULT_SAMPLE_SPACING = 0.5  # metres between forward-projection samples
MIN_SAMPLES = 20  # per segment
REFINE_XATOL = 1e-10  # parameter tolerance of the local refinement


@dataclass(frozen=True)
class ChainageCoordinate:
    s: float
    t: float


@dataclass(frozen=True)
class ChainagePoint:
    """Result of projecting a point onto the centreline."""

    s: float
    t: float
    point: XY
    """Closest point on the centreline."""
    distance: float
    """Euclidean distance from the query to `point`."""

    @property
    def coordinate(self) -> ChainageCoordinate:
        return ChainageCoordinate(self.s, self.t)


@dataclass(frozen=True)
class StationFrame:
    """Position and local axes at a chainage, offset laterally if requested."""

    s: float
    point: XY
    tangent: XY
    normal: XY

    @property
    def bearing(self) -> float:
        return bearing_from_tangent(self.tangent)


def bearing_from_tangent(tangent: XY) -> float:
    """Heading in degrees clockwise from north, north being -y in the engine frame."""
    tx, ty = tangent
    if tx == 0.0 and ty == 0.0:
        return 0.0
    return math.degrees(math.atan2(tx, -ty)) % 360.0


def _xy(v: np.ndarray) -> XY:
    return (float(v[0]), float(v[1]))


class ChainageProjector:
    """Bidirectional mapping between Cartesian points and chainage.

    The sample table used by the forward transform is built once per
    centreline; use `projector_for` to share projectors between callers.

    Args:
        centreline: The reference curve.
        sample_spacing: Target arc length between forward samples (metres).
        min_samples: Lower bound on samples per segment.
        refine: Polish the best sample with a bounded scalar minimisation.
    """

    def __init__(
        self,
        centreline: Centreline,
        *,
        sample_spacing: float = DEFAULT_SAMPLE_SPACING,
        min_samples: int = MIN_SAMPLES,
        refine: bool = True,
    ) -> None:
        if not (math.isfinite(sample_spacing) and sample_spacing > 0):
            raise ValueError("sample_spacing must be finite and > 0")
        if min_samples < 2:
            raise ValueError("min_samples must be >= 2")
        self.centreline = centreline
        self.sample_spacing = float(sample_spacing)
        self.min_samples = int(min_samples)
        self.refine = refine
        self._segments: tuple[CurveSegment, ...] = centreline.segments
        self._cum = np.asarray(centreline.cumulative_lengths)
        self._build_samples()

    # ------------------------------------------------------------------
    # Sample table
    # ------------------------------------------------------------------

    def _build_samples(self) -> None:
        seg_ids: list[np.ndarray] = []
        params: list[np.ndarray] = []
        points: list[np.ndarray] = []
        chainages: list[np.ndarray] = []
        for i, seg in enumerate(self._segments):
            seg_len = float(self.centreline.segment_lengths[i])
            n = max(self.min_samples, math.ceil(seg_len / self.sample_spacing))
            us = np.linspace(0.0, 1.0, n + 1)
            seg_ids.append(np.full(us.shape, i, dtype=np.int64))
            params.append(us)
            points.append(points_at(seg, us))
            chainages.append(self._cum[i] + lengths_at(seg, us))

        if seg_ids:
            self._seg_ids = np.concatenate(seg_ids)
            self._params = np.concatenate(params)
            self._points = np.concatenate(points)
            self._chainages = np.concatenate(chainages)
        else:
            self._seg_ids = np.zeros(0, dtype=np.int64)
            self._params = np.zeros(0)
            self._points = np.zeros((0, 2))
            self._chainages = np.zeros(0)

        # Per-sample normals; an undefined direction reuses the previous sample's.
        normals = np.zeros_like(self._points)
        last = np.zeros(2)
        for k in range(self._params.size):
            n_k = normal_at(self._segments[self._seg_ids[k]], float(self._params[k]))
            if n_k[0] == 0.0 and n_k[1] == 0.0:
                n_k = last
            normals[k] = n_k
            last = n_k
        self._normals = normals

        debug.log(
            f"projector: rev={self.centreline.revision} segments={len(self._segments)} "
            f"length={self.length:.6g} samples={self._params.size}"
        )
        debug_helpers.log_array("projector.samples", self._points)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def length(self) -> float:
        return self.centreline.total_length

    @property
    def is_degenerate(self) -> bool:
        return self.centreline.is_degenerate or self._params.size == 0

    @property
    def sample_count(self) -> int:
        return int(self._params.size)

    def breakpoints(self) -> np.ndarray:
        """Chainages of segment joints, including both ends."""
        return np.asarray(self._cum, dtype=np.float64)

    def _fallback_point(self) -> XY:
        debug_helpers.log_once(
            f"degenerate:{id(self.centreline)}",
            f"chainage: degenerate centreline ({len(self.centreline)} segments), using anchor",
        )
        anchor = self.centreline.anchor
        return anchor if anchor is not None else (0.0, 0.0)

    # ------------------------------------------------------------------
    # Forward: point -> chainage
    # ------------------------------------------------------------------

    def to_chainage(self, point: XY | np.ndarray) -> ChainagePoint:
        """Project a point onto the centreline.

        Degenerate centrelines (and non-finite queries) give s=0, t=0 at the
        first available point rather than raising.
        """
        P = np.asarray(point, dtype=np.float64).reshape(2)
        if self.is_degenerate:
            anchor = self._fallback_point()
            dist = math.dist(anchor, _xy(P)) if np.isfinite(P).all() else 0.0
            return ChainagePoint(s=0.0, t=0.0, point=anchor, distance=dist)
        if not np.isfinite(P).all():
            debug.log(f"chainage: non-finite query {P.tolist()}, returning s=0 t=0")
            anchor = self.centreline.anchor or (0.0, 0.0)
            return ChainagePoint(s=0.0, t=0.0, point=anchor, distance=0.0)

        d2 = np.sum((self._points - P) ** 2, axis=1)
        best = int(np.argmin(d2))
        seg_idx = int(self._seg_ids[best])
        u = float(self._params[best])
        if self.refine:
            seg_idx, u = self._refine(P, best)

        seg = self._segments[seg_idx]
        closest = point_at(seg, u)
        normal = normal_at(seg, u)
        if normal[0] == 0.0 and normal[1] == 0.0:
            normal = self._normals[best]
        s = float(self._cum[seg_idx]) + length_to(seg, u)
        s = min(max(s, 0.0), self.length)
        t = float(np.dot(P - closest, normal))
        return ChainagePoint(
            s=s,
            t=t,
            point=_xy(closest),
            distance=float(np.hypot(*(P - closest))),
        )

    def _refine(self, P: np.ndarray, best: int) -> tuple[int, float]:
        seg_idx = int(self._seg_ids[best])
        brackets = [(seg_idx, *self._bracket(best))]
        u_best = float(self._params[best])
        if u_best >= 1.0 and seg_idx + 1 < len(self._segments):
            first_next = best + 1
            brackets.append((seg_idx + 1, *self._bracket(first_next)))
        elif u_best <= 0.0 and seg_idx > 0:
            last_prev = best - 1
            brackets.append((seg_idx - 1, *self._bracket(last_prev)))

        found: tuple[float, int, float] | None = None
        for i, lo, hi in brackets:
            seg = self._segments[i]

            def dist2(u: float, seg: CurveSegment = seg) -> float:
                d = point_at(seg, u) - P
                return float(d[0] * d[0] + d[1] * d[1])

            res = minimize_scalar(
                dist2,
                bounds=(lo, hi),
                method="bounded",
                options={"xatol": REFINE_XATOL},
            )
            for u in (float(res.x), lo, hi):
                f = dist2(u)
                if found is None or f < found[0]:
                    found = (f, i, u)
        assert found is not None
        return found[1], found[2]

    def _bracket(self, k: int) -> tuple[float, float]:
        """Parameters of the neighbouring samples of k on the same segment."""
        seg_idx = self._seg_ids[k]
        lo_k = k - 1 if k > 0 and self._seg_ids[k - 1] == seg_idx else k
        hi_k = k + 1 if k + 1 < self._params.size and self._seg_ids[k + 1] == seg_idx else k
        return float(self._params[lo_k]), float(self._params[hi_k])

    # ------------------------------------------------------------------
    # Inverse: chainage -> point
    # ------------------------------------------------------------------

    def to_point(
        self,
        s: float,
        t: float = 0.0,
        *,
        extrapolate: bool = False,
    ) -> StationFrame:
        """Point at chainage `s`, moved `t` metres along the normal.

        `s` outside [0, length] clamps to the nearest end, or with
        `extrapolate` continues along the end tangent.
        """
        s = float(s) if math.isfinite(s) else 0.0
        t = float(t) if math.isfinite(t) else 0.0
        if self.is_degenerate:
            return StationFrame(
                s=0.0, point=self._fallback_point(), tangent=(0.0, 0.0), normal=(0.0, 0.0)
            )

        total = self.length
        s_c = min(max(s, 0.0), total)
        overshoot = (s - s_c) if extrapolate else 0.0

        seg_idx = int(np.searchsorted(self._cum, s_c, side="right") - 1)
        seg_idx = min(max(seg_idx, 0), len(self._segments) - 1)
        seg = self._segments[seg_idx]
        u = parameter_at_length(seg, s_c - float(self._cum[seg_idx]))

        base = point_at(seg, u)
        tangent = unit_tangent_at(seg, u)
        if tangent[0] == 0.0 and tangent[1] == 0.0:
            k = int(np.searchsorted(self._chainages, s_c, side="right") - 1)
            normal = self._normals[max(k, 0)]
            tangent = np.array([normal[1], -normal[0]])
        normal = left_normal(tangent)
        point = base + overshoot * tangent + t * normal
        return StationFrame(
            s=s_c + overshoot,
            point=_xy(point),
            tangent=_xy(tangent),
            normal=_xy(normal),
        )

    # ------------------------------------------------------------------
    # Derived queries
    # ------------------------------------------------------------------

    def bearing_at(self, s: float) -> float:
        return self.to_point(s).bearing

    def sample(self, interval: float) -> list[StationFrame]:
        """Frames every `interval` metres from the start; the end is always included."""
        if self.is_degenerate or not (math.isfinite(interval) and interval > 0):
            return []
        stations = list(np.arange(0.0, self.length, interval))
        if not stations or stations[-1] < self.length:
            stations.append(self.length)
        return [self.to_point(float(s)) for s in stations]

    def section(
        self,
        start_s: float,
        end_s: float,
        interval: float = 1.0,
    ) -> np.ndarray | None:
        """Centreline points between two chainages, or None for an empty range."""
        total = self.length
        lo = min(max(float(start_s), 0.0), total)
        hi = min(max(float(end_s), 0.0), total)
        if self.is_degenerate or lo >= hi or interval <= 0:
            return None
        stations = list(np.arange(lo, hi, interval)) + [hi]
        return np.array([self.to_point(float(s)).point for s in stations], dtype=np.float64)

    def contains(self, point: XY | np.ndarray, width: float) -> bool:
        """Whether a point lies on a carriageway of the given width."""
        if self.is_degenerate or not width > 0:
            return False
        return self.to_chainage(point).distance <= width / 2.0


@lru_cache(maxsize=32)
def projector_for(centreline: Centreline) -> ChainageProjector:
    """Shared projector per centreline value (segments + revision)."""
    return ChainageProjector(centreline)


def to_chainage(centreline: Centreline, point: XY | np.ndarray) -> ChainagePoint:
    return projector_for(centreline).to_chainage(point)


def to_point(
    centreline: Centreline,
    s: float,
    t: float = 0.0,
    *,
    extrapolate: bool = False,
) -> StationFrame:
    return projector_for(centreline).to_point(s, t, extrapolate=extrapolate)

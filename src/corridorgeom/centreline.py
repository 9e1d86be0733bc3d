from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from functools import cached_property

import numpy as np

from .bezier import (
    COLLAPSE_TOL,
    CurveSegment,
    beziers_to_svg_path_d,
    is_collapsed,
    polyline_to_segments,
)
from .geom_types import XY
from .utils import debug

CONTINUITY_TOL = COLLAPSE_TOL


@dataclass(frozen=True)
class ControlPoint:
    """A drawn knot; handles are offsets relative to `point`."""

    point: XY
    handle_in: XY | None = None
    handle_out: XY | None = None


@dataclass(frozen=True)
class Centreline:
    """Ordered cubic segments defining the direction of increasing chainage.

    Consecutive segments share an endpoint. The centreline is never edited in
    place: `with_segments` returns a new value with the revision bumped, and
    cached samples keyed on the old value simply stop being used.

    `anchor` is the first point the user supplied. It survives when every
    segment was filtered out as zero-length and serves as the fallback
    position for degenerate geometry.
    """

    segments: tuple[CurveSegment, ...] = ()
    revision: int = 0
    anchor: XY | None = None

    def __post_init__(self) -> None:
        segs = tuple(self.segments)
        for seg in segs:
            if not isinstance(seg, CurveSegment):
                raise ValueError("segments must be CurveSegment instances")
        for i in range(len(segs) - 1):
            gap = math.dist(segs[i].p3, segs[i + 1].p0)
            if gap > CONTINUITY_TOL:
                raise ValueError(
                    f"segments {i} and {i + 1} do not share an endpoint (gap={gap:.6g} m)"
                )
        if self.revision < 0:
            raise ValueError("revision must be >= 0")
        anchor = self.anchor
        if anchor is None and segs:
            anchor = segs[0].p0
        if anchor is not None:
            anchor = (float(anchor[0]), float(anchor[1]))
        object.__setattr__(self, "segments", segs)
        object.__setattr__(self, "anchor", anchor)

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    @classmethod
    def from_segments(
        cls,
        segments: Iterable[CurveSegment | Sequence[Sequence[float]]],
        *,
        revision: int = 0,
        anchor: XY | None = None,
    ) -> Centreline:
        """Build from segments or raw 4-point control sequences.

        Zero-length segments are dropped rather than rejected, so an
        incomplete drawing still yields a usable (possibly empty) centreline.
        """
        kept: list[CurveSegment] = []
        first: XY | None = anchor
        for raw in segments:
            if isinstance(raw, CurveSegment):
                seg = raw
            else:
                P = np.asarray(raw, dtype=np.float64)
                if P.shape != (4, 2):
                    raise ValueError("each segment needs four (x, y) control points")
                if first is None:
                    first = (float(P[0, 0]), float(P[0, 1]))
                if is_collapsed(P):
                    debug.log(f"centreline: dropping zero-length segment at {first}")
                    continue
                seg = CurveSegment.from_points(P)
            if first is None:
                first = seg.p0
            kept.append(seg)
        return cls(tuple(kept), revision=revision, anchor=first)

    @classmethod
    def from_control_points(
        cls,
        points: Sequence[ControlPoint],
        *,
        revision: int = 0,
    ) -> Centreline:
        """Segment i runs P_i -> P_i+handle_out_i -> P_i+1+handle_in_i+1 -> P_i+1."""
        raw: list[list[tuple[float, float]]] = []
        for cur, nxt in zip(points, points[1:]):
            p0 = cur.point
            p3 = nxt.point
            c1 = p0 if cur.handle_out is None else _add(p0, cur.handle_out)
            c2 = p3 if nxt.handle_in is None else _add(p3, nxt.handle_in)
            raw.append([p0, c1, c2, p3])
        anchor = points[0].point if points else None
        return cls.from_segments(raw, revision=revision, anchor=anchor)

    @classmethod
    def from_polyline(
        cls,
        points: Sequence[Sequence[float]],
        *,
        handle_scale: float = 0.0,
        max_handle_ratio: float = 0.5,
    ) -> Centreline:
        P = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        anchor = (float(P[0, 0]), float(P[0, 1])) if P.shape[0] else None
        segs = polyline_to_segments(
            P, handle_scale=handle_scale, max_handle_ratio=max_handle_ratio
        )
        return cls(tuple(segs), anchor=anchor)

    def with_segments(
        self, segments: Iterable[CurveSegment | Sequence[Sequence[float]]]
    ) -> Centreline:
        return Centreline.from_segments(
            segments, revision=self.revision + 1, anchor=self.anchor
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[CurveSegment]:
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    @cached_property
    def segment_lengths(self) -> np.ndarray:
        out = np.array([seg.length for seg in self.segments], dtype=np.float64)
        out.setflags(write=False)
        return out

    @cached_property
    def cumulative_lengths(self) -> np.ndarray:
        """Chainage at the start of each segment, plus the total at the end."""
        out = np.concatenate([[0.0], np.cumsum(self.segment_lengths)])
        out.setflags(write=False)
        return out

    @property
    def total_length(self) -> float:
        return float(self.cumulative_lengths[-1])

    @property
    def is_degenerate(self) -> bool:
        return not self.segments or self.total_length <= 1e-9

    @property
    def start_point(self) -> XY:
        if self.segments:
            return self.segments[0].p0
        return self.anchor if self.anchor is not None else (0.0, 0.0)

    @property
    def end_point(self) -> XY:
        if self.segments:
            return self.segments[-1].p3
        return self.start_point

    def to_svg_path_d(self, precision: int = 3) -> str:
        return beziers_to_svg_path_d(list(self.segments), precision=precision)


def _add(a: XY, b: XY) -> XY:
    return (float(a[0]) + float(b[0]), float(a[1]) + float(b[1]))


def _scale(v: np.ndarray, length: float) -> XY | None:
    n = float(np.hypot(v[0], v[1]))
    if n == 0.0:
        return None
    return (float(v[0] / n * length), float(v[1] / n * length))


def smooth_control_points(
    points: Sequence[XY],
    tension: float = 0.3,
) -> list[ControlPoint]:
    """Give clicked points smooth handles (Catmull-Rom style).

    End knots get a single handle along their only edge; interior knots get
    handles along normalize(next - prev), each scaled by `tension` times the
    distance to that neighbour.
    """
    P = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    out: list[ControlPoint] = []
    n = P.shape[0]
    for i in range(n):
        cur = (float(P[i, 0]), float(P[i, 1]))
        prev = P[i - 1] if i > 0 else None
        nxt = P[i + 1] if i < n - 1 else None
        if prev is None and nxt is None:
            out.append(ControlPoint(cur))
        elif prev is None:
            d = nxt - P[i]
            out.append(ControlPoint(cur, handle_out=_scale(d, tension * float(np.hypot(*d)))))
        elif nxt is None:
            d = P[i] - prev
            h = _scale(d, tension * float(np.hypot(*d)))
            out.append(ControlPoint(cur, handle_in=None if h is None else (-h[0], -h[1])))
        else:
            to_prev = prev - P[i]
            to_next = nxt - P[i]
            direction = to_next - to_prev
            h_in = _scale(direction, tension * float(np.hypot(*to_prev)))
            h_out = _scale(direction, tension * float(np.hypot(*to_next)))
            out.append(
                ControlPoint(
                    cur,
                    handle_in=None if h_in is None else (-h_in[0], -h_in[1]),
                    handle_out=h_out,
                )
            )
    return out


def straight_road(start: XY, end: XY, handle_ratio: float = 0.3) -> list[ControlPoint]:
    """Two knots with handles along the chord, as drawn by the road tool."""
    d = np.asarray(end, dtype=np.float64) - np.asarray(start, dtype=np.float64)
    h = _scale(d, handle_ratio * float(np.hypot(*d)))
    if h is None:
        return [ControlPoint(start), ControlPoint(end)]
    return [
        ControlPoint(start, handle_out=h),
        ControlPoint(end, handle_in=(-h[0], -h[1])),
    ]

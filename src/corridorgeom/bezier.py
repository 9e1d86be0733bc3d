from __future__ import annotations

import math
from dataclasses import dataclass
from functools import cached_property

import numpy as np
from jaxtyping import Float, jaxtyped

from .geom_types import XY, NpControlPoints, NpPoint, typechecker

COLLAPSE_TOL = 1e-3  # metres
PANEL_LENGTH = 10.0  # metres of control polygon per quadrature panel
PANEL_TURN = math.pi / 8.0  # radians of control polygon turning per extra panel
MIN_PANELS = 4
MAX_PANELS = 256
GAUSS_ORDER = 8
LENGTH_TOL = 1e-9  # metres

_GL_NODES, _GL_WEIGHTS = np.polynomial.legendre.leggauss(GAUSS_ORDER)
_ZERO = np.zeros(2, dtype=np.float64)


def is_collapsed(points: object, tol: float = COLLAPSE_TOL) -> bool:
    """True when every control point lies within `tol` of the first one."""
    P = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    return bool(np.max(np.linalg.norm(P - P[0], axis=1)) < tol)


@dataclass(frozen=True)
class CurveSegment:
    """One cubic Bezier piece of a centreline: start, two handles, end (metres).

    Instances are immutable and hashable. A segment whose four control points
    collapse onto a single point is rejected with ``ValueError``.
    """

    p0: XY
    c1: XY
    c2: XY
    p3: XY

    def __post_init__(self) -> None:
        P = np.asarray([self.p0, self.c1, self.c2, self.p3], dtype=np.float64)
        if P.shape != (4, 2):
            raise ValueError("a curve segment needs four (x, y) control points")
        if not np.isfinite(P).all():
            raise ValueError("control points contain non-finite coordinates")
        if is_collapsed(P):
            raise ValueError("curve segment collapses to a single point")
        for name, row in zip(("p0", "c1", "c2", "p3"), P):
            object.__setattr__(self, name, (float(row[0]), float(row[1])))

    @classmethod
    def from_points(cls, points: object) -> CurveSegment:
        P = np.asarray(points, dtype=np.float64)
        if P.shape != (4, 2):
            raise ValueError("points must have shape (4,2)")
        return cls(*(tuple(row) for row in P))  # type: ignore[arg-type]

    @cached_property
    def control_points(self) -> NpControlPoints:
        P = np.asarray([self.p0, self.c1, self.c2, self.p3], dtype=np.float64)
        P.setflags(write=False)
        return P

    @cached_property
    def arc_table(self) -> tuple[np.ndarray, np.ndarray]:
        return arc_length_table(self)

    @property
    def length(self) -> float:
        return float(self.arc_table[1][-1])

    @property
    def chord(self) -> float:
        return math.dist(self.p0, self.p3)

    def reversed(self) -> CurveSegment:
        return CurveSegment(self.p3, self.c2, self.c1, self.p0)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def point_at(segment: CurveSegment, u: float) -> NpPoint:
    """Cubic Bernstein evaluation. `u` is not clamped."""
    P = segment.control_points
    mu = 1.0 - u
    return (
        (mu * mu * mu) * P[0]
        + (3.0 * mu * mu * u) * P[1]
        + (3.0 * mu * u * u) * P[2]
        + (u * u * u) * P[3]
    )


def tangent_at(segment: CurveSegment, u: float) -> NpPoint:
    """First derivative dB/du (not normalised)."""
    P = segment.control_points
    mu = 1.0 - u
    return (
        (3.0 * mu * mu) * (P[1] - P[0])
        + (6.0 * mu * u) * (P[2] - P[1])
        + (3.0 * u * u) * (P[3] - P[2])
    )


@jaxtyped(typechecker=typechecker)
def points_at(
    segment: CurveSegment,
    us: Float[np.ndarray, "M"],
) -> Float[np.ndarray, "M 2"]:
    P = segment.control_points
    u = np.asarray(us, dtype=np.float64)[:, None]
    mu = 1.0 - u
    return (
        (mu * mu * mu) * P[0]
        + (3.0 * mu * mu * u) * P[1]
        + (3.0 * mu * u * u) * P[2]
        + (u * u * u) * P[3]
    )


@jaxtyped(typechecker=typechecker)
def tangents_at(
    segment: CurveSegment,
    us: Float[np.ndarray, "M"],
) -> Float[np.ndarray, "M 2"]:
    P = segment.control_points
    u = np.asarray(us, dtype=np.float64)[:, None]
    mu = 1.0 - u
    return (
        (3.0 * mu * mu) * (P[1] - P[0])
        + (6.0 * mu * u) * (P[2] - P[1])
        + (3.0 * u * u) * (P[3] - P[2])
    )


def unit_tangent_at(segment: CurveSegment, u: float, eps: float = 1e-9) -> NpPoint:
    """Unit direction of travel at `u`.

    Where the derivative vanishes (a handle sitting on its knot) the limiting
    direction is used instead. Returns the zero vector only when no direction
    can be recovered; callers treat that as "undefined".
    """
    d = tangent_at(segment, u)
    n = float(np.hypot(d[0], d[1]))
    if n > eps:
        return d / n

    P = segment.control_points
    if u <= 0.0:
        candidates = (P[2] - P[0], P[3] - P[0])
    elif u >= 1.0:
        candidates = (P[3] - P[1], P[3] - P[0])
    else:
        h = 1e-4
        candidates = (
            point_at(segment, min(u + h, 1.0)) - point_at(segment, max(u - h, 0.0)),
        )
    for c in candidates:
        n = float(np.hypot(c[0], c[1]))
        if n > eps:
            return c / n
    return _ZERO.copy()


def left_normal(direction: NpPoint) -> NpPoint:
    """Rotate a direction by +90 degrees in the y-down engine frame.

    The result points to the right-hand side of travel, the side of positive
    lateral offset.
    """
    return np.array([-direction[1], direction[0]], dtype=np.float64)


def normal_at(segment: CurveSegment, u: float) -> NpPoint:
    return left_normal(unit_tangent_at(segment, u))


# ---------------------------------------------------------------------------
# Arc length
# ---------------------------------------------------------------------------


def _panel_count(segment: CurveSegment) -> int:
    P = segment.control_points
    edges = np.diff(P, axis=0)
    edge_len = np.linalg.norm(edges, axis=1)
    polygon_len = float(edge_len.sum())

    live = edges[edge_len > 1e-12]
    turn = 0.0
    if live.shape[0] >= 2:
        a, b = live[:-1], live[1:]
        cos_th = np.sum(a * b, axis=1) / (
            np.linalg.norm(a, axis=1) * np.linalg.norm(b, axis=1)
        )
        turn = float(np.sum(np.arccos(np.clip(cos_th, -1.0, 1.0))))

    n = math.ceil(polygon_len / PANEL_LENGTH) + math.ceil(turn / PANEL_TURN)
    return int(min(max(n, MIN_PANELS), MAX_PANELS))


@jaxtyped(typechecker=typechecker)
def arc_length_table(
    segment: CurveSegment,
    panels: int | None = None,
) -> tuple[Float[np.ndarray, "K"], Float[np.ndarray, "K"]]:
    """
    Composite Gauss-Legendre arc length.
    Returns (us, cum): panel boundaries in [0,1] and cumulative length at each.
    Panel count grows with the control polygon length and turning.
    """
    n = _panel_count(segment) if panels is None else int(panels)
    if n < 1:
        raise ValueError("panels must be >= 1")
    us = np.linspace(0.0, 1.0, n + 1)
    a, b = us[:-1], us[1:]
    half = 0.5 * (b - a)
    mid = 0.5 * (b + a)
    nodes = mid[:, None] + half[:, None] * _GL_NODES[None, :]  # (n, order)
    speed = np.linalg.norm(tangents_at(segment, nodes.ravel()), axis=1)
    panel_len = half * (speed.reshape(nodes.shape) @ _GL_WEIGHTS)
    cum = np.concatenate([[0.0], np.cumsum(panel_len)])
    return us, cum


def length(segment: CurveSegment) -> float:
    """Arc length of one segment in metres."""
    return segment.length


@jaxtyped(typechecker=typechecker)
def lengths_at(
    segment: CurveSegment,
    us: Float[np.ndarray, "M"],
) -> Float[np.ndarray, "M"]:
    """Arc length from u=0 to each parameter in `us` (clamped to [0,1])."""
    table_us, cum = segment.arc_table
    u = np.clip(np.asarray(us, dtype=np.float64), 0.0, 1.0)
    k = np.clip(np.searchsorted(table_us, u, side="right") - 1, 0, table_us.size - 2)
    a = table_us[k]
    half = 0.5 * (u - a)
    mid = 0.5 * (u + a)
    nodes = mid[:, None] + half[:, None] * _GL_NODES[None, :]
    speed = np.linalg.norm(tangents_at(segment, nodes.ravel()), axis=1)
    return cum[k] + half * (speed.reshape(nodes.shape) @ _GL_WEIGHTS)


def length_to(segment: CurveSegment, u: float) -> float:
    return float(lengths_at(segment, np.array([u], dtype=np.float64))[0])


def parameter_at_length(
    segment: CurveSegment,
    distance: float,
    tol: float = LENGTH_TOL,
    max_iter: int = 60,
) -> float:
    """Invert arc length: the parameter u whose length_to(u) equals `distance`.

    Table lookup brackets the panel, then Newton steps safeguarded by
    bisection. Out-of-range distances clamp to 0 or 1.
    """
    table_us, cum = segment.arc_table
    total = float(cum[-1])
    if distance <= 0.0:
        return 0.0
    if distance >= total:
        return 1.0

    k = int(np.searchsorted(cum, distance, side="right") - 1)
    k = min(max(k, 0), table_us.size - 2)
    lo, hi = float(table_us[k]), float(table_us[k + 1])
    span = float(cum[k + 1] - cum[k])
    u = lo + (hi - lo) * (distance - float(cum[k])) / span if span > 0 else lo

    for _ in range(max_iter):
        f = length_to(segment, u) - distance
        if abs(f) <= tol:
            break
        if f > 0.0:
            hi = u
        else:
            lo = u
        d = tangent_at(segment, u)
        speed = float(np.hypot(d[0], d[1]))
        step = u - f / speed if speed > 0.0 else math.nan
        u = step if lo < step < hi else 0.5 * (lo + hi)
        if hi - lo < 1e-15:
            break
    return float(u)


# ---------------------------------------------------------------------------
# Construction helpers
# ---------------------------------------------------------------------------


@jaxtyped(typechecker=typechecker)
def polyline_to_segments(
    points: Float[np.ndarray, "N 2"],
    *,
    handle_scale: float = 1.0,
    max_handle_ratio: float = 0.5,
) -> list[CurveSegment]:
    """Convert an open polyline into interpolating cubic segments.

    Catmull-Rom vertex tangents, clamped per vertex so C1 continuity holds at
    joints:
    - `handle_scale` 0 gives straight segments, 1 full Catmull-Rom.
    - `max_handle_ratio` caps each handle to a fraction of the shorter
      neighbouring edge.
    Zero-length edges are skipped.
    """
    P = np.asarray(points, dtype=np.float64)
    if P.shape[0] < 2:
        return []
    if not np.isfinite(P).all():
        raise ValueError("points contains non-finite coordinates")
    if not np.isfinite(handle_scale) or handle_scale < 0:
        raise ValueError("handle_scale must be finite and >= 0")
    if not np.isfinite(max_handle_ratio) or max_handle_ratio < 0:
        raise ValueError("max_handle_ratio must be finite and >= 0")

    keep = np.ones(P.shape[0], dtype=bool)
    keep[1:] = np.linalg.norm(np.diff(P, axis=0), axis=1) >= COLLAPSE_TOL
    P = P[keep]
    N = P.shape[0]
    if N < 2:
        return []

    m = np.empty_like(P)
    m[0] = P[1] - P[0]
    m[-1] = P[-1] - P[-2]
    if N > 2:
        m[1:-1] = 0.5 * (P[2:] - P[:-2])

    s = float(handle_scale)
    edge_len = np.linalg.norm(P[1:] - P[:-1], axis=1)
    if s > 0.0:
        for i in range(N):
            L = min(edge_len[max(i - 1, 0)], edge_len[min(i, N - 2)])
            max_tan = (3.0 / s) * float(max_handle_ratio) * float(L)
            tn = float(np.linalg.norm(m[i]))
            if tn > max_tan and tn > 1e-12:
                m[i] *= max_tan / tn
            # no backward tangents relative to either adjacent edge
            for j in (i - 1, i):
                if 0 <= j < N - 1:
                    e = P[j + 1] - P[j]
                    dot = float(np.dot(m[i], e))
                    if dot < 0.0:
                        m[i] -= (dot / float(np.dot(e, e))) * e

    segs: list[CurveSegment] = []
    for i in range(N - 1):
        p0, p3 = P[i], P[i + 1]
        if s > 0.0:
            c1 = p0 + (s / 3.0) * m[i]
            c2 = p3 - (s / 3.0) * m[i + 1]
        else:
            c1 = p0 + (p3 - p0) / 3.0
            c2 = p0 + 2.0 * (p3 - p0) / 3.0
        segs.append(CurveSegment.from_points(np.stack([p0, c1, c2, p3])))
    return segs


def straight_segment(start: XY, end: XY, handle_ratio: float = 0.3) -> CurveSegment:
    """A straight line written as a cubic, handles placed along the chord."""
    a = np.asarray(start, dtype=np.float64)
    b = np.asarray(end, dtype=np.float64)
    d = b - a
    return CurveSegment.from_points(
        np.stack([a, a + handle_ratio * d, b - handle_ratio * d, b])
    )


def beziers_to_svg_path_d(
    segs: list[CurveSegment],
    *,
    precision: int = 3,
) -> str:
    """Build an SVG path 'd' string from cubic segments."""
    if not segs:
        return ""
    fmt = f".{int(precision)}f"

    def f(x: float) -> str:
        return format(float(x), fmt)

    x0, y0 = segs[0].p0
    parts = [f"M {f(x0)},{f(y0)}"]
    for seg in segs:
        (x1, y1), (x2, y2), (x3, y3) = seg.c1, seg.c2, seg.p3
        parts.append(f"C {f(x1)},{f(y1)} {f(x2)},{f(y2)} {f(x3)},{f(y3)}")
    return " ".join(parts)

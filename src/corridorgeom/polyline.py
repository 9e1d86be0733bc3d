from __future__ import annotations

import math

import jax.numpy as jnp
import numpy as np

from .bezier import COLLAPSE_TOL, left_normal
from .chainage import ChainagePoint, StationFrame
from .geom_types import XY
from .geometry import polyline_segments_dist2


class PolylinePath:
    """
    Polyline parameterised by arc length, with the same (s, t) contract as
    `ChainageProjector`.

    Projection is exact per edge: a batched jax kernel picks the candidate
    edge, then the candidate and its neighbours are re-evaluated in float64.
    Consecutive duplicate vertices are removed. Fewer than two distinct
    vertices makes the path degenerate (s=0, t=0 at the first vertex).
    """

    def __init__(self, points: object) -> None:
        pts = np.asarray(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 2:
            raise ValueError(f"points must be (N,2), got {pts.shape}")
        if pts.shape[0] == 0:
            raise ValueError("points must contain at least one vertex")
        if not np.isfinite(pts).all():
            raise ValueError("points contains non-finite coordinates")

        keep = np.ones(pts.shape[0], dtype=bool)
        keep[1:] = np.linalg.norm(np.diff(pts, axis=0), axis=1) >= COLLAPSE_TOL
        pts = pts[keep]

        self._pts = pts
        self._seg = pts[1:] - pts[:-1]
        self._seg_len = np.linalg.norm(self._seg, axis=1)
        self._S = np.concatenate([[0.0], np.cumsum(self._seg_len)])
        self._L = float(self._S[-1])
        self._dirs = (
            self._seg / self._seg_len[:, None] if self._seg_len.size else np.zeros((0, 2))
        )

    @property
    def length(self) -> float:
        return self._L

    @property
    def points(self) -> np.ndarray:
        return self._pts

    @property
    def is_degenerate(self) -> bool:
        return self._seg_len.size == 0

    def breakpoints(self) -> np.ndarray:
        return self._S.copy()

    def _edge_index(self, s: float) -> int:
        i = int(np.searchsorted(self._S, s, side="right") - 1)
        return int(np.clip(i, 0, self._seg_len.size - 1))

    def _project_edge(self, P: np.ndarray, i: int) -> tuple[float, float, np.ndarray]:
        a = self._pts[i]
        d = self._seg[i]
        u = float(np.clip(np.dot(P - a, d) / float(np.dot(d, d)), 0.0, 1.0))
        q = a + u * d
        return float(np.sum((P - q) ** 2)), u, q

    def to_chainage(self, point: XY | np.ndarray) -> ChainagePoint:
        P = np.asarray(point, dtype=np.float64).reshape(2)
        first = (float(self._pts[0, 0]), float(self._pts[0, 1]))
        if self.is_degenerate or not np.isfinite(P).all():
            dist = math.dist(first, (float(P[0]), float(P[1]))) if np.isfinite(P).all() else 0.0
            return ChainagePoint(s=0.0, t=0.0, point=first, distance=dist)

        # float32 kernel on coordinates relative to the query keeps precision
        # for the candidate search; float64 decides between neighbours.
        rel = jnp.asarray(self._pts - P, dtype=jnp.float32)
        d2 = np.asarray(polyline_segments_dist2(jnp.zeros(2, dtype=jnp.float32), rel))
        cand = int(np.argmin(d2))
        best: tuple[float, int, float, np.ndarray] | None = None
        for i in range(max(cand - 1, 0), min(cand + 2, self._seg_len.size)):
            f, u, q = self._project_edge(P, i)
            if best is None or f < best[0] - 1e-12:
                best = (f, i, u, q)
        assert best is not None
        f, i, u, q = best

        dist = math.sqrt(f)
        normal = left_normal(self._dirs[i])
        # lateral component only; beyond either end the along-track part is dropped
        t = float(np.dot(P - q, normal))
        s = float(self._S[i] + u * self._seg_len[i])
        return ChainagePoint(s=s, t=t, point=(float(q[0]), float(q[1])), distance=dist)

    def to_point(
        self,
        s: float,
        t: float = 0.0,
        *,
        extrapolate: bool = False,
    ) -> StationFrame:
        s = float(s) if math.isfinite(s) else 0.0
        t = float(t) if math.isfinite(t) else 0.0
        if self.is_degenerate:
            first = (float(self._pts[0, 0]), float(self._pts[0, 1]))
            return StationFrame(s=0.0, point=first, tangent=(0.0, 0.0), normal=(0.0, 0.0))

        s_c = float(np.clip(s, 0.0, self._L))
        overshoot = (s - s_c) if extrapolate else 0.0
        i = self._edge_index(s_c)
        a = (s_c - self._S[i]) / self._seg_len[i]
        base = self._pts[i] + a * self._seg[i]
        tangent = self._dirs[i]
        normal = left_normal(tangent)
        p = base + overshoot * tangent + t * normal
        return StationFrame(
            s=s_c + overshoot,
            point=(float(p[0]), float(p[1])),
            tangent=(float(tangent[0]), float(tangent[1])),
            normal=(float(normal[0]), float(normal[1])),
        )

    def slice(self, start_s: float, end_s: float) -> np.ndarray | None:
        """Vertices between two chainages, ends interpolated; None if empty."""
        lo = float(np.clip(start_s, 0.0, self._L))
        hi = float(np.clip(end_s, 0.0, self._L))
        if self.is_degenerate or lo >= hi:
            return None
        inner = [self._pts[k] for k in range(1, self._pts.shape[0] - 1) if lo < self._S[k] < hi]
        ends = [np.asarray(self.to_point(lo).point), np.asarray(self.to_point(hi).point)]
        return np.vstack([ends[0], *inner, ends[1]]) if inner else np.vstack(ends)

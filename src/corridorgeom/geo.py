"""Map-mode corridors: lon/lat polylines with chainage coordinates.

Coordinates are reprojected to an azimuthal equidistant plane centred on the
corridor start, then north is flipped so the plane is y-down like the drawing
canvas. The (s, t) convention is therefore the same in both modes: positive
t is right of travel.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from pyproj import CRS, Transformer
from shapely.geometry import Polygon
from shapely.geometry.polygon import orient

from .chainage import bearing_from_tangent
from .corridor import CycleLane, carriageway_edges, cycle_lane_edges
from .polyline import PolylinePath
from .utils import debug

LngLat = tuple[float, float]

WGS84 = CRS.from_epsg(4326)


class LocalProjection:
    """lon/lat <-> local metres around an origin (engine frame, y-down)."""

    def __init__(self, origin_lon: float, origin_lat: float) -> None:
        _check_lnglat(origin_lon, origin_lat)
        self.origin = (float(origin_lon), float(origin_lat))
        local = CRS(
            proj="aeqd",
            lat_0=float(origin_lat),
            lon_0=float(origin_lon),
            datum="WGS84",
            units="m",
        )
        self._fwd = Transformer.from_crs(WGS84, local, always_xy=True)
        self._inv = Transformer.from_crs(local, WGS84, always_xy=True)

    def to_local(self, lnglat: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
        """(N,2) lon/lat -> (N,2) metres with y = -north."""
        ll = np.asarray(lnglat, dtype=np.float64).reshape(-1, 2)
        east, north = self._fwd.transform(ll[:, 0], ll[:, 1])
        return np.column_stack([np.asarray(east), -np.asarray(north)])

    def to_lnglat(self, xy: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
        P = np.asarray(xy, dtype=np.float64).reshape(-1, 2)
        lon, lat = self._inv.transform(P[:, 0], -P[:, 1])
        return np.column_stack([np.asarray(lon), np.asarray(lat)])


def _check_lnglat(lon: float, lat: float) -> None:
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise ValueError("coordinates must be finite")
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        raise ValueError(f"coordinate out of range: ({lon!r}, {lat!r})")


@dataclass(frozen=True)
class GeoChainage:
    s: float
    t: float
    bearing: float
    """Centreline heading at s, degrees clockwise from north."""


@dataclass(frozen=True)
class GeoStation:
    lnglat: LngLat
    s: float
    bearing: float


class GeoCentreline:
    """
    A lon/lat corridor centreline.

    Geometry is evaluated in the local plane by a `PolylinePath`; results are
    converted back to lon/lat on the way out.
    """

    def __init__(self, coordinates: Sequence[Sequence[float]]) -> None:
        coords = np.asarray(coordinates, dtype=np.float64)
        if coords.ndim != 2 or coords.shape[1] != 2 or coords.shape[0] == 0:
            raise ValueError("coordinates must be a non-empty (N,2) lon/lat array")
        for lon, lat in coords:
            _check_lnglat(float(lon), float(lat))
        self.coordinates = coords
        self.projection = LocalProjection(float(coords[0, 0]), float(coords[0, 1]))
        self.path = PolylinePath(self.projection.to_local(coords))
        debug.log(
            f"geo: {coords.shape[0]} vertices, length={self.path.length:.3f} m"
        )

    @property
    def length(self) -> float:
        return self.path.length

    def _lnglat(self, xy: tuple[float, float]) -> LngLat:
        ll = self.projection.to_lnglat([xy])[0]
        return (float(ll[0]), float(ll[1]))

    def lnglat_to_chainage(self, lnglat: Sequence[float]) -> GeoChainage:
        xy = self.projection.to_local([lnglat])[0]
        cp = self.path.to_chainage(xy)
        return GeoChainage(s=cp.s, t=cp.t, bearing=self.bearing_at_chainage(cp.s))

    def chainage_to_lnglat(self, s: float, t: float = 0.0) -> LngLat:
        """Position at (s, t); s is clamped to the corridor."""
        return self._lnglat(self.path.to_point(s, t).point)

    def point_at_chainage(self, s: float) -> GeoStation | None:
        if not (0.0 <= s <= self.length):
            return None
        frame = self.path.to_point(s)
        return GeoStation(lnglat=self._lnglat(frame.point), s=float(s), bearing=frame.bearing)

    def bearing_at_chainage(self, s: float) -> float:
        return bearing_from_tangent(self.path.to_point(s).tangent)

    def snap(self, lnglat: Sequence[float]) -> tuple[LngLat, float]:
        """Nearest centreline position and its chainage."""
        cp = self.path.to_chainage(self.projection.to_local([lnglat])[0])
        return self._lnglat(cp.point), cp.s

    def sample_points(self, interval: float = 10.0) -> list[GeoStation]:
        """Stations every `interval` metres; the end station is always included."""
        if self.path.is_degenerate or not (math.isfinite(interval) and interval > 0):
            return []
        stations = list(np.arange(0.0, self.length, interval))
        if not stations or stations[-1] != self.length:
            stations.append(self.length)
        out = []
        for s in stations:
            station = self.point_at_chainage(float(s))
            if station is not None:
                out.append(station)
        return out

    def section(self, start_s: float, end_s: float) -> np.ndarray | None:
        """lon/lat vertices between two chainages, or None for an empty range."""
        xy = self.path.slice(start_s, end_s)
        if xy is None:
            return None
        return self.projection.to_lnglat(xy)

    def _to_lnglat_polygon(self, poly: Polygon) -> Polygon:
        if poly.is_empty or poly.geom_type != "Polygon":
            return Polygon()
        ring = self.projection.to_lnglat(np.asarray(poly.exterior.coords))
        # y-down to north-up mirrors the winding
        return orient(Polygon(ring), sign=1.0)

    def carriageway_polygon(self, width: float, interval: float = 2.0) -> Polygon:
        return self._to_lnglat_polygon(carriageway_edges(self.path, width, interval).to_polygon())

    def cycle_lane_polygon(
        self,
        carriageway_width: float,
        lane: CycleLane,
        interval: float = 2.0,
    ) -> Polygon:
        edges = cycle_lane_edges(self.path, carriageway_width, lane, interval)
        return self._to_lnglat_polygon(edges.to_polygon())

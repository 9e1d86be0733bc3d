"""2:1 isometric projection of chainage and world coordinates.

Chainage axis s runs to the bottom-right of the screen, lateral axis t to the
bottom-left. One grid unit is `scale` metres and spans one tile.

The straight transform treats (s, t) as a flat grid. The curved variants go
through the real centreline: (s, t) to a world point, then world x and y take
the places of s and t. World coordinates are in the y-down engine frame, so a
road running along +x draws exactly as its straight transform.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol, TypedDict, TypeVar, Union

import numpy as np

from .centreline import Centreline
from .chainage import ChainageCoordinate, ChainagePoint, StationFrame, projector_for
from .geom_types import XY

TILE_WIDTH = 32  # pixels per grid unit
TILE_HEIGHT = 16
DEFAULT_SCALE = 5.0  # metres per grid unit

T = TypeVar("T")


class CorridorPath(Protocol):
    """Anything with the (s, t) contract: `ChainageProjector` or `PolylinePath`."""

    @property
    def length(self) -> float: ...

    def to_point(
        self, s: float, t: float = 0.0, *, extrapolate: bool = False
    ) -> StationFrame: ...

    def to_chainage(self, point: XY | np.ndarray) -> ChainagePoint: ...


PathLike = Union[Centreline, CorridorPath]


class ScreenBounds(TypedDict):
    left: float
    top: float
    right: float
    bottom: float


class ChainageRange(TypedDict):
    min_s: float
    max_s: float
    min_t: float
    max_t: float


@dataclass(frozen=True)
class IsometricConfig:
    scale: float = DEFAULT_SCALE
    tile_width: float = TILE_WIDTH
    tile_height: float = TILE_HEIGHT
    origin_x: float = 0.0
    origin_y: float = 0.0

    def __post_init__(self) -> None:
        if not (math.isfinite(self.scale) and self.scale > 0):
            raise ValueError(f"scale must be finite and > 0, got {self.scale!r}")
        if not self.tile_height > 0:
            raise ValueError("tile_height must be > 0")
        if self.tile_width != 2 * self.tile_height:
            raise ValueError(
                f"tiles must be 2:1, got {self.tile_width!r}x{self.tile_height!r}"
            )

    def at_origin(self, origin_x: float, origin_y: float) -> IsometricConfig:
        return IsometricConfig(
            self.scale, self.tile_width, self.tile_height, origin_x, origin_y
        )


def default_config(
    container_width: float,
    container_height: float,
    scale: float = DEFAULT_SCALE,
) -> IsometricConfig:
    """Origin centred horizontally and a quarter down, leaving room for the corridor."""
    return IsometricConfig(
        scale=scale,
        tile_width=TILE_WIDTH,
        tile_height=TILE_HEIGHT,
        origin_x=container_width / 2.0,
        origin_y=container_height / 4.0,
    )


def to_screen(s: float, t: float, config: IsometricConfig) -> XY:
    return world_to_screen(s, t, config)


def to_chainage(x: float, y: float, config: IsometricConfig) -> ChainageCoordinate:
    """Exact inverse of `to_screen`."""
    s, t = screen_to_world(x, y, config)
    return ChainageCoordinate(s=s, t=t)


def depth(s: float, t: float, scale: float) -> float:
    """Draw order key: larger is drawn later (in front)."""
    if not scale > 0:
        raise ValueError(f"scale must be > 0, got {scale!r}")
    return s / scale + t / scale


def snap_to_grid(s: float, t: float, grid_size: float) -> ChainageCoordinate:
    if not grid_size > 0:
        return ChainageCoordinate(s, t)
    return ChainageCoordinate(
        s=round(s / grid_size) * grid_size,
        t=round(t / grid_size) * grid_size,
    )


def screen_bounds(
    start_s: float,
    end_s: float,
    min_t: float,
    max_t: float,
    config: IsometricConfig,
) -> ScreenBounds:
    corners = [
        to_screen(start_s, min_t, config),
        to_screen(start_s, max_t, config),
        to_screen(end_s, min_t, config),
        to_screen(end_s, max_t, config),
    ]
    xs = [c[0] for c in corners]
    ys = [c[1] for c in corners]
    return ScreenBounds(left=min(xs), top=min(ys), right=max(xs), bottom=max(ys))


def visible_chainage_range(
    viewport_width: float,
    viewport_height: float,
    camera_x: float,
    camera_y: float,
    zoom: float,
    config: IsometricConfig,
) -> ChainageRange:
    """Chainage box covering a viewport centred on the camera (screen units)."""
    if not zoom > 0:
        raise ValueError(f"zoom must be > 0, got {zoom!r}")
    half_w = viewport_width / zoom / 2.0
    half_h = viewport_height / zoom / 2.0
    cfg = config.at_origin(0.0, 0.0)
    corners = [
        to_chainage(camera_x + sx * half_w, camera_y + sy * half_h, cfg)
        for sx in (-1.0, 1.0)
        for sy in (-1.0, 1.0)
    ]
    return ChainageRange(
        min_s=min(c.s for c in corners),
        max_s=max(c.s for c in corners),
        min_t=min(c.t for c in corners),
        max_t=max(c.t for c in corners),
    )


def sort_by_depth(
    items: Iterable[T],
    config: IsometricConfig,
    key: Callable[[T], ChainageCoordinate],
) -> list[T]:
    """Back-to-front order; ties keep their input order."""
    return sorted(items, key=lambda item: depth(key(item).s, key(item).t, config.scale))


# ----------------------------------------------------------------------
# World coordinates and curved corridors
# ----------------------------------------------------------------------


def world_to_screen(x: float, y: float, config: IsometricConfig) -> XY:
    gx = x / config.scale
    gy = y / config.scale
    sx = (gx - gy) * (config.tile_width / 2.0)
    sy = (gx + gy) * (config.tile_height / 2.0)
    return (config.origin_x + sx, config.origin_y + sy)


def screen_to_world(x: float, y: float, config: IsometricConfig) -> XY:
    """Exact inverse of `world_to_screen`."""
    dx = (x - config.origin_x) / (config.tile_width / 2.0)
    dy = (y - config.origin_y) / (config.tile_height / 2.0)
    return ((dx + dy) / 2.0 * config.scale, (dy - dx) / 2.0 * config.scale)


def world_depth(x: float, y: float, scale: float) -> float:
    if not scale > 0:
        raise ValueError(f"scale must be > 0, got {scale!r}")
    return (x + y) / scale


def _as_path(path: PathLike) -> CorridorPath:
    if isinstance(path, Centreline):
        return projector_for(path)
    return path


def to_screen_curved(s: float, t: float, path: PathLike, config: IsometricConfig) -> XY:
    """Screen position of (s, t) on a curved corridor; s is clamped to the road."""
    x, y = _as_path(path).to_point(s, t).point
    return world_to_screen(x, y, config)


def to_chainage_curved(
    x: float,
    y: float,
    path: PathLike,
    config: IsometricConfig,
) -> ChainageCoordinate:
    return _as_path(path).to_chainage(screen_to_world(x, y, config)).coordinate


def depth_curved(s: float, t: float, path: PathLike, scale: float) -> float:
    x, y = _as_path(path).to_point(s, t).point
    return world_depth(x, y, scale)


def screen_bounds_curved(
    path: PathLike,
    half_width: float,
    config: IsometricConfig,
    interval: float | None = None,
) -> ScreenBounds:
    """
    Screen box of a corridor `2 * half_width` wide, from both edges sampled
    every `interval` metres (default: 50 samples, at least 1 m apart).
    """
    p = _as_path(path)
    total = p.length
    if interval is None:
        interval = max(1.0, total / 50.0)
    if not interval > 0:
        raise ValueError(f"interval must be > 0, got {interval!r}")
    stations = np.append(np.arange(0.0, total, interval), total)
    pts = [
        world_to_screen(*p.to_point(float(s), t).point, config)
        for s in stations
        for t in (-half_width, half_width)
    ]
    xs = [q[0] for q in pts]
    ys = [q[1] for q in pts]
    return ScreenBounds(left=min(xs), top=min(ys), right=max(xs), bottom=max(ys))

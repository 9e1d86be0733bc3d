"""Design document: corridor centreline plus placed elements, stored as JSON.

Values are written as-is (no resampling), so save/load round-trips exactly.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal, TypedDict, Union

from .centreline import Centreline
from .chainage import ChainageProjector, projector_for
from .corridor import CycleLane
from .geo import GeoCentreline
from .geom_types import XY
from .utils import debug

FORMAT_VERSION = 1

Mode = Literal["canvas", "map"]


class ChainagePositionDict(TypedDict):
    kind: Literal["chainage"]
    s: float
    t: float


class AbsolutePositionDict(TypedDict):
    kind: Literal["absolute"]
    x: float
    y: float


class ElementDict(TypedDict):
    id: str
    product_id: str
    rotation: float
    position: ChainagePositionDict | AbsolutePositionDict


class CycleLaneDict(TypedDict):
    width: float
    side: Literal["nearside", "offside"]
    buffer_width: float


class DocumentDict(TypedDict):
    version: int
    mode: Mode
    centreline: dict[str, Any]
    carriageway_width: float
    cycle_lane: CycleLaneDict | None
    elements: list[ElementDict]


@dataclass(frozen=True)
class ChainagePosition:
    s: float
    t: float

    def to_dict(self) -> ChainagePositionDict:
        return {"kind": "chainage", "s": self.s, "t": self.t}


@dataclass(frozen=True)
class AbsolutePosition:
    x: float
    y: float

    def to_dict(self) -> AbsolutePositionDict:
        return {"kind": "absolute", "x": self.x, "y": self.y}


Position = Union[ChainagePosition, AbsolutePosition]


@dataclass(frozen=True)
class PlacedElement:
    id: str
    product_id: str
    position: Position
    rotation: float = 0.0
    """Degrees, relative to the corridor bearing for chainage positions."""

    def to_dict(self) -> ElementDict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "rotation": self.rotation,
            "position": self.position.to_dict(),
        }


def _num(raw: Any, name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"{name} must be a number, got {raw!r}")
    value = float(raw)
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite")
    return value


def _field(data: dict[str, Any], key: str, where: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"{where} must be an object")
    if key not in data:
        raise ValueError(f"{where} is missing '{key}'")
    return data[key]


def position_from_dict(data: dict[str, Any]) -> Position:
    kind = _field(data, "kind", "position")
    if kind == "chainage":
        return ChainagePosition(
            s=_num(_field(data, "s", "position"), "position.s"),
            t=_num(_field(data, "t", "position"), "position.t"),
        )
    if kind == "absolute":
        return AbsolutePosition(
            x=_num(_field(data, "x", "position"), "position.x"),
            y=_num(_field(data, "y", "position"), "position.y"),
        )
    raise ValueError(f"unknown position kind {kind!r}")


def element_from_dict(data: dict[str, Any]) -> PlacedElement:
    element_id = _field(data, "id", "element")
    product_id = _field(data, "product_id", "element")
    if not isinstance(element_id, str) or not isinstance(product_id, str):
        raise ValueError("element id and product_id must be strings")
    return PlacedElement(
        id=element_id,
        product_id=product_id,
        position=position_from_dict(_field(data, "position", "element")),
        rotation=_num(data.get("rotation", 0.0), "element.rotation"),
    )


def _centreline_from_dict(mode: Mode, data: dict[str, Any]) -> Centreline | GeoCentreline:
    if mode == "canvas":
        raw = _field(data, "segments", "centreline")
        if not isinstance(raw, list):
            raise ValueError("centreline.segments must be a list")
        anchor = data.get("anchor")
        return Centreline.from_segments(
            raw,
            revision=int(data.get("revision", 0)),
            anchor=None if anchor is None else (_num(anchor[0], "anchor"), _num(anchor[1], "anchor")),
        )
    raw = _field(data, "coordinates", "centreline")
    if not isinstance(raw, list) or not raw:
        raise ValueError("centreline.coordinates must be a non-empty list")
    return GeoCentreline(raw)


def _centreline_to_dict(centreline: Centreline | GeoCentreline) -> dict[str, Any]:
    if isinstance(centreline, GeoCentreline):
        return {"coordinates": centreline.coordinates.tolist()}
    out: dict[str, Any] = {
        "segments": [[list(seg.p0), list(seg.c1), list(seg.c2), list(seg.p3)] for seg in centreline],
        "revision": centreline.revision,
    }
    if centreline.anchor is not None:
        out["anchor"] = list(centreline.anchor)
    return out


@dataclass(frozen=True)
class DesignDocument:
    mode: Mode
    centreline: Centreline | GeoCentreline
    carriageway_width: float = 6.5
    cycle_lane: CycleLane | None = None
    elements: tuple[PlacedElement, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.mode not in ("canvas", "map"):
            raise ValueError(f"mode must be 'canvas' or 'map', got {self.mode!r}")
        expected = GeoCentreline if self.mode == "map" else Centreline
        if not isinstance(self.centreline, expected):
            raise ValueError(f"{self.mode} documents need a {expected.__name__}")
        object.__setattr__(self, "elements", tuple(self.elements))

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> DocumentDict:
        lane: CycleLaneDict | None = None
        if self.cycle_lane is not None:
            lane = {
                "width": self.cycle_lane.width,
                "side": self.cycle_lane.side,
                "buffer_width": self.cycle_lane.buffer_width,
            }
        return {
            "version": FORMAT_VERSION,
            "mode": self.mode,
            "centreline": _centreline_to_dict(self.centreline),
            "carriageway_width": self.carriageway_width,
            "cycle_lane": lane,
            "elements": [e.to_dict() for e in self.elements],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DesignDocument:
        version = _field(data, "version", "document")
        if version != FORMAT_VERSION:
            raise ValueError(f"unsupported document version {version!r}")
        mode = _field(data, "mode", "document")
        if mode not in ("canvas", "map"):
            raise ValueError(f"mode must be 'canvas' or 'map', got {mode!r}")
        lane_raw = data.get("cycle_lane")
        lane = None
        if lane_raw is not None:
            lane = CycleLane(
                width=_num(_field(lane_raw, "width", "cycle_lane"), "cycle_lane.width"),
                side=lane_raw.get("side", "nearside"),
                buffer_width=_num(lane_raw.get("buffer_width", 0.0), "cycle_lane.buffer_width"),
            )
        elements = _field(data, "elements", "document")
        if not isinstance(elements, list):
            raise ValueError("elements must be a list")
        return cls(
            mode=mode,
            centreline=_centreline_from_dict(mode, _field(data, "centreline", "document")),
            carriageway_width=_num(
                _field(data, "carriageway_width", "document"), "carriageway_width"
            ),
            cycle_lane=lane,
            elements=tuple(element_from_dict(e) for e in elements),
        )

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)

    @classmethod
    def loads(cls, text: str) -> DesignDocument:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"document is not valid JSON: {e}") from e
        return cls.from_dict(data)

    def save(self, path: str | Path) -> Path:
        out = Path(path)
        out.write_text(self.dumps(), encoding="utf-8")
        debug.log(f"document: wrote {out} ({len(self.elements)} elements)")
        return out

    @classmethod
    def load(cls, path: str | Path) -> DesignDocument:
        return cls.loads(Path(path).read_text(encoding="utf-8"))

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def with_element(self, element: PlacedElement) -> DesignDocument:
        if any(e.id == element.id for e in self.elements):
            raise ValueError(f"duplicate element id {element.id!r}")
        return replace(self, elements=(*self.elements, element))

    def replace_position(self, element_id: str, position: Position) -> DesignDocument:
        found = False
        out = []
        for e in self.elements:
            if e.id == element_id:
                e = replace(e, position=position)
                found = True
            out.append(e)
        if not found:
            raise KeyError(element_id)
        return replace(self, elements=tuple(out))

    def resolve_position(
        self,
        element: PlacedElement,
        projector: ChainageProjector | None = None,
    ) -> XY:
        """Absolute position of an element: canvas metres, or lon/lat in map mode.

        `projector` overrides the shared cached one for canvas documents.
        """
        pos = element.position
        if isinstance(pos, AbsolutePosition):
            return (pos.x, pos.y)
        if isinstance(self.centreline, GeoCentreline):
            return self.centreline.chainage_to_lnglat(pos.s, pos.t)
        if projector is None:
            projector = projector_for(self.centreline)
        return projector.to_point(pos.s, pos.t).point

    def place_at(
        self,
        product_id: str,
        point: XY,
        element_id: str,
        *,
        rotation: float = 0.0,
        road_relative: bool = True,
    ) -> DesignDocument:
        """Place an element at an absolute point, storing chainage when road-relative."""
        position: Position
        if not road_relative:
            position = AbsolutePosition(float(point[0]), float(point[1]))
        elif isinstance(self.centreline, GeoCentreline):
            gc = self.centreline.lnglat_to_chainage(point)
            position = ChainagePosition(gc.s, gc.t)
        else:
            cp = projector_for(self.centreline).to_chainage(point)
            position = ChainagePosition(cp.s, cp.t)
        return self.with_element(
            PlacedElement(element_id, product_id, position, rotation=rotation)
        )

from . import (
    bezier,
    centreline,
    chainage,
    corridor,
    document,
    export_svg,
    geo,
    geometry,
    isometric,
    polyline,
    svg_io,
)

__all__ = [
    "bezier",
    "centreline",
    "chainage",
    "corridor",
    "document",
    "export_svg",
    "geo",
    "geometry",
    "isometric",
    "polyline",
    "svg_io",
]

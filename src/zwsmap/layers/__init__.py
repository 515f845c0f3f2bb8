"""Geometry model and response parsers.

Parsing itself is stdlib XML, JSON and regex work (xml.etree.ElementTree,
json, re); diagnostics go through loguru.
"""

from zwsmap.layers.geometry import (
    BBox,
    Feature,
    FeatureCollection,
    Field,
    LineString,
    Point,
    Polygon,
    TileCoordinate,
    attributes_from_fields,
)

__all__ = [
    "BBox",
    "Feature",
    "FeatureCollection",
    "Field",
    "LineString",
    "Point",
    "Polygon",
    "TileCoordinate",
    "attributes_from_fields",
]

"""Normalized geometry and attribute model all parsers converge to.

Coordinates are (x, y) pairs in the source CRS; nothing is reprojected.
For EPSG:4326 sources that means (lng, lat), which is also GeoJSON order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Union

Coord = tuple[float, float]


@dataclass(frozen=True)
class BBox:
    """Axis-aligned bounding box: minX, minY, maxX, maxY."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def around(cls, x: float, y: float, delta: float) -> BBox:
        """Square box of half-size ``delta`` centred on (x, y)."""
        return cls(x - delta, y - delta, x + delta, y + delta)

    @classmethod
    def of_coords(cls, coords: Iterable[Coord]) -> BBox | None:
        xs: list[float] = []
        ys: list[float] = []
        for x, y in coords:
            xs.append(x)
            ys.append(y)
        if not xs:
            return None
        return cls(min(xs), min(ys), max(xs), max(ys))

    def union(self, other: BBox) -> BBox:
        return BBox(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def to_param(self) -> str:
        """Render as the ``minx,miny,maxx,maxy`` request parameter."""
        return f"{self.min_x},{self.min_y},{self.max_x},{self.max_y}"


@dataclass(frozen=True)
class Point:
    coord: Coord

    geometry_type = "Point"

    def coords(self) -> list[Coord]:
        return [self.coord]

    def to_geojson(self) -> dict:
        return {"type": "Point", "coordinates": list(self.coord)}


@dataclass(frozen=True)
class LineString:
    points: tuple[Coord, ...]

    geometry_type = "LineString"

    def coords(self) -> list[Coord]:
        return list(self.points)

    def to_geojson(self) -> dict:
        return {
            "type": "LineString",
            "coordinates": [list(c) for c in self.points],
        }


@dataclass(frozen=True)
class Polygon:
    """Polygon as a list of rings, first ring exterior.

    Rings are not required to be closed; closing is a rendering concern.
    """

    rings: tuple[tuple[Coord, ...], ...]

    geometry_type = "Polygon"

    def coords(self) -> list[Coord]:
        return [c for ring in self.rings for c in ring]

    def to_geojson(self) -> dict:
        return {
            "type": "Polygon",
            "coordinates": [[list(c) for c in ring] for ring in self.rings],
        }


Geometry = Union[Point, LineString, Polygon]


@dataclass(frozen=True)
class Feature:
    """Attributes plus an optional geometry.

    Attributes:
        attributes: Field name -> string value, read-only. Keys are
            unique; on duplicate names the last value wins.
        geometry: Extracted geometry, or None when the source carried none
            we could read. Such features are kept but cannot be drawn.
    """

    attributes: Mapping[str, str] = field(default_factory=dict)
    geometry: Geometry | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def bounds(self) -> BBox | None:
        if self.geometry is None:
            return None
        return BBox.of_coords(self.geometry.coords())


@dataclass(frozen=True)
class FeatureCollection:
    """Features in source-document order; the first one is "the result"."""

    features: tuple[Feature, ...] = ()

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __getitem__(self, index: int) -> Feature:
        return self.features[index]

    def first(self) -> Feature | None:
        return self.features[0] if self.features else None

    def bounds(self) -> BBox | None:
        """Union bounds of every feature that has a geometry."""
        result: BBox | None = None
        for feature in self.features:
            b = feature.bounds()
            if b is None:
                continue
            result = b if result is None else result.union(b)
        return result


@dataclass(frozen=True)
class TileCoordinate:
    x: int
    y: int
    z: int


@dataclass(frozen=True)
class Field:
    """One attribute record from a ZWS point query."""

    user_name: str
    value: str


def attributes_from_fields(fields: Iterable[Field]) -> dict[str, str]:
    """Fold point-query fields into the same mapping form GML features use."""
    attrs: dict[str, str] = {}
    for f in fields:
        attrs[f.user_name] = f.value
    return attrs

"""Parse WFS GetFeature responses (GML 2/3, WFS 1.x/2.0) into a FeatureCollection.

WFS servers differ in which GML profile they emit and how they prefix
namespaces, so every lookup here matches on the local (namespace-stripped)
tag name and falls back through several member-wrapper conventions:

    featureMember -> member -> featureMembers/* -> root children

Geometry is searched as Point, LineString, Polygon; then a bare posList;
then every nested geometry/coordinate element in document order. Only the
exterior ring of a polygon is read. Interior rings (holes) are skipped.

A malformed geometry never aborts the parse: that feature gets
``geometry=None``. Only XML that is not well-formed raises XmlParseError.
"""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET

from loguru import logger

from zwsmap.errors import XmlParseError
from zwsmap.layers.geometry import (
    Coord,
    Feature,
    FeatureCollection,
    Geometry,
    LineString,
    Point,
    Polygon,
)

ParseError = XmlParseError

_MEMBER_TAGS = ("featureMember", "member")

# Root children that are envelope, never features
_ENVELOPE_TAGS = {"boundedby", "featurecollection"}

# Children of a member that are wrappers, not the feature itself
_WRAPPER_TAGS = {"boundedby", "the_geom", "geometry", "envelope"}

# Children of a feature that never become attributes
_NON_ATTRIBUTE_TAGS = {
    "point",
    "linestring",
    "polygon",
    "pos",
    "poslist",
    "the_geom",
    "geometry",
    "coordinates",
    "linearring",
    "boundedby",
    "envelope",
}

_GEOMETRY_MARKUP = {"poslist", "pos", "point", "linestring", "polygon"}

_DFS_TAGS = {"point", "linestring", "polygon", "poslist", "pos", "coordinates"}


def parse_gml(xml: bytes | str) -> FeatureCollection:
    """Parse a GetFeature document into features, keeping document order.

    Args:
        xml: Raw response body.

    Returns:
        One Feature per feature node, including features whose
        geometry could not be read.

    Raises:
        XmlParseError: If the document is not well-formed XML.
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        raise XmlParseError(f"GML parse error: {e}") from e

    features = [_parse_feature(f) for f in _find_features(root)]
    dropped = sum(1 for f in features if f.geometry is None)
    if dropped:
        logger.debug(f"GML: {dropped}/{len(features)} features without geometry")
    return FeatureCollection(tuple(features))


def local_name(elem: ET.Element) -> str:
    """Tag name with any ``{namespace}`` prefix removed."""
    tag = elem.tag
    if not isinstance(tag, str):
        # Comments and processing instructions
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def _iter_named(elem: ET.Element, name: str):
    """Yield ``elem`` and its descendants whose local name is ``name``."""
    for e in elem.iter():
        if local_name(e) == name:
            yield e


def _first(elem: ET.Element | None, name: str) -> ET.Element | None:
    if elem is None:
        return None
    return next(_iter_named(elem, name), None)


def _children(elem: ET.Element) -> list[ET.Element]:
    return [c for c in elem if isinstance(c.tag, str)]


def _text(elem: ET.Element) -> str:
    return "".join(elem.itertext())


def _find_features(root: ET.Element) -> list[ET.Element]:
    """Feature elements in document order.

    featureMember/member wrap a single feature; under featureMembers and in
    the root fallback the children are the features themselves.
    """
    for name in _MEMBER_TAGS:
        members = list(_iter_named(root, name))
        if members:
            return [_feature_element(m) for m in members]

    wrapper = _first(root, "featureMembers")
    if wrapper is not None and _children(wrapper):
        return _children(wrapper)

    return [
        c for c in _children(root)
        if local_name(c).lower() not in _ENVELOPE_TAGS
    ]


def _feature_element(member: ET.Element) -> ET.Element:
    children = _children(member)
    for c in children:
        if local_name(c).lower() not in _WRAPPER_TAGS:
            return c
    if children:
        return children[0]
    return member


def _parse_feature(feature_el: ET.Element) -> Feature:
    attributes = _extract_attributes(feature_el)

    geometry = _extract_geometry(feature_el)
    if geometry is None:
        for candidate in feature_el.iter():
            if candidate is feature_el:
                continue
            if local_name(candidate).lower() not in _DFS_TAGS:
                continue
            geometry = _extract_geometry(candidate)
            if geometry is not None:
                break

    return Feature(attributes=attributes, geometry=geometry)


def _has_geometry_markup(elem: ET.Element) -> bool:
    for e in elem.iter():
        if e is not elem and local_name(e).lower() in _GEOMETRY_MARKUP:
            return True
    return False


def _extract_attributes(feature_el: ET.Element) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for child in _children(feature_el):
        key = local_name(child)
        if key.lower() in _NON_ATTRIBUTE_TAGS or _has_geometry_markup(child):
            continue
        attrs[key] = _text(child).strip()
    return attrs


# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------


def _numbers(tokens) -> list[float]:
    out = []
    for tok in tokens:
        try:
            n = float(tok)
        except ValueError:
            continue
        if math.isfinite(n):
            out.append(n)
    return out


def parse_pos_list(text: str) -> list[Coord]:
    """Group a whitespace-separated number list into (x, y) pairs.

    Non-numeric tokens are dropped; an odd trailing number is dropped.
    """
    nums = _numbers(text.split())
    return [(nums[i], nums[i + 1]) for i in range(0, len(nums) - 1, 2)]


def parse_pos(text: str) -> Coord | None:
    nums = _numbers(text.split())
    if len(nums) < 2:
        return None
    return (nums[0], nums[1])


def parse_coordinates(text: str) -> list[Coord]:
    """Parse GML 2 ``x,y x,y ...`` tuples. Extra ordinates are ignored."""
    coords = []
    for tup in text.split():
        nums = _numbers(tup.split(","))
        if len(nums) >= 2:
            coords.append((nums[0], nums[1]))
    return coords


def _coords_of(elem: ET.Element | None) -> list[Coord]:
    """Coordinates from a posList under ``elem``, else from a coordinates element."""
    if elem is None:
        return []
    pos_list = _first(elem, "posList")
    if pos_list is not None and _text(pos_list).strip():
        return parse_pos_list(_text(pos_list))
    coordinates = _first(elem, "coordinates")
    if coordinates is not None:
        return parse_coordinates(_text(coordinates))
    return []


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


def _extract_geometry(elem: ET.Element) -> Geometry | None:
    point_el = _first(elem, "Point")
    if point_el is not None:
        point = _parse_point(point_el)
        if point is not None:
            return point

    line_el = _first(elem, "LineString")
    if line_el is not None:
        coords = _coords_of(line_el)
        if len(coords) >= 2:
            return LineString(tuple(coords))

    poly_el = _first(elem, "Polygon")
    if poly_el is not None:
        polygon = _parse_polygon(poly_el)
        if polygon is not None:
            return polygon

    # Minimal fragments: a bare posList with no geometry wrapper
    pos_list = _first(elem, "posList")
    if pos_list is not None and _text(pos_list).strip():
        coords = parse_pos_list(_text(pos_list))
        if len(coords) == 1:
            return Point(coords[0])
        if len(coords) >= 2:
            return LineString(tuple(coords))

    return None


def _parse_point(point_el: ET.Element) -> Point | None:
    pos = _first(point_el, "pos")
    if pos is not None and _text(pos).strip():
        coord = parse_pos(_text(pos))
        return Point(coord) if coord else None
    coordinates = _first(point_el, "coordinates")
    if coordinates is not None:
        coords = parse_coordinates(_text(coordinates))
        if coords:
            return Point(coords[0])
    return None


def _parse_polygon(poly_el: ET.Element) -> Polygon | None:
    exterior = _first(poly_el, "exterior")
    if exterior is None:
        # GML 2
        exterior = _first(poly_el, "outerBoundaryIs")

    if exterior is not None:
        ring = _coords_of(_first(exterior, "LinearRing"))
    else:
        pos_list = _first(poly_el, "posList")
        ring = parse_pos_list(_text(pos_list)) if pos_list is not None else []

    if len(ring) < 2:
        return None
    return Polygon((tuple(ring),))

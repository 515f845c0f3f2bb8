"""Coordinate strings embedded in attribute values.

Some ZWS layers expose an object's outline as a plain field value rather
than as geometry. Three encodings show up in practice:

  - JSON array of pairs:      [[69.1, 42.3], [69.2, 42.3], ...]
  - flat comma list (>= 3 pairs): 69.1,42.3,69.2,42.3,69.2,42.4
  - WKT polygon:              POLYGON((69.1 42.3, 69.2 42.3, ...))

All pairs are (lng, lat).
"""

from __future__ import annotations

import json
import math
import re
from typing import Iterable

from loguru import logger

from zwsmap.layers.geometry import Coord, Field

_COORD_KEYWORDS = (
    "coord", "coordinate", "coordinates",
    "geometry", "geom",
    "shape", "polygon", "polyline",
    "bounds", "boundary",
    "wkt", "geojson",
)

_WKT_POLYGON = re.compile(r"POLYGON\s*\(\s*\(\s*([^)]+)\s*\)\s*\)", re.IGNORECASE)


def parse_coordinates(value: str) -> list[Coord] | None:
    """Parse a coordinate list from any of the supported encodings.

    Returns:
        List of (lng, lat) pairs, or None if ``value`` holds none.
    """
    if "[" in value and "]" in value:
        try:
            parsed = json.loads(value)
        except ValueError as e:
            logger.debug(f"Coordinate JSON rejected: {e}")
            parsed = None
        if isinstance(parsed, list) and parsed:
            pairs = [_pair(c) for c in parsed if isinstance(c, list) and len(c) >= 2]
            coords = [c for c in pairs if c is not None]
            if coords:
                return coords

    if "," in value and not _WKT_POLYGON.search(value):
        parts = [p.strip() for p in value.split(",")]
        nums = [_float(p) for p in parts]
        if len(nums) >= 6 and len(nums) % 2 == 0 and None not in nums:
            return [(nums[i], nums[i + 1]) for i in range(0, len(nums), 2)]

    match = _WKT_POLYGON.search(value)
    if match:
        coords = []
        for chunk in match.group(1).split(","):
            parts = chunk.split()
            if len(parts) >= 2:
                c = _pair(parts[:2])
                if c is not None:
                    coords.append(c)
        return coords or None

    return None


def find_coordinates_field(fields: Iterable[Field]) -> str | None:
    """Return the value of the first field whose name suggests coordinates."""
    for f in fields:
        name = f.user_name.lower()
        if any(k in name for k in _COORD_KEYWORDS):
            return f.value
    return None


def is_valid_polygon(coords: list[Coord]) -> bool:
    return len(coords) >= 3 and all(
        math.isfinite(x) and math.isfinite(y) for x, y in coords
    )


def _float(text) -> float | None:
    try:
        return float(text)
    except (TypeError, ValueError):
        return None


def _pair(values) -> Coord | None:
    x, y = _float(values[0]), _float(values[1])
    if x is None or y is None:
        return None
    return (x, y)

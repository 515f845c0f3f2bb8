"""ZWS/WFS map layer engine.

Talks to a ZuluGIS ZWS server (tiles and point queries) and to WFS/GML
services, normalizes their responses into one geometry/attribute model and
keeps a map-bound feature layer in step with the viewport.
"""

import sys

from loguru import logger

from zwsmap.errors import (
    RequestCancelled,
    TileDecodeError,
    TileFetchError,
    TransportError,
    XmlParseError,
    ZwsMapError,
)


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a stderr sink at ``level``."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


__all__ = [
    "configure_logging",
    "RequestCancelled",
    "TileDecodeError",
    "TileFetchError",
    "TransportError",
    "XmlParseError",
    "ZwsMapError",
]

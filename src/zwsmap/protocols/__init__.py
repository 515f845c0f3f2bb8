"""Protocol clients: ZWS tiles and point query, WFS GetFeature, WMS pass-through."""

from zwsmap.protocols.point_query import ZwsPointQueryClient, scale_for_zoom
from zwsmap.protocols.tiles import TileImage, ZwsTileClient, ZwsTileLayer
from zwsmap.protocols.transport import CancelToken, Credentials, Transport
from zwsmap.protocols.wfs import WfsClient

__all__ = [
    "CancelToken",
    "Credentials",
    "TileImage",
    "Transport",
    "WfsClient",
    "ZwsPointQueryClient",
    "ZwsTileClient",
    "ZwsTileLayer",
    "scale_for_zoom",
]

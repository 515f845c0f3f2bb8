"""WFS 1.1.0 GetFeature client returning parsed GML features."""

from __future__ import annotations

from loguru import logger

from zwsmap.errors import TransportError
from zwsmap.layers.geometry import BBox, FeatureCollection
from zwsmap.layers.parsers.gml import parse_gml
from zwsmap.protocols.transport import CancelToken, Transport


class WfsClient:
    """GetFeature requests for one feature type."""

    def __init__(self, transport: Transport, url: str, type_name: str) -> None:
        self.transport = transport
        self.url = url
        self.type_name = type_name

    def build_url(self, bbox: BBox | None = None) -> str:
        bbox_param = f"&bbox={bbox.to_param()},EPSG:4326" if bbox else ""
        return (
            f"{self.url}?service=WFS&version=1.1.0&request=GetFeature"
            f"&typeName={self.type_name}{bbox_param}"
        )

    async def get_features(
        self,
        bbox: BBox | None = None,
        signal: CancelToken | None = None,
    ) -> FeatureCollection:
        """Fetch and parse features, optionally limited to ``bbox`` (lng/lat).

        Raises:
            TransportError: Network failure or non-success status.
            XmlParseError: Response is not well-formed XML.
            RequestCancelled: ``signal`` fired.
        """
        resp = await self.transport.fetch(self.build_url(bbox), signal=signal)
        if not resp.is_success:
            raise TransportError(f"WFS failed {resp.status_code}", status=resp.status_code)
        collection = parse_gml(resp.content)
        logger.debug(f"WFS {self.type_name}: {len(collection)} features")
        return collection

"""ZWS point query (SelectElemByXY): attributes of the object under a map point."""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET

from loguru import logger

from zwsmap.errors import TransportError, XmlParseError
from zwsmap.layers.geometry import Field
from zwsmap.layers.parsers.gml import local_name
from zwsmap.protocols.envelope import build_command, request_headers
from zwsmap.protocols.transport import CancelToken, Credentials, Transport

EARTH_RADIUS_M = 6378137.0
TILE_SIZE = 256


def scale_for_zoom(zoom: float) -> float:
    """Ground metres per pixel at ``zoom`` (Web Mercator tile resolution).

    The server uses it as its selection tolerance.
    """
    return (2 * math.pi * EARTH_RADIUS_M) / (TILE_SIZE * 2 ** zoom)


def build_select_request(layer_name: str, lat: float, lng: float, scale: float) -> str:
    # X carries latitude and Y longitude; the ZWS server expects this order.
    return build_command(
        "SelectElemByXY",
        [
            ("Layer", layer_name),
            ("X", lat),
            ("Y", lng),
            ("Scale", scale),
            ("CRS", "EPSG:4326"),
        ],
    )


def _text(elem: ET.Element) -> str:
    return "".join(elem.itertext())


def _find(elem: ET.Element, name: str) -> ET.Element | None:
    for e in elem.iter():
        if local_name(e) == name:
            return e
    return None


def parse_fields(xml: bytes | str) -> list[Field] | None:
    """Parse a SelectElemByXY response.

    Returns:
        Fields of the selected element (possibly empty), or None when the
        response holds no Element, i.e. there is no object at that point.

    Raises:
        XmlParseError: Malformed XML, or a ``parsererror`` document.
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        raise XmlParseError(f"XML parse error: {e}") from e

    if local_name(root).lower() == "parsererror":
        raise XmlParseError("XML parse error: " + "".join(root.itertext()).strip())

    element = _find(root, "Element")
    if element is None:
        return None

    fields = []
    for f in element.iter():
        if local_name(f) != "Field":
            continue
        name = _find(f, "UserName")
        value = _find(f, "Value")
        fields.append(
            Field(
                user_name=_text(name) if name is not None else "Unknown",
                value=_text(value) if value is not None else "",
            )
        )
    return fields


class ZwsPointQueryClient:
    def __init__(
        self,
        transport: Transport,
        endpoint: str,
        credentials: Credentials | None = None,
    ) -> None:
        self.transport = transport
        self.endpoint = endpoint
        self.credentials = credentials

    async def select_at(
        self,
        layer_name: str,
        lat: float,
        lng: float,
        scale: float,
        signal: CancelToken | None = None,
    ) -> list[Field] | None:
        """Query the object under (lat, lng).

        Raises:
            TransportError: Network failure or non-success status.
            XmlParseError: Unparseable response.
            RequestCancelled: ``signal`` fired.
        """
        resp = await self.transport.fetch(
            self.endpoint,
            method="POST",
            headers=request_headers(self.credentials),
            content=build_select_request(layer_name, lat, lng, scale),
            signal=signal,
        )
        if not resp.is_success:
            raise TransportError(
                f"ZWS responded: {resp.status_code} {resp.reason_phrase} {resp.text}".strip(),
                status=resp.status_code,
            )
        fields = parse_fields(resp.content)
        logger.debug(
            f"ZWS select {layer_name} @ {lat:.6f},{lng:.6f}: "
            f"{'no object' if fields is None else f'{len(fields)} fields'}"
        )
        return fields

"""Tests for ZWS tile fetching and handle lifecycle."""

import asyncio
import io
import xml.etree.ElementTree as ET

import httpx
import pytest
from PIL import Image

from zwsmap.errors import TileDecodeError, TileFetchError, TransportError
from zwsmap.layers.geometry import TileCoordinate
from zwsmap.protocols.tiles import (
    HandleRegistry,
    TileLayerOptions,
    ZwsTileClient,
    ZwsTileLayer,
    build_tile_request,
)
from zwsmap.protocols.transport import Credentials

ENDPOINT = "http://zws.test/zws"


def _png_bytes(size=(256, 256)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, (255, 120, 0, 128)).save(buf, format="PNG")
    return buf.getvalue()


def _fetch(mock_transport, handler, coord=TileCoordinate(x=5, y=7, z=3), registry=None):
    async def scenario():
        async with mock_transport(handler) as transport:
            client = ZwsTileClient(transport, ENDPOINT, Credentials("mo", "mo"), registry)
            return await client.fetch_tile("example:demo", coord)

    return asyncio.run(scenario())


@pytest.mark.unit
class TestTileRequest:
    def test_body_fields(self):
        root = ET.fromstring(build_tile_request("example:demo", TileCoordinate(x=5, y=7, z=3)))
        op = root.find("Command/GetLayerTile")
        assert {c.tag: c.text for c in op} == {
            "X": "5", "Y": "7", "Z": "3", "Layer": "example:demo",
        }

    def test_request_shape(self, mock_transport):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=_png_bytes())

        _fetch(mock_transport, handler)
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == ENDPOINT
        assert request.headers["content-type"] == "application/xml"
        assert request.headers["authorization"] == "Basic bW86bW8="
        assert b"<GetLayerTile>" in request.content


@pytest.mark.unit
class TestFetchTile:
    def test_decodes_png(self, mock_transport):
        registry = HandleRegistry()
        tile = _fetch(
            mock_transport,
            lambda r: httpx.Response(200, content=_png_bytes()),
            registry=registry,
        )
        assert tile.format == "PNG"
        assert tile.size == (256, 256)
        assert tile.handle in registry
        assert tile.handle.startswith("blob:example:demo/3/5/7#")

    def test_release_exactly_once(self, mock_transport):
        registry = HandleRegistry()
        tile = _fetch(
            mock_transport,
            lambda r: httpx.Response(200, content=_png_bytes()),
            registry=registry,
        )
        assert tile.release() is True
        assert len(registry) == 0
        assert tile.release() is False

    def test_context_manager_releases(self, mock_transport):
        registry = HandleRegistry()
        tile = _fetch(
            mock_transport,
            lambda r: httpx.Response(200, content=_png_bytes()),
            registry=registry,
        )
        with tile:
            assert len(registry) == 1
        assert tile.released
        assert len(registry) == 0

    def test_error_status(self, mock_transport):
        registry = HandleRegistry()
        with pytest.raises(TileFetchError, match="ZWS Tile failed: 500") as exc_info:
            _fetch(
                mock_transport,
                lambda r: httpx.Response(500, text="boom"),
                registry=registry,
            )
        assert exc_info.value.status == 500
        assert isinstance(exc_info.value, TransportError)
        assert len(registry) == 0

    def test_undecodable_bytes_release_handle(self, mock_transport):
        registry = HandleRegistry()
        with pytest.raises(TileDecodeError):
            _fetch(
                mock_transport,
                lambda r: httpx.Response(200, content=b"<html>not a tile</html>"),
                registry=registry,
            )
        assert len(registry) == 0


class _StubClient:
    """Tile client stand-in that records requests."""

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def fetch_tile(self, layer_name, coord, signal=None):
        self.calls.append((layer_name, coord))
        if self.error is not None:
            raise self.error
        return "tile"


@pytest.mark.unit
class TestZwsTileLayer:
    def test_alt_text(self):
        assert ZwsTileLayer.tile_alt(TileCoordinate(x=1, y=2, z=3)) == "tile 1:2:3"

    def test_options_defaults(self):
        opts = TileLayerOptions()
        assert (opts.max_zoom, opts.opacity, opts.pane) == (18, 1.0, "tilePane")

    def test_create_tile_uses_layer_name(self):
        client = _StubClient()
        layer = ZwsTileLayer(client, TileLayerOptions(layer_name="city:pipes"))
        result = asyncio.run(layer.create_tile(TileCoordinate(x=0, y=0, z=1)))
        assert result == "tile"
        assert client.calls == [("city:pipes", TileCoordinate(x=0, y=0, z=1))]

    def test_zoom_above_max_rejected(self):
        client = _StubClient()
        layer = ZwsTileLayer(client, TileLayerOptions(max_zoom=18))
        with pytest.raises(ValueError):
            asyncio.run(layer.create_tile(TileCoordinate(x=0, y=0, z=19)))
        assert client.calls == []

    def test_tile_failure_propagates_per_tile(self):
        layer = ZwsTileLayer(_StubClient(error=TileFetchError("ZWS Tile failed: 502", status=502)))
        with pytest.raises(TileFetchError):
            asyncio.run(layer.create_tile(TileCoordinate(x=0, y=0, z=1)))

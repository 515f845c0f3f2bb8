"""ZWS raster tiles over the GetLayerTile command.

The rendering side owns the tile grid and paint mechanics; this module only
turns a tile coordinate into a decoded image bound to a releasable handle.
Every handle must be released exactly once, after display or on error,
or handles pile up while panning churns through tiles.

No client-side tile cache: every visible tile goes to the network.
"""

from __future__ import annotations

import io
import itertools
from dataclasses import dataclass, field

from loguru import logger
from PIL import Image, UnidentifiedImageError

from zwsmap.errors import RequestCancelled, TileDecodeError, TileFetchError
from zwsmap.layers.geometry import TileCoordinate
from zwsmap.protocols.envelope import build_command, request_headers
from zwsmap.protocols.transport import CancelToken, Credentials, Transport


def build_tile_request(layer_name: str, coord: TileCoordinate) -> str:
    return build_command(
        "GetLayerTile",
        [("X", coord.x), ("Y", coord.y), ("Z", coord.z), ("Layer", layer_name)],
    )


class HandleRegistry:
    """Live blob handles, the equivalent of browser object URLs."""

    def __init__(self) -> None:
        self._live: dict[str, bytes] = {}
        self._ids = itertools.count(1)

    def create(self, data: bytes, scope: str) -> str:
        handle = f"blob:{scope}#{next(self._ids)}"
        self._live[handle] = data
        return handle

    def revoke(self, handle: str) -> bool:
        return self._live.pop(handle, None) is not None

    def __contains__(self, handle: str) -> bool:
        return handle in self._live

    def __len__(self) -> int:
        return len(self._live)


@dataclass
class TileImage:
    """Decoded tile image bound to a handle. Use as a context manager or call release()."""

    coord: TileCoordinate
    layer_name: str
    handle: str
    data: bytes
    format: str | None
    size: tuple[int, int]
    _registry: HandleRegistry = field(repr=False)
    released: bool = False

    def release(self) -> bool:
        """Release the handle. Returns False if it was already released."""
        if self.released:
            logger.debug(f"Tile handle released twice: {self.handle}")
            return False
        self.released = True
        return self._registry.revoke(self.handle)

    def __enter__(self) -> TileImage:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.released:
            self.release()


class ZwsTileClient:
    """Fetches single tiles from a ZWS endpoint."""

    def __init__(
        self,
        transport: Transport,
        endpoint: str,
        credentials: Credentials | None = None,
        registry: HandleRegistry | None = None,
    ) -> None:
        self.transport = transport
        self.endpoint = endpoint
        self.credentials = credentials
        self.registry = registry if registry is not None else HandleRegistry()

    async def fetch_tile(
        self,
        layer_name: str,
        coord: TileCoordinate,
        signal: CancelToken | None = None,
    ) -> TileImage:
        """Fetch and decode one tile.

        Raises:
            TileFetchError: Non-success HTTP status (``status`` is set).
            TileDecodeError: Response bytes are not a valid image.
            TransportError: Network failure.
            RequestCancelled: ``signal`` fired.
        """
        resp = await self.transport.fetch(
            self.endpoint,
            method="POST",
            headers=request_headers(self.credentials),
            content=build_tile_request(layer_name, coord),
            signal=signal,
        )
        if not resp.is_success:
            raise TileFetchError(
                f"ZWS Tile failed: {resp.status_code} {resp.reason_phrase}",
                status=resp.status_code,
            )

        data = resp.content
        handle = self.registry.create(
            data, scope=f"{layer_name}/{coord.z}/{coord.x}/{coord.y}"
        )
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                fmt, size = img.format, img.size
        except (UnidentifiedImageError, OSError, ValueError) as e:
            self.registry.revoke(handle)
            raise TileDecodeError(f"Tile image failed to load: {e}") from e

        return TileImage(
            coord=coord,
            layer_name=layer_name,
            handle=handle,
            data=data,
            format=fmt,
            size=size,
            _registry=self.registry,
        )


@dataclass
class TileLayerOptions:
    layer_name: str = "example:demo"
    max_zoom: int = 18
    opacity: float = 1.0
    pane: str = "tilePane"


class ZwsTileLayer:
    """Tile producer capability handed to the rendering collaborator.

    The renderer decides which coordinates are visible and calls
    ``create_tile`` for each; failures are reported per tile and never
    disable the layer.
    """

    def __init__(self, client: ZwsTileClient, options: TileLayerOptions | None = None) -> None:
        self.client = client
        self.options = options or TileLayerOptions()

    @staticmethod
    def tile_alt(coord: TileCoordinate) -> str:
        return f"tile {coord.x}:{coord.y}:{coord.z}"

    async def create_tile(
        self, coord: TileCoordinate, signal: CancelToken | None = None
    ) -> TileImage:
        if coord.z > self.options.max_zoom:
            raise ValueError(f"Zoom {coord.z} above layer max zoom {self.options.max_zoom}")
        try:
            return await self.client.fetch_tile(self.options.layer_name, coord, signal)
        except RequestCancelled:
            logger.debug(f"Tile request cancelled: {self.tile_alt(coord)}")
            raise
        except (TileFetchError, TileDecodeError) as e:
            logger.error(f"ZWS Tile Error ({self.tile_alt(coord)}): {e}")
            raise

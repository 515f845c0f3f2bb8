"""MapSession: wires every zwsmap component to one MapSurface.

Owns the transport, the ZWS tile layer, the optional WMS overlay options,
the optional WFS layer synchronizer and the click controller, and releases
all of them (subscriptions, timers, in-flight requests, HTTP client) on
close().
"""

from __future__ import annotations

import asyncio

from loguru import logger

from zwsmap.config import Settings, settings
from zwsmap.protocols.point_query import ZwsPointQueryClient
from zwsmap.protocols.tiles import TileLayerOptions, ZwsTileClient, ZwsTileLayer
from zwsmap.protocols.transport import Transport
from zwsmap.protocols.wfs import WfsClient
from zwsmap.protocols.wms import wms_layer_options
from zwsmap.surface import MapSurface
from zwsmap.sync.click import ClickResolutionController
from zwsmap.sync.synchronizer import ViewportLayerSynchronizer

ZWS_OVERLAY = "zws"
WMS_OVERLAY = "wms"


class MapSession:
    """All layers and controllers for one map view."""

    def __init__(
        self,
        surface: MapSurface,
        config: Settings | None = None,
        transport: Transport | None = None,
    ) -> None:
        self.surface = surface
        self.config = config or settings
        self._owns_transport = transport is None
        self.transport = transport or Transport(timeout=self.config.request_timeout)

        credentials = self.config.zws_credentials()
        self.tile_layer = ZwsTileLayer(
            ZwsTileClient(self.transport, self.config.zws_endpoint, credentials),
            TileLayerOptions(
                layer_name=self.config.zws_layer_name,
                max_zoom=self.config.tile_max_zoom,
            ),
        )

        self.wms_options: dict | None = None
        if self.config.wms_url and self.config.wms_layer_name:
            self.wms_options = wms_layer_options(self.config.wms_layer_name)

        self.wfs: WfsClient | None = None
        self.synchronizer: ViewportLayerSynchronizer | None = None
        if self.config.wfs_enabled:
            self.wfs = WfsClient(
                self.transport, self.config.wfs_url, self.config.wfs_type_name
            )
            self.synchronizer = ViewportLayerSynchronizer(
                surface,
                self.wfs,
                f"wfs:{self.config.wfs_type_name}",
                debounce=self.config.debounce_seconds,
                fit_padding=self.config.fit_padding,
                fit_max_zoom=self.config.fit_max_zoom,
            )

        self.click = ClickResolutionController(
            surface,
            ZwsPointQueryClient(self.transport, self.config.zws_endpoint, credentials),
            self.config.zws_layer_name,
            self.wfs,
            fallback_delta=self.config.fallback_bbox_delta,
        )

        self._tasks: set[asyncio.Task] = set()
        self._started = False

    def initial_view(self) -> tuple[float, float, int]:
        """(lat, lng, zoom) the renderer should open on."""
        return (
            self.config.map_center_lat,
            self.config.map_center_lng,
            self.config.map_zoom,
        )

    def overlays(self) -> dict[str, str]:
        """Display name -> overlay id, for the renderer's layer control."""
        result = {"ZuluGIS (ZWS)": ZWS_OVERLAY}
        if self.wms_options is not None:
            result["WMS Layer"] = WMS_OVERLAY
        if self.synchronizer is not None:
            result[f"WFS: {self.config.wfs_type_name}"] = self.synchronizer.layer_id
        return result

    def start(self) -> None:
        if self._started:
            return
        self.click.attach()
        if self.synchronizer is not None:
            self.surface.on("overlayadd", self._on_overlay_add)
            self.surface.on("overlayremove", self._on_overlay_remove)
        self._started = True
        logger.info(f"Map session started: {', '.join(self.overlays())}")

    async def close(self) -> None:
        """Tear down: unsubscribe, cancel in-flight work, close the HTTP client."""
        if self._started:
            self.surface.off("overlayadd", self._on_overlay_add)
            self.surface.off("overlayremove", self._on_overlay_remove)
            self._started = False
        await self.click.close()
        if self.synchronizer is not None:
            await self.synchronizer.close()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._owns_transport:
            await self.transport.aclose()
        logger.info("Map session closed")

    def _on_overlay_add(self, event: dict) -> None:
        if self.synchronizer is None or event.get("layer") != self.synchronizer.layer_id:
            return
        task = asyncio.ensure_future(self.synchronizer.enable())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_overlay_remove(self, event: dict) -> None:
        if self.synchronizer is None or event.get("layer") != self.synchronizer.layer_id:
            return
        self.synchronizer.disable()

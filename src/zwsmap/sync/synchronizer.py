"""Keeps one WFS feature layer in step with the map viewport.

State machine per layer:

    DISABLED --enable--> LOADING --result--> POPULATED --moveend+debounce--> LOADING ...
        ^                                                                     |
        +-------------------------------- disable ----------------------------+

Only the most recently issued fetch may apply its result. Older fetches are
cancelled through their token when a newer one starts and, should they
complete anyway, dropped by the generation check. The displayed layer is
always replaced wholesale, never patched.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from loguru import logger

from zwsmap.errors import RequestCancelled, TransportError, XmlParseError
from zwsmap.layers.exporters.geojson import DEFAULT_STYLE
from zwsmap.layers.geometry import FeatureCollection
from zwsmap.protocols.wfs import WfsClient
from zwsmap.surface import MapSurface
from zwsmap.sync.popup import attributes_popup_html
from zwsmap.sync.stream import RequestStream


class SyncState(str, Enum):
    DISABLED = "disabled"
    LOADING = "loading"
    POPULATED = "populated"


class ViewportLayerSynchronizer:
    """Owns the live feature layer ``layer_id`` on ``surface``.

    Args:
        surface: Rendering collaborator.
        wfs: Client for the layer's feature type.
        layer_id: Identifier the surface draws the layer under.
        debounce: Seconds of viewport quiet before a refresh is issued.
        fit_padding: Pixel padding when fitting the view on enable.
        fit_max_zoom: Zoom cap when fitting the view on enable.
        style: Path options the layer is drawn with; defaults to DEFAULT_STYLE.
    """

    def __init__(
        self,
        surface: MapSurface,
        wfs: WfsClient,
        layer_id: str,
        *,
        debounce: float = 0.35,
        fit_padding: int = 40,
        fit_max_zoom: int = 16,
        style: dict | None = None,
    ) -> None:
        self.surface = surface
        self.wfs = wfs
        self.layer_id = layer_id
        self.debounce = debounce
        self.fit_padding = fit_padding
        self.fit_max_zoom = fit_max_zoom
        self.style = dict(DEFAULT_STYLE if style is None else style)

        self.state = SyncState.DISABLED
        self.collection = FeatureCollection()
        self.last_error: Exception | None = None

        self._stream = RequestStream(f"wfs:{layer_id}")
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self.state is not SyncState.DISABLED

    @property
    def generation(self) -> int:
        return self._stream.generation

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def enable(self) -> None:
        """Show the layer: subscribe to viewport changes and load the current bbox.

        Fits the view to the loaded features. Returns once that first fetch
        has settled (applied, dropped or failed).
        """
        if self.enabled:
            logger.debug(f"Layer {self.layer_id} already enabled")
            return
        self.state = SyncState.LOADING
        self.surface.on("moveend", self._on_moveend)
        logger.info(f"WFS layer enabled: {self.layer_id}")
        await self._refresh(fit=True)

    def disable(self) -> None:
        """Hide the layer, cancelling any in-flight or debounced fetch.

        Fetched data is discarded, not kept for a later enable.
        """
        if not self.enabled:
            return
        self._cancel_debounce()
        self._stream.cancel("layer disabled")
        self.surface.off("moveend", self._on_moveend)
        self.surface.remove_features(self.layer_id)
        self.collection = FeatureCollection()
        self.state = SyncState.DISABLED
        logger.info(f"WFS layer disabled: {self.layer_id}")

    async def close(self) -> None:
        """Disable and wait for every spawned fetch task to finish."""
        self.disable()
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait until no refresh task is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Viewport refresh
    # ------------------------------------------------------------------

    def _on_moveend(self, event: dict) -> None:
        self.schedule_refresh()

    def schedule_refresh(self) -> None:
        """(Re)start the debounce timer; a refresh fires after ``debounce`` seconds of quiet."""
        if not self.enabled:
            return
        self._cancel_debounce()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self.debounce, self._fire_refresh)

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _fire_refresh(self) -> None:
        self._debounce_handle = None
        task = asyncio.ensure_future(self._refresh(fit=False))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _refresh(self, fit: bool) -> None:
        if not self.enabled:
            # Debounced task scheduled just before disable()
            return
        generation, token = self._stream.begin()
        self.state = SyncState.LOADING
        bbox = self.surface.get_bounds()
        try:
            collection = await self.wfs.get_features(bbox, signal=token)
        except RequestCancelled as e:
            logger.debug(f"WFS fetch {self.layer_id}#{generation} cancelled: {e}")
            self._settle(generation)
            return
        except (TransportError, XmlParseError) as e:
            self.last_error = e
            logger.warning(f"WFS load failed for {self.layer_id}: {e}")
            self._settle(generation)
            return

        if not self._stream.is_current(generation):
            logger.debug(
                f"Dropping stale WFS response {self.layer_id}#{generation} "
                f"(current #{self._stream.generation})"
            )
            return

        if len(collection):
            self._apply(collection, fit)
        else:
            logger.debug(f"WFS {self.layer_id}: empty result, keeping displayed data")
        self.state = SyncState.POPULATED

    def _settle(self, generation: int) -> None:
        if self._stream.is_current(generation) and self.state is SyncState.LOADING:
            self.state = SyncState.POPULATED

    def _apply(self, collection: FeatureCollection, fit: bool) -> None:
        popups = [attributes_popup_html(f.attributes) for f in collection]
        self.surface.set_features(self.layer_id, collection, popups, self.style)
        self.collection = collection
        if fit:
            bounds = collection.bounds()
            if bounds is not None:
                self.surface.fit_bounds(bounds, self.fit_padding, self.fit_max_zoom)

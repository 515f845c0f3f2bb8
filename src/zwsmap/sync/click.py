"""Resolves a map click to a popup: ZWS point query, then WFS fallback, then "not found".

At most one resolution is in flight. A new click cancels the previous one
outright; the superseded resolution ends CANCELLED and shows nothing.

    click -> QUERYING -> fields         -> RESOLVED (marker + attributes)
                      -> empty fields   -> RESOLVED (marker + "attributes unavailable")
                      -> no object      -> FALLING_BACK
                      -> error          -> FALLING_BACK (error remembered)
                      -> cancelled      -> CANCELLED
             FALLING_BACK -> feature    -> RESOLVED (marker + first feature's attributes)
                          -> nothing    -> RESOLVED ("not found", or the remembered error)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from zwsmap.errors import RequestCancelled, ZwsMapError
from zwsmap.layers.coords import find_coordinates_field, is_valid_polygon, parse_coordinates
from zwsmap.layers.geometry import BBox, Feature, Field, Polygon, attributes_from_fields
from zwsmap.protocols.point_query import ZwsPointQueryClient, scale_for_zoom
from zwsmap.protocols.transport import CancelToken
from zwsmap.protocols.wfs import WfsClient
from zwsmap.surface import MapSurface
from zwsmap.sync.popup import (
    NO_ATTRIBUTES_HTML,
    NOT_FOUND_HTML,
    attributes_popup_html,
    error_popup_html,
)
from zwsmap.sync.stream import RequestStream


class ClickState(str, Enum):
    IDLE = "idle"
    QUERYING = "querying"
    FALLING_BACK = "falling_back"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


@dataclass
class Resolution:
    """Outcome of one click.

    Attributes:
        state: RESOLVED or CANCELLED.
        lat, lng: Click position.
        source: "zws", "wfs", "not_found" or "error"; None when cancelled.
        html: Popup HTML that was shown, if any.
        attributes: Attributes the popup was built from.
        outline: Polygon parsed from a coordinates-bearing ZWS field, if any.
    """

    state: ClickState
    lat: float
    lng: float
    source: str | None = None
    html: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)
    outline: Polygon | None = None


class ClickResolutionController:
    def __init__(
        self,
        surface: MapSurface,
        point_query: ZwsPointQueryClient,
        layer_name: str,
        wfs: WfsClient | None = None,
        *,
        fallback_delta: float = 0.0007,
    ) -> None:
        self.surface = surface
        self.point_query = point_query
        self.layer_name = layer_name
        self.wfs = wfs
        self.fallback_delta = fallback_delta

        self.state = ClickState.IDLE
        self.last_resolution: Resolution | None = None

        self._stream = RequestStream("click")
        self._tasks: set[asyncio.Task] = set()
        self._attached = False

    # ------------------------------------------------------------------
    # Event wiring
    # ------------------------------------------------------------------

    def attach(self) -> None:
        if not self._attached:
            self.surface.on("click", self._on_click)
            self._attached = True

    def detach(self) -> None:
        if self._attached:
            self.surface.off("click", self._on_click)
            self._attached = False

    def _on_click(self, event: dict) -> None:
        task = asyncio.ensure_future(self.resolve(event["lat"], event["lng"]))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def cancel(self) -> None:
        """Abandon the in-flight resolution, if any; it ends CANCELLED."""
        self._stream.cancel("click cancelled")
        if self.state in (ClickState.QUERYING, ClickState.FALLING_BACK):
            self.state = ClickState.CANCELLED

    async def close(self) -> None:
        """Detach, cancel the in-flight resolution and clear the marker."""
        self.detach()
        self.cancel()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self.surface.clear_markers()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, lat: float, lng: float, zoom: int | None = None) -> Resolution:
        """Run the full fallback chain for a click at (lat, lng)."""
        generation, token = self._stream.begin()
        self.surface.clear_markers()
        self.state = ClickState.QUERYING

        if zoom is None:
            zoom = self.surface.get_zoom()
        scale = scale_for_zoom(zoom)

        primary_error: Exception | None = None
        try:
            fields = await self.point_query.select_at(
                self.layer_name, lat, lng, scale, signal=token
            )
        except RequestCancelled:
            logger.info("ZWS aborted")
            return self._cancelled(generation, lat, lng)
        except ZwsMapError as e:
            logger.error(f"ZWS error: {e}")
            primary_error = e
            fields = None

        if not self._stream.is_current(generation):
            return self._cancelled(generation, lat, lng)

        if fields is not None:
            return self._resolve_fields(lat, lng, fields)

        self.state = ClickState.FALLING_BACK
        try:
            feature = await self._fallback_feature(lat, lng, token)
        except RequestCancelled:
            logger.debug("WFS fallback aborted")
            return self._cancelled(generation, lat, lng)

        if not self._stream.is_current(generation):
            return self._cancelled(generation, lat, lng)

        if feature is not None:
            html = attributes_popup_html(feature.attributes)
            self.surface.add_marker(lat, lng, html)
            return self._finish(
                Resolution(
                    ClickState.RESOLVED, lat, lng, "wfs", html, dict(feature.attributes)
                )
            )

        if primary_error is not None:
            html, source = error_popup_html(str(primary_error)), "error"
        else:
            html, source = NOT_FOUND_HTML, "not_found"
        self.surface.open_popup(lat, lng, html)
        return self._finish(Resolution(ClickState.RESOLVED, lat, lng, source, html))

    def _resolve_fields(self, lat: float, lng: float, fields: list[Field]) -> Resolution:
        if fields:
            html = attributes_popup_html((f.user_name, f.value) for f in fields)
        else:
            html = NO_ATTRIBUTES_HTML
        outline = self._outline(fields)
        self.surface.add_marker(lat, lng, html, outline)
        return self._finish(
            Resolution(
                ClickState.RESOLVED,
                lat,
                lng,
                "zws",
                html,
                attributes_from_fields(fields),
                outline,
            )
        )

    async def _fallback_feature(
        self, lat: float, lng: float, token: CancelToken
    ) -> Feature | None:
        """First usable feature in a small bbox around the click, or None."""
        if self.wfs is None:
            return None
        bbox = BBox.around(lng, lat, self.fallback_delta)
        try:
            collection = await self.wfs.get_features(bbox, signal=token)
        except RequestCancelled:
            raise
        except ZwsMapError as e:
            logger.warning(f"WFS fallback error: {e}")
            return None
        for feature in collection:
            if feature.geometry is not None or feature.attributes:
                return feature
        return None

    @staticmethod
    def _outline(fields: list[Field]) -> Polygon | None:
        value = find_coordinates_field(fields)
        if value is None:
            return None
        coords = parse_coordinates(value)
        if coords and is_valid_polygon(coords):
            return Polygon((tuple(coords),))
        return None

    def _cancelled(self, generation: int, lat: float, lng: float) -> Resolution:
        resolution = Resolution(ClickState.CANCELLED, lat, lng)
        # A newer click owns the controller state; leave it alone.
        if self._stream.is_current(generation):
            self.state = ClickState.CANCELLED
            self.last_resolution = resolution
        return resolution

    def _finish(self, resolution: Resolution) -> Resolution:
        self.state = resolution.state
        self.last_resolution = resolution
        return resolution

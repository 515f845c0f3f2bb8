"""Shared fixtures: an in-memory MapSurface and mock-HTTP transports."""

from __future__ import annotations

import httpx
import pytest

from zwsmap.layers.geometry import BBox
from zwsmap.protocols.transport import Transport
from zwsmap.surface import MapSurface


class FakeSurface(MapSurface):
    """Records everything the engine asks the renderer to do."""

    def __init__(self, bounds: BBox | None = None, zoom: int = 13):
        super().__init__()
        self.bounds = bounds or BBox(69.50, 42.30, 69.60, 42.35)
        self.zoom = zoom
        self.layers: dict = {}
        self.layer_popups: dict = {}
        self.styles: dict = {}
        self.set_calls = 0
        self.removed: list[str] = []
        self.fits: list[tuple] = []
        self.markers: list[dict] = []
        self.popups: list[dict] = []
        self.clear_count = 0

    def get_bounds(self) -> BBox:
        return self.bounds

    def get_zoom(self) -> int:
        return self.zoom

    def fit_bounds(self, bounds, padding, max_zoom) -> None:
        self.fits.append((bounds, padding, max_zoom))

    def set_features(self, layer_id, collection, popups, style) -> None:
        self.set_calls += 1
        self.styles[layer_id] = style
        self.layers[layer_id] = collection
        self.layer_popups[layer_id] = popups

    def remove_features(self, layer_id) -> None:
        self.layers.pop(layer_id, None)
        self.layer_popups.pop(layer_id, None)
        self.removed.append(layer_id)

    def add_marker(self, lat, lng, html, outline=None) -> None:
        self.markers.append({"lat": lat, "lng": lng, "html": html, "outline": outline})

    def clear_markers(self) -> None:
        self.clear_count += 1
        self.markers.clear()
        self.popups.clear()

    def open_popup(self, lat, lng, html) -> None:
        self.popups.append({"lat": lat, "lng": lng, "html": html})


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def mock_transport():
    """Factory: ``mock_transport(handler)`` -> Transport over httpx.MockTransport.

    ``handler`` may be sync or async and receives the httpx.Request. Call the
    factory inside the running event loop.
    """

    def _make(handler) -> Transport:
        return Transport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    return _make

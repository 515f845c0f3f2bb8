"""Rendering collaborator interface.

The map engine that paints tiles and vectors lives outside this package. It
implements MapSurface so the synchronizer and click controller can read the
viewport, push normalized features and show markers and popups.

Events are plain dicts dispatched synchronously to subscribed handlers:

    "moveend"        {}                       pan/zoom finished
    "click"          {"lat": .., "lng": ..}   user clicked the map
    "overlayadd"     {"layer": layer_id}      user toggled an overlay on
    "overlayremove"  {"layer": layer_id}      user toggled an overlay off
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable

from loguru import logger

from zwsmap.layers.geometry import BBox, FeatureCollection, Polygon

EventHandler = Callable[[dict], None]


class MapSurface(ABC):
    """Base class a map renderer extends to host zwsmap layers."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers[event].append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        try:
            self._handlers[event].remove(handler)
        except ValueError:
            pass

    def emit(self, event: str, data: dict | None = None) -> None:
        """Dispatch ``event`` to every handler subscribed to it."""
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(data or {})
            except Exception as e:
                logger.error(f"Map event handler failed for {event}: {e}")

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    # ------------------------------------------------------------------
    # Viewport
    # ------------------------------------------------------------------

    @abstractmethod
    def get_bounds(self) -> BBox:
        """Current viewport as a lng/lat box."""

    @abstractmethod
    def get_zoom(self) -> int:
        """Current zoom level."""

    @abstractmethod
    def fit_bounds(self, bounds: BBox, padding: int, max_zoom: int) -> None:
        """Move the view so ``bounds`` is visible with ``padding`` pixels."""

    # ------------------------------------------------------------------
    # Vector layer
    # ------------------------------------------------------------------

    @abstractmethod
    def set_features(
        self,
        layer_id: str,
        collection: FeatureCollection,
        popups: list[str],
        style: dict,
    ) -> None:
        """Replace everything drawn for ``layer_id``.

        ``popups[i]`` is the escaped popup HTML for ``collection[i]``;
        ``style`` holds Leaflet-style path options (color, weight, opacity,
        fillOpacity).
        """

    @abstractmethod
    def remove_features(self, layer_id: str) -> None:
        """Drop everything drawn for ``layer_id``."""

    # ------------------------------------------------------------------
    # Click marker
    # ------------------------------------------------------------------

    @abstractmethod
    def add_marker(
        self, lat: float, lng: float, html: str, outline: Polygon | None = None
    ) -> None:
        """Place the click marker with an open popup; ``outline`` is optional."""

    @abstractmethod
    def clear_markers(self) -> None:
        """Remove the click marker and its popup."""

    @abstractmethod
    def open_popup(self, lat: float, lng: float, html: str) -> None:
        """Open a standalone popup without a marker."""

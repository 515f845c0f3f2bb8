"""Export a FeatureCollection to a GeoJSON dict for GeoJSON-speaking renderers.

Coordinates pass through untouched; for EPSG:4326 sources they are already
in GeoJSON [lng, lat] order.
"""

from __future__ import annotations

from zwsmap.layers.geometry import Feature, FeatureCollection

# Style the live WFS layer is drawn with
DEFAULT_STYLE = {
    "color": "#ff7800",
    "weight": 2,
    "opacity": 0.9,
    "fillOpacity": 0.2,
}


def export_geojson(collection: FeatureCollection) -> dict:
    """Export a FeatureCollection to a GeoJSON FeatureCollection dict.

    Features without geometry are kept with ``"geometry": null``.
    """
    return {
        "type": "FeatureCollection",
        "features": [_feature_to_geojson(f) for f in collection],
    }


def _feature_to_geojson(feature: Feature) -> dict:
    return {
        "type": "Feature",
        "geometry": feature.geometry.to_geojson() if feature.geometry else None,
        "properties": dict(feature.attributes),
    }

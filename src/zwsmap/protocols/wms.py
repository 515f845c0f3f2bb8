"""WMS raster overlay pass-through.

The WMS layer is painted entirely by the renderer; we only supply its
options and, for renderers that want one, a GetMap URL. No reprojection.
"""

from __future__ import annotations

from urllib.parse import urlencode

from zwsmap.layers.geometry import BBox

DEFAULT_WMS_OPTIONS = {
    "format": "image/png",
    "transparent": True,
    "version": "1.1.1",
}


def wms_layer_options(layer_name: str, overrides: dict | None = None) -> dict:
    """Default WMS tile-layer options for ``layer_name`` merged with ``overrides``."""
    options = {"layers": layer_name, **DEFAULT_WMS_OPTIONS}
    options.update(overrides or {})
    return options


def build_getmap_url(
    url: str,
    options: dict,
    bbox: BBox,
    width: int = 256,
    height: int = 256,
    srs: str = "EPSG:4326",
) -> str:
    """Build a GetMap URL for one tile-sized image covering ``bbox``."""
    params = {
        "SERVICE": "WMS",
        "REQUEST": "GetMap",
        "VERSION": options.get("version", "1.1.1"),
        "LAYERS": options["layers"],
        "STYLES": options.get("styles", ""),
        "FORMAT": options.get("format", "image/png"),
        "TRANSPARENT": "TRUE" if options.get("transparent") else "FALSE",
        "SRS": srs,
        "BBOX": bbox.to_param(),
        "WIDTH": width,
        "HEIGHT": height,
    }
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{urlencode(params)}"

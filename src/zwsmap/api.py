"""HTTP façade for browser-side renderers.

Endpoints:
    GET /api/zws/tile/{z}/{x}/{y}   ZWS tile image
    GET /api/zws/select             point query at lat/lng/zoom
    GET /api/wfs/features           WFS features in a bbox as GeoJSON
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, HTTPException, Query
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel

from zwsmap import configure_logging
from zwsmap.config import settings
from zwsmap.errors import TileDecodeError, TransportError, XmlParseError
from zwsmap.layers.exporters.geojson import export_geojson
from zwsmap.layers.geometry import BBox, TileCoordinate
from zwsmap.protocols.point_query import ZwsPointQueryClient, scale_for_zoom
from zwsmap.protocols.tiles import ZwsTileClient
from zwsmap.protocols.transport import Transport
from zwsmap.protocols.wfs import WfsClient
from zwsmap.sync.popup import NO_ATTRIBUTES_HTML, attributes_popup_html

router = APIRouter(prefix="/api", tags=["zws"])


class FieldModel(BaseModel):
    user_name: str
    value: str


class SelectResponse(BaseModel):
    found: bool
    fields: list[FieldModel] = []
    popup_html: str | None = None


def _make_transport() -> Transport:
    return Transport(timeout=settings.request_timeout)


def _parse_bbox(text: str) -> BBox:
    parts = text.split(",")
    if len(parts) < 4:
        raise HTTPException(status_code=400, detail="bbox must be minx,miny,maxx,maxy")
    try:
        return BBox(*(float(p) for p in parts[:4]))
    except ValueError:
        raise HTTPException(status_code=400, detail="bbox values must be numbers")


@router.get("/zws/tile/{z}/{x}/{y}")
async def get_tile(z: int, x: int, y: int):
    """Fetch one ZWS tile and return the image bytes."""
    if z < 0 or z > settings.tile_max_zoom:
        raise HTTPException(
            status_code=400, detail=f"Zoom level must be 0-{settings.tile_max_zoom}"
        )

    async with _make_transport() as transport:
        client = ZwsTileClient(
            transport, settings.zws_endpoint, settings.zws_credentials()
        )
        try:
            tile = await client.fetch_tile(
                settings.zws_layer_name, TileCoordinate(x=x, y=y, z=z)
            )
        except (TransportError, TileDecodeError) as e:
            logger.warning(f"Tile fetch failed: {z}/{x}/{y}: {e}")
            raise HTTPException(status_code=502, detail="Tile service unavailable")

    with tile:
        media_type = f"image/{(tile.format or 'png').lower()}"
        return Response(content=tile.data, media_type=media_type)


@router.get("/zws/select", response_model=SelectResponse)
async def select(
    lat: float = Query(...),
    lng: float = Query(...),
    zoom: int = Query(settings.map_zoom, ge=0, le=24),
):
    """Attributes of the ZWS object under (lat, lng)."""
    async with _make_transport() as transport:
        client = ZwsPointQueryClient(
            transport, settings.zws_endpoint, settings.zws_credentials()
        )
        try:
            fields = await client.select_at(
                settings.zws_layer_name, lat, lng, scale_for_zoom(zoom)
            )
        except (TransportError, XmlParseError) as e:
            logger.warning(f"ZWS select failed: {e}")
            raise HTTPException(status_code=502, detail=str(e))

    if fields is None:
        return SelectResponse(found=False)
    html = (
        attributes_popup_html((f.user_name, f.value) for f in fields)
        if fields else NO_ATTRIBUTES_HTML
    )
    return SelectResponse(
        found=True,
        fields=[FieldModel(user_name=f.user_name, value=f.value) for f in fields],
        popup_html=html,
    )


@router.get("/wfs/features")
async def get_features(bbox: str | None = Query(None)):
    """WFS features (optionally within ``bbox``) as a GeoJSON FeatureCollection."""
    if not settings.wfs_enabled:
        raise HTTPException(status_code=404, detail="WFS is not configured")
    box = _parse_bbox(bbox) if bbox else None

    async with _make_transport() as transport:
        client = WfsClient(transport, settings.wfs_url, settings.wfs_type_name)
        try:
            collection = await client.get_features(box)
        except (TransportError, XmlParseError) as e:
            logger.warning(f"WFS request failed: {e}")
            raise HTTPException(status_code=502, detail=str(e))

    return export_geojson(collection)


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="zwsmap")
    app.include_router(router)
    return app

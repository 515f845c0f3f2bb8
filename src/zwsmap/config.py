"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from zwsmap.protocols.transport import Credentials


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ZuluGIS ZWS endpoint (tiles + point query)
    zws_endpoint: str = "http://zs.zulugis.ru:6473/zws"
    zws_layer_name: str = "example:demo"
    zws_user: str = "mo"                # empty = no Authorization header
    zws_pass: str = "mo"

    # WFS (XML/GML): both required to enable the live feature layer
    wfs_url: str = ""
    wfs_type_name: str = ""

    # Optional WMS raster overlay
    wms_url: str = ""
    wms_layer_name: str = ""

    # Initial view
    map_center_lat: float = 42.3231
    map_center_lng: float = 69.5851
    map_zoom: int = 13
    tile_max_zoom: int = 18

    # Sync engine
    debounce_seconds: float = 0.35
    fallback_bbox_delta: float = 0.0007  # ~70 m around a click
    fit_padding: int = 40               # pixels
    fit_max_zoom: int = 16

    request_timeout: float = 15.0
    log_level: str = "INFO"

    @property
    def wfs_enabled(self) -> bool:
        return bool(self.wfs_url and self.wfs_type_name)

    def zws_credentials(self) -> Credentials | None:
        if not self.zws_user:
            return None
        return Credentials(self.zws_user, self.zws_pass)


settings = Settings()

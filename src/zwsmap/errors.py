"""Error taxonomy shared by the protocol clients and the sync engine.

RequestCancelled is not a failure: it means a stream was superseded or torn
down, and callers swallow it after logging.
"""

from __future__ import annotations


class ZwsMapError(Exception):
    """Base class for all zwsmap errors."""


class TransportError(ZwsMapError):
    """Network or HTTP failure talking to a remote service."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class TileFetchError(TransportError):
    """Tile endpoint answered with a non-success status."""


class RequestCancelled(ZwsMapError):
    """The request was cancelled through its CancelToken."""


class XmlParseError(ZwsMapError):
    """Document is not well-formed XML, or the server reported a parse error."""


class TileDecodeError(ZwsMapError):
    """Fetched tile bytes are not a decodable image."""

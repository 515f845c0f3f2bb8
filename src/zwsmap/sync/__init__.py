"""Sync engine: viewport-bound feature layer and click resolution."""

from zwsmap.sync.click import ClickResolutionController, ClickState, Resolution
from zwsmap.sync.stream import RequestStream
from zwsmap.sync.synchronizer import SyncState, ViewportLayerSynchronizer

__all__ = [
    "ClickResolutionController",
    "ClickState",
    "RequestStream",
    "Resolution",
    "SyncState",
    "ViewportLayerSynchronizer",
]

"""Scripted protocol clients for driving the sync engine step by step."""

from __future__ import annotations

import asyncio

import pytest

from zwsmap.layers.geometry import FeatureCollection


class _Scripted:
    """Replays a script of results, one per call.

    Each item is a value to return, an exception to raise, or an
    asyncio.Future awaited without regard to the cancel token (a server
    that answers late). Once the script runs out ``default`` is returned.
    """

    def __init__(self, script=(), default=None):
        self.script = list(script)
        self.default = default
        self.calls: list[tuple] = []
        self.signals: list = []

    async def _next(self, signal):
        self.signals.append(signal)
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, asyncio.Future):
            item = await item
        if isinstance(item, BaseException):
            raise item
        return item


class ScriptedWfs(_Scripted):
    def __init__(self, script=(), default=None):
        super().__init__(script, FeatureCollection() if default is None else default)

    async def get_features(self, bbox=None, signal=None):
        self.calls.append((bbox,))
        return await self._next(signal)


class ScriptedPointQuery(_Scripted):
    async def select_at(self, layer_name, lat, lng, scale, signal=None):
        self.calls.append((layer_name, lat, lng, scale))
        return await self._next(signal)


@pytest.fixture
def scripted_wfs():
    return ScriptedWfs


@pytest.fixture
def scripted_query():
    return ScriptedPointQuery

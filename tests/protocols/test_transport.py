"""Tests for the cancellable HTTP transport."""

import asyncio

import httpx
import pytest

from zwsmap.errors import RequestCancelled, TransportError
from zwsmap.protocols.transport import CancelToken, Credentials


@pytest.mark.unit
class TestCredentials:
    def test_basic_auth_header(self):
        assert Credentials("mo", "mo").basic_auth_header() == "Basic bW86bW8="


@pytest.mark.unit
class TestCancelToken:
    def test_cancel_is_one_shot(self):
        token = CancelToken()
        assert not token.cancelled
        token.cancel("first")
        token.cancel("second")
        assert token.cancelled
        assert token.reason == "first"

    def test_raise_if_cancelled(self):
        token = CancelToken()
        token.raise_if_cancelled()
        token.cancel("stop")
        with pytest.raises(RequestCancelled, match="stop"):
            token.raise_if_cancelled()


@pytest.mark.unit
class TestFetch:
    def test_returns_response_regardless_of_status(self, mock_transport):
        async def scenario():
            transport = mock_transport(lambda request: httpx.Response(503, text="busy"))
            async with transport:
                resp = await transport.fetch("http://zws.test/zws")
            return resp

        resp = asyncio.run(scenario())
        assert resp.status_code == 503
        assert resp.text == "busy"

    def test_passes_method_headers_and_body(self, mock_transport):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        async def scenario():
            async with mock_transport(handler) as transport:
                await transport.fetch(
                    "http://zws.test/zws",
                    method="POST",
                    headers={"Content-Type": "application/xml"},
                    content="<x/>",
                )

        asyncio.run(scenario())
        assert seen[0].method == "POST"
        assert seen[0].headers["content-type"] == "application/xml"
        assert seen[0].content == b"<x/>"

    def test_network_failure_becomes_transport_error(self, mock_transport):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def scenario():
            async with mock_transport(handler) as transport:
                await transport.fetch("http://zws.test/zws")

        with pytest.raises(TransportError, match="connection refused"):
            asyncio.run(scenario())

    def test_already_cancelled_token_skips_request(self, mock_transport):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        async def scenario():
            token = CancelToken()
            token.cancel("gone")
            async with mock_transport(handler) as transport:
                await transport.fetch("http://zws.test/zws", signal=token)

        with pytest.raises(RequestCancelled):
            asyncio.run(scenario())
        assert calls == []

    def test_cancel_during_request(self, mock_transport):
        async def scenario():
            started = asyncio.Event()

            async def handler(request):
                started.set()
                await asyncio.sleep(5)
                return httpx.Response(200)

            token = CancelToken()
            async with mock_transport(handler) as transport:
                task = asyncio.ensure_future(
                    transport.fetch("http://zws.test/zws", signal=token)
                )
                await started.wait()
                token.cancel("superseded")
                await asyncio.wait_for(task, timeout=1)

        with pytest.raises(RequestCancelled, match="superseded"):
            asyncio.run(scenario())

    def test_token_unused_when_response_arrives_first(self, mock_transport):
        async def scenario():
            token = CancelToken()
            async with mock_transport(lambda r: httpx.Response(200, text="ok")) as transport:
                resp = await transport.fetch("http://zws.test/zws", signal=token)
            return resp, token

        resp, token = asyncio.run(scenario())
        assert resp.text == "ok"
        assert not token.cancelled

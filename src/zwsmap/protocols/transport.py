"""Cancellable HTTP fetch primitive shared by every protocol client.

Cancellation is cooperative. A CancelToken plays the role of an abort
signal: the transport races the request against it and raises
RequestCancelled as soon as the token fires, cancelling the request task.
Transport-level cancellation is best-effort; callers that care about stale
responses also check a generation counter (see zwsmap.sync.stream).
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
from dataclasses import dataclass

import httpx
from loguru import logger

from zwsmap.errors import RequestCancelled, TransportError


@dataclass(frozen=True)
class Credentials:
    user: str
    password: str

    def basic_auth_header(self) -> str:
        token = base64.b64encode(f"{self.user}:{self.password}".encode("utf-8"))
        return f"Basic {token.decode('ascii')}"


class CancelToken:
    """One-shot cancellation flag that coroutines can await."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelled(self.reason or "cancelled")


class Transport:
    """Async HTTP client wrapper: ``fetch(url, options) -> response``.

    Args:
        client: Optional pre-built httpx.AsyncClient (tests pass one built
            on httpx.MockTransport). When omitted the transport creates and
            owns its own client.
        timeout: Per-request timeout in seconds for an owned client.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        content: bytes | str | None = None,
        signal: CancelToken | None = None,
    ) -> httpx.Response:
        """Issue one request. Status codes are left to the caller.

        Raises:
            RequestCancelled: ``signal`` fired before the response arrived.
            TransportError: Network-level failure (connect, timeout, ...).
        """
        if signal is not None:
            signal.raise_if_cancelled()

        request = asyncio.ensure_future(
            self._client.request(method, url, headers=headers, content=content)
        )
        if signal is None:
            return await self._await_response(request, url)

        waiter = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait(
                {request, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not request.done():
                request.cancel()

        if request not in done:
            with contextlib.suppress(asyncio.CancelledError, httpx.HTTPError):
                await request
            logger.debug(f"Request cancelled: {method} {url}")
            raise RequestCancelled(signal.reason or "cancelled")
        return await self._await_response(request, url)

    async def _await_response(self, request, url: str) -> httpx.Response:
        try:
            return await request
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

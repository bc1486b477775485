"""Transport layer for issuing HTTP requests.

Defines the Transport protocols and the httpx-backed implementations:
- HttpTransport: blocking transport over ``httpx.Client``
- AsyncHttpTransport: asyncio transport over ``httpx.AsyncClient``

Transports only move bytes. Status handling lives in the decoder; network
failures are translated to ``TransportError`` here.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterator
from contextlib import (
    AbstractAsyncContextManager,
    AbstractContextManager,
    asynccontextmanager,
    contextmanager,
)
from typing import TYPE_CHECKING

import certifi
import httpx
from loguru import logger

from smartsheet_client.exceptions import TransportError

if TYPE_CHECKING:
    from smartsheet_client.request import Request

DEFAULT_TIMEOUT = 60


def _ssl_context() -> ssl.SSLContext:
    return ssl.create_default_context(cafile=certifi.where())


class Transport(ABC):
    """Abstract blocking transport."""

    @abstractmethod
    def send(self, request: Request) -> httpx.Response:
        """Send a request and return the response with its body read."""
        ...

    @abstractmethod
    def stream(self, request: Request) -> AbstractContextManager[httpx.Response]:
        """Send a request and yield the response with its body unread.

        The connection is released when the context exits, whatever the
        outcome.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close any open connections."""
        ...


class AsyncTransport(ABC):
    """Abstract asyncio transport."""

    @abstractmethod
    async def send(self, request: Request) -> httpx.Response:
        """Send a request and return the response with its body read."""
        ...

    @abstractmethod
    def stream(self, request: Request) -> AbstractAsyncContextManager[httpx.Response]:
        """Send a request and yield the response with its body unread."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...


class HttpTransport(Transport):
    """Blocking transport backed by a pooled ``httpx.Client``.

    Args:
        timeout: Request timeout in seconds.
        client: Pre-configured client (tests pass one with a MockTransport).
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(timeout=timeout, verify=_ssl_context())

    def send(self, request: Request) -> httpx.Response:
        logger.debug("{method} {url}", method=request.method, url=request.url)
        try:
            return self._client.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                content=request.body,
            )
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}") from e

    @contextmanager
    def stream(self, request: Request) -> Iterator[httpx.Response]:
        logger.debug("{method} {url} (streaming)", method=request.method, url=request.url)
        try:
            with self._client.stream(
                request.method,
                request.url,
                headers=dict(request.headers),
                content=request.body,
            ) as response:
                yield response
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}") from e

    def close(self) -> None:
        self._client.close()


class AsyncHttpTransport(AsyncTransport):
    """Asyncio transport backed by a pooled ``httpx.AsyncClient``."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout, verify=_ssl_context())

    async def send(self, request: Request) -> httpx.Response:
        logger.debug("{method} {url}", method=request.method, url=request.url)
        try:
            return await self._client.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                content=request.body,
            )
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}") from e

    @asynccontextmanager
    async def stream(self, request: Request) -> AsyncIterator[httpx.Response]:
        logger.debug("{method} {url} (streaming)", method=request.method, url=request.url)
        try:
            async with self._client.stream(
                request.method,
                request.url,
                headers=dict(request.headers),
                content=request.body,
            ) as response:
                yield response
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()

"""API client: build, send, decode, retry.

``ApiClient`` is the request-execution core shared by every resource
facade. It holds no per-call state, so one instance can be used from many
threads; the only mutable shared state is the optional ``OAuthSession``,
which locks its own refreshes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from smartsheet_client.config import Settings, get_settings
from smartsheet_client.decoder import (
    BUFFER_SIZE,
    BinarySink,
    Result,
    copy_stream,
    decode,
    decode_paginated,
    decode_result_envelope,
    error_from_response,
)
from smartsheet_client.exceptions import SmartsheetError
from smartsheet_client.models import PaginatedResult
from smartsheet_client.oauth import OAuthFlow, OAuthSession
from smartsheet_client.request import (
    DEFAULT_BASE_URL,
    DEFAULT_USER_AGENT,
    JSON_CONTENT_TYPE,
    Request,
    RequestBuilder,
)
from smartsheet_client.resources import HomeResources, SheetResources, WorkspaceSheetResources
from smartsheet_client.retry import RetryPolicy
from smartsheet_client.transport import (
    DEFAULT_TIMEOUT,
    AsyncHttpTransport,
    AsyncTransport,
    HttpTransport,
    Transport,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

Decoder = Callable[[httpx.Response, Any], Result[Any]]


def _token_provider(
    access_token: str | None, session: OAuthSession | None
) -> Callable[[], str | None]:
    if access_token and session:
        raise ValueError("Pass either access_token or session, not both")
    if session is not None:
        return session.current_access_token
    return lambda: access_token


class _BaseClient:
    def __init__(
        self,
        access_token: str | None,
        session: OAuthSession | None,
        base_url: str,
        retry_policy: RetryPolicy | None,
        user_agent: str,
        assume_user: str | None,
    ) -> None:
        self._session = session
        self._token = _token_provider(access_token, session)
        self._builder = RequestBuilder(
            base_url=base_url,
            token_provider=self._build_token,
            user_agent=user_agent,
            assume_user=assume_user,
        )
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def base_url(self) -> str:
        return self._builder.base_url

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    def _build_token(self) -> str | None:
        return self._token()

    def build(
        self,
        path: str,
        method: str = "GET",
        params: Mapping[str, Any] | None = None,
        body: Any = None,
        accept: str = JSON_CONTENT_TYPE,
        content_type: str | None = None,
    ) -> Request:
        """Build a request against this client's base URL."""
        return self._builder.build(
            path, method, params=params, body=body, accept=accept, content_type=content_type
        )


class ApiClient(_BaseClient):
    """Blocking API client.

    Args:
        access_token: Static bearer token (e.g. an API access token).
        session: OAuth session supplying and refreshing tokens instead.
        base_url: API root.
        transport: HTTP transport; a pooled httpx transport by default.
        retry_policy: Policy for rate-limited and transient failures.
        user_agent: User-Agent header value.
        assume_user: Email of the user to act as (admin only).
        timeout: Request timeout for the default transport.

    Example:
        with ApiClient(access_token="...") as client:
            request = client.build("sheets", params={"includeAll": True})
            page = client.execute_paginated(request, Sheet)
    """

    def __init__(
        self,
        access_token: str | None = None,
        *,
        session: OAuthSession | None = None,
        base_url: str = DEFAULT_BASE_URL,
        transport: Transport | None = None,
        retry_policy: RetryPolicy | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        assume_user: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(access_token, session, base_url, retry_policy, user_agent, assume_user)
        self._transport = transport or HttpTransport(timeout=timeout)

    def current_access_token(self) -> str | None:
        """Return the token sent with requests, refreshing it if needed."""
        return self._token()

    def execute(self, request: Request, result_type: Any = None) -> Any:
        """Send ``request`` with retries and decode the body into ``result_type``.

        Raises:
            SmartsheetError: The typed error for the final failed attempt.
        """
        return self._run(request, decode, result_type)

    def try_execute(self, request: Request, result_type: Any = None) -> Result[Any]:
        """Like :meth:`execute`, but return errors inside a ``Result``."""
        try:
            return Result(value=self.execute(request, result_type))
        except SmartsheetError as e:
            return Result(error=e)

    def execute_paginated(self, request: Request, item_type: Any) -> PaginatedResult[Any]:
        """Execute a list call returning a wrapped paginated list."""
        return self._run(request, decode_paginated, item_type)

    def execute_envelope(self, request: Request, item_type: Any) -> Any:
        """Execute a call whose response wraps its payload in ``result``."""
        return self._run(request, decode_result_envelope, item_type)

    def execute_raw(self, request: Request, sink: BinarySink) -> int:
        """Stream a binary response body into ``sink``.

        The body is copied in ``BUFFER_SIZE`` chunks and never fully
        buffered. The connection is released on every path, including when
        the sink raises mid-copy. Only failures before the copy starts are
        retried.

        Returns:
            Number of bytes written.
        """
        retrying = self._retry_policy.retrying(request.method)
        return retrying(self._stream_once, request, sink)

    def _run(self, request: Request, decoder: Decoder, target: Any) -> Any:
        retrying = self._retry_policy.retrying(request.method)
        return retrying(self._send_once, request, decoder, target)

    def _send_once(self, request: Request, decoder: Decoder, target: Any) -> Any:
        return decoder(self._transport.send(request), target).unwrap()

    def _stream_once(self, request: Request, sink: BinarySink) -> int:
        with self._transport.stream(request) as response:
            if not response.is_success:
                response.read()
                raise error_from_response(response)
            written = copy_stream(response.iter_bytes(BUFFER_SIZE), sink)
        logger.debug("Downloaded {size} bytes", size=written)
        return written

    def close(self) -> None:
        """Close pooled connections."""
        self._transport.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class AsyncApiClient(_BaseClient):
    """Asyncio API client.

    Same pipeline as :class:`ApiClient`; only transport I/O is awaited, so
    decode and retry steps keep their order relative to the issuing call.

    With an OAuth session, requests from :meth:`build` carry no
    Authorization header; the session token is attached on each send, so
    an expired token is refreshed without blocking the event loop.
    """

    def __init__(
        self,
        access_token: str | None = None,
        *,
        session: OAuthSession | None = None,
        base_url: str = DEFAULT_BASE_URL,
        transport: AsyncTransport | None = None,
        retry_policy: RetryPolicy | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        assume_user: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(access_token, session, base_url, retry_policy, user_agent, assume_user)
        self._transport = transport or AsyncHttpTransport(timeout=timeout)

    async def current_access_token(self) -> str | None:
        """Return the token sent with requests, refreshing it if needed."""
        if self._session is not None:
            return await self._session.acurrent_access_token()
        return self._token()

    def _build_token(self) -> str | None:
        return None if self._session is not None else self._token()

    async def _authorize(self, request: Request) -> Request:
        if self._session is None:
            return request
        token = await self._session.acurrent_access_token()
        headers = {**request.headers, "Authorization": f"Bearer {token}"}
        return replace(request, headers=MappingProxyType(headers))

    async def execute(self, request: Request, result_type: Any = None) -> Any:
        """Send ``request`` with retries and decode the body into ``result_type``."""
        return await self._run(request, decode, result_type)

    async def try_execute(self, request: Request, result_type: Any = None) -> Result[Any]:
        try:
            return Result(value=await self.execute(request, result_type))
        except SmartsheetError as e:
            return Result(error=e)

    async def execute_paginated(self, request: Request, item_type: Any) -> PaginatedResult[Any]:
        return await self._run(request, decode_paginated, item_type)

    async def execute_envelope(self, request: Request, item_type: Any) -> Any:
        return await self._run(request, decode_result_envelope, item_type)

    async def execute_raw(self, request: Request, sink: BinarySink) -> int:
        """Stream a binary response body into ``sink``."""
        retrying = self._retry_policy.async_retrying(request.method)
        return await retrying(self._stream_once, request, sink)

    async def _run(self, request: Request, decoder: Decoder, target: Any) -> Any:
        retrying = self._retry_policy.async_retrying(request.method)
        return await retrying(self._send_once, request, decoder, target)

    async def _send_once(self, request: Request, decoder: Decoder, target: Any) -> Any:
        response = await self._transport.send(await self._authorize(request))
        return decoder(response, target).unwrap()

    async def _stream_once(self, request: Request, sink: BinarySink) -> int:
        written = 0
        request = await self._authorize(request)
        async with self._transport.stream(request) as response:
            if not response.is_success:
                await response.aread()
                raise error_from_response(response)
            try:
                async for chunk in response.aiter_bytes(BUFFER_SIZE):
                    sink.write(chunk)
                    written += len(chunk)
            except (OSError, httpx.StreamError, httpx.TransportError) as e:
                raise SmartsheetError(f"Failed to copy response body: {e}") from e
        return written

    async def close(self) -> None:
        await self._transport.close()

    async def __aenter__(self) -> AsyncApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class Smartsheet:
    """Entry point bundling the API client with the resource facades.

    Example:
        with Smartsheet(access_token="...") as smartsheet:
            for sheet in smartsheet.sheets.list_sheets().data:
                print(sheet.name)
    """

    def __init__(
        self,
        access_token: str | None = None,
        *,
        client: ApiClient | None = None,
        **client_options: Any,
    ) -> None:
        self.client = client or ApiClient(access_token, **client_options)
        self.sheets = SheetResources(self.client)
        self.home = HomeResources(self.client)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        session: OAuthSession | None = None,
        transport: Transport | None = None,
    ) -> Smartsheet:
        """Build a client from environment configuration."""
        settings = settings or get_settings()
        policy = RetryPolicy(
            max_attempts=settings.max_retries,
            backoff=settings.backoff,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
        )
        client = ApiClient(
            None if session else settings.access_token or None,
            session=session,
            base_url=settings.base_url,
            transport=transport,
            retry_policy=policy,
            user_agent=settings.user_agent,
            assume_user=settings.assume_user,
            timeout=settings.timeout,
        )
        return cls(client=client)

    def workspace_sheets(self, workspace_id: int) -> WorkspaceSheetResources:
        return WorkspaceSheetResources(self.client, workspace_id)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> Smartsheet:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def oauth_flow_from_settings(
    settings: Settings | None = None, transport: Transport | None = None
) -> OAuthFlow:
    """Build an ``OAuthFlow`` from environment configuration."""
    settings = settings or get_settings()
    if not settings.client_id or not settings.client_secret or not settings.redirect_url:
        raise ValueError(
            "OAuth not configured. Set SMARTSHEET_CLIENT_ID, SMARTSHEET_CLIENT_SECRET "
            "and SMARTSHEET_REDIRECT_URL."
        )
    return OAuthFlow(
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        redirect_url=settings.redirect_url,
        authorization_url=settings.authorize_url,
        token_url=settings.token_url,
        transport=transport,
    )

"""OAuth2 authorization-code flow.

``OAuthFlow`` is stateless: it builds the authorization URL, validates the
redirect callback and talks to the token endpoint. ``OAuthSession`` keeps
the current token for one credential, refreshes it when it expires and
serializes refreshes so two callers never rotate the same refresh token.

Flow:
1. ``session.begin(scopes)`` returns the URL to open in a browser and keeps
   the state nonce.
2. The provider redirects back to ``redirect_url?code=...&state=...``.
3. ``session.complete(callback_url)`` checks the state, exchanges the code
   and activates the token.
4. ``session.current_access_token()`` refreshes transparently on expiry.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import secrets
import threading
import time
import urllib.parse
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from loguru import logger

from smartsheet_client.exceptions import (
    AUTHORIZATION_CODE_ERRORS,
    TOKEN_ERRORS,
    AuthorizationError,
    OAuthAuthorizationCodeError,
    OAuthTokenError,
    StateMismatchError,
)
from smartsheet_client.models import AccessScope
from smartsheet_client.query import comma_separated, generate_url
from smartsheet_client.request import RequestBuilder
from smartsheet_client.transport import HttpTransport, Transport

DEFAULT_AUTHORIZATION_URL = "https://app.smartsheet.com/b/authorize"
DEFAULT_TOKEN_URL = "https://api.smartsheet.com/2.0/token"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# 32 random bytes, 256 bits of entropy
STATE_NONCE_BYTES = 32


class OAuthState(str, Enum):
    """Lifecycle of an ``OAuthSession``."""

    IDLE = "idle"
    AUTHORIZATION_REQUESTED = "authorization_requested"
    CALLBACK_RECEIVED = "callback_received"
    TOKEN_EXCHANGED = "token_exchanged"
    ACTIVE = "active"
    EXPIRED = "expired"
    REFRESHED = "refreshed"
    REVOKED = "revoked"


@dataclass(frozen=True)
class OAuthToken:
    """Tokens returned by the token endpoint.

    Attributes:
        access_token: Bearer token for API calls.
        token_type: Token type reported by the server (``bearer``).
        refresh_token: Token used to obtain a new access token.
        expires_in: Lifetime in seconds as reported by the server.
        obtained_at: Clock reading when the token was received.
    """

    access_token: str
    token_type: str = "bearer"
    refresh_token: str | None = None
    expires_in: int | None = None
    obtained_at: float = 0.0

    @property
    def expires_at(self) -> float | None:
        if self.expires_in is None:
            return None
        return self.obtained_at + self.expires_in

    def is_valid(self, now: float, buffer_seconds: float = 60) -> bool:
        """Check if the token is still valid with a safety buffer."""
        expires_at = self.expires_at
        return expires_at is None or now < expires_at - buffer_seconds

    def expires_in_seconds(self, now: float) -> int | None:
        """Return seconds until the token expires, or None if it never does."""
        expires_at = self.expires_at
        if expires_at is None:
            return None
        return max(0, int(expires_at - now))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the token endpoint's JSON shape."""
        data: dict[str, Any] = {
            "access_token": self.access_token,
            "token_type": self.token_type,
        }
        if self.refresh_token is not None:
            data["refresh_token"] = self.refresh_token
        if self.expires_in is not None:
            data["expires_in"] = self.expires_in
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], obtained_at: float = 0.0) -> OAuthToken:
        """Create an OAuthToken from a token endpoint response."""
        expires_in = data.get("expires_in")
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type", "bearer"),
            refresh_token=data.get("refresh_token"),
            expires_in=int(expires_in) if expires_in is not None else None,
            obtained_at=obtained_at,
        )


@dataclass(frozen=True)
class AuthorizationRequest:
    """URL to send the user to, and the nonce that must come back with it."""

    url: str
    state: str


@dataclass(frozen=True)
class AuthorizationResult:
    """Parameters carried by a successful authorization callback."""

    code: str
    state: str
    expires_in: int | None = None


def generate_state() -> str:
    """Return a cryptographically random, URL-safe state nonce."""
    return secrets.token_urlsafe(STATE_NONCE_BYTES)


def secret_hash(client_secret: str, value: str) -> str:
    """Proof of the client secret sent instead of the secret itself.

    SHA-256 hex digest of ``"<client_secret>|<code or refresh token>"``.
    """
    return hashlib.sha256(f"{client_secret}|{value}".encode()).hexdigest()


class OAuthFlow:
    """Stateless OAuth2 authorization-code flow.

    Args:
        client_id: Application client id.
        client_secret: Application secret. Only its hash is sent.
        redirect_url: Registered redirect URI.
        authorization_url: Provider authorization endpoint.
        token_url: Provider token endpoint.
        transport: Transport for token endpoint calls.
        clock: Monotonic clock used to stamp tokens.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_url: str,
        authorization_url: str = DEFAULT_AUTHORIZATION_URL,
        token_url: str = DEFAULT_TOKEN_URL,
        transport: Transport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not client_id or not client_secret or not redirect_url:
            raise ValueError("client_id, client_secret and redirect_url are required")
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_url = redirect_url
        self.authorization_url = authorization_url
        self.token_url = token_url
        self.clock = clock
        self._transport = transport or HttpTransport()
        self._builder = RequestBuilder(base_url=token_url)

    def new_authorization_url(
        self, scopes: Iterable[AccessScope | str], state: str | None = None
    ) -> AuthorizationRequest:
        """Build the URL the user must visit to grant access.

        Args:
            scopes: Requested access scopes, sent comma-separated.
            state: Nonce to round-trip; a fresh one is generated if omitted.

        Returns:
            The URL together with the nonce the caller must keep.
        """
        nonce = state or generate_state()
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_url,
            "scope": comma_separated(scopes),
            "state": nonce,
        }
        return AuthorizationRequest(url=generate_url(self.authorization_url, params), state=nonce)

    def extract_authorization_result(
        self, callback_url: str, expected_state: str
    ) -> AuthorizationResult:
        """Validate the redirect back from the provider.

        Args:
            callback_url: Full redirect URL or just its query string.
            expected_state: Nonce returned by :meth:`new_authorization_url`.

        Raises:
            StateMismatchError: The ``state`` parameter is missing or differs.
            AccessDeniedError: The user declined (``error=access_denied``).
            UnsupportedResponseTypeError: ``error=unsupported_response_type``.
            InvalidScopeError: ``error=invalid_scope``.
            OAuthAuthorizationCodeError: Any other error, or no ``code``.
        """
        params = _callback_params(callback_url)

        state = params.get("state", "")
        if not expected_state or not secrets.compare_digest(
            state.encode(), expected_state.encode()
        ):
            logger.warning("OAuth callback state mismatch")
            raise StateMismatchError("OAuth state parameter does not match the request")

        error = params.get("error")
        if error:
            error_cls = AUTHORIZATION_CODE_ERRORS.get(error, OAuthAuthorizationCodeError)
            description = params.get("error_description") or error
            raise error_cls(description, error_code=error)

        code = params.get("code")
        if not code:
            raise OAuthAuthorizationCodeError("Authorization callback is missing the code")

        expires_in = params.get("expires_in")
        return AuthorizationResult(
            code=code,
            state=state,
            expires_in=int(expires_in) if expires_in and expires_in.isdigit() else None,
        )

    def obtain_new_token(self, result: AuthorizationResult) -> OAuthToken:
        """Exchange an authorization code for tokens.

        Codes are single-use; exchanging one twice fails server-side and is
        raised as an ``AuthorizationError`` without retrying.
        """
        return self._token_request(
            {
                "grant_type": "authorization_code",
                "code": result.code,
                "client_id": self.client_id,
                "redirect_uri": self.redirect_url,
                "hash": secret_hash(self._client_secret, result.code),
            }
        )

    def refresh_token(self, token: OAuthToken) -> OAuthToken:
        """Obtain new tokens with a refresh token.

        Raises:
            AuthorizationError: The token has no refresh token.
            OAuthTokenError: The refresh token was rejected.
        """
        if not token.refresh_token:
            raise AuthorizationError("Token has no refresh token")
        return self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": token.refresh_token,
                "client_id": self.client_id,
                "redirect_uri": self.redirect_url,
                "hash": secret_hash(self._client_secret, token.refresh_token),
            }
        )

    def revoke_access_token(self, token: OAuthToken) -> None:
        """Revoke the access token (and its refresh token) server-side."""
        request = RequestBuilder(
            base_url=self.token_url, token_provider=lambda: token.access_token
        ).build(self.token_url, "DELETE")
        response = self._transport.send(request)
        if not response.is_success:
            raise _token_error(response)

    def _token_request(self, params: dict[str, str]) -> OAuthToken:
        body = urllib.parse.urlencode(params).encode("ascii")
        request = self._builder.build(
            self.token_url, "POST", body=body, content_type=FORM_CONTENT_TYPE
        )
        response = self._transport.send(request)
        if not response.is_success:
            raise _token_error(response)
        try:
            return OAuthToken.from_dict(response.json(), obtained_at=self.clock())
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise OAuthTokenError(
                f"Invalid token response: {e}", status_code=response.status_code
            ) from e

    def close(self) -> None:
        self._transport.close()


def _callback_params(callback_url: str) -> dict[str, str]:
    query = urllib.parse.urlparse(callback_url).query if "?" in callback_url else callback_url
    parsed = urllib.parse.parse_qs(query.lstrip("?"), keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items()}


def _token_error(response: httpx.Response) -> OAuthTokenError:
    try:
        data = response.json()
    except ValueError:
        data = None
    if not isinstance(data, dict) or "error" not in data:
        return OAuthTokenError(
            f"Token endpoint error ({response.status_code}): {response.text}",
            status_code=response.status_code,
        )
    error = str(data["error"])
    error_cls = TOKEN_ERRORS.get(error, OAuthTokenError)
    return error_cls(
        data.get("error_description") or error,
        status_code=response.status_code,
        error_code=error,
    )


class OAuthSession:
    """Token store for one credential, driving the authorization-code flow.

    Safe to share between threads: every state change and every refresh
    happens under one lock, so concurrent callers that find an expired
    token trigger a single refresh.

    Args:
        flow: The OAuth flow used for exchanges and refreshes.
        token: Previously obtained token to start from.
        refresh_buffer: Seconds before expiry at which a token is refreshed.
    """

    def __init__(
        self,
        flow: OAuthFlow,
        token: OAuthToken | None = None,
        refresh_buffer: float = 60,
    ) -> None:
        self._flow = flow
        self._token = token
        self._refresh_buffer = refresh_buffer
        self._pending_state: str | None = None
        self._state = OAuthState.ACTIVE if token else OAuthState.IDLE
        self._state_before_begin = self._state
        self._lock = threading.Lock()

    @property
    def state(self) -> OAuthState:
        with self._lock:
            return self._current_state()

    @property
    def token(self) -> OAuthToken | None:
        return self._token

    def begin(self, scopes: Iterable[AccessScope | str]) -> str:
        """Start authorization and return the URL to open."""
        with self._lock:
            request = self._flow.new_authorization_url(scopes)
            if self._state is not OAuthState.AUTHORIZATION_REQUESTED:
                self._state_before_begin = self._state
            self._pending_state = request.state
            self._transition(OAuthState.AUTHORIZATION_REQUESTED)
            return request.url

    def complete(self, callback_url: str) -> OAuthToken:
        """Finish authorization from the redirect URL.

        A mismatched state or an ``error`` parameter ends the attempt
        before the token endpoint is called. Any failure puts the session
        back where it was before :meth:`begin`, keeping an existing token;
        the nonce is spent, so a new attempt starts with ``begin`` again.
        """
        with self._lock:
            if self._state is not OAuthState.AUTHORIZATION_REQUESTED or not self._pending_state:
                raise OAuthAuthorizationCodeError("No authorization request is pending")
            expected, self._pending_state = self._pending_state, None
            try:
                result = self._flow.extract_authorization_result(callback_url, expected)
                self._transition(OAuthState.CALLBACK_RECEIVED)
                token = self._flow.obtain_new_token(result)
            except Exception:
                self._transition(self._state_before_begin)
                raise
            self._token = token
            self._transition(OAuthState.TOKEN_EXCHANGED)
            self._transition(OAuthState.ACTIVE)
            return token

    def current_access_token(self) -> str:
        """Return a valid access token, refreshing it first if it expired."""
        with self._lock:
            token = self._token
            if token is None:
                raise AuthorizationError("Not authenticated")
            if not token.is_valid(self._flow.clock(), self._refresh_buffer):
                token = self._refresh_locked()
            return token.access_token

    async def acurrent_access_token(self) -> str:
        """Async variant of :meth:`current_access_token`.

        A valid token is returned without blocking. A refresh runs in a
        worker thread under the same lock, so the event loop keeps running
        while the token endpoint is called.
        """
        token = self._token
        if token is not None and token.is_valid(self._flow.clock(), self._refresh_buffer):
            return token.access_token
        return await asyncio.to_thread(self.current_access_token)

    def refresh(self) -> OAuthToken:
        """Force a refresh and return the new token."""
        with self._lock:
            return self._refresh_locked()

    def revoke(self) -> None:
        """Revoke the current token and forget it locally."""
        with self._lock:
            token, self._token = self._token, None
            try:
                if token is not None:
                    self._flow.revoke_access_token(token)
            finally:
                self._transition(OAuthState.REVOKED)

    def _refresh_locked(self) -> OAuthToken:
        if self._token is None:
            raise AuthorizationError("Not authenticated")
        try:
            token = self._flow.refresh_token(self._token)
        except AuthorizationError:
            # Refresh token revoked or expired: full re-authorization needed.
            self._token = None
            self._transition(OAuthState.REVOKED)
            raise
        self._token = token
        self._transition(OAuthState.REFRESHED)
        return token

    def _current_state(self) -> OAuthState:
        if (
            self._state in (OAuthState.ACTIVE, OAuthState.REFRESHED)
            and self._token is not None
            and not self._token.is_valid(self._flow.clock(), self._refresh_buffer)
        ):
            return OAuthState.EXPIRED
        return self._state

    def _transition(self, new_state: OAuthState) -> None:
        logger.debug(
            "OAuth session {old} -> {new}", old=self._state.value, new=new_state.value
        )
        self._state = new_state

"""Tests for the OAuth flow and session."""

import asyncio
import hashlib
import threading
import time
import urllib.parse

import httpx
import pytest

from smartsheet_client.exceptions import (
    AccessDeniedError,
    AuthorizationError,
    InvalidOAuthClientError,
    InvalidOAuthGrantError,
    InvalidScopeError,
    OAuthAuthorizationCodeError,
    OAuthTokenError,
    StateMismatchError,
    TransportError,
)
from smartsheet_client.models import AccessScope
from smartsheet_client.oauth import (
    DEFAULT_TOKEN_URL,
    OAuthFlow,
    OAuthSession,
    OAuthState,
    OAuthToken,
    generate_state,
    secret_hash,
)
from tests.fakes import FakeClock, FakeServer, json_response

CLIENT_ID = "client-123"
CLIENT_SECRET = "s3cret"
REDIRECT_URL = "https://app.example.com/callback"


def token_body(
    access: str = "access-1", refresh: str = "refresh-1", expires_in: int = 3600
) -> dict[str, object]:
    return {
        "access_token": access,
        "token_type": "bearer",
        "refresh_token": refresh,
        "expires_in": expires_in,
    }


def callback(**params: str) -> str:
    return REDIRECT_URL + "?" + urllib.parse.urlencode(params)


def form(request: httpx.Request) -> dict[str, str]:
    return dict(urllib.parse.parse_qsl(request.content.decode()))


def make_flow(server: FakeServer, clock: FakeClock | None = None) -> OAuthFlow:
    return OAuthFlow(
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        redirect_url=REDIRECT_URL,
        transport=server.transport(),
        clock=clock or FakeClock(),
    )


class TestOAuthToken:
    """Tests for OAuthToken."""

    def test_valid_before_expiry_buffer(self) -> None:
        token = OAuthToken(access_token="a", expires_in=3600, obtained_at=100.0)

        assert token.is_valid(now=100.0 + 3600 - 61)
        assert not token.is_valid(now=100.0 + 3600 - 59)

    def test_without_expiry_is_always_valid(self) -> None:
        assert OAuthToken(access_token="a").is_valid(now=1e12)

    def test_expires_in_seconds(self) -> None:
        token = OAuthToken(access_token="a", expires_in=100, obtained_at=0.0)

        assert token.expires_in_seconds(40.0) == 60
        assert token.expires_in_seconds(500.0) == 0

    def test_from_dict(self) -> None:
        token = OAuthToken.from_dict(token_body(expires_in=60), obtained_at=5.0)

        assert token.access_token == "access-1"
        assert token.refresh_token == "refresh-1"
        assert token.expires_at == 65.0

    def test_to_dict_round_trip(self) -> None:
        token = OAuthToken(access_token="a", refresh_token="r", expires_in=10)

        assert OAuthToken.from_dict(token.to_dict()) == token


class TestHelpers:
    """Tests for the state nonce and secret hash."""

    def test_state_is_random_and_url_safe(self) -> None:
        first, second = generate_state(), generate_state()

        assert first != second
        assert len(first) >= 43
        assert urllib.parse.quote(first, safe="") == first

    def test_secret_hash(self) -> None:
        expected = hashlib.sha256(b"s3cret|the-code").hexdigest()

        assert secret_hash("s3cret", "the-code") == expected


class TestAuthorizationUrl:
    """Tests for building the authorization URL."""

    def test_url_parameters(self) -> None:
        flow = make_flow(FakeServer())

        request = flow.new_authorization_url(
            [AccessScope.READ_SHEETS, AccessScope.WRITE_SHEETS], state="nonce"
        )

        parsed = urllib.parse.urlparse(request.url)
        query = dict(urllib.parse.parse_qsl(parsed.query))
        assert request.url.startswith("https://app.smartsheet.com/b/authorize?")
        assert query == {
            "response_type": "code",
            "client_id": CLIENT_ID,
            "redirect_uri": REDIRECT_URL,
            "scope": "READ_SHEETS,WRITE_SHEETS",
            "state": "nonce",
        }
        assert request.state == "nonce"

    def test_fresh_state_per_request(self) -> None:
        flow = make_flow(FakeServer())

        first = flow.new_authorization_url([AccessScope.READ_SHEETS])
        second = flow.new_authorization_url([AccessScope.READ_SHEETS])

        assert first.state != second.state

    def test_missing_credentials_rejected(self) -> None:
        with pytest.raises(ValueError):
            OAuthFlow(client_id="", client_secret="x", redirect_url=REDIRECT_URL)


class TestExtractAuthorizationResult:
    """Tests for validating the redirect callback."""

    @pytest.fixture
    def flow(self) -> OAuthFlow:
        return make_flow(FakeServer())

    def test_success(self, flow: OAuthFlow) -> None:
        result = flow.extract_authorization_result(
            callback(code="abc", state="nonce", expires_in="239"), "nonce"
        )

        assert result.code == "abc"
        assert result.expires_in == 239

    def test_query_string_only(self, flow: OAuthFlow) -> None:
        result = flow.extract_authorization_result("code=abc&state=nonce", "nonce")

        assert result.code == "abc"

    def test_state_mismatch(self, flow: OAuthFlow) -> None:
        with pytest.raises(StateMismatchError):
            flow.extract_authorization_result(callback(code="abc", state="other"), "nonce")

    def test_missing_state(self, flow: OAuthFlow) -> None:
        with pytest.raises(StateMismatchError):
            flow.extract_authorization_result(callback(code="abc"), "nonce")

    def test_state_checked_before_error(self, flow: OAuthFlow) -> None:
        """A forged callback carrying an error is still a state mismatch."""
        with pytest.raises(StateMismatchError):
            flow.extract_authorization_result(
                callback(error="access_denied", state="forged"), "nonce"
            )

    def test_access_denied(self, flow: OAuthFlow) -> None:
        with pytest.raises(AccessDeniedError) as exc_info:
            flow.extract_authorization_result(
                callback(error="access_denied", state="nonce"), "nonce"
            )

        assert exc_info.value.error_code == "access_denied"

    def test_invalid_scope(self, flow: OAuthFlow) -> None:
        with pytest.raises(InvalidScopeError):
            flow.extract_authorization_result(
                callback(error="invalid_scope", state="nonce"), "nonce"
            )

    def test_unknown_error(self, flow: OAuthFlow) -> None:
        with pytest.raises(OAuthAuthorizationCodeError):
            flow.extract_authorization_result(
                callback(error="server_error", state="nonce"), "nonce"
            )

    def test_missing_code(self, flow: OAuthFlow) -> None:
        with pytest.raises(OAuthAuthorizationCodeError, match="missing the code"):
            flow.extract_authorization_result(callback(state="nonce"), "nonce")


class TestTokenEndpoint:
    """Tests for code exchange, refresh and revoke."""

    def test_exchange_sends_hash_not_secret(self) -> None:
        server = FakeServer(json_response(200, token_body()))
        flow = make_flow(server, FakeClock(500.0))
        result = flow.extract_authorization_result(callback(code="abc", state="n"), "n")

        token = flow.obtain_new_token(result)

        request = server.last
        body = form(request)
        assert request.method == "POST"
        assert str(request.url) == DEFAULT_TOKEN_URL
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert body == {
            "grant_type": "authorization_code",
            "code": "abc",
            "client_id": CLIENT_ID,
            "redirect_uri": REDIRECT_URL,
            "hash": secret_hash(CLIENT_SECRET, "abc"),
        }
        assert CLIENT_SECRET not in request.content.decode()
        assert "Authorization" not in request.headers
        assert token.access_token == "access-1"
        assert token.obtained_at == 500.0

    @pytest.mark.parametrize(
        ("error", "error_type"),
        [
            ("invalid_grant", InvalidOAuthGrantError),
            ("invalid_client", InvalidOAuthClientError),
            ("something_new", OAuthTokenError),
        ],
    )
    def test_token_errors(self, error: str, error_type: type[OAuthTokenError]) -> None:
        server = FakeServer(json_response(400, {"error": error, "error_description": "nope"}))
        flow = make_flow(server)
        result = flow.extract_authorization_result(callback(code="abc", state="n"), "n")

        with pytest.raises(error_type) as exc_info:
            flow.obtain_new_token(result)

        assert isinstance(exc_info.value, AuthorizationError)
        assert exc_info.value.status_code == 400
        assert len(server.requests) == 1

    def test_non_json_error(self) -> None:
        server = FakeServer(httpx.Response(502, text="Bad Gateway"))
        flow = make_flow(server)
        result = flow.extract_authorization_result(callback(code="abc", state="n"), "n")

        with pytest.raises(OAuthTokenError, match="Bad Gateway"):
            flow.obtain_new_token(result)

    def test_malformed_token_response(self) -> None:
        server = FakeServer(json_response(200, {"token_type": "bearer"}))
        flow = make_flow(server)
        result = flow.extract_authorization_result(callback(code="abc", state="n"), "n")

        with pytest.raises(OAuthTokenError, match="Invalid token response"):
            flow.obtain_new_token(result)

    def test_refresh_sends_refresh_token_hash(self) -> None:
        server = FakeServer(json_response(200, token_body("access-2", "refresh-2")))
        flow = make_flow(server)

        token = flow.refresh_token(OAuthToken(access_token="access-1", refresh_token="refresh-1"))

        assert form(server.last) == {
            "grant_type": "refresh_token",
            "refresh_token": "refresh-1",
            "client_id": CLIENT_ID,
            "redirect_uri": REDIRECT_URL,
            "hash": secret_hash(CLIENT_SECRET, "refresh-1"),
        }
        assert token.refresh_token == "refresh-2"

    def test_refresh_without_refresh_token(self) -> None:
        server = FakeServer()
        flow = make_flow(server)

        with pytest.raises(AuthorizationError):
            flow.refresh_token(OAuthToken(access_token="a"))

        assert server.requests == []

    def test_revoke_uses_delete_with_bearer(self) -> None:
        server = FakeServer(httpx.Response(200))
        flow = make_flow(server)

        flow.revoke_access_token(OAuthToken(access_token="access-1"))

        assert server.last.method == "DELETE"
        assert server.last.headers["Authorization"] == "Bearer access-1"


class TestOAuthSession:
    """Tests for the session state machine."""

    def test_initial_state(self) -> None:
        flow = make_flow(FakeServer())

        assert OAuthSession(flow).state is OAuthState.IDLE
        assert OAuthSession(flow, OAuthToken(access_token="a")).state is OAuthState.ACTIVE

    def test_full_flow(self) -> None:
        server = FakeServer(json_response(200, token_body()))
        session = OAuthSession(make_flow(server))

        url = session.begin([AccessScope.READ_SHEETS])
        state = dict(urllib.parse.parse_qsl(urllib.parse.urlparse(url).query))["state"]
        assert session.state is OAuthState.AUTHORIZATION_REQUESTED

        token = session.complete(callback(code="abc", state=state))

        assert token.access_token == "access-1"
        assert session.state is OAuthState.ACTIVE
        assert session.current_access_token() == "access-1"

    def test_state_mismatch_never_calls_token_endpoint(self) -> None:
        server = FakeServer(json_response(200, token_body()))
        session = OAuthSession(make_flow(server))
        session.begin([AccessScope.READ_SHEETS])

        with pytest.raises(StateMismatchError):
            session.complete(callback(code="abc", state="forged"))

        assert server.requests == []
        assert session.state is OAuthState.IDLE
        assert session.token is None

    def test_access_denied_never_calls_token_endpoint(self) -> None:
        server = FakeServer(json_response(200, token_body()))
        session = OAuthSession(make_flow(server))
        url = session.begin([AccessScope.READ_SHEETS])
        state = dict(urllib.parse.parse_qsl(urllib.parse.urlparse(url).query))["state"]

        with pytest.raises(AccessDeniedError):
            session.complete(callback(error="access_denied", state=state))

        assert server.requests == []
        assert session.state is OAuthState.IDLE

    def test_failed_callback_keeps_existing_token(self) -> None:
        server = FakeServer(json_response(200, token_body()))
        session = OAuthSession(make_flow(server), OAuthToken(access_token="live"))
        session.begin([AccessScope.READ_SHEETS])

        with pytest.raises(StateMismatchError):
            session.complete(callback(code="abc", state="forged"))

        assert session.state is OAuthState.ACTIVE
        assert session.current_access_token() == "live"
        assert server.requests == []

    def test_network_failure_during_exchange_restores_state(self) -> None:
        server = FakeServer(
            httpx.ConnectError("connection refused"), json_response(200, token_body())
        )
        session = OAuthSession(make_flow(server))
        url = session.begin([AccessScope.READ_SHEETS])
        state = dict(urllib.parse.parse_qsl(urllib.parse.urlparse(url).query))["state"]

        with pytest.raises(TransportError):
            session.complete(callback(code="abc", state=state))

        assert session.state is OAuthState.IDLE
        assert session.token is None

        url = session.begin([AccessScope.READ_SHEETS])
        state = dict(urllib.parse.parse_qsl(urllib.parse.urlparse(url).query))["state"]
        token = session.complete(callback(code="def", state=state))

        assert token.access_token == "access-1"
        assert session.state is OAuthState.ACTIVE

    def test_complete_without_begin(self) -> None:
        session = OAuthSession(make_flow(FakeServer()))

        with pytest.raises(OAuthAuthorizationCodeError, match="No authorization request"):
            session.complete(callback(code="abc", state="x"))

    def test_unauthenticated_session(self) -> None:
        with pytest.raises(AuthorizationError, match="Not authenticated"):
            OAuthSession(make_flow(FakeServer())).current_access_token()

    def test_expired_token_is_refreshed(self) -> None:
        clock = FakeClock(0.0)
        server = FakeServer(json_response(200, token_body("access-2", "refresh-2")))
        token = OAuthToken(access_token="access-1", refresh_token="refresh-1", expires_in=3600)
        session = OAuthSession(make_flow(server, clock), token)

        clock.advance(3600)
        assert session.state is OAuthState.EXPIRED

        assert session.current_access_token() == "access-2"
        assert session.token is not None
        assert session.token.refresh_token == "refresh-2"
        assert session.state is OAuthState.REFRESHED
        assert len(server.requests) == 1

    def test_valid_token_is_not_refreshed(self) -> None:
        server = FakeServer()
        token = OAuthToken(access_token="access-1", refresh_token="r", expires_in=3600)
        session = OAuthSession(make_flow(server, FakeClock(0.0)), token)

        assert session.current_access_token() == "access-1"
        assert server.requests == []

    def test_failed_refresh_revokes_session(self) -> None:
        clock = FakeClock(0.0)
        server = FakeServer(json_response(400, {"error": "invalid_grant"}))
        token = OAuthToken(access_token="access-1", refresh_token="refresh-1", expires_in=60)
        session = OAuthSession(make_flow(server, clock), token)
        clock.advance(120)

        with pytest.raises(InvalidOAuthGrantError):
            session.current_access_token()

        assert session.state is OAuthState.REVOKED
        assert session.token is None
        with pytest.raises(AuthorizationError, match="Not authenticated"):
            session.current_access_token()

    def test_concurrent_callers_refresh_once(self) -> None:
        clock = FakeClock(0.0)
        calls: list[httpx.Request] = []

        def slow_token_endpoint(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            time.sleep(0.05)
            return json_response(200, token_body("access-2", "refresh-2"))

        server = FakeServer(slow_token_endpoint)
        token = OAuthToken(access_token="access-1", refresh_token="refresh-1", expires_in=60)
        session = OAuthSession(make_flow(server, clock), token)
        clock.advance(120)

        results: list[str] = []
        threads = [
            threading.Thread(target=lambda: results.append(session.current_access_token()))
            for _ in range(5)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results == ["access-2"] * 5
        assert len(calls) == 1

    async def test_async_valid_token_is_not_refreshed(self) -> None:
        server = FakeServer()
        token = OAuthToken(access_token="access-1", refresh_token="r", expires_in=3600)
        session = OAuthSession(make_flow(server, FakeClock(0.0)), token)

        assert await session.acurrent_access_token() == "access-1"
        assert server.requests == []

    async def test_async_concurrent_callers_refresh_once(self) -> None:
        clock = FakeClock(0.0)
        calls: list[httpx.Request] = []

        def slow_token_endpoint(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            time.sleep(0.05)
            return json_response(200, token_body("access-2", "refresh-2"))

        server = FakeServer(slow_token_endpoint)
        token = OAuthToken(access_token="access-1", refresh_token="refresh-1", expires_in=60)
        session = OAuthSession(make_flow(server, clock), token)
        clock.advance(120)

        results = await asyncio.gather(*(session.acurrent_access_token() for _ in range(3)))

        assert results == ["access-2"] * 3
        assert len(calls) == 1
        assert session.state is OAuthState.REFRESHED

    def test_revoke(self) -> None:
        server = FakeServer(httpx.Response(200))
        session = OAuthSession(make_flow(server), OAuthToken(access_token="access-1"))

        session.revoke()

        assert server.last.method == "DELETE"
        assert session.state is OAuthState.REVOKED
        assert session.token is None

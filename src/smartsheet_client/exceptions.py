"""Exceptions raised by the Smartsheet client.

Every error carries the HTTP status, the provider error code and the
provider message so callers can branch on them without parsing strings.
"""

from __future__ import annotations


class SmartsheetError(Exception):
    """Base exception for all client errors.

    Also used directly for errors that do not map to a more specific kind
    (unexpected statuses, unparseable error bodies, sink I/O failures).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: int | str | None = None,
        ref_id: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.ref_id = ref_id
        self.retry_after = retry_after

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"status_code={self.status_code!r}, error_code={self.error_code!r})"
        )


class InvalidRequestError(SmartsheetError):
    """Raised for malformed requests (400/409/412) or undecodable responses."""


class AuthorizationError(SmartsheetError):
    """Raised when the access token is missing, invalid or lacks permission (401/403)."""


class ResourceNotFoundError(SmartsheetError):
    """Raised when the requested resource does not exist (404)."""


class ServiceUnavailableError(SmartsheetError):
    """Raised when the service is unavailable (503). Retryable."""


class RateLimitExceededError(ServiceUnavailableError):
    """Raised when the caller is rate limited (429). Retryable."""


class TransportError(SmartsheetError):
    """Raised for network failures (DNS, connection reset, timeouts)."""


# OAuth token endpoint errors. These are authorization failures: any non-2xx
# from the token endpoint fails the flow as an AuthorizationError.


class OAuthTokenError(AuthorizationError):
    """Raised when the token endpoint rejects a request."""


class InvalidTokenRequestError(OAuthTokenError):
    """Token endpoint returned ``invalid_request``."""


class InvalidOAuthClientError(OAuthTokenError):
    """Token endpoint returned ``invalid_client``."""


class InvalidOAuthGrantError(OAuthTokenError):
    """Token endpoint returned ``invalid_grant`` (bad, used or revoked code/refresh token)."""


class UnsupportedOAuthGrantTypeError(OAuthTokenError):
    """Token endpoint returned ``unsupported_grant_type``."""


# Authorization callback errors. Raised before any token endpoint call.


class OAuthAuthorizationCodeError(SmartsheetError):
    """Raised when the authorization callback does not carry a usable code."""


class AccessDeniedError(OAuthAuthorizationCodeError):
    """The user denied the authorization request (``access_denied``)."""


class UnsupportedResponseTypeError(OAuthAuthorizationCodeError):
    """The authorization server does not support ``response_type=code``."""


class InvalidScopeError(OAuthAuthorizationCodeError):
    """One or more requested scopes were rejected."""


class StateMismatchError(OAuthAuthorizationCodeError):
    """The callback ``state`` does not match the nonce issued with the request."""


TOKEN_ERRORS: dict[str, type[OAuthTokenError]] = {
    "invalid_request": InvalidTokenRequestError,
    "invalid_client": InvalidOAuthClientError,
    "invalid_grant": InvalidOAuthGrantError,
    "unsupported_grant_type": UnsupportedOAuthGrantTypeError,
}

AUTHORIZATION_CODE_ERRORS: dict[str, type[OAuthAuthorizationCodeError]] = {
    "access_denied": AccessDeniedError,
    "unsupported_response_type": UnsupportedResponseTypeError,
    "invalid_scope": InvalidScopeError,
}

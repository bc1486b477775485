"""Python client for the Smartsheet REST API.

Usage:
    from smartsheet_client import Smartsheet

    with Smartsheet(access_token="...") as smartsheet:
        page = smartsheet.sheets.list_sheets()
        for sheet in page.data:
            print(sheet.id, sheet.name)

Library logging is disabled by default; call ``setup_logging()`` to see it.
"""

from loguru import logger

from smartsheet_client.client import (
    ApiClient,
    AsyncApiClient,
    Smartsheet,
    oauth_flow_from_settings,
)
from smartsheet_client.config import Settings, get_settings
from smartsheet_client.decoder import Result
from smartsheet_client.exceptions import (
    AccessDeniedError,
    AuthorizationError,
    InvalidOAuthClientError,
    InvalidOAuthGrantError,
    InvalidRequestError,
    InvalidScopeError,
    InvalidTokenRequestError,
    OAuthAuthorizationCodeError,
    OAuthTokenError,
    RateLimitExceededError,
    ResourceNotFoundError,
    ServiceUnavailableError,
    SmartsheetError,
    StateMismatchError,
    TransportError,
    UnsupportedOAuthGrantTypeError,
    UnsupportedResponseTypeError,
)
from smartsheet_client.logging import setup_logging
from smartsheet_client.models import PaginatedResult, PaginationParameters
from smartsheet_client.oauth import OAuthFlow, OAuthSession, OAuthState, OAuthToken
from smartsheet_client.request import Request, RequestBuilder
from smartsheet_client.retry import RetryPolicy

__version__ = "0.1.0"

logger.disable("smartsheet_client")

__all__ = [
    "AccessDeniedError",
    "ApiClient",
    "AsyncApiClient",
    "AuthorizationError",
    "InvalidOAuthClientError",
    "InvalidOAuthGrantError",
    "InvalidRequestError",
    "InvalidScopeError",
    "InvalidTokenRequestError",
    "OAuthAuthorizationCodeError",
    "OAuthFlow",
    "OAuthSession",
    "OAuthState",
    "OAuthToken",
    "OAuthTokenError",
    "PaginatedResult",
    "PaginationParameters",
    "RateLimitExceededError",
    "Request",
    "RequestBuilder",
    "ResourceNotFoundError",
    "Result",
    "RetryPolicy",
    "ServiceUnavailableError",
    "Settings",
    "Smartsheet",
    "SmartsheetError",
    "StateMismatchError",
    "TransportError",
    "UnsupportedOAuthGrantTypeError",
    "UnsupportedResponseTypeError",
    "get_settings",
    "oauth_flow_from_settings",
    "setup_logging",
]

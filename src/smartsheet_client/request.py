"""Request construction.

``RequestBuilder`` turns a resource path, verb, query parameters and an
optional body into an immutable ``Request``. Building has no side effects;
the same inputs always produce an equal request.
"""

from __future__ import annotations

import json
import urllib.parse
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from smartsheet_client.models import WireModel
from smartsheet_client.query import generate_url

DEFAULT_BASE_URL = "https://api.smartsheet.com/2.0/"
DEFAULT_USER_AGENT = "smartsheet-client-python/0.1.0"
JSON_CONTENT_TYPE = "application/json"

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "PUT", "DELETE", "OPTIONS"})


@dataclass(frozen=True)
class Request:
    """A fully built HTTP request.

    Attributes:
        method: Upper-case HTTP verb.
        url: Absolute URL including the query string.
        headers: Read-only header mapping.
        body: Serialized body bytes, or None.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    body: bytes | None = None

    @property
    def idempotent(self) -> bool:
        return self.method in IDEMPOTENT_METHODS


def serialize_body(body: Any) -> bytes | None:
    """Serialize a request body to JSON bytes.

    Models drop their absent fields; ``None`` values are dropped from plain
    mappings as well. Raw ``bytes`` pass through untouched.
    """
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    return json.dumps(_to_wire(body), separators=(",", ":")).encode("utf-8")


def _to_wire(value: Any) -> Any:
    if isinstance(value, WireModel):
        return value.to_wire()
    if isinstance(value, Mapping):
        return {k: _to_wire(v) for k, v in value.items() if v is not None}
    if isinstance(value, Sequence) and not isinstance(value, str):
        return [_to_wire(v) for v in value]
    return value


class RequestBuilder:
    """Builds requests against one API base URL.

    Args:
        base_url: API root, e.g. ``https://api.smartsheet.com/2.0/``.
        token_provider: Returns the current access token (or None for
            unauthenticated calls). Called once per build.
        user_agent: Value for the User-Agent header.
        assume_user: Optional email to act as (admin impersonation).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token_provider: Callable[[], str | None] | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        assume_user: str | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/"
        self._token_provider = token_provider or (lambda: None)
        self._user_agent = user_agent
        self._assume_user = assume_user

    @property
    def base_url(self) -> str:
        return self._base_url

    def url_for(self, path: str, params: Mapping[str, Any] | None = None) -> str:
        """Resolve ``path`` against the base URL and append the query string."""
        if path.startswith(("http://", "https://")):
            base = path
        else:
            base = self._base_url + path.lstrip("/")
        return generate_url(base, params)

    def build(
        self,
        path: str,
        method: str = "GET",
        params: Mapping[str, Any] | None = None,
        body: Any = None,
        accept: str = JSON_CONTENT_TYPE,
        content_type: str | None = None,
    ) -> Request:
        """Build a request.

        Args:
            path: Resource path relative to the base URL (or an absolute URL).
            method: HTTP verb.
            params: Ordered query parameters; ``None`` values are omitted.
            body: Model, mapping, list of models or raw bytes.
            accept: Accept header; binary exports pass their MIME type here.
            content_type: Overrides the body content type (raw uploads).

        Returns:
            The immutable request.
        """
        headers: dict[str, str] = {
            "Accept": accept,
            "User-Agent": self._user_agent,
        }
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if self._assume_user:
            headers["Assume-User"] = urllib.parse.quote(self._assume_user, safe="")

        payload = serialize_body(body)
        if payload is not None:
            headers["Content-Type"] = content_type or JSON_CONTENT_TYPE

        return Request(
            method=method.upper(),
            url=self.url_for(path, params),
            headers=MappingProxyType(headers),
            body=payload,
        )

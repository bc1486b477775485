"""Response decoding.

Turns raw HTTP responses into typed results or typed errors, and copies
binary export bodies into caller-supplied sinks.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Generic, Protocol, TypeVar

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from smartsheet_client.exceptions import (
    AuthorizationError,
    InvalidRequestError,
    RateLimitExceededError,
    ResourceNotFoundError,
    ServiceUnavailableError,
    SmartsheetError,
)
from smartsheet_client.models import PaginatedResult, RequestResult

T = TypeVar("T")

BUFFER_SIZE = 4096

STATUS_ERRORS: dict[int, type[SmartsheetError]] = {
    400: InvalidRequestError,
    401: AuthorizationError,
    403: AuthorizationError,
    404: ResourceNotFoundError,
    409: InvalidRequestError,
    412: InvalidRequestError,
    429: RateLimitExceededError,
    503: ServiceUnavailableError,
}


class BinarySink(Protocol):
    def write(self, data: bytes, /) -> Any: ...


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a decoded value or a typed error."""

    value: T | None = None
    error: SmartsheetError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


@lru_cache(maxsize=256)
def _adapter(result_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(result_type)


def decode(response: httpx.Response, result_type: Any) -> Result[Any]:
    """Decode a fully read response into ``result_type``.

    Args:
        response: The HTTP response (body already read).
        result_type: Target type, or None when no body is expected.

    Returns:
        Result holding the decoded value, or the mapped error for non-2xx
        statuses and undecodable bodies.
    """
    if not response.is_success:
        return Result(error=error_from_response(response))
    if result_type is None:
        return Result(value=None)

    try:
        value = _adapter(result_type).validate_json(response.content or b"null")
    except ValidationError as e:
        logger.debug("Failed to decode response body", extra={"status": response.status_code})
        return Result(
            error=InvalidRequestError(
                f"Unable to decode response: {e}",
                status_code=response.status_code,
            )
        )
    return Result(value=value)


def decode_paginated(response: httpx.Response, item_type: Any) -> Result[PaginatedResult[Any]]:
    """Decode a wrapped list ``{data, pageNumber, pageSize, totalPages, totalCount}``."""
    return decode(response, PaginatedResult[item_type])  # type: ignore[valid-type]


def decode_result_envelope(response: httpx.Response, item_type: Any) -> Result[Any]:
    """Decode a ``{message, resultCode, result}`` envelope and unwrap ``result``."""
    envelope = decode(response, RequestResult[item_type])  # type: ignore[valid-type]
    if not envelope.ok:
        return envelope
    return Result(value=envelope.unwrap().result)


def error_from_response(response: httpx.Response) -> SmartsheetError:
    """Map an error response to the matching exception."""
    return error_from_status(
        response.status_code,
        response.text,
        retry_after=_retry_after(response.headers.get("Retry-After")),
    )


def error_from_status(
    status_code: int, body: str, retry_after: float | None = None
) -> SmartsheetError:
    """Map a status and raw body to an error.

    The body is expected to be the ``{errorCode, message, refId}`` envelope.
    When it cannot be parsed, a generic error carrying the raw text is
    returned regardless of status.
    """
    envelope = _parse_envelope(body)
    if envelope is None:
        return SmartsheetError(
            f"HTTP {status_code}: {body}",
            status_code=status_code,
            retry_after=retry_after,
        )

    error_cls = STATUS_ERRORS.get(status_code, SmartsheetError)
    error = error_cls(
        envelope.get("message") or f"HTTP {status_code}",
        status_code=status_code,
        error_code=envelope.get("errorCode"),
        ref_id=envelope.get("refId"),
        retry_after=retry_after,
    )
    logger.debug(
        "API error",
        extra={
            "status": status_code,
            "error_code": error.error_code,
            "ref_id": error.ref_id,
        },
    )
    return error


def _parse_envelope(body: str) -> dict[str, Any] | None:
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(data, dict) or ("errorCode" not in data and "message" not in data):
        return None
    return data


def _retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def copy_stream(chunks: Iterable[bytes], sink: BinarySink) -> int:
    """Copy body chunks into ``sink`` and return the number of bytes written.

    ``chunks`` should already be bounded to ``BUFFER_SIZE`` (see
    ``httpx.Response.iter_bytes``). I/O failures on either side are wrapped
    in ``SmartsheetError``; any other exception raised by the sink stops the
    copy and propagates unchanged.
    """
    written = 0
    try:
        for chunk in chunks:
            sink.write(chunk)
            written += len(chunk)
    except (OSError, httpx.StreamError, httpx.TransportError) as e:
        raise SmartsheetError(f"Failed to copy response body: {e}") from e
    return written

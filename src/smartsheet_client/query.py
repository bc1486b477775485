"""Query string helpers.

Values are rendered in their wire form: enums by value, booleans as
``true``/``false``, datetimes in UTC with a ``Z`` suffix and sequences as a
single comma-joined value. Parameters whose value is ``None`` or an empty
sequence are dropped.
"""

from __future__ import annotations

import urllib.parse
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

E = TypeVar("E", bound=Enum)

DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_datetime(value: datetime) -> str:
    """Render a datetime in UTC using a fixed round-trip format.

    Naive datetimes are interpreted as local time, like ``datetime.astimezone``.
    """
    return value.astimezone(UTC).strftime(DATETIME_FORMAT)


def format_value(value: Any) -> str:
    """Render a single query value in wire form."""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, str):
        return value
    if isinstance(value, Iterable):
        return comma_separated(value)
    return str(value)


def comma_separated(values: Iterable[Any]) -> str:
    """Join values into one comma-separated string, keeping order and duplicates."""
    return ",".join(format_value(v) for v in values)


def parse_comma_separated(value: str, enum_type: type[E]) -> list[E]:
    """Parse a comma-separated wire value back into enum members."""
    if not value:
        return []
    return [enum_type(part) for part in value.split(",")]


def build_query(params: Mapping[str, Any] | None) -> str:
    """Build ``key=value&...`` from ordered params, skipping absent values.

    Returns an empty string when no parameter is present.
    """
    if not params:
        return ""
    pairs: list[str] = []
    for key, value in params.items():
        if isinstance(value, Iterable) and not isinstance(value, str):
            # Generators have no length and can be read only once.
            value = list(value)
        # An empty list of flags would render as "key=", so it counts as absent.
        if value is None or value == []:
            continue
        encoded = urllib.parse.quote(format_value(value), safe=",")
        pairs.append(f"{urllib.parse.quote(key, safe='')}={encoded}")
    return "&".join(pairs)


def generate_url(base: str, params: Mapping[str, Any] | None) -> str:
    """Append the query string to ``base``, adding ``?`` only when needed."""
    query = build_query(params)
    if not query:
        return base
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{query}"

"""Tests for query string helpers."""

from datetime import UTC, datetime, timedelta, timezone

from smartsheet_client.models import SheetInclusion, SheetLevelInclusion
from smartsheet_client.query import (
    build_query,
    comma_separated,
    format_datetime,
    format_value,
    generate_url,
    parse_comma_separated,
)


class TestFormatValue:
    """Tests for single value rendering."""

    def test_enum_renders_wire_value(self) -> None:
        assert format_value(SheetInclusion.OWNER_INFO) == "ownerInfo"

    def test_bool_renders_lowercase(self) -> None:
        assert format_value(True) == "true"
        assert format_value(False) == "false"

    def test_int_renders_decimal(self) -> None:
        assert format_value(42) == "42"

    def test_sequence_renders_comma_joined(self) -> None:
        assert format_value([1, 2, 3]) == "1,2,3"


class TestFormatDatetime:
    """Datetimes are rendered in UTC with a Z suffix."""

    def test_aware_datetime_is_converted_to_utc(self) -> None:
        value = datetime(2024, 3, 1, 12, 30, 0, tzinfo=timezone(timedelta(hours=2)))

        assert format_datetime(value) == "2024-03-01T10:30:00.000000Z"

    def test_utc_datetime_keeps_microseconds(self) -> None:
        value = datetime(2024, 3, 1, 0, 0, 0, 123456, tzinfo=UTC)

        assert format_datetime(value) == "2024-03-01T00:00:00.123456Z"


class TestCommaSeparated:
    """Tests for comma-joined enum lists."""

    def test_keeps_order_and_duplicates(self) -> None:
        values = [SheetInclusion.SOURCE, SheetInclusion.OWNER_INFO, SheetInclusion.SOURCE]

        assert comma_separated(values) == "source,ownerInfo,source"

    def test_parse_reverses_join(self) -> None:
        values = [SheetLevelInclusion.DISCUSSIONS, SheetLevelInclusion.FORMAT]

        assert parse_comma_separated(comma_separated(values), SheetLevelInclusion) == values

    def test_parse_empty_string(self) -> None:
        assert parse_comma_separated("", SheetInclusion) == []


class TestBuildQuery:
    """Tests for building query strings."""

    def test_none_values_are_omitted(self) -> None:
        assert build_query({"a": 1, "b": None, "c": "x"}) == "a=1&c=x"

    def test_empty_lists_are_omitted(self) -> None:
        assert build_query({"include": [], "page": 2}) == "page=2"

    def test_empty_iterables_are_omitted(self) -> None:
        params = {"include": iter([]), "exclude": (f for f in ()), "ids": {}.keys(), "page": 1}

        assert build_query(params) == "page=1"

    def test_generators_are_rendered(self) -> None:
        flags = (f for f in [SheetInclusion.SOURCE, SheetInclusion.OWNER_INFO])

        assert build_query({"include": flags}) == "include=source,ownerInfo"

    def test_order_is_preserved(self) -> None:
        assert build_query({"z": 1, "a": 2, "m": 3}) == "z=1&a=2&m=3"

    def test_values_are_percent_encoded(self) -> None:
        assert build_query({"q": "a b&c"}) == "q=a%20b%26c"

    def test_commas_are_kept_literal(self) -> None:
        assert build_query({"ids": [1, 2]}) == "ids=1,2"

    def test_all_absent_is_empty(self) -> None:
        assert build_query({"a": None}) == ""
        assert build_query(None) == ""


class TestGenerateUrl:
    """Tests for appending a query string to a URL."""

    def test_no_params_leaves_url_unchanged(self) -> None:
        assert generate_url("https://host/sheets", {"a": None}) == "https://host/sheets"

    def test_adds_question_mark(self) -> None:
        assert generate_url("https://host/sheets", {"page": 1}) == "https://host/sheets?page=1"

    def test_extends_existing_query(self) -> None:
        url = generate_url("https://host/sheets?include=source", {"page": 1})

        assert url == "https://host/sheets?include=source&page=1"

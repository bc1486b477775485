"""Value types exchanged with the Smartsheet REST API.

Wire models are immutable pydantic models. Field names are snake_case in
Python and camelCase on the wire; unknown wire fields are ignored so newer
API responses keep decoding. Optional fields default to ``None`` and are
left out of request bodies.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class WireModel(BaseModel):
    """Base class for all API models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible wire form, dropping absent fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Enums (values are the wire-format names)
# ---------------------------------------------------------------------------


class SheetInclusion(str, Enum):
    """Optional data for the sheet list endpoint."""

    SHEET_VERSION = "sheetVersion"
    SOURCE = "source"
    OWNER_INFO = "ownerInfo"


class SheetLevelInclusion(str, Enum):
    """Optional objects to embed when getting a single sheet."""

    ATTACHMENTS = "attachments"
    COLUMN_TYPE = "columnType"
    CROSS_SHEET_REFERENCES = "crossSheetReferences"
    DISCUSSIONS = "discussions"
    FILTERS = "filters"
    FORMAT = "format"
    OBJECT_VALUE = "objectValue"
    OWNER_INFO = "ownerInfo"
    ROW_PERMALINK = "rowPermalink"
    ROW_WRITER_INFO = "rowWriterInfo"
    SOURCE = "source"
    WRITER_INFO = "writerInfo"


class SheetLevelExclusion(str, Enum):
    """Objects to omit when getting a single sheet."""

    NONEXISTENT_CELLS = "nonexistentCells"
    FILTERED_OUT_ROWS = "filteredOutRows"
    LINK_IN_FROM_CELL_DETAILS = "linkInFromCellDetails"
    LINKS_OUT_TO_CELLS_DETAILS = "linksOutToCellsDetails"


class SheetCopyInclusion(str, Enum):
    """Elements to carry over when copying a sheet."""

    ALL = "all"
    ATTACHMENTS = "attachments"
    CELL_LINKS = "cellLinks"
    DATA = "data"
    DISCUSSIONS = "discussions"
    FILTERS = "filters"
    FORMS = "forms"
    RULE_RECIPIENTS = "ruleRecipients"
    RULES = "rules"
    SHARES = "shares"


class TemplateInclusion(str, Enum):
    """Elements to carry over when creating a sheet from a template."""

    ATTACHMENTS = "attachments"
    CELL_LINKS = "cellLinks"
    DATA = "data"
    DISCUSSIONS = "discussions"
    FORMS = "forms"


class ObjectInclusion(str, Enum):
    """Generic inclusion flags accepted by several endpoints."""

    ATTACHMENTS = "attachments"
    COLUMNS = "columns"
    COMMENTS = "comments"
    DATA = "data"
    DISCUSSIONS = "discussions"
    FILTERS = "filters"
    FORMAT = "format"
    FORMS = "forms"
    OWNER_INFO = "ownerInfo"
    SOURCE = "source"
    TEMPLATES = "templates"


class PaperSize(str, Enum):
    """Paper sizes for PDF export."""

    LETTER = "LETTER"
    LEGAL = "LEGAL"
    WIDE = "WIDE"
    ARCHD = "ARCHD"
    A4 = "A4"
    A3 = "A3"
    A2 = "A2"
    A1 = "A1"
    A0 = "A0"


class AccessLevel(str, Enum):
    VIEWER = "VIEWER"
    EDITOR = "EDITOR"
    EDITOR_SHARE = "EDITOR_SHARE"
    ADMIN = "ADMIN"
    OWNER = "OWNER"


class AccessScope(str, Enum):
    """OAuth scopes that can be requested during authorization."""

    READ_SHEETS = "READ_SHEETS"
    WRITE_SHEETS = "WRITE_SHEETS"
    SHARE_SHEETS = "SHARE_SHEETS"
    DELETE_SHEETS = "DELETE_SHEETS"
    CREATE_SHEETS = "CREATE_SHEETS"
    READ_USERS = "READ_USERS"
    ADMIN_USERS = "ADMIN_USERS"
    ADMIN_SHEETS = "ADMIN_SHEETS"
    ADMIN_WORKSPACES = "ADMIN_WORKSPACES"


class UpdateRequestStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETE = "COMPLETE"
    CANCELED = "CANCELED"


class ExportFormat(str, Enum):
    """Accept header values for binary sheet exports."""

    PDF = "application/pdf"
    EXCEL = "application/vnd.ms-excel"
    CSV = "text/csv"


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaginationParameters:
    """Paging options for list endpoints.

    Attributes:
        page: 1-based page number to return.
        page_size: Number of items per page.
        include_all: Return every item in one page, ignoring page/page_size.
    """

    page: int | None = None
    page_size: int | None = None
    include_all: bool | None = None

    def to_params(self) -> dict[str, Any]:
        """Return the query pairs for the fields that are set, in wire order."""
        params: dict[str, Any] = {}
        if self.include_all is not None:
            params["includeAll"] = self.include_all
        if self.page_size is not None:
            params["pageSize"] = self.page_size
        if self.page is not None:
            params["page"] = self.page
        return params


class PaginatedResult(WireModel, Generic[T]):
    """A wrapped list response with its pagination metadata."""

    page_number: int | None = None
    page_size: int | None = None
    total_pages: int | None = None
    total_count: int | None = None
    data: list[T] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def _null_data_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class RequestResult(WireModel, Generic[T]):
    """The ``{message, resultCode, result}`` envelope returned by mutating calls."""

    message: str | None = None
    result_code: int | None = None
    result: T | None = None
    version: int | None = None


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class User(WireModel):
    id: int | None = None
    email: str | None = None
    name: str | None = None


class Recipient(WireModel):
    """An email recipient: either an address or a group."""

    email: str | None = None
    group_id: int | None = None


class Cell(WireModel):
    column_id: int | None = None
    value: Any = None
    display_value: str | None = None
    formula: str | None = None
    strict: bool | None = None


class Column(WireModel):
    id: int | None = None
    index: int | None = None
    title: str | None = None
    type: str | None = None
    primary: bool | None = None
    width: int | None = None
    hidden: bool | None = None
    options: list[str] | None = None
    version: int | None = None


class Attachment(WireModel):
    id: int | None = None
    name: str | None = None
    url: str | None = None
    attachment_type: str | None = None
    mime_type: str | None = None
    size_in_kb: int | None = None
    parent_type: str | None = None
    parent_id: int | None = None
    created_at: datetime | None = None
    created_by: User | None = None


class Comment(WireModel):
    id: int | None = None
    text: str | None = None
    discussion_id: int | None = None
    created_by: User | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
    attachments: list[Attachment] | None = None


class Discussion(WireModel):
    id: int | None = None
    title: str | None = None
    comment: Comment | None = None
    comments: list[Comment] | None = None
    comment_count: int | None = None
    access_level: AccessLevel | None = None
    parent_type: str | None = None
    parent_id: int | None = None
    last_commented_at: datetime | None = None


class Row(WireModel):
    id: int | None = None
    sheet_id: int | None = None
    row_number: int | None = None
    parent_id: int | None = None
    sibling_id: int | None = None
    to_top: bool | None = None
    to_bottom: bool | None = None
    expanded: bool | None = None
    version: int | None = None
    cells: list[Cell] | None = None
    discussions: list[Discussion] | None = None
    attachments: list[Attachment] | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None


class RowWrapper(WireModel):
    """Row placement for insert and move operations.

    Use :meth:`for_insert` or :meth:`for_move`; both require a position.
    """

    to_top: bool | None = None
    to_bottom: bool | None = None
    parent_id: int | None = None
    sibling_id: int | None = None
    rows: list[Row] | None = None

    @classmethod
    def for_insert(
        cls,
        rows: list[Row],
        *,
        to_top: bool | None = None,
        to_bottom: bool | None = None,
        parent_id: int | None = None,
        sibling_id: int | None = None,
    ) -> RowWrapper:
        _require_position(to_top, to_bottom, parent_id, sibling_id)
        return cls(
            to_top=to_top,
            to_bottom=to_bottom,
            parent_id=parent_id,
            sibling_id=sibling_id,
            rows=rows,
        )

    @classmethod
    def for_move(
        cls,
        *,
        to_top: bool | None = None,
        to_bottom: bool | None = None,
        parent_id: int | None = None,
        sibling_id: int | None = None,
    ) -> RowWrapper:
        _require_position(to_top, to_bottom, parent_id, sibling_id)
        return cls(
            to_top=to_top,
            to_bottom=to_bottom,
            parent_id=parent_id,
            sibling_id=sibling_id,
        )


def _require_position(*position: Any) -> None:
    if all(p is None for p in position):
        raise ValueError(
            "One of the following must be set: to_top, to_bottom, parent_id, sibling_id"
        )


class Share(WireModel):
    id: str | None = None
    type: str | None = None
    user_id: int | None = None
    group_id: int | None = None
    email: str | None = None
    name: str | None = None
    access_level: AccessLevel | None = None
    scope: str | None = None


class SheetPublish(WireModel):
    read_only_lite_enabled: bool | None = None
    read_only_full_enabled: bool | None = None
    read_write_enabled: bool | None = None
    ical_enabled: bool | None = None
    read_only_lite_url: str | None = None
    read_only_full_url: str | None = None
    read_write_url: str | None = None
    ical_url: str | None = None


class Sheet(WireModel):
    id: int | None = None
    name: str | None = None
    version: int | None = None
    total_row_count: int | None = None
    access_level: AccessLevel | None = None
    permalink: str | None = None
    from_id: int | None = None
    owner: str | None = None
    owner_id: int | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
    columns: list[Column] | None = None
    rows: list[Row] | None = None
    discussions: list[Discussion] | None = None
    attachments: list[Attachment] | None = None


class FormatDetails(WireModel):
    paper_size: PaperSize | None = None


class SheetEmail(WireModel):
    send_to: list[Recipient] | None = None
    subject: str | None = None
    message: str | None = None
    cc_me: bool | None = None
    format: str | None = None
    format_details: FormatDetails | None = None


class MultiRowEmail(WireModel):
    send_to: list[Recipient] | None = None
    subject: str | None = None
    message: str | None = None
    cc_me: bool | None = None
    row_ids: list[int] | None = None
    column_ids: list[int] | None = None
    include_attachments: bool | None = None
    include_discussions: bool | None = None


class UpdateRequest(MultiRowEmail):
    id: int | None = None
    sent_by: User | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None


class SentUpdateRequest(WireModel):
    id: int | None = None
    update_request_id: int | None = None
    sent_at: datetime | None = None
    sent_by: User | None = None
    sent_to: Recipient | None = None
    status: UpdateRequestStatus | None = None
    row_ids: list[int] | None = None
    column_ids: list[int] | None = None
    include_attachments: bool | None = None
    include_discussions: bool | None = None
    subject: str | None = None
    message: str | None = None


class ContainerDestination(WireModel):
    """Target container for copy and move operations."""

    destination_type: str | None = None
    destination_id: int | None = None
    new_name: str | None = None


class Template(WireModel):
    id: int | None = None
    name: str | None = None
    description: str | None = None
    access_level: AccessLevel | None = None


class Folder(WireModel):
    id: int | None = None
    name: str | None = None
    permalink: str | None = None
    sheets: list[Sheet] | None = None
    folders: list[Folder] | None = None
    templates: list[Template] | None = None


class Workspace(WireModel):
    id: int | None = None
    name: str | None = None
    access_level: AccessLevel | None = None
    permalink: str | None = None
    sheets: list[Sheet] | None = None
    folders: list[Folder] | None = None
    templates: list[Template] | None = None


class Home(WireModel):
    """Everything in the user's Home location."""

    sheets: list[Sheet] = Field(default_factory=list)
    folders: list[Folder] = Field(default_factory=list)
    templates: list[Template] = Field(default_factory=list)
    workspaces: list[Workspace] = Field(default_factory=list)

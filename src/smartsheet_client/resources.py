"""Resource facades over ``ApiClient``.

Each facade is a thin ``ResourceClient`` bound to a root path and a model.
Paths are built from the root plus the positional parts passed to the
helpers, e.g. ``self.get(sheet_id, "columns", column_id)`` requests
``sheets/{sheet_id}/columns/{column_id}``.

Mutating calls return the payload of the ``{message, resultCode, result}``
envelope; list calls return ``PaginatedResult`` unless noted otherwise.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from loguru import logger

from smartsheet_client.models import (
    Attachment,
    Column,
    Comment,
    ContainerDestination,
    Discussion,
    ExportFormat,
    Home,
    MultiRowEmail,
    ObjectInclusion,
    PaginatedResult,
    PaginationParameters,
    PaperSize,
    Row,
    RowWrapper,
    SentUpdateRequest,
    Share,
    Sheet,
    SheetCopyInclusion,
    SheetEmail,
    SheetInclusion,
    SheetLevelExclusion,
    SheetLevelInclusion,
    SheetPublish,
    TemplateInclusion,
    UpdateRequest,
)

if TYPE_CHECKING:
    from smartsheet_client.client import ApiClient
    from smartsheet_client.decoder import BinarySink

M = TypeVar("M")


def _paging(paging: PaginationParameters | None) -> dict[str, Any]:
    return paging.to_params() if paging else {}


class ResourceClient(Generic[M]):
    """Generic CRUD helpers for one resource root.

    Args:
        client: The API client used to execute requests.
        path: Root path, e.g. ``"sheets"``.
        model: Model decoded from single-item responses.
    """

    def __init__(self, client: ApiClient, path: str, model: type[M]) -> None:
        self._client = client
        self.path = path.strip("/")
        self.model = model

    def _path(self, *parts: Any) -> str:
        return "/".join([self.path, *(str(p) for p in parts)])

    def get(
        self,
        *parts: Any,
        params: Mapping[str, Any] | None = None,
        result_type: Any = None,
    ) -> Any:
        """GET a single item."""
        request = self._client.build(self._path(*parts), params=params)
        return self._client.execute(request, result_type or self.model)

    def list_paginated(
        self,
        *parts: Any,
        params: Mapping[str, Any] | None = None,
        paging: PaginationParameters | None = None,
        item_type: Any = None,
    ) -> PaginatedResult[Any]:
        """GET one page of a wrapped list."""
        query = {**(params or {}), **_paging(paging)}
        request = self._client.build(self._path(*parts), params=query)
        return self._client.execute_paginated(request, item_type or self.model)

    def list(
        self,
        *parts: Any,
        params: Mapping[str, Any] | None = None,
        item_type: Any = None,
    ) -> list[Any]:
        """GET every item of a wrapped list in one call (``includeAll=true``)."""
        page = self.list_paginated(
            *parts,
            params=params,
            paging=PaginationParameters(include_all=True),
            item_type=item_type,
        )
        return page.data

    def create(
        self,
        body: Any,
        *parts: Any,
        params: Mapping[str, Any] | None = None,
        result_type: Any = None,
    ) -> Any:
        """POST ``body`` and return the envelope's ``result``."""
        request = self._client.build(self._path(*parts), "POST", params=params, body=body)
        return self._client.execute_envelope(request, result_type or self.model)

    def update(
        self,
        body: Any,
        *parts: Any,
        params: Mapping[str, Any] | None = None,
        result_type: Any = None,
    ) -> Any:
        """PUT ``body`` and return the envelope's ``result``."""
        request = self._client.build(self._path(*parts), "PUT", params=params, body=body)
        return self._client.execute_envelope(request, result_type or self.model)

    def delete(self, *parts: Any, params: Mapping[str, Any] | None = None) -> None:
        request = self._client.build(self._path(*parts), "DELETE", params=params)
        self._client.execute(request, None)

    def download(
        self,
        sink: BinarySink,
        *parts: Any,
        accept: str,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Stream a binary representation into ``sink``; returns bytes written."""
        request = self._client.build(self._path(*parts), params=params, accept=accept)
        return self._client.execute_raw(request, sink)


class SheetResources(ResourceClient[Sheet]):
    """Operations on sheets.

    Sub-resources are exposed as attributes: ``rows``, ``columns``,
    ``attachments``, ``discussions``, ``comments``, ``shares`` and
    ``update_requests``.
    """

    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "sheets", Sheet)
        self.rows = SheetRowResources(client)
        self.columns = SheetColumnResources(client)
        self.attachments = SheetAttachmentResources(client)
        self.discussions = SheetDiscussionResources(client)
        self.comments = SheetCommentResources(client)
        self.shares = ShareResources(client, "sheets")
        self.update_requests = SheetUpdateRequestResources(client)

    def list_sheets(
        self,
        include: Iterable[SheetInclusion] | None = None,
        paging: PaginationParameters | None = None,
        modified_since: datetime | None = None,
    ) -> PaginatedResult[Sheet]:
        """List the sheets the user can access.

        ``GET /sheets``
        """
        params: dict[str, Any] = {"include": _seq(include)}
        params.update(_paging(paging))
        params["modifiedSince"] = modified_since
        request = self._client.build("sheets", params=params)
        return self._client.execute_paginated(request, Sheet)

    def list_organization_sheets(
        self, paging: PaginationParameters | None = None
    ) -> PaginatedResult[Sheet]:
        """List every sheet owned by members of the organization (admin only).

        ``GET /users/sheets``
        """
        request = self._client.build("users/sheets", params=_paging(paging))
        return self._client.execute_paginated(request, Sheet)

    def get_sheet(
        self,
        sheet_id: int,
        include: Iterable[SheetLevelInclusion] | None = None,
        exclude: Iterable[SheetLevelExclusion] | None = None,
        row_ids: Iterable[int] | None = None,
        row_numbers: Iterable[int] | None = None,
        column_ids: Iterable[int] | None = None,
        page_size: int | None = None,
        page: int | None = None,
    ) -> Sheet:
        """Get a sheet with its columns and rows.

        ``GET /sheets/{sheetId}``
        """
        params = {
            "include": _seq(include),
            "exclude": _seq(exclude),
            "rowIds": _seq(row_ids),
            "rowNumbers": _seq(row_numbers),
            "columnIds": _seq(column_ids),
            "pageSize": page_size,
            "page": page,
        }
        return self.get(sheet_id, params=params)

    def get_sheet_as_pdf(
        self, sheet_id: int, sink: BinarySink, paper_size: PaperSize | None = None
    ) -> int:
        """Write the sheet as a PDF to ``sink``; returns the number of bytes."""
        return self._export(sheet_id, sink, ExportFormat.PDF, paper_size)

    def get_sheet_as_excel(self, sheet_id: int, sink: BinarySink) -> int:
        return self._export(sheet_id, sink, ExportFormat.EXCEL)

    def get_sheet_as_csv(self, sheet_id: int, sink: BinarySink) -> int:
        return self._export(sheet_id, sink, ExportFormat.CSV)

    def _export(
        self,
        sheet_id: int,
        sink: BinarySink,
        export_format: ExportFormat,
        paper_size: PaperSize | None = None,
    ) -> int:
        logger.debug(
            "Exporting sheet",
            extra={"sheet_id": sheet_id, "format": export_format.value},
        )
        return self.download(
            sink,
            sheet_id,
            accept=export_format.value,
            params={"paperSize": paper_size},
        )

    def create_sheet(self, sheet: Sheet) -> Sheet:
        """``POST /sheets``"""
        return self.create(sheet)

    def create_sheet_from_template(
        self, sheet: Sheet, include: Iterable[TemplateInclusion] | None = None
    ) -> Sheet:
        """Create a sheet from the template or sheet named by ``sheet.from_id``."""
        return self.create(sheet, params={"include": _seq(include)})

    def update_sheet(self, sheet: Sheet) -> Sheet:
        """Rename or change settings of ``sheet`` (its ``id`` must be set)."""
        if sheet.id is None:
            raise ValueError("sheet.id is required")
        return self.update(sheet.model_copy(update={"id": None}), sheet.id)

    def delete_sheet(self, sheet_id: int) -> None:
        self.delete(sheet_id)

    def get_sheet_version(self, sheet_id: int) -> int | None:
        """Return the sheet's current version number."""
        return self.get(sheet_id, "version").version

    def send_sheet(self, sheet_id: int, email: SheetEmail) -> None:
        """Email the sheet as an attachment."""
        self.create(email, sheet_id, "emails", result_type=SheetEmail)

    def send_update_request(self, sheet_id: int, email: MultiRowEmail) -> UpdateRequest:
        """Ask the recipients to update the selected rows."""
        return self.create(
            email, sheet_id, "updaterequests", result_type=UpdateRequest
        )

    def copy_sheet(
        self,
        sheet_id: int,
        destination: ContainerDestination,
        include: Iterable[SheetCopyInclusion] | None = None,
    ) -> Sheet:
        """``POST /sheets/{sheetId}/copy``"""
        return self.create(
            destination, sheet_id, "copy", params={"include": _seq(include)}
        )

    def move_sheet(self, sheet_id: int, destination: ContainerDestination) -> Sheet:
        """``POST /sheets/{sheetId}/move``"""
        return self.create(destination, sheet_id, "move")

    def get_publish_status(self, sheet_id: int) -> SheetPublish:
        return self.get(sheet_id, "publish", result_type=SheetPublish)

    def update_publish_status(self, sheet_id: int, publish: SheetPublish) -> SheetPublish:
        return self.update(
            publish, sheet_id, "publish", result_type=SheetPublish
        )


class SheetRowResources(ResourceClient[Row]):
    """Rows of a sheet."""

    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "sheets", Row)

    def insert_rows(self, sheet_id: int, wrapper: RowWrapper) -> list[Row]:
        """Insert ``wrapper.rows`` at the wrapper's position.

        Build the wrapper with :meth:`RowWrapper.for_insert`.
        """
        rows = [_place(row, wrapper) for row in wrapper.rows or []]
        return self.create(rows, sheet_id, "rows", result_type=list[Row])

    def get_row(
        self,
        sheet_id: int,
        row_id: int,
        include: Iterable[ObjectInclusion] | None = None,
    ) -> Row:
        return self.get(sheet_id, "rows", row_id, params={"include": _seq(include)})

    def update_rows(self, sheet_id: int, rows: list[Row]) -> list[Row]:
        """Update cell values or attributes of existing rows (ids required)."""
        return self.update(rows, sheet_id, "rows", result_type=list[Row])

    def move_row(self, sheet_id: int, row_id: int, wrapper: RowWrapper) -> list[Row]:
        """Move a row to the position described by ``wrapper``.

        Build the wrapper with :meth:`RowWrapper.for_move`.
        """
        row = _place(Row(id=row_id), wrapper)
        return self.update([row], sheet_id, "rows", result_type=list[Row])

    def delete_rows(
        self, sheet_id: int, row_ids: Iterable[int], ignore_rows_not_found: bool = False
    ) -> None:
        params = {"ids": _seq(row_ids), "ignoreRowsNotFound": ignore_rows_not_found or None}
        self.delete(sheet_id, "rows", params=params)


def _place(row: Row, wrapper: RowWrapper) -> Row:
    return row.model_copy(
        update={
            "to_top": wrapper.to_top,
            "to_bottom": wrapper.to_bottom,
            "parent_id": wrapper.parent_id,
            "sibling_id": wrapper.sibling_id,
        }
    )


class SheetColumnResources(ResourceClient[Column]):
    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "sheets", Column)

    def list_columns(
        self, sheet_id: int, paging: PaginationParameters | None = None
    ) -> PaginatedResult[Column]:
        return self.list_paginated(sheet_id, "columns", paging=paging)

    def add_columns(self, sheet_id: int, columns: list[Column]) -> list[Column]:
        return self.create(columns, sheet_id, "columns", result_type=list[Column])

    def get_column(self, sheet_id: int, column_id: int) -> Column:
        return self.get(sheet_id, "columns", column_id)

    def update_column(self, sheet_id: int, column: Column) -> Column:
        if column.id is None:
            raise ValueError("column.id is required")
        body = column.model_copy(update={"id": None})
        return self.update(body, sheet_id, "columns", column.id)

    def delete_column(self, sheet_id: int, column_id: int) -> None:
        self.delete(sheet_id, "columns", column_id)


class SheetAttachmentResources(ResourceClient[Attachment]):
    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "sheets", Attachment)

    def list_attachments(
        self, sheet_id: int, paging: PaginationParameters | None = None
    ) -> PaginatedResult[Attachment]:
        return self.list_paginated(sheet_id, "attachments", paging=paging)

    def get_attachment(self, sheet_id: int, attachment_id: int) -> Attachment:
        return self.get(sheet_id, "attachments", attachment_id)

    def attach_url(self, sheet_id: int, attachment: Attachment) -> Attachment:
        """Attach a link (``attachment_type`` LINK, BOX_COM, DROPBOX, ...) to the sheet."""
        return self.create(attachment, sheet_id, "attachments")

    def delete_attachment(self, sheet_id: int, attachment_id: int) -> None:
        self.delete(sheet_id, "attachments", attachment_id)


class SheetDiscussionResources(ResourceClient[Discussion]):
    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "sheets", Discussion)

    def create_discussion(self, sheet_id: int, discussion: Discussion) -> Discussion:
        """Start a discussion; ``discussion.comment`` holds the first comment."""
        return self.create(discussion, sheet_id, "discussions")

    def list_discussions(
        self,
        sheet_id: int,
        include: Iterable[ObjectInclusion] | None = None,
        paging: PaginationParameters | None = None,
    ) -> PaginatedResult[Discussion]:
        return self.list_paginated(
            sheet_id, "discussions", params={"include": _seq(include)}, paging=paging
        )

    def get_discussion(self, sheet_id: int, discussion_id: int) -> Discussion:
        return self.get(sheet_id, "discussions", discussion_id)

    def delete_discussion(self, sheet_id: int, discussion_id: int) -> None:
        self.delete(sheet_id, "discussions", discussion_id)


class SheetCommentResources(ResourceClient[Comment]):
    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "sheets", Comment)

    def get_comment(self, sheet_id: int, comment_id: int) -> Comment:
        return self.get(sheet_id, "comments", comment_id)

    def add_comment(self, sheet_id: int, discussion_id: int, comment: Comment) -> Comment:
        return self.create(
            comment, sheet_id, "discussions", discussion_id, "comments"
        )

    def delete_comment(self, sheet_id: int, comment_id: int) -> None:
        self.delete(sheet_id, "comments", comment_id)


class ShareResources(ResourceClient[Share]):
    """Shares of a shareable object (sheets, workspaces, ...)."""

    def __init__(self, client: ApiClient, path: str) -> None:
        super().__init__(client, path, Share)

    def list_shares(
        self, object_id: int, paging: PaginationParameters | None = None
    ) -> PaginatedResult[Share]:
        return self.list_paginated(object_id, "shares", paging=paging)

    def get_share(self, object_id: int, share_id: str) -> Share:
        return self.get(object_id, "shares", share_id)

    def share_to(
        self, object_id: int, shares: list[Share], send_email: bool | None = None
    ) -> list[Share]:
        return self.create(
            shares,
            object_id,
            "shares",
            params={"sendEmail": send_email},
            result_type=list[Share],
        )

    def update_share(self, object_id: int, share: Share) -> Share:
        """Change the access level of an existing share."""
        if share.id is None:
            raise ValueError("share.id is required")
        body = Share(access_level=share.access_level)
        return self.update(body, object_id, "shares", share.id)

    def delete_share(self, object_id: int, share_id: str) -> None:
        self.delete(object_id, "shares", share_id)


class SheetUpdateRequestResources(ResourceClient[UpdateRequest]):
    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "sheets", UpdateRequest)

    def list_update_requests(
        self, sheet_id: int, paging: PaginationParameters | None = None
    ) -> PaginatedResult[UpdateRequest]:
        return self.list_paginated(sheet_id, "updaterequests", paging=paging)

    def get_update_request(self, sheet_id: int, update_request_id: int) -> UpdateRequest:
        return self.get(sheet_id, "updaterequests", update_request_id)

    def create_update_request(self, sheet_id: int, request: UpdateRequest) -> UpdateRequest:
        return self.create(request, sheet_id, "updaterequests")

    def delete_update_request(self, sheet_id: int, update_request_id: int) -> None:
        self.delete(sheet_id, "updaterequests", update_request_id)

    def list_sent_update_requests(
        self, sheet_id: int, paging: PaginationParameters | None = None
    ) -> PaginatedResult[SentUpdateRequest]:
        return self.list_paginated(
            sheet_id, "sentupdaterequests", paging=paging, item_type=SentUpdateRequest
        )

    def get_sent_update_request(self, sheet_id: int, sent_request_id: int) -> SentUpdateRequest:
        return self.get(
            sheet_id, "sentupdaterequests", sent_request_id, result_type=SentUpdateRequest
        )


class WorkspaceSheetResources(ResourceClient[Sheet]):
    """Sheets at the top level of one workspace."""

    def __init__(self, client: ApiClient, workspace_id: int) -> None:
        super().__init__(client, f"workspaces/{workspace_id}", Sheet)
        self.workspace_id = workspace_id

    def create_sheet(self, sheet: Sheet) -> Sheet:
        """``POST /workspaces/{workspaceId}/sheets``"""
        return self.create(sheet, "sheets")

    def create_sheet_from_template(
        self, sheet: Sheet, include: Iterable[TemplateInclusion] | None = None
    ) -> Sheet:
        return self.create(sheet, "sheets", params={"include": _seq(include)})


class HomeResources(ResourceClient[Home]):
    def __init__(self, client: ApiClient) -> None:
        super().__init__(client, "home", Home)

    def get_home(self, include: Iterable[ObjectInclusion] | None = None) -> Home:
        """Get the sheets, folders, templates and workspaces in the user's Home."""
        return self.get(params={"include": _seq(include)})


def _seq(values: Iterable[Any] | None) -> list[Any] | None:
    # Materialize generators so the query builder can tell empty from absent.
    return None if values is None else list(values)

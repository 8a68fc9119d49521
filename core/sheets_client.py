"""Google Sheets client for the SheetStock inventory worksheet.

This module centralises every direct interaction with the Google Sheets and
Drive APIs used by SheetStock.  The rest of the application only sees five
operations:

* ``fetch_modified_timestamp`` reads the spreadsheet file's ``modifiedTime``
  from Drive.  The value is an opaque token; the synchroniser only compares it
  for equality.
* ``fetch_all_rows`` reads the whole worksheet and splits the header from the
  data rows.
* ``append_row``, ``replace_row`` and ``delete_row`` write back.  Row indices
  are 0-based into the data rows; the translation to A1 notation (header on
  row 1, data from row 2) happens here and nowhere else.

Sheets has no "delete values row" call, so ``delete_row`` reads the worksheet,
clears the data region and writes the remaining rows back.  That sequence is
not atomic: a writer that lands between the clear and the rewrite is lost.

All public entry points raise subclasses of :class:`SheetsClientError`.
Network and HTTP failures surface as :class:`TransientError`, which callers
treat as retryable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, List, MutableSequence, Optional, Sequence, Tuple

import httplib2
from google.auth import exceptions as google_auth_exceptions
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

ServiceProvider = Callable[[], Tuple[Any, Any]]

VALUE_INPUT_OPTION = "RAW"
INSERT_DATA_OPTION = "INSERT_ROWS"
MIN_COLUMNS = 26

TRANSIENT_EXCEPTIONS: Tuple[type, ...] = (
    HttpError,
    httplib2.HttpLib2Error,
    google_auth_exceptions.TransportError,
    google_auth_exceptions.RefreshError,
    OSError,
)


@dataclass(frozen=True)
class TableSnapshot:
    """Immutable copy of the worksheet as last fetched."""

    headers: List[str]
    rows: List[List[str]]
    modified_token: Optional[str] = None
    fetched_at: Optional[datetime] = None

    @classmethod
    def empty(cls) -> "TableSnapshot":
        return cls(headers=[], rows=[])

    @classmethod
    def from_values(cls, values: Sequence[Sequence[Any]]) -> "TableSnapshot":
        """Build a snapshot from raw ``values`` where row 0 is the header."""

        cleaned = [[str(cell) for cell in row] for row in values]
        if not cleaned:
            return cls(headers=[], rows=[], fetched_at=datetime.now(timezone.utc))
        return cls(headers=cleaned[0], rows=cleaned[1:], fetched_at=datetime.now(timezone.utc))

    def with_token(self, token: Optional[str]) -> "TableSnapshot":
        return replace(self, modified_token=token)

    def row(self, index: int) -> List[str]:
        return list(self.rows[index])


class SheetsClientError(RuntimeError):
    """Base error raised for Sheets API failures."""


class TransientError(SheetsClientError):
    """Raised when a remote read or write fails and may succeed later."""


def _normalise_title(title: str) -> str:
    """Return a worksheet title quoted according to A1 notation rules."""

    safe = (title or "").strip()
    if not safe:
        raise SheetsClientError("Worksheet title must be configured in settings.")
    safe = safe.replace("'", "''")
    return f"'{safe}'"


def column_letter(index: int) -> str:
    """Return the spreadsheet column letter for a 1-indexed column index."""

    if index < 1:
        raise ValueError("Column index must be >= 1")
    letters: MutableSequence[str] = []
    while index:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(65 + remainder))
    return "".join(reversed(letters))


def _column_count(columns: int) -> int:
    return max(MIN_COLUMNS, columns)


def a1_sheet_range(title: str) -> str:
    """Return a range addressing the whole worksheet ``title``."""

    return _normalise_title(title)


def a1_data_row_range(title: str, index: int, *, columns: int) -> str:
    """Return the A1 range for data row ``index`` (0-based, header excluded)."""

    if index < 0:
        raise ValueError("Row index must be >= 0")
    sheet_row = index + 2
    last_column = column_letter(_column_count(columns))
    return f"{_normalise_title(title)}!A{sheet_row}:{last_column}{sheet_row}"


def a1_data_block_range(title: str, *, row_count: int, columns: int) -> str:
    """Return the A1 range for ``row_count`` data rows starting below the header."""

    if row_count < 1:
        raise ValueError("Row count must be >= 1")
    last_column = column_letter(_column_count(columns))
    return f"{_normalise_title(title)}!A2:{last_column}{row_count + 1}"


def a1_data_rows(title: str, *, last_sheet_row: int) -> str:
    """Return whole-row A1 notation covering sheet rows 2..``last_sheet_row``."""

    return f"{_normalise_title(title)}!2:{max(2, last_sheet_row)}"


class GoogleSheetsClient:
    """Concrete helper that speaks to Google Sheets using the REST API."""

    def __init__(
        self,
        spreadsheet_id: str,
        worksheet_title: str,
        *,
        service=None,
        drive_service=None,
        service_provider: Optional[ServiceProvider] = None,
    ) -> None:
        if not spreadsheet_id:
            raise SheetsClientError("Spreadsheet ID must be configured in settings.")
        self._spreadsheet_id = spreadsheet_id
        self._worksheet_title = worksheet_title
        self._service = service
        self._drive_service = drive_service
        self._service_provider = service_provider

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    @property
    def worksheet_title(self) -> str:
        return self._worksheet_title

    def reset_services(self) -> None:
        """Forget cached API resources so the next call rebuilds them."""

        if self._service_provider is not None:
            self._service = None
            self._drive_service = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def fetch_modified_timestamp(self) -> str:
        """Return the spreadsheet's current modification token."""

        _sheets, drive = self._services()
        response = self._execute(
            "files.get",
            drive.files().get(fileId=self._spreadsheet_id, fields="modifiedTime"),
        )
        token = response.get("modifiedTime") if isinstance(response, dict) else None
        if not token:
            raise TransientError("Drive did not report a modification time for the spreadsheet.")
        return str(token)

    def fetch_all_rows(self) -> TableSnapshot:
        """Return the worksheet as a :class:`TableSnapshot`."""

        return TableSnapshot.from_values(self._fetch_values())

    def append_row(self, values: Sequence[str]) -> None:
        sheets, _drive = self._services()
        self._execute(
            "values.append",
            sheets.spreadsheets()
            .values()
            .append(
                spreadsheetId=self._spreadsheet_id,
                range=a1_sheet_range(self._worksheet_title),
                valueInputOption=VALUE_INPUT_OPTION,
                insertDataOption=INSERT_DATA_OPTION,
                body={"values": [list(values)]},
            ),
        )
        logger.info("Appended row with %d cells to %s", len(values), self._worksheet_title)

    def replace_row(self, index: int, values: Sequence[str]) -> None:
        sheets, _drive = self._services()
        self._execute(
            "values.update",
            sheets.spreadsheets()
            .values()
            .update(
                spreadsheetId=self._spreadsheet_id,
                range=a1_data_row_range(self._worksheet_title, index, columns=len(values)),
                valueInputOption=VALUE_INPUT_OPTION,
                body={"values": [list(values)]},
            ),
        )
        logger.info("Replaced data row %d in %s", index, self._worksheet_title)

    def delete_row(self, index: int) -> None:
        """Remove data row ``index`` by clearing and rewriting the data region.

        The header row is never touched.  When no data rows remain only the
        clear request is sent.
        """

        values = self._fetch_values()
        data_rows = [list(row) for row in values[1:]]
        if index < 0 or index >= len(data_rows):
            raise SheetsClientError(f"Row {index + 1} no longer exists in {self._worksheet_title}.")

        remaining = [row for position, row in enumerate(data_rows) if position != index]

        sheets, _drive = self._services()
        self._execute(
            "values.clear",
            sheets.spreadsheets()
            .values()
            .clear(
                spreadsheetId=self._spreadsheet_id,
                range=a1_data_rows(self._worksheet_title, last_sheet_row=len(data_rows) + 1),
                body={},
            ),
        )

        if remaining:
            width = max(len(row) for row in remaining)
            self._execute(
                "values.update",
                sheets.spreadsheets()
                .values()
                .update(
                    spreadsheetId=self._spreadsheet_id,
                    range=a1_data_block_range(
                        self._worksheet_title, row_count=len(remaining), columns=width
                    ),
                    valueInputOption=VALUE_INPUT_OPTION,
                    body={"values": remaining},
                ),
            )
        logger.info(
            "Deleted data row %d from %s; %d rows remain", index, self._worksheet_title, len(remaining)
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _services(self) -> Tuple[Any, Any]:
        if self._service is None or self._drive_service is None:
            if self._service_provider is None:
                raise SheetsClientError("Google API services are not available; sign in first.")
            self._service, self._drive_service = self._service_provider()
        return self._service, self._drive_service

    def _fetch_values(self) -> List[List[Any]]:
        sheets, _drive = self._services()
        response = self._execute(
            "values.get",
            sheets.spreadsheets()
            .values()
            .get(
                spreadsheetId=self._spreadsheet_id,
                range=a1_sheet_range(self._worksheet_title),
                majorDimension="ROWS",
            ),
        )
        values = response.get("values", []) if isinstance(response, dict) else []
        return [list(row) for row in values]

    @staticmethod
    def _execute(label: str, request) -> Any:
        try:
            return request.execute()
        except TRANSIENT_EXCEPTIONS as exc:
            raise TransientError(f"Sheets '{label}' failed: {exc}") from exc


__all__ = [
    "GoogleSheetsClient",
    "SheetsClientError",
    "TableSnapshot",
    "TransientError",
    "a1_data_block_range",
    "a1_data_row_range",
    "a1_data_rows",
    "a1_sheet_range",
    "column_letter",
]

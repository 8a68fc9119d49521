from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httplib2
import pytest
from googleapiclient.errors import HttpError

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.sheets_client import (
    GoogleSheetsClient,
    SheetsClientError,
    TransientError,
    a1_data_row_range,
    column_letter,
)


class _FakeRequest:
    def __init__(self, callback):
        self._callback = callback

    def execute(self):
        return self._callback()


class _FakeValues:
    def __init__(self, service: "_FakeSheetsService") -> None:
        self._service = service

    def get(self, spreadsheetId: str, range: str, majorDimension: str = "ROWS"):  # noqa: N803 - API compatibility
        return _FakeRequest(lambda: self._service._record("get", range, None))

    def append(self, spreadsheetId: str, range: str, valueInputOption: str, insertDataOption: str, body):  # noqa: N803
        return _FakeRequest(lambda: self._service._record("append", range, body))

    def update(self, spreadsheetId: str, range: str, valueInputOption: str, body):  # noqa: N803 - API compatibility
        return _FakeRequest(lambda: self._service._record("update", range, body))

    def clear(self, spreadsheetId: str, range: str, body):  # noqa: N803 - API compatibility
        return _FakeRequest(lambda: self._service._record("clear", range, body))


class _FakeSpreadsheets:
    def __init__(self, service: "_FakeSheetsService") -> None:
        self._service = service

    def values(self) -> _FakeValues:  # noqa: D401 - API compatibility
        return _FakeValues(self._service)


class _FakeSheetsService:
    def __init__(self, rows: Optional[List[List[Any]]] = None, error: Optional[Exception] = None) -> None:
        self.sheet_rows: List[List[Any]] = [list(row) for row in rows or []]
        self.requests: List[Dict[str, Any]] = []
        self.error = error

    def spreadsheets(self) -> _FakeSpreadsheets:  # noqa: D401 - API compatibility
        return _FakeSpreadsheets(self)

    def _record(self, method: str, range_spec: str, body) -> Dict[str, Any]:
        self.requests.append({"method": method, "range": range_spec, "body": body})
        if self.error is not None:
            raise self.error
        if method == "get":
            return {"range": range_spec, "values": [list(row) for row in self.sheet_rows]}
        return {}

    def methods(self) -> List[str]:
        return [request["method"] for request in self.requests]


class _FakeFiles:
    def __init__(self, service: "_FakeDriveService") -> None:
        self._service = service

    def get(self, fileId: str, fields: str):  # noqa: N803 - API compatibility
        self._service.requests.append({"fileId": fileId, "fields": fields})
        return _FakeRequest(lambda: dict(self._service.response))


class _FakeDriveService:
    def __init__(self, response: Optional[Dict[str, Any]] = None) -> None:
        self.response = response if response is not None else {"modifiedTime": "2024-05-01T10:00:00.000Z"}
        self.requests: List[Dict[str, Any]] = []

    def files(self) -> _FakeFiles:
        return _FakeFiles(self)


def _client(rows=None, *, drive=None, error=None) -> tuple:
    sheets = _FakeSheetsService(rows, error=error)
    client = GoogleSheetsClient(
        "sheet-id",
        "inventory",
        service=sheets,
        drive_service=drive or _FakeDriveService(),
    )
    return client, sheets


def test_column_letter() -> None:
    assert column_letter(1) == "A"
    assert column_letter(26) == "Z"
    assert column_letter(27) == "AA"
    assert column_letter(52) == "AZ"
    with pytest.raises(ValueError):
        column_letter(0)


def test_data_row_range_skips_header_and_quotes_title() -> None:
    assert a1_data_row_range("inventory", 0, columns=4) == "'inventory'!A2:Z2"
    assert a1_data_row_range("Bob's Sheet", 3, columns=30) == "'Bob''s Sheet'!A5:AD5"


def test_missing_spreadsheet_id_is_rejected() -> None:
    with pytest.raises(SheetsClientError):
        GoogleSheetsClient("", "inventory")


def test_fetch_all_rows_splits_header_from_data() -> None:
    client, _sheets = _client([["Timestamp", "Email Address", "Style"], ["t1", "e1", "A"], ["t2", "e2"]])

    snapshot = client.fetch_all_rows()

    assert snapshot.headers == ["Timestamp", "Email Address", "Style"]
    assert snapshot.rows == [["t1", "e1", "A"], ["t2", "e2"]]
    assert snapshot.fetched_at is not None


def test_fetch_all_rows_of_empty_sheet() -> None:
    client, _sheets = _client([])

    snapshot = client.fetch_all_rows()

    assert snapshot.headers == []
    assert snapshot.rows == []


def test_fetch_modified_timestamp_reads_drive_metadata() -> None:
    drive = _FakeDriveService()
    client, _sheets = _client([], drive=drive)

    assert client.fetch_modified_timestamp() == "2024-05-01T10:00:00.000Z"
    assert drive.requests == [{"fileId": "sheet-id", "fields": "modifiedTime"}]


def test_fetch_modified_timestamp_without_value_is_transient() -> None:
    client, _sheets = _client([], drive=_FakeDriveService({}))

    with pytest.raises(TransientError):
        client.fetch_modified_timestamp()


def test_append_row_sends_single_row() -> None:
    client, sheets = _client([["H"]])

    client.append_row(["2024-05-01T10:00:00Z", "email", "A"])

    request = sheets.requests[-1]
    assert request["method"] == "append"
    assert request["range"] == "'inventory'"
    assert request["body"] == {"values": [["2024-05-01T10:00:00Z", "email", "A"]]}


def test_replace_row_targets_sheet_row_after_header() -> None:
    client, sheets = _client([["H"], ["a"], ["b"], ["c"]])

    client.replace_row(2, ["x", "y"])

    request = sheets.requests[-1]
    assert request["method"] == "update"
    assert request["range"] == "'inventory'!A4:Z4"
    assert request["body"] == {"values": [["x", "y"]]}


def test_delete_only_row_clears_without_rewrite() -> None:
    client, sheets = _client([["Timestamp", "Email Address"], ["t1", "e1"]])

    client.delete_row(0)

    assert sheets.methods() == ["get", "clear"]
    assert sheets.requests[1]["range"] == "'inventory'!2:2"


def test_delete_middle_row_rewrites_remaining_rows_below_header() -> None:
    client, sheets = _client([["H1", "H2"], ["a", "1"], ["b", "2"], ["c", "3"]])

    client.delete_row(1)

    assert sheets.methods() == ["get", "clear", "update"]
    assert sheets.requests[1]["range"] == "'inventory'!2:4"
    rewrite = sheets.requests[2]
    assert rewrite["range"] == "'inventory'!A2:Z3"
    assert rewrite["body"] == {"values": [["a", "1"], ["c", "3"]]}


def test_delete_unknown_row_raises() -> None:
    client, sheets = _client([["H"], ["a"]])

    with pytest.raises(SheetsClientError):
        client.delete_row(5)
    assert sheets.methods() == ["get"]


def test_http_errors_become_transient() -> None:
    error = HttpError(httplib2.Response({"status": "503"}), b"{}")
    client, _sheets = _client([], error=error)

    with pytest.raises(TransientError) as excinfo:
        client.fetch_all_rows()
    assert excinfo.value.__cause__ is error


def test_services_come_from_provider_and_reset() -> None:
    built: List[int] = []

    def provider():
        built.append(1)
        return _FakeSheetsService([["H"], ["a"]]), _FakeDriveService()

    client = GoogleSheetsClient("sheet-id", "inventory", service_provider=provider)
    client.fetch_all_rows()
    client.fetch_all_rows()
    assert len(built) == 1

    client.reset_services()
    client.fetch_all_rows()
    assert len(built) == 2


def test_missing_services_without_provider() -> None:
    client = GoogleSheetsClient("sheet-id", "inventory")

    with pytest.raises(SheetsClientError):
        client.fetch_all_rows()

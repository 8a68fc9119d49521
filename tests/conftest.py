from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from core.sheets_client import TableSnapshot, TransientError


class FakeScheduler:
    """Simulated clock implementing the scheduler protocol.

    With ``eager`` set, submitted work runs immediately.  Otherwise it waits in
    ``jobs`` until :meth:`run_jobs` completes it, which lets a test observe how
    many remote calls are outstanding at once.
    """

    def __init__(self, *, eager: bool = True) -> None:
        self.eager = eager
        self.now = 0.0
        self.timers: Dict[int, Tuple[float, Callable[[], None]]] = {}
        self.jobs: List[Tuple[Callable[[], Any], Any, Any]] = []
        self._next_handle = 1

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self.timers[handle] = (self.now + delay_seconds, callback)
        return handle

    def cancel(self, handle: Any) -> None:
        self.timers.pop(handle, None)

    def submit(self, func, on_success=None, on_error=None) -> None:
        self.jobs.append((func, on_success, on_error))
        if self.eager:
            self.run_jobs()

    def run_jobs(self) -> None:
        while self.jobs:
            func, on_success, on_error = self.jobs.pop(0)
            try:
                result = func()
            except Exception as exc:
                if on_error is not None:
                    on_error(exc)
            else:
                if on_success is not None:
                    on_success(result)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [(when, handle) for handle, (when, _cb) in self.timers.items() if when <= target]
            if not due:
                break
            when, handle = min(due)
            _when, callback = self.timers.pop(handle)
            self.now = when
            callback()
        self.now = target


class FakeTableClient:
    """In-memory stand-in for :class:`core.sheets_client.GoogleSheetsClient`."""

    def __init__(self, headers: Optional[List[str]] = None, rows: Optional[List[List[str]]] = None) -> None:
        self.headers = list(headers or [])
        self.rows = [list(row) for row in rows or []]
        self.tokens: List[Any] = []
        self.token = "T0"
        self.calls: List[Tuple[str, Any]] = []
        self.fail_writes = False
        self.fail_reads = False
        self.resets = 0

    def reset_services(self) -> None:
        self.resets += 1

    def fetch_modified_timestamp(self) -> str:
        self.calls.append(("fetch_modified_timestamp", None))
        if self.tokens:
            outcome = self.tokens.pop(0)
        else:
            outcome = self.token
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def fetch_all_rows(self) -> TableSnapshot:
        self.calls.append(("fetch_all_rows", None))
        if self.fail_reads:
            raise TransientError("read failed")
        return TableSnapshot.from_values([self.headers, *self.rows] if self.headers else [])

    def append_row(self, values) -> None:
        self.calls.append(("append_row", list(values)))
        if self.fail_writes:
            raise TransientError("append failed")
        self.rows.append(list(values))

    def replace_row(self, index, values) -> None:
        self.calls.append(("replace_row", (index, list(values))))
        if self.fail_writes:
            raise TransientError("update failed")
        self.rows[index] = list(values)

    def delete_row(self, index) -> None:
        self.calls.append(("delete_row", index))
        if self.fail_writes:
            raise TransientError("delete failed")
        del self.rows[index]

    def count(self, name: str) -> int:
        return sum(1 for call, _args in self.calls if call == name)


class FakeGateway:
    """Session gateway double that flips sign-in state on demand."""

    def __init__(self, signed_in: bool = False) -> None:
        self._signed_in = signed_in
        self._listeners: List[Callable[[bool], None]] = []
        self.account_email: Optional[str] = "owner@example.com"

    def currently_signed_in(self) -> bool:
        return self._signed_in

    def subscribe(self, listener):
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def sign_in(self) -> None:
        if self._signed_in:
            return
        self._signed_in = True
        for listener in list(self._listeners):
            listener(True)

    def sign_out(self) -> None:
        if not self._signed_in:
            return
        self._signed_in = False
        for listener in list(self._listeners):
            listener(False)


INVENTORY_HEADERS = ["Timestamp", "Email Address", "Style", "Qty"]


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def client() -> FakeTableClient:
    return FakeTableClient(INVENTORY_HEADERS, [["t1", "e1", "A", "5"]])


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()

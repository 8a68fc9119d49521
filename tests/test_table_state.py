from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.table_state import TableState


def test_reload_replaces_snapshot_and_notifies(client, scheduler) -> None:
    state = TableState(client, scheduler)
    events = []
    state.subscribe(lambda status, payload: events.append((status, payload)))

    state.reload("T5")

    assert [status for status, _payload in events] == ["refreshing", "loaded"]
    assert state.snapshot.rows == [["t1", "e1", "A", "5"]]
    assert state.snapshot.modified_token == "T5"
    assert not state.is_refreshing


def test_reload_without_token_keeps_previous_token(client, scheduler) -> None:
    state = TableState(client, scheduler)
    state.reload("T5")

    client.rows.append(["t2", "e2", "B", "1"])
    state.reload()

    assert state.snapshot.modified_token == "T5"
    assert len(state.snapshot.rows) == 2


def test_last_completed_reload_wins(client, scheduler) -> None:
    scheduler.eager = False
    state = TableState(client, scheduler)

    state.reload()
    client.rows.append(["t2", "e2", "B", "1"])
    state.reload()
    assert state.is_refreshing

    # complete the second request first, then the older one
    second = scheduler.jobs.pop(1)
    _func, on_success, _on_error = second
    on_success(client.fetch_all_rows())
    client.rows.pop()
    scheduler.run_jobs()

    assert state.snapshot.rows == [["t1", "e1", "A", "5"]]
    assert not state.is_refreshing


def test_failed_reload_keeps_snapshot_and_reports(client, scheduler) -> None:
    state = TableState(client, scheduler)
    state.reload()
    events = []
    state.subscribe(lambda status, payload: events.append((status, payload)))

    client.fail_reads = True
    state.reload()

    assert state.snapshot.rows == [["t1", "e1", "A", "5"]]
    assert state.last_error == "read failed"
    status, payload = events[-1]
    assert status == "error"
    assert payload["message"] == "Failed to load data from Google Sheets. read failed"


def test_clear_drops_results_of_earlier_requests(client, scheduler) -> None:
    scheduler.eager = False
    state = TableState(client, scheduler)
    state.reload()

    state.clear()
    scheduler.run_jobs()

    assert state.snapshot.headers == []
    assert state.snapshot.rows == []
    assert not state.is_refreshing


def test_unsubscribe_stops_notifications(client, scheduler) -> None:
    state = TableState(client, scheduler)
    events = []
    unsubscribe = state.subscribe(lambda status, payload: events.append(status))
    unsubscribe()

    state.reload()

    assert events == []

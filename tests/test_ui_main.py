from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

pytest.importorskip("tkinter")

from core.mutations import MutationCoordinator
from core.poll_sync import PollingSynchronizer
from core.table_state import TableState
from ui_main import MainWindow


def _wired_window(gateway, client, scheduler, seen):
    """Build a MainWindow without widgets, wired the way ``_initialize`` wires it."""

    window = MainWindow.__new__(MainWindow)
    table_state = TableState(client, scheduler)
    mutations = MutationCoordinator(client, table_state, scheduler)
    mutations.attach(gateway)
    synchronizer = PollingSynchronizer(gateway, client, table_state, scheduler)
    synchronizer.attach()

    gateway.error_callback = lambda error: seen.append(("error", error))
    window.gateway = gateway
    window.table_state = table_state
    window.mutations = mutations
    window.synchronizer = synchronizer
    window.editor = None
    window._subscriptions = [
        table_state.subscribe(lambda status, payload: seen.append(("table", status))),
        gateway.subscribe(lambda signed_in: seen.append(("session", signed_in))),
    ]
    return window


def test_teardown_releases_every_session_listener(gateway, client, scheduler) -> None:
    seen = []
    window = _wired_window(gateway, client, scheduler, seen)

    window._teardown()
    gateway.sign_in()

    assert seen == []
    assert client.calls == []
    assert gateway.error_callback is None
    assert window._subscriptions == []
    assert window.gateway is None and window.mutations is None and window.synchronizer is None

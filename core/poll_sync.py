"""Periodic change detection for the inventory worksheet.

The synchroniser follows the session: it starts when the user signs in and
stops when they sign out.  While active, a repeating timer asks Drive for the
spreadsheet's modification token and triggers a full reload whenever the token
differs from the last one seen.  The very first check of a session has no
token to compare against, so it always reloads; that is how the initial load
happens.

A failed check from the regular timer schedules one deferred retry.  The
regular timer keeps ticking meanwhile, so at most one extra check is in flight
at any time.  A failed retry does not schedule another retry, and a failure
while a retry is already pending is absorbed by it.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from core.scheduler import Scheduler
from core.session_gateway import SessionGateway
from core.sheets_client import GoogleSheetsClient
from core.table_state import TableState

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30
DEFAULT_BACKOFF_SECONDS = 60

StatusPayload = Dict[str, object]
StatusCallback = Callable[[str, StatusPayload], None]


class SyncState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    BACKOFF_WAIT = "backoff_wait"


class PollingSynchronizer:
    """Own the poll timer for one signed-in session at a time."""

    def __init__(
        self,
        gateway: SessionGateway,
        client: GoogleSheetsClient,
        table_state: TableState,
        scheduler: Scheduler,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        status_callback: Optional[StatusCallback] = None,
    ) -> None:
        self._gateway = gateway
        self._client = client
        self._table_state = table_state
        self._scheduler = scheduler
        self._interval = interval_seconds
        self._backoff = backoff_seconds
        self._status_callback = status_callback
        self._timer: Any = None
        self._retry: Any = None
        self._last_token: Optional[str] = None
        self._generation = 0
        self._in_flight = 0
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def attach(self) -> None:
        """Follow the gateway's sign-in state, starting now if already signed in."""

        if self._unsubscribe is None:
            self._unsubscribe = self._gateway.subscribe(self._on_sign_in_changed)
        if self._gateway.currently_signed_in():
            self.start()

    def close(self) -> None:
        self.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def start(self) -> None:
        self.stop()
        self._generation += 1
        self._last_token = None
        self._arm()
        logger.info("Auto-refresh started with interval: %s s", self._interval)
        self._notify("active", {"interval": self._interval})
        self._check(from_retry=False)

    def stop(self) -> None:
        was_running = self._timer is not None
        if self._timer is not None:
            self._scheduler.cancel(self._timer)
            self._timer = None
        if self._retry is not None:
            self._scheduler.cancel(self._retry)
            self._retry = None
        if was_running:
            self._generation += 1
            logger.info("Auto-refresh stopped")
            self._notify("idle", {})

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> SyncState:
        if self._timer is None:
            return SyncState.IDLE
        if self._retry is not None:
            return SyncState.BACKOFF_WAIT
        return SyncState.ACTIVE

    @property
    def timer_active(self) -> bool:
        return self._timer is not None

    @property
    def backoff_pending(self) -> bool:
        return self._retry is not None

    @property
    def last_known_token(self) -> Optional[str]:
        return self._last_token

    @property
    def in_flight_checks(self) -> int:
        return self._in_flight

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _on_sign_in_changed(self, signed_in: bool) -> None:
        if signed_in:
            self._client.reset_services()
            self.start()
        else:
            self.stop()
            self._client.reset_services()
            self._table_state.clear()

    def _arm(self) -> None:
        self._timer = self._scheduler.call_later(self._interval, self._on_tick)

    def _on_tick(self) -> None:
        if self._timer is None:
            return
        self._arm()
        self._check(from_retry=False)

    def _on_retry(self) -> None:
        self._retry = None
        if self._timer is None:
            return
        logger.info("Retrying the update check after backoff")
        self._check(from_retry=True)

    def _check(self, *, from_retry: bool) -> None:
        generation = self._generation
        self._in_flight += 1
        self._scheduler.submit(
            self._client.fetch_modified_timestamp,
            lambda token: self._on_checked(generation, token),
            lambda exc: self._on_check_failed(generation, exc, from_retry),
        )

    def _on_checked(self, generation: int, token: str) -> None:
        self._in_flight = max(0, self._in_flight - 1)
        if generation != self._generation:
            return
        if self._last_token is None or token != self._last_token:
            logger.info("Sheet changes detected, refreshing data")
            self._last_token = token
            self._notify("changed", {"token": token})
            self._table_state.reload(token)
            return
        self._notify("unchanged", {"token": token})

    def _on_check_failed(self, generation: int, exc: Exception, from_retry: bool) -> None:
        self._in_flight = max(0, self._in_flight - 1)
        if generation != self._generation:
            return
        logger.warning("Error checking for updates: %s", exc, exc_info=True)
        self._notify("offline", {"message": str(exc)})
        if from_retry or self._retry is not None:
            return
        logger.info("Will try to check for updates again in %s seconds", self._backoff)
        self._retry = self._scheduler.call_later(self._backoff, self._on_retry)

    def _notify(self, status: str, payload: StatusPayload) -> None:
        if self._status_callback:
            try:
                self._status_callback(status, payload)
            except Exception:  # pragma: no cover - UI callback guard
                logger.debug("Poll status callback failed", exc_info=True)


__all__ = [
    "DEFAULT_BACKOFF_SECONDS",
    "DEFAULT_INTERVAL_SECONDS",
    "PollingSynchronizer",
    "SyncState",
]

"""Owner of the current worksheet snapshot.

Reloads are neither queued nor de-duplicated: whichever response arrives last
replaces the snapshot.  ``clear`` bumps a generation counter so responses
belonging to a previous session are dropped.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from core.scheduler import Scheduler
from core.sheets_client import GoogleSheetsClient, TableSnapshot

logger = logging.getLogger(__name__)

StatusPayload = Dict[str, object]
StatusListener = Callable[[str, StatusPayload], None]


class TableState:
    """Hold the latest :class:`TableSnapshot` and refresh it on demand."""

    def __init__(self, client: GoogleSheetsClient, scheduler: Scheduler) -> None:
        self._client = client
        self._scheduler = scheduler
        self._snapshot = TableSnapshot.empty()
        self._listeners: List[StatusListener] = []
        self._in_flight = 0
        self._generation = 0
        self.last_error: Optional[str] = None

    @property
    def snapshot(self) -> TableSnapshot:
        return self._snapshot

    @property
    def is_refreshing(self) -> bool:
        return self._in_flight > 0

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reload(self, token: Optional[str] = None) -> None:
        """Fetch the whole worksheet and replace the snapshot when it arrives."""

        generation = self._generation
        self._in_flight += 1
        self._notify("refreshing", {"in_flight": self._in_flight})
        self._scheduler.submit(
            self._client.fetch_all_rows,
            lambda snapshot: self._on_loaded(generation, token, snapshot),
            lambda exc: self._on_failed(generation, exc),
        )

    def clear(self) -> None:
        self._generation += 1
        self._in_flight = 0
        self._snapshot = TableSnapshot.empty()
        self.last_error = None
        self._notify("cleared", {})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _on_loaded(self, generation: int, token: Optional[str], snapshot: TableSnapshot) -> None:
        if generation != self._generation:
            logger.debug("Discarding worksheet data from a previous session")
            return
        self._in_flight = max(0, self._in_flight - 1)
        if token is None:
            token = self._snapshot.modified_token
        self._snapshot = snapshot.with_token(token)
        self.last_error = None
        logger.info("Worksheet reloaded: %d rows", len(snapshot.rows))
        self._notify("loaded", {"rows": len(snapshot.rows)})

    def _on_failed(self, generation: int, exc: Exception) -> None:
        if generation != self._generation:
            return
        self._in_flight = max(0, self._in_flight - 1)
        self.last_error = str(exc)
        logger.warning("Loading worksheet data failed: %s", exc, exc_info=True)
        self._notify("error", {"message": f"Failed to load data from Google Sheets. {exc}"})

    def _notify(self, status: str, payload: StatusPayload) -> None:
        for listener in list(self._listeners):
            try:
                listener(status, payload)
            except Exception:  # pragma: no cover - UI callback guard
                logger.debug("Table state listener failed", exc_info=True)


__all__ = ["StatusListener", "StatusPayload", "TableState"]

"""Serialised write path from the editor to the worksheet."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Sequence

from core.scheduler import Scheduler
from core.session_gateway import SessionGateway
from core.sheets_client import GoogleSheetsClient
from core.table_state import TableState

logger = logging.getLogger(__name__)

NoticeCallback = Callable[[str], None]


@dataclass
class _Mutation:
    label: str
    action: Callable[[], None]
    failure_message: str


class MutationCoordinator:
    """Run add/update/delete one at a time, reloading after each.

    A reload follows every write whether it succeeded or not: a delete can
    fail after the worksheet was cleared, and only a reload shows the user
    what is actually stored.  Nothing here retries.

    Signing out drops queued writes.  A write already on the worker cannot be
    recalled; its result is ignored and no reload follows it.
    """

    def __init__(
        self,
        client: GoogleSheetsClient,
        table_state: TableState,
        scheduler: Scheduler,
        *,
        notice_callback: Optional[NoticeCallback] = None,
    ) -> None:
        self._client = client
        self._table_state = table_state
        self._scheduler = scheduler
        self._notice_callback = notice_callback
        self._queue: Deque[_Mutation] = deque()
        self._running: Optional[_Mutation] = None
        self._generation = 0
        self._unsubscribe: Optional[Callable[[], None]] = None

    def attach(self, gateway: SessionGateway) -> None:
        """Drop pending writes whenever ``gateway`` reports a sign-out."""

        if self._unsubscribe is None:
            self._unsubscribe = gateway.subscribe(self._on_sign_in_changed)

    def close(self) -> None:
        self.cancel_pending()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def cancel_pending(self) -> int:
        """Forget queued writes and ignore the one in flight; return how many were dropped."""

        dropped = len(self._queue)
        self._queue.clear()
        self._generation += 1
        if dropped or self._running is not None:
            logger.info("Cancelled %d queued worksheet writes", dropped)
        return dropped

    @property
    def busy(self) -> bool:
        return self._running is not None

    @property
    def pending(self) -> int:
        return len(self._queue)

    def add(self, row: Sequence[str]) -> None:
        values: List[str] = list(row)
        self._enqueue(
            _Mutation(
                label="add",
                action=lambda: self._client.append_row(values),
                failure_message="Failed to add row.",
            )
        )

    def update(self, index: int, row: Sequence[str]) -> None:
        values: List[str] = list(row)
        self._enqueue(
            _Mutation(
                label=f"update row {index}",
                action=lambda: self._client.replace_row(index, values),
                failure_message="Failed to update row.",
            )
        )

    def delete(self, index: int) -> None:
        self._enqueue(
            _Mutation(
                label=f"delete row {index}",
                action=lambda: self._client.delete_row(index),
                failure_message="Failed to delete row.",
            )
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _enqueue(self, mutation: _Mutation) -> None:
        self._queue.append(mutation)
        if self._running is None:
            self._start_next()

    def _on_sign_in_changed(self, signed_in: bool) -> None:
        if not signed_in:
            self.cancel_pending()

    def _start_next(self) -> None:
        if not self._queue or self._running is not None:
            return
        mutation = self._queue.popleft()
        self._running = mutation
        generation = self._generation
        logger.info("Writing to worksheet: %s", mutation.label)
        self._scheduler.submit(
            mutation.action,
            lambda _result: self._on_done(generation, mutation, None),
            lambda exc: self._on_done(generation, mutation, exc),
        )

    def _on_done(self, generation: int, mutation: _Mutation, error: Optional[Exception]) -> None:
        self._running = None
        if generation != self._generation:
            logger.debug("Ignoring result of %s from a previous session", mutation.label)
            self._start_next()
            return
        if error is not None:
            logger.warning("Worksheet write failed (%s): %s", mutation.label, error, exc_info=error)
            self._notice(f"{mutation.failure_message} {error}")
        self._table_state.reload()
        self._start_next()

    def _notice(self, message: str) -> None:
        if self._notice_callback:
            try:
                self._notice_callback(message)
            except Exception:  # pragma: no cover - UI callback guard
                logger.debug("Mutation notice callback failed", exc_info=True)


__all__ = ["MutationCoordinator", "NoticeCallback"]

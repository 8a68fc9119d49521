"""Timer and background-work helpers bound to the tkinter event loop.

Every piece of SheetStock state is owned by the UI thread.  Network calls are
executed on daemon threads and their outcome is handed back to the event loop
with ``root.after(0, ...)`` so that callbacks never race each other.  Timers
are one-shot ``after`` jobs; repeating behaviour is obtained by re-arming.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]


class Scheduler(Protocol):
    """Minimal scheduling surface used by the synchronisation components."""

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> Any:
        ...

    def cancel(self, handle: Any) -> None:
        ...

    def submit(
        self,
        func: Callable[[], Any],
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        ...


class TkScheduler:
    """Scheduler implementation backed by a tkinter root window."""

    def __init__(self, root) -> None:
        self.root = root

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> str:
        return self.root.after(int(delay_seconds * 1000), callback)

    def cancel(self, handle: Any) -> None:
        if handle is None:
            return
        try:
            self.root.after_cancel(handle)
        except Exception:  # pragma: no cover - window already destroyed
            logger.debug("Timer %s could not be cancelled", handle, exc_info=True)

    def submit(
        self,
        func: Callable[[], Any],
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        threading.Thread(
            target=self._execute,
            args=(func, on_success, on_error),
            daemon=True,
        ).start()

    def _execute(
        self,
        func: Callable[[], Any],
        on_success: Optional[SuccessCallback],
        on_error: Optional[ErrorCallback],
    ) -> None:
        try:
            result = func()
        except Exception as exc:
            if on_error is None:
                logger.exception("Background task failed without an error handler")
                return
            self._dispatch(lambda: on_error(exc))
        else:
            if on_success is not None:
                self._dispatch(lambda: on_success(result))

    def _dispatch(self, callback: Callable[[], None]) -> None:
        try:
            self.root.after(0, callback)
        except RuntimeError:  # pragma: no cover - main loop already gone
            logger.debug("Dropping callback; the main loop is no longer running", exc_info=True)


__all__ = ["ErrorCallback", "Scheduler", "SuccessCallback", "TkScheduler"]

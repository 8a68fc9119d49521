"""View model behind the inventory table.

Keeps the pieces of UI state that carry rules: which columns are visible,
the single open edit draft, the row awaiting delete confirmation, and the
add-row form's validation.  The tkinter window only renders what this class
exposes.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from core.mutations import MutationCoordinator
from core.row_projection import (
    EditDraft,
    default_visible_columns,
    project,
    toggle_column,
)
from core.table_state import TableState

logger = logging.getLogger(__name__)

# Order of the add-row form fields; they follow the two metadata columns.
ADD_ROW_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("style", "Select Style Code"),
    ("quantity", "Select Quantity"),
    ("color", "Select Color"),
    ("size", "Select Size"),
    ("box_number", "Box Number"),
)

DEFAULT_EMAIL = "email"


class ValidationError(ValueError):
    """Raised when user input cannot be submitted."""


def build_new_row(
    fields: Mapping[str, str],
    email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[str]:
    """Return the worksheet row for the add-row form ``fields``."""

    values = [fields.get(name) or "" for name, _placeholder in ADD_ROW_FIELDS]
    if all(value == "" for value in values):
        raise ValidationError("Fill in at least one field before adding a row.")
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    timestamp = moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return [timestamp, email or DEFAULT_EMAIL, *values]


class TableEditor:
    def __init__(
        self,
        table_state: TableState,
        mutations: MutationCoordinator,
        *,
        reserved_columns: Sequence[str] = (),
        email_provider: Optional[Callable[[], Optional[str]]] = None,
    ) -> None:
        self._table_state = table_state
        self._mutations = mutations
        self._reserved_columns = list(reserved_columns)
        self._email_provider = email_provider
        self._visible_columns: List[int] = []
        self._columns_initialised = False
        self._draft: Optional[EditDraft] = None
        self.confirming_delete: Optional[int] = None

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------
    @property
    def headers(self) -> List[str]:
        return list(self._table_state.snapshot.headers)

    @property
    def visible_columns(self) -> List[int]:
        headers = self._table_state.snapshot.headers
        if not self._columns_initialised and headers:
            self._visible_columns = default_visible_columns(headers, self._reserved_columns)
            self._columns_initialised = True
        return [index for index in self._visible_columns if index < len(headers)]

    def toggle_column(self, index: int) -> None:
        self._visible_columns = toggle_column(self.visible_columns, index)
        self._columns_initialised = True

    def reset_columns(self) -> None:
        self._visible_columns = []
        self._columns_initialised = False

    def visible_rows(self) -> List[Tuple[int, List[str]]]:
        columns = self.visible_columns
        return [(index, project(row, columns)) for index, row in enumerate(self._table_state.snapshot.rows)]

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------
    @property
    def draft(self) -> Optional[EditDraft]:
        return self._draft

    @property
    def editing_index(self) -> Optional[int]:
        return self._draft.row_index if self._draft else None

    def begin_edit(self, index: int) -> EditDraft:
        """Open a draft for row ``index``; any other open draft is discarded."""

        rows = self._table_state.snapshot.rows
        if index < 0 or index >= len(rows):
            raise IndexError(f"Row {index} is not loaded")
        if self._draft is not None and self._draft.row_index != index:
            logger.debug("Discarding unsaved edit of row %d", self._draft.row_index)
        self.confirming_delete = None
        self._draft = EditDraft.for_row(index, rows[index], self.visible_columns)
        return self._draft

    def set_draft_value(self, column: int, value: str) -> None:
        if self._draft is None:
            raise RuntimeError("No row is being edited")
        self._draft.set(column, value)

    def save_edit(self) -> Optional[List[str]]:
        """Merge the draft into the current row and submit the update."""

        draft = self._draft
        if draft is None:
            return None
        self._draft = None
        rows = self._table_state.snapshot.rows
        if draft.row_index >= len(rows):
            raise IndexError(f"Row {draft.row_index} is no longer loaded")
        merged = draft.merge_into(rows[draft.row_index], self.visible_columns)
        self._mutations.update(draft.row_index, merged)
        return merged

    def cancel_edit(self) -> None:
        self._draft = None

    # ------------------------------------------------------------------
    # Deleting
    # ------------------------------------------------------------------
    def request_delete(self, index: int) -> None:
        self.confirming_delete = index

    def confirm_delete(self) -> Optional[int]:
        index = self.confirming_delete
        self.confirming_delete = None
        if index is None:
            return None
        if self._draft is not None and self._draft.row_index == index:
            self._draft = None
        self._mutations.delete(index)
        return index

    def cancel_delete(self) -> None:
        self.confirming_delete = None

    # ------------------------------------------------------------------
    # Adding
    # ------------------------------------------------------------------
    def add_row(self, fields: Mapping[str, str], *, now: Optional[datetime] = None) -> List[str]:
        email = self._email_provider() if self._email_provider else None
        row = build_new_row(fields, email, now)
        self._mutations.add(row)
        return row


__all__ = [
    "ADD_ROW_FIELDS",
    "DEFAULT_EMAIL",
    "TableEditor",
    "ValidationError",
    "build_new_row",
]

"""Mapping between full worksheet rows and the columns a user is looking at.

Sheets omits trailing empty cells, so a row may be shorter than the header.
Every helper here reads a missing cell as ``""``.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence


def cell(row: Sequence[str], index: int) -> str:
    if 0 <= index < len(row):
        value = row[index]
        return "" if value is None else str(value)
    return ""


def project(full_row: Sequence[str], visible_columns: Sequence[int]) -> List[str]:
    """Return the cells of ``full_row`` at ``visible_columns``, in that order."""

    return [cell(full_row, index) for index in visible_columns]


def merge_edit(
    original_full_row: Sequence[str],
    draft: Mapping[int, str],
    visible_columns: Sequence[int],
) -> List[str]:
    """Apply ``draft`` on top of a copy of ``original_full_row``.

    Only visible columns are taken from the draft; every other column keeps
    its original value, including drafted columns hidden while editing.
    A blank draft value for a cell the row never had does not extend the row,
    so saving an untouched draft writes back exactly what was read.
    """

    merged = [cell(original_full_row, index) for index in range(len(original_full_row))]
    for index in sorted(set(visible_columns)):
        if index < 0 or index not in draft:
            continue
        value = "" if draft[index] is None else str(draft[index])
        if index >= len(merged):
            if not value:
                continue
            merged.extend([""] * (index + 1 - len(merged)))
        merged[index] = value
    return merged


def default_visible_columns(headers: Sequence[str], reserved: Iterable[str]) -> List[int]:
    """Return every column index whose header is not a reserved metadata column."""

    reserved_names = {name.strip() for name in reserved}
    return [index for index, header in enumerate(headers) if header.strip() not in reserved_names]


def toggle_column(visible_columns: Sequence[int], index: int) -> List[int]:
    if index in visible_columns:
        return [column for column in visible_columns if column != index]
    return sorted([*visible_columns, index])


class EditDraft:
    """Pending cell values for the single row currently being edited."""

    def __init__(self, row_index: int, initial: Optional[Mapping[int, str]] = None) -> None:
        self.row_index = row_index
        self.values: Dict[int, str] = dict(initial or {})

    @classmethod
    def for_row(cls, row_index: int, full_row: Sequence[str], visible_columns: Sequence[int]) -> "EditDraft":
        return cls(row_index, {index: cell(full_row, index) for index in visible_columns})

    def set(self, column: int, value: str) -> None:
        self.values[column] = value

    def get(self, column: int) -> str:
        return self.values.get(column, "")

    def merge_into(self, full_row: Sequence[str], visible_columns: Sequence[int]) -> List[str]:
        return merge_edit(full_row, self.values, visible_columns)


__all__ = [
    "EditDraft",
    "cell",
    "default_visible_columns",
    "merge_edit",
    "project",
    "toggle_column",
]

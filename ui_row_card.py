import tkinter as tk
from tkinter import messagebox, ttk
from typing import Callable, Dict, Optional

from core.table_editor import TableEditor


class RowCardWindow:
    """Dialog editing the visible cells of one worksheet row."""

    def __init__(
        self,
        parent: tk.Misc,
        editor: TableEditor,
        row_index: int,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        self.parent = parent
        self.editor = editor
        self.on_close = on_close
        self.draft = editor.begin_edit(row_index)
        self.window = tk.Toplevel(parent)
        self.window.title(f"Edit Row {row_index + 1}")
        self.window.transient(parent)
        self.window.protocol("WM_DELETE_WINDOW", self._on_cancel)

        self.vars: Dict[int, tk.StringVar] = {}
        self._create_widgets()
        self.window.grab_set()

    def _create_widgets(self) -> None:
        container = ttk.Frame(self.window, padding=10)
        container.pack(fill=tk.BOTH, expand=True)

        headers = self.editor.headers
        columns = self.editor.visible_columns
        for position, column in enumerate(columns):
            label_text = headers[column] if column < len(headers) else f"Column {column + 1}"
            ttk.Label(container, text=f"{label_text}:").grid(
                row=position, column=0, sticky=tk.W, pady=3, padx=(0, 5)
            )
            var = tk.StringVar(value=self.draft.get(column))
            ttk.Entry(container, textvariable=var, width=40).grid(
                row=position, column=1, sticky="we", pady=3
            )
            self.vars[column] = var

        buttons = ttk.Frame(container)
        buttons.grid(row=len(columns), column=0, columnspan=2, pady=(10, 0))
        ttk.Button(buttons, text="Save", command=self._on_save).pack(side=tk.LEFT, padx=(0, 6))
        ttk.Button(buttons, text="Cancel", command=self._on_cancel).pack(side=tk.LEFT)

        container.columnconfigure(1, weight=1)

    def _on_save(self) -> None:
        if self.editor.editing_index != self.draft.row_index:
            # another edit replaced this draft
            self._close()
            return
        for column, var in self.vars.items():
            self.editor.set_draft_value(column, var.get())
        try:
            self.editor.save_edit()
        except IndexError as exc:
            messagebox.showwarning("Edit Row", str(exc), parent=self.window)
        self._close()

    def _on_cancel(self) -> None:
        if self.editor.editing_index == self.draft.row_index:
            self.editor.cancel_edit()
        self._close()

    def _close(self) -> None:
        try:
            self.window.grab_release()
        except tk.TclError:
            pass
        self.window.destroy()
        if self.on_close:
            self.on_close()

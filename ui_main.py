import logging
import tkinter as tk
from tkinter import messagebox, ttk
from typing import Callable, Dict, List, Optional

from ttkbootstrap import Style

from core.mutations import MutationCoordinator
from core.poll_sync import PollingSynchronizer
from core.scheduler import TkScheduler
from core.session_gateway import AuthError, SessionGateway
from core.sheets_client import GoogleSheetsClient, SheetsClientError
from core.table_editor import ADD_ROW_FIELDS, TableEditor, ValidationError
from core.table_state import TableState
from settings import EditorSettings, load_editor_settings
from ui_row_card import RowCardWindow

logger = logging.getLogger(__name__)


class MainWindow:
    def __init__(
        self,
        root: tk.Tk,
        settings: Optional[EditorSettings] = None,
        *,
        settings_loader: Callable[[], EditorSettings] = load_editor_settings,
    ) -> None:
        self.root = root
        self.settings = settings or settings_loader()
        self._settings_loader = settings_loader
        self.style = Style(theme="flatly")
        self.scheduler = TkScheduler(root)

        self.status_var = tk.StringVar(value="")
        self.notice_var = tk.StringVar(value="")
        self.account_var = tk.StringVar(value="")
        self.error_var = tk.StringVar(value="")
        self.column_selector_visible = tk.BooleanVar(value=False)
        self.add_vars: Dict[str, tk.StringVar] = {name: tk.StringVar() for name, _ in ADD_ROW_FIELDS}
        self.column_vars: List[tk.BooleanVar] = []
        self._notice_job: Optional[str] = None
        self._auto_refresh_active = False
        self._row_card: Optional[RowCardWindow] = None

        self.gateway: Optional[SessionGateway] = None
        self.synchronizer: Optional[PollingSynchronizer] = None
        self.table_state: Optional[TableState] = None
        self.editor: Optional[TableEditor] = None
        self.mutations: Optional[MutationCoordinator] = None
        self._subscriptions: List[Callable[[], None]] = []

        self._create_widgets()
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)
        self._initialize()

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------
    def _initialize(self) -> None:
        self._teardown()
        try:
            gateway = SessionGateway(self.settings, self.scheduler, error_callback=self._on_auth_error)
            gateway.initialize()
            client = GoogleSheetsClient(
                self.settings.spreadsheet_id,
                self.settings.worksheet_title,
                service_provider=gateway.build_services,
            )
        except (AuthError, SheetsClientError) as exc:
            logger.error("Error initializing Google API client: %s", exc)
            self._show_auth_error(str(exc) or "Failed to initialize Google API")
            return

        self.gateway = gateway
        self.table_state = TableState(client, self.scheduler)
        self._subscriptions.append(self.table_state.subscribe(self._on_table_status))
        mutations = MutationCoordinator(
            client, self.table_state, self.scheduler, notice_callback=self._on_write_failed
        )
        mutations.attach(gateway)
        self.mutations = mutations
        self.editor = TableEditor(
            self.table_state,
            mutations,
            reserved_columns=self.settings.reserved_columns,
            email_provider=lambda: gateway.account_email,
        )
        self.synchronizer = PollingSynchronizer(
            gateway,
            client,
            self.table_state,
            self.scheduler,
            interval_seconds=self.settings.poll_interval_seconds,
            backoff_seconds=self.settings.backoff_seconds,
            status_callback=self._on_sync_status,
        )
        self._subscriptions.append(gateway.subscribe(self._on_sign_in_changed))
        self.synchronizer.attach()
        self._show_view(self.main_view if gateway.currently_signed_in() else self.login_view)

    def _teardown(self) -> None:
        while self._subscriptions:
            self._subscriptions.pop()()
        if self.synchronizer is not None:
            self.synchronizer.close()
        if self.mutations is not None:
            self.mutations.close()
        if self.gateway is not None:
            # a sign-in flow may still finish on the discarded gateway
            self.gateway.error_callback = None
        self.synchronizer = None
        self.mutations = None
        self.gateway = None
        self.table_state = None
        self.editor = None

    def _on_close(self) -> None:
        self._teardown()
        self.root.destroy()

    # ------------------------------------------------------------------
    # Widget construction
    # ------------------------------------------------------------------
    def _create_widgets(self) -> None:
        self.container = ttk.Frame(self.root, padding=24)
        self.container.pack(fill=tk.BOTH, expand=True)
        self.container.columnconfigure(0, weight=1)
        self.container.rowconfigure(0, weight=1)

        self.error_view = self._build_error_view(self.container)
        self.login_view = self._build_login_view(self.container)
        self.main_view = self._build_main_view(self.container)
        self._views = (self.error_view, self.login_view, self.main_view)

    def _build_error_view(self, master: tk.Misc) -> ttk.Frame:
        frame = ttk.Frame(master)
        ttk.Label(frame, text="Authentication Error", font=("Segoe UI", 16, "bold")).pack(pady=(40, 12))
        ttk.Label(frame, textvariable=self.error_var, foreground="red", wraplength=560).pack(pady=(0, 12))
        ttk.Button(frame, text="Retry", command=self._on_retry).pack()
        return frame

    def _build_login_view(self, master: tk.Misc) -> ttk.Frame:
        frame = ttk.Frame(master)
        ttk.Label(frame, text="Google Sheets Product Manager", font=("Segoe UI", 16, "bold")).pack(
            pady=(80, 8)
        )
        ttk.Label(frame, text="Sign in to manage your Google Sheet data").pack(pady=(0, 16))
        ttk.Button(frame, text="Sign in with Google", command=self._on_sign_in).pack()
        return frame

    def _build_main_view(self, master: tk.Misc) -> ttk.Frame:
        frame = ttk.Frame(master)
        frame.columnconfigure(0, weight=1)
        frame.rowconfigure(4, weight=1)

        header = ttk.Frame(frame)
        header.grid(row=0, column=0, sticky="ew", pady=(0, 12))
        header.columnconfigure(0, weight=1)
        ttk.Label(header, text="Product Manager", font=("Segoe UI", 14, "bold")).grid(
            row=0, column=0, sticky=tk.W
        )
        ttk.Label(header, textvariable=self.account_var).grid(row=0, column=1, padx=(0, 12))
        self.refresh_button = ttk.Button(header, text="Refresh Data", command=self._on_refresh)
        self.refresh_button.grid(row=0, column=2, padx=(0, 8))
        ttk.Button(header, text="Sign Out", command=self._on_sign_out).grid(row=0, column=3)

        status = ttk.Frame(frame)
        status.grid(row=1, column=0, sticky="ew", pady=(0, 8))
        ttk.Label(status, textvariable=self.status_var, foreground="#777777").pack(side=tk.LEFT)
        ttk.Label(status, textvariable=self.notice_var, foreground="#b94a48").pack(side=tk.RIGHT)

        add_form = ttk.Frame(frame)
        add_form.grid(row=2, column=0, sticky="ew", pady=(0, 12))
        for column, (name, placeholder) in enumerate(ADD_ROW_FIELDS):
            cell = ttk.Frame(add_form)
            cell.grid(row=0, column=column, padx=(0, 8))
            ttk.Label(cell, text=placeholder).pack(anchor=tk.W)
            ttk.Entry(cell, textvariable=self.add_vars[name], width=18).pack()
        ttk.Button(add_form, text="Add Row", command=self._on_add_row).grid(
            row=0, column=len(ADD_ROW_FIELDS), sticky="s"
        )

        table_header = ttk.Frame(frame)
        table_header.grid(row=3, column=0, sticky="ew")
        table_header.columnconfigure(0, weight=1)
        ttk.Label(table_header, text="Data Table", font=("Segoe UI", 12, "bold")).grid(
            row=0, column=0, sticky=tk.W
        )
        self.column_toggle_button = ttk.Button(
            table_header, text="Show Column Selector", command=self._on_toggle_column_selector
        )
        self.column_toggle_button.grid(row=0, column=1)
        self.column_selector = ttk.Frame(table_header, padding=8)
        self.column_selector.grid(row=1, column=0, columnspan=2, sticky="ew", pady=(8, 0))
        self.column_selector.grid_remove()

        table_frame = ttk.Frame(frame)
        table_frame.grid(row=4, column=0, sticky="nsew", pady=(8, 0))
        table_frame.columnconfigure(0, weight=1)
        table_frame.rowconfigure(0, weight=1)
        self.tree = ttk.Treeview(table_frame, show="headings", selectmode="browse")
        yscroll = ttk.Scrollbar(table_frame, orient=tk.VERTICAL, command=self.tree.yview)
        xscroll = ttk.Scrollbar(table_frame, orient=tk.HORIZONTAL, command=self.tree.xview)
        self.tree.configure(yscrollcommand=yscroll.set, xscrollcommand=xscroll.set)
        self.tree.grid(row=0, column=0, sticky="nsew")
        yscroll.grid(row=0, column=1, sticky="ns")
        xscroll.grid(row=1, column=0, sticky="ew")
        self.tree.tag_configure("oddrow", background="#f5f9ff")
        self.tree.tag_configure("evenrow", background="#ffffff")
        self.tree.bind("<Double-1>", lambda _event: self._on_edit_selected())
        self.empty_label = ttk.Label(table_frame, text="No data available")

        actions = ttk.Frame(frame)
        actions.grid(row=5, column=0, sticky="ew", pady=(8, 0))
        ttk.Button(actions, text="Edit", command=self._on_edit_selected).pack(side=tk.LEFT, padx=(0, 8))
        ttk.Button(actions, text="Delete", command=self._on_delete_selected).pack(side=tk.LEFT)
        return frame

    def _show_view(self, view: ttk.Frame) -> None:
        for candidate in self._views:
            if candidate is view:
                candidate.grid(row=0, column=0, sticky="nsew")
            else:
                candidate.grid_remove()

    # ------------------------------------------------------------------
    # Session events
    # ------------------------------------------------------------------
    def _show_auth_error(self, message: str) -> None:
        self.error_var.set(message)
        self._show_view(self.error_view)

    def _on_auth_error(self, error: AuthError) -> None:
        self._show_auth_error(str(error))

    def _on_retry(self) -> None:
        self.settings = self._settings_loader()
        self._initialize()

    def _on_sign_in(self) -> None:
        if self.gateway is not None:
            self.gateway.sign_in()

    def _on_sign_out(self) -> None:
        if self.gateway is not None:
            self.gateway.sign_out()

    def _on_sign_in_changed(self, signed_in: bool) -> None:
        if signed_in:
            email = self.gateway.account_email if self.gateway else None
            self.account_var.set(email or "")
            self._show_view(self.main_view)
        else:
            self.account_var.set("")
            if self._row_card is not None:
                self._row_card.window.destroy()
                self._row_card = None
            self._show_view(self.login_view)

    def _on_sync_status(self, status: str, payload: Dict[str, object]) -> None:
        if status == "active":
            self._auto_refresh_active = True
        elif status == "idle":
            self._auto_refresh_active = False
        elif status == "offline":
            self._flash_notice("Could not check for updates; retrying shortly.")
        self._update_status_line()

    # ------------------------------------------------------------------
    # Table events
    # ------------------------------------------------------------------
    def _on_table_status(self, status: str, payload: Dict[str, object]) -> None:
        if status == "cleared" and self.editor is not None:
            self.editor.reset_columns()
        if status == "error":
            self._flash_notice(str(payload.get("message", "")))
        if status in {"loaded", "cleared"}:
            self._render_table()
        self._update_status_line()

    def _update_status_line(self) -> None:
        refreshing = bool(self.table_state and self.table_state.is_refreshing)
        self.refresh_button.configure(
            text="Refreshing..." if refreshing else "Refresh Data",
            state=tk.DISABLED if refreshing else tk.NORMAL,
        )
        if refreshing:
            text = "Refreshing data..."
        else:
            fetched = self.table_state.snapshot.fetched_at if self.table_state else None
            when = fetched.astimezone().strftime("%H:%M:%S") if fetched else "never"
            text = f"Last refresh: {when}"
        if self._auto_refresh_active:
            text += " • Auto-refresh active"
        self.status_var.set(text)

    def _flash_notice(self, message: str) -> None:
        self.notice_var.set(message)
        if self._notice_job is not None:
            self.root.after_cancel(self._notice_job)
        self._notice_job = self.root.after(8000, self._clear_notice)

    def _clear_notice(self) -> None:
        self._notice_job = None
        self.notice_var.set("")

    def _on_write_failed(self, message: str) -> None:
        messagebox.showwarning("Google Sheets", message, parent=self.root)

    def _render_table(self) -> None:
        editor = self.editor
        self.tree.delete(*self.tree.get_children())
        if editor is None or not editor.headers:
            self.tree.configure(columns=())
            self.empty_label.grid(row=0, column=0)
            self._rebuild_column_selector()
            return
        self.empty_label.grid_remove()

        headers = editor.headers
        columns = editor.visible_columns
        column_ids = [f"c{index}" for index in columns]
        self.tree.configure(columns=column_ids)
        for column_id, index in zip(column_ids, columns):
            self.tree.heading(column_id, text=headers[index])
            self.tree.column(column_id, width=150, stretch=False, anchor=tk.W)

        for row_index, cells in editor.visible_rows():
            tag = "oddrow" if row_index % 2 else "evenrow"
            self.tree.insert("", tk.END, iid=str(row_index), values=cells, tags=(tag,))
        self._rebuild_column_selector()

    def _rebuild_column_selector(self) -> None:
        for child in self.column_selector.winfo_children():
            child.destroy()
        self.column_vars = []
        if self.editor is None:
            return
        ttk.Label(self.column_selector, text="Select columns to display:").grid(
            row=0, column=0, columnspan=6, sticky=tk.W, pady=(0, 4)
        )
        visible = set(self.editor.visible_columns)
        for index, header in enumerate(self.editor.headers):
            var = tk.BooleanVar(value=index in visible)
            ttk.Checkbutton(
                self.column_selector,
                text=header,
                variable=var,
                command=lambda column=index: self._on_toggle_column(column),
            ).grid(row=1 + index // 6, column=index % 6, sticky=tk.W, padx=(0, 12))
            self.column_vars.append(var)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    def _on_refresh(self) -> None:
        if self.table_state is not None:
            self.table_state.reload()

    def _on_toggle_column_selector(self) -> None:
        showing = not self.column_selector_visible.get()
        self.column_selector_visible.set(showing)
        if showing:
            self.column_selector.grid()
            self.column_toggle_button.configure(text="Hide Column Selector")
        else:
            self.column_selector.grid_remove()
            self.column_toggle_button.configure(text="Show Column Selector")

    def _on_toggle_column(self, index: int) -> None:
        if self.editor is None:
            return
        self.editor.toggle_column(index)
        self._render_table()

    def _on_add_row(self) -> None:
        if self.editor is None:
            return
        fields = {name: var.get() for name, var in self.add_vars.items()}
        try:
            self.editor.add_row(fields)
        except ValidationError as exc:
            self._flash_notice(str(exc))
            return
        for var in self.add_vars.values():
            var.set("")

    def _selected_index(self) -> Optional[int]:
        selection = self.tree.selection()
        if not selection:
            return None
        return int(selection[0])

    def _on_edit_selected(self) -> None:
        index = self._selected_index()
        if index is None or self.editor is None:
            return
        if self._row_card is not None:
            # opening another row abandons the unsaved one
            self._row_card.window.destroy()
            self._row_card = None
        try:
            self._row_card = RowCardWindow(self.root, self.editor, index, on_close=self._on_row_card_closed)
        except IndexError as exc:
            self._flash_notice(str(exc))

    def _on_row_card_closed(self) -> None:
        self._row_card = None

    def _on_delete_selected(self) -> None:
        index = self._selected_index()
        if index is None or self.editor is None:
            return
        self.editor.request_delete(index)
        if messagebox.askyesno("Delete Row", "Confirm delete?", parent=self.root):
            self.editor.confirm_delete()
        else:
            self.editor.cancel_delete()


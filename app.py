import logging
import tkinter as tk
from tkinter import messagebox

from core.logging_config import configure_logging
from core.version import __version__
from settings import load_editor_settings
from ui_main import MainWindow

logger = logging.getLogger(__name__)


configure_logging()


def main() -> None:
    try:
        settings = load_editor_settings()
    except OSError as exc:
        logger.error("Settings could not be loaded: %s", exc)
        messagebox.showerror("SheetStock", f"Settings could not be loaded: {exc}")
        return

    missing = settings.missing_fields()
    if missing:
        logger.warning("Settings incomplete; missing: %s", ", ".join(missing))

    root = tk.Tk()
    root.title(f"SheetStock v{__version__}")
    root.geometry("1000x600")
    MainWindow(root, settings)
    root.mainloop()


if __name__ == "__main__":
    main()

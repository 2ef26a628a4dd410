from pathlib import Path

from rich.prompt import Confirm

from .environment import ExecutionMode
from .utils import console, logger


def ask_yes_no(question: str, mode: ExecutionMode, default: bool = False) -> bool:
    if mode.unattended:
        return default
    return Confirm.ask(question, default=default, console=console)


def pick_directory(title: str, mode: ExecutionMode) -> Path | None:
    """Open a native folder picker; unattended runs never select anything."""
    if mode.unattended:
        return None
    try:
        import tkinter
        from tkinter import filedialog
    except ImportError:
        logger.warning("⚠️ tkinter not available, cannot open folder picker")
        return None

    root = tkinter.Tk()
    root.withdraw()
    root.attributes("-topmost", True)
    try:
        selected = filedialog.askdirectory(title=title, mustexist=True)
    finally:
        root.destroy()
    return Path(selected) if selected else None

"""Logging configuration for FocusTree front-ends."""

from __future__ import annotations

import logging
import sys
from pathlib import Path


class _ConsoleNoiseFilter(logging.Filter):
    """Keep focustree logs on the console; third-party logs only at WARNING+."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("focustree"):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(
    *,
    log_dir: str | Path,
    console_level: int | str = logging.INFO,
    file_level: int = logging.DEBUG,
    console: bool = True,
) -> None:
    """Configure root logging: filtered stderr handler plus a full log file.

    The TUI passes console=False since stderr would draw over the screen.
    Call once, early.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if console:
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(console_level)
        ch.setFormatter(fmt)
        ch.addFilter(_ConsoleNoiseFilter())
        root.addHandler(ch)

    fh = logging.FileHandler(str(log_dir / "focustree.log"), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)

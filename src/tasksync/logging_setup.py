# src/tasksync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# HTTP transports log one line per request; the polling live query makes that a flood.
_TRANSPORT_LOGGERS = ("httpx", "httpcore")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable while the REPL is waiting for input:
    - tasksync records pass, except the ones from `quiet_prefixes` below WARNING
      (cache reads/writes and subscription pumps fire on every remote change)
    - captured Python warnings and third-party records only pass at ERROR+
    """

    def __init__(self, quiet_prefixes: tuple[str, ...]) -> None:
        super().__init__()
        self._quiet_prefixes = quiet_prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == "tasksync" or name.startswith("tasksync."):
            if name.startswith(self._quiet_prefixes):
                return record.levelno >= logging.WARNING
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasksync",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet_prefixes: tuple[str, ...] = ("tasksync.cache.", "tasksync.core.subscription"),
) -> Path:
    """
    Configure logging with:
    - Console handler (stderr): filtered for interactive use
    - File handler (<log_dir>/tasksync.log): everything at `file_level`

    Call this ONCE, very early (before first logger.info). Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tasksync.log"

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter(quiet_prefixes))
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # warnings.warn(...) -> 'py.warnings' logger
    logging.captureWarnings(True)

    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file

# src/taskmaster/logging_setup.py

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

# Loggers that run in the background and would interleave with the prompt.
_BACKGROUND_LOGGERS = (
    "taskmaster.reminders.notification_center",
    "taskmaster.tasks.task_store",
)


def parse_level(name: str | None, default: int = logging.INFO) -> int:
    """'debug' / 'INFO' / '10' -> logging level; unknown names fall back to default."""
    raw = (name or "").strip()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else default


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console stays readable while the REPL waits for input:
    background taskmaster loggers only at WARNING+, foreign loggers
    (py.warnings included) only at ERROR+.
    """

    def __init__(self, background: tuple[str, ...] = _BACKGROUND_LOGGERS) -> None:
        super().__init__()
        self._background = background

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("taskmaster."):
            return record.levelno >= logging.ERROR
        if name.startswith(self._background):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskmaster",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Console handler (filtered) + rotating file handler (everything at file_level).

    Call once at startup, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "taskmaster.log"

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file

# src/taskmaster/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Everything has a local default; nothing is required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKMASTER"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    log_dir: Path

    # ---- Reminders ----
    reminder_title: str
    delivery_interval_seconds: float
    notifications_enabled: bool

    # ---- Tasks ----
    default_category_color: str

    # ---- Front end ----
    console_enabled: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskmaster") or "taskmaster"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskmaster"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        log_dir = _env_path(_k("LOG_DIR"), data_dir)

        reminder_title = _env(_k("REMINDER_TITLE"), "Task reminder")
        delivery_interval_seconds = max(0.5, _env_float(_k("DELIVERY_INTERVAL_SECONDS"), 15.0))
        # Answer the local notification center gives when asked for permission.
        notifications_enabled = _env_bool(_k("NOTIFICATIONS_ENABLED"), True)

        default_category_color = _env(_k("DEFAULT_CATEGORY_COLOR"), "#007AFF")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            log_dir=log_dir,
            reminder_title=reminder_title,
            delivery_interval_seconds=delivery_interval_seconds,
            notifications_enabled=notifications_enabled,
            default_category_color=default_category_color,
            console_enabled=console_enabled,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS

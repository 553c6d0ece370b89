# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskmaster.cli.bootstrap import create_initial_state
from taskmaster.core.state import AppState
from taskmaster.reminders.reminder_scheduler import ReminderScheduler
from taskmaster.tasks.task_manager import TaskManager
from taskmaster.tasks.task_store import TaskStore

from .fakes import FakeNotificationCenter


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskmaster-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        log_dir=tmp_path,
        reminder_title="Task reminder",
        delivery_interval_seconds=0.01,
        notifications_enabled=True,
        default_category_color="#007AFF",
        console_enabled=False,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    # Real SQLite: store correctness is part of what we want to test.
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def center() -> FakeNotificationCenter:
    return FakeNotificationCenter()


@pytest.fixture()
def scheduler(center: FakeNotificationCenter) -> ReminderScheduler:
    return ReminderScheduler(center)


@pytest.fixture()
def manager(store: TaskStore, scheduler: ReminderScheduler) -> TaskManager:
    return TaskManager(store, scheduler)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """Fully wired AppState (real store + local notification center)."""
    return create_initial_state(settings=settings)

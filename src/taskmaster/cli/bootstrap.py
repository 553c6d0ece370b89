# src/taskmaster/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the store, notification center, reminder scheduler and task manager
  into AppState (explicit instances, no module-level singletons).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..reminders.notification_center import LocalNotificationCenter
from ..reminders.reminder_scheduler import ReminderScheduler
from ..tasks.task_manager import TaskManager
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.tasks_db_path)
    center = LocalNotificationCenter(grant_on_request=settings.notifications_enabled)
    scheduler = ReminderScheduler(center, reminder_title=settings.reminder_title)
    manager = TaskManager(
        store,
        scheduler,
        default_category_color=settings.default_category_color,
    )

    logger.debug("AppState wired (db=%s)", settings.tasks_db_path)
    return AppState(
        settings=settings,
        store=store,
        notifications=center,
        scheduler=scheduler,
        manager=manager,
    )

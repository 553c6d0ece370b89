# src/taskmaster/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..reminders.notification_center import LocalNotificationCenter
from ..reminders.reminder_scheduler import ReminderScheduler
from ..tasks.task_manager import TaskManager
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # config.Settings (a SimpleNamespace in tests).
    settings: object

    store: TaskStore
    notifications: LocalNotificationCenter
    scheduler: ReminderScheduler
    manager: TaskManager

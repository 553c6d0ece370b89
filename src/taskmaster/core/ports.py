# src/taskmaster/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

TaskManager and ReminderScheduler depend on these Protocols instead of the
concrete SQLite store and local notification center, so tests can swap in fakes.
"""

from collections.abc import Callable, Iterable
from typing import Any, Awaitable, Protocol

from ..reminders.notification_models import AuthorizationStatus, NotificationRequest
from ..tasks.task_models import Category, Tag, Task

TaskPredicate = Callable[[Task], bool]
TaskSortKey = Callable[[Task], Any]
DeliveryHandler = Callable[[dict[str, Any]], Any]


class TaskRepo(Protocol):
    """Persistent store: a unit of work over tasks, categories and tags."""

    def fetch_tasks(
            self,
            predicate: TaskPredicate | None = None,
            key: TaskSortKey | None = None,
    ) -> list[Task]: ...

    def fetch_categories(self) -> list[Category]: ...
    def fetch_tags(self) -> list[Tag]: ...

    def get_task(self, task_id: str) -> Task | None: ...
    def live_tasks(self) -> list[Task]: ...

    def insert(self, obj: Task | Category | Tag) -> None: ...
    def delete(self, obj: Task | Category | Tag) -> None: ...

    def has_changes(self) -> bool: ...
    def is_persisted(self, obj: Task | Category | Tag) -> bool: ...
    def commit(self, *, hold: Iterable[Task | Category | Tag] = ()) -> None: ...
    def rollback(self) -> None: ...


class NotificationCenter(Protocol):
    """
    Notification service: deliver-at-time alerts.

    The pending table is process-wide state; only ReminderScheduler mutates it.
    """

    def request_authorization(self) -> Awaitable[bool]: ...
    def authorization_status(self) -> Awaitable[AuthorizationStatus]: ...

    def add(self, request: NotificationRequest) -> Awaitable[None]: ...
    def remove(self, identifiers: Iterable[str]) -> Awaitable[None]: ...
    def list_pending(self) -> Awaitable[list[NotificationRequest]]: ...

    def set_delivery_handler(self, handler: DeliveryHandler | None) -> None: ...

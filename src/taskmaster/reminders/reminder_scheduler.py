# src/taskmaster/reminders/reminder_scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

Keeps at most one live notification per task, consistent with the task's due date.

Per task the reminder is either absent (NoReminder) or registered (Scheduled):
- schedule / schedule_repeating: NoReminder -> Scheduled
- cancel (also on delete and on clearing the due date): Scheduled -> NoReminder
- update: cancel, then schedule again; never an in-place edit

A failed schedule raises and leaves the task without a reminder.

Operations for the same task are serialized with a per-task lock, so a cancel
issued while a schedule is still in flight runs after it and removes its entry.
"""

import asyncio
import contextlib
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from typing import Any

from ..core.errors import AuthorizationDenied, SchedulingFailure
from ..core.ports import NotificationCenter
from ..tasks.task_models import Task
from .notification_models import AuthorizationStatus, NotificationContent, NotificationRequest
from .triggers import CalendarTrigger, DateComponents

logger = logging.getLogger(__name__)

TASK_ID_KEY = "task_id"
DEFAULT_REMINDER_TITLE = "Task reminder"

TaskSelectedListener = Callable[[str], None]


def reminder_identifier(task_id: str) -> str:
    return f"task-{task_id}"


def repeating_identifier(task_id: str) -> str:
    return f"task-repeating-{task_id}"


def task_identifiers(task_id: str) -> list[str]:
    return [reminder_identifier(task_id), repeating_identifier(task_id)]


class ReminderScheduler:
    def __init__(
        self,
        center: NotificationCenter,
        *,
        reminder_title: str = DEFAULT_REMINDER_TITLE,
    ) -> None:
        self._center = center
        self._title = reminder_title
        # task_id -> (lock, number of callers holding or waiting for it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}
        self._listeners: list[TaskSelectedListener] = []
        center.set_delivery_handler(self.resolve_delivery)

    def add_selection_listener(self, listener: TaskSelectedListener) -> None:
        self._listeners.append(listener)

    @contextlib.asynccontextmanager
    async def _task_lock(self, task_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(task_id)
        lock, users = entry if entry is not None else (asyncio.Lock(), 0)
        self._locks[task_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[task_id]
            if users <= 1:
                del self._locks[task_id]
            else:
                self._locks[task_id] = (lock, users - 1)

    def _build_request(self, identifier: str, task: Task, trigger: CalendarTrigger) -> NotificationRequest:
        return NotificationRequest(
            identifier=identifier,
            content=NotificationContent(
                title=self._title,
                body=task.title,
                user_info={TASK_ID_KEY: task.id},
            ),
            trigger=trigger,
        )

    async def _register(self, request: NotificationRequest, task: Task) -> None:
        try:
            granted = await self._center.request_authorization()
        except Exception as exc:
            raise SchedulingFailure(f"authorization request failed: {exc}") from exc
        if not granted:
            logger.info("Reminder not scheduled (authorization denied) task_id=%s", task.id)
            raise AuthorizationDenied("notifications are not allowed for this application")

        try:
            await self._center.add(request)
        except Exception as exc:
            logger.warning("Reminder registration failed task_id=%s: %s", task.id, exc)
            raise SchedulingFailure(f"could not register reminder {request.identifier}: {exc}") from exc

        logger.info(
            "Reminder scheduled id=%s repeats=%s components=%s",
            request.identifier,
            request.trigger.repeats,
            request.trigger.components.as_dict(),
        )

    async def _schedule_unlocked(self, task: Task) -> None:
        if task.due_date is None:
            raise ValueError("task has no due date")
        request = self._build_request(
            reminder_identifier(task.id), task, CalendarTrigger.at(task.due_date)
        )
        await self._register(request, task)

    async def _schedule_repeating_unlocked(self, task: Task, components: DateComponents) -> None:
        if task.due_date is None:
            raise ValueError("task has no due date")
        request = self._build_request(
            repeating_identifier(task.id),
            task,
            CalendarTrigger(components=components, repeats=True),
        )
        await self._register(request, task)

    async def _cancel_unlocked(self, task_id: str) -> bool:
        try:
            await self._center.remove(task_identifiers(task_id))
        except Exception:
            logger.exception("Reminder cancellation failed task_id=%s", task_id)
            return False
        logger.debug("Reminder cancelled task_id=%s", task_id)
        return True

    # ---- public API ----

    async def schedule(self, task: Task) -> None:
        """
        Register a one-shot reminder at the task's due date (whole minutes).

        Raises AuthorizationDenied or SchedulingFailure; on either no reminder exists.
        """
        async with self._task_lock(task.id):
            await self._schedule_unlocked(task)

    async def schedule_repeating(self, task: Task, components: DateComponents) -> None:
        async with self._task_lock(task.id):
            await self._schedule_repeating_unlocked(task, components)

    async def cancel(self, task: Task) -> bool:
        """
        Remove any pending reminder for the task. Idempotent.

        Never raises: failures are logged and reported as False.
        """
        async with self._task_lock(task.id):
            return await self._cancel_unlocked(task.id)

    async def update(self, task: Task, recurrence: DateComponents | None = None) -> None:
        async with self._task_lock(task.id):
            await self._cancel_unlocked(task.id)
            if recurrence is None:
                await self._schedule_unlocked(task)
            else:
                await self._schedule_repeating_unlocked(task, recurrence)

    def resolve_delivery(self, payload: Any) -> str | None:
        """
        Map a delivered payload back to its task and emit "task selected".

        Malformed payloads are ignored (returns None); never raises.
        """
        try:
            raw = payload.get(TASK_ID_KEY) if isinstance(payload, dict) else None
            if raw is None:
                logger.debug("Delivery without task id ignored: %r", payload)
                return None
            task_id = str(uuid.UUID(str(raw)))
        except (ValueError, TypeError, AttributeError):
            logger.debug("Delivery with unparseable task id ignored: %r", payload)
            return None

        for listener in list(self._listeners):
            try:
                listener(task_id)
            except Exception:
                logger.exception("Task-selected listener failed task_id=%s", task_id)
        return task_id

    # ---- diagnostics ----

    async def authorization_status(self) -> AuthorizationStatus:
        return await self._center.authorization_status()

    async def pending_reminders(self) -> list[NotificationRequest]:
        return await self._center.list_pending()

    async def has_reminder(self, task: Task) -> bool:
        idents = set(task_identifiers(task.id))
        return any(r.identifier in idents for r in await self._center.list_pending())

    async def cancel_all(self) -> int:
        """Cancel every task reminder currently pending. Returns how many were removed."""
        pending = await self._center.list_pending()
        idents = [r.identifier for r in pending if r.identifier.startswith("task-")]
        if not idents:
            return 0
        try:
            await self._center.remove(idents)
        except Exception:
            logger.exception("Cancelling all reminders failed")
            return 0
        return len(idents)

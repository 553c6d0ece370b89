# src/taskmaster/tasks/task_manager.py

from __future__ import annotations

"""
Task manager: the façade the UI layer talks to.

Owns the filter state and the current result list, coordinates the store and
the reminder scheduler. Every mutating call re-runs the query after its commit
has returned, notifies results listeners and returns the new results.

Store I/O runs in a worker thread (asyncio.to_thread) so every operation is an
awaitable that can be cancelled at its suspension points.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from ..core.errors import StoreFailure, ValidationError
from ..core.ports import TaskRepo
from ..reminders.reminder_scheduler import ReminderScheduler
from ..reminders.triggers import DateComponents
from .task_models import DEFAULT_CATEGORY_COLOR, Category, FilterState, Tag, Task
from .task_query import build_predicate, task_sort_key
from .task_stats import TaskStatistics, compute_statistics

logger = logging.getLogger(__name__)

ResultsListener = Callable[[list[Task]], None]
SelectionListener = Callable[[Task], None]


class TaskManager:
    def __init__(
        self,
        store: TaskRepo,
        scheduler: ReminderScheduler,
        *,
        default_category_color: str = DEFAULT_CATEGORY_COLOR,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._default_color = default_category_color

        self.filter_state = FilterState()
        self.results: list[Task] = []
        self.categories: list[Category] = []
        self.tags: list[Tag] = []
        self.selected_task: Task | None = None

        # Tasks from create() that no commit(task) has saved yet.
        self._drafts: dict[str, Task] = {}

        self._results_listeners: list[ResultsListener] = []
        self._selection_listeners: list[SelectionListener] = []

        scheduler.add_selection_listener(self._on_task_selected)

    # ---- listeners ----

    def subscribe_results(self, listener: ResultsListener) -> None:
        self._results_listeners.append(listener)

    def subscribe_selection(self, listener: SelectionListener) -> None:
        self._selection_listeners.append(listener)

    def _notify_results(self) -> None:
        for listener in list(self._results_listeners):
            try:
                listener(list(self.results))
            except Exception:
                logger.exception("Results listener failed")

    def _on_task_selected(self, task_id: str) -> None:
        task = self._store.get_task(task_id)
        if task is None or not self._store.is_persisted(task):
            logger.info("Delivered reminder for unknown task_id=%s ignored", task_id)
            return

        self.selected_task = task
        for listener in list(self._selection_listeners):
            try:
                listener(task)
            except Exception:
                logger.exception("Selection listener failed task_id=%s", task_id)

    # ---- query ----

    async def refresh(self) -> list[Task]:
        """
        Re-run the query for the current filter state.

        On StoreFailure the previous results are kept and the error propagates.
        """
        predicate = build_predicate(self.filter_state)
        try:
            results = await asyncio.to_thread(self._store.fetch_tasks, predicate, task_sort_key)
            categories = await asyncio.to_thread(self._store.fetch_categories)
            tags = await asyncio.to_thread(self._store.fetch_tags)
        except StoreFailure:
            logger.exception("Query failed; keeping last results (%s tasks)", len(self.results))
            raise

        self.results = results
        self.categories = categories
        self.tags = tags
        self._notify_results()
        return list(self.results)

    async def _commit(self, task: Task | None = None) -> None:
        """Commit the unit of work; drafts other than `task` stay pending."""
        hold = [d for d in self._drafts.values() if d is not task]
        await asyncio.to_thread(self._store.commit, hold=hold)
        if task is not None:
            self._drafts.pop(task.id, None)

    # ---- task lifecycle ----

    def create(self) -> Task:
        """New uncommitted task with defaults; invisible to queries until committed."""
        task = Task()
        self._store.insert(task)
        self._drafts[task.id] = task
        logger.debug("Task created (uncommitted) id=%s", task.id)
        return task

    async def commit(self, task: Task) -> list[Task]:
        title = (task.title or "").strip()
        if not title:
            raise ValidationError("task title must not be empty")
        task.title = title

        await self._commit(task)
        logger.info("Task saved id=%s", task.id)
        return await self.refresh()

    async def discard(self, task: Task | None = None) -> list[Task]:
        """Roll back every uncommitted change. Safe with nothing pending."""
        if task is not None:
            logger.debug("Discarding pending edits (task_id=%s)", task.id)
        await asyncio.to_thread(self._store.rollback)
        self._drafts.clear()
        return await self.refresh()

    async def delete(self, task: Task) -> list[Task]:
        """
        Delete the task and cancel its reminder.

        Cancellation is best-effort: a failure is logged and deletion continues.
        """
        if not await self._scheduler.cancel(task):
            logger.warning("Reminder for task_id=%s may still be pending after delete", task.id)

        task.category = None
        task.tags.clear()
        self._store.delete(task)
        self._drafts.pop(task.id, None)
        await self._commit()
        if self.selected_task is task:
            self.selected_task = None
        logger.info("Task deleted id=%s", task.id)
        return await self.refresh()

    async def set_due_date(self, task: Task, due_date: datetime | None) -> None:
        """
        Set or clear the due date (not committed).

        Clearing it cancels any reminder in the same operation. Scheduling for a
        new date is up to the caller (see enable_reminder).
        """
        task.due_date = due_date
        if due_date is None:
            await self._scheduler.cancel(task)

    async def toggle_completion(self, task: Task) -> list[Task]:
        # Any pending reminder stays registered.
        task.completed = not task.completed
        return await self.commit(task)

    # ---- reminders ----

    async def enable_reminder(
        self,
        task: Task,
        due_date: datetime,
        recurrence: DateComponents | None = None,
    ) -> list[Task]:
        """
        Set the due date, save, then (re)schedule the reminder.

        If scheduling fails the due date stays saved and the error propagates.
        """
        await self.set_due_date(task, due_date)
        results = await self.commit(task)
        await self._scheduler.update(task, recurrence)
        return results

    async def disable_reminder(self, task: Task) -> list[Task]:
        await self.set_due_date(task, None)
        return await self.commit(task)

    # ---- filter actions ----

    async def set_search_text(self, text: str) -> list[Task]:
        self.filter_state.search_text = text or ""
        return await self.refresh()

    async def filter_by_category(self, category: Category | None) -> list[Task]:
        self.filter_state.category = category
        return await self.refresh()

    async def toggle_tag_filter(self, tag: Tag) -> list[Task]:
        selected = self.filter_state.tags
        existing = next((t for t in selected if t.id == tag.id), None)
        if existing is not None:
            selected.discard(existing)
        else:
            selected.add(tag)
        return await self.refresh()

    async def clear_tag_filter(self) -> list[Task]:
        self.filter_state.tags.clear()
        return await self.refresh()

    async def set_show_completed(self, show: bool) -> list[Task]:
        self.filter_state.show_completed = bool(show)
        return await self.refresh()

    async def reset_filters(self) -> list[Task]:
        self.filter_state = FilterState()
        return await self.refresh()

    # ---- categories ----

    async def create_category(self, name: str, color_hex: str | None = None) -> Category:
        clean = (name or "").strip()
        if not clean:
            raise ValidationError("category name must not be empty")
        category = Category(name=clean, color_hex=color_hex or self._default_color)
        self._store.insert(category)
        await self._commit()
        await self.refresh()
        return category

    async def delete_category(self, category: Category) -> list[Task]:
        """Delete a category; its tasks survive with no category."""
        # Pending inserts too: a draft may already point at the category.
        dependents = [
            t
            for t in self._store.live_tasks()
            if t.category is not None and t.category.id == category.id
        ]
        for task in dependents:
            task.category = None

        if self.filter_state.category is not None and self.filter_state.category.id == category.id:
            self.filter_state.category = None

        self._store.delete(category)
        await self._commit()
        logger.info("Category deleted id=%s (%s tasks uncategorized)", category.id, len(dependents))
        return await self.refresh()

    async def assign_category(self, task: Task, category: Category | None) -> list[Task]:
        task.category = category
        return await self.commit(task)

    # ---- tags ----

    async def create_tag(self, name: str) -> Tag:
        clean = (name or "").strip()
        if not clean:
            raise ValidationError("tag name must not be empty")
        tag = Tag(name=clean)
        self._store.insert(tag)
        await self._commit()
        await self.refresh()
        return tag

    async def delete_tag(self, tag: Tag) -> list[Task]:
        """Detach the tag from every task that carries it, then delete it."""
        dependents = [t for t in self._store.live_tasks() if t.has_tag(tag)]
        for task in dependents:
            task.tags = {t for t in task.tags if t.id != tag.id}

        self.filter_state.tags = {t for t in self.filter_state.tags if t.id != tag.id}

        self._store.delete(tag)
        await self._commit()
        logger.info("Tag deleted id=%s (detached from %s tasks)", tag.id, len(dependents))
        return await self.refresh()

    async def add_tag(self, task: Task, tag: Tag) -> list[Task]:
        if not task.has_tag(tag):
            task.tags.add(tag)
        return await self.commit(task)

    async def remove_tag(self, task: Task, tag: Tag) -> list[Task]:
        task.tags = {t for t in task.tags if t.id != tag.id}
        return await self.commit(task)

    # ---- statistics ----

    async def statistics(self) -> TaskStatistics:
        tasks = await asyncio.to_thread(self._store.fetch_tasks)
        categories = await asyncio.to_thread(self._store.fetch_categories)
        return compute_statistics(tasks, categories)

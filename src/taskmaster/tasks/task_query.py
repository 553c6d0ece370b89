# src/taskmaster/tasks/task_query.py

from __future__ import annotations

"""
Query/filter engine.

Turns a FilterState into one predicate (a conjunction of the active criteria)
and owns the result ordering:

- search text: title OR description contains it, ignoring case and diacritics
- category: task.category is the selected category (uncategorized excluded)
- tags: task carries every selected tag
- completion: show_completed picks exactly one side of the completed flag

Sort: due date ascending, undated tasks last, then newest created first.
"""

import unicodedata
from collections.abc import Iterable
from datetime import datetime

from ..core.ports import TaskPredicate, TaskRepo
from .task_models import FilterState, Task


def normalize_text(text: str) -> str:
    """Case- and diacritic-folded form used for search matching."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def build_predicate(state: FilterState) -> TaskPredicate:
    clauses: list[TaskPredicate] = []

    needle = normalize_text(state.search_text.strip())
    if needle:

        def matches_text(task: Task) -> bool:
            return needle in normalize_text(task.title) or needle in normalize_text(
                task.description
            )

        clauses.append(matches_text)

    if state.category is not None:
        category_id = state.category.id

        def in_category(task: Task) -> bool:
            return task.category is not None and task.category.id == category_id

        clauses.append(in_category)

    if state.tags:
        wanted = frozenset(t.id for t in state.tags)

        def has_all_tags(task: Task) -> bool:
            return wanted <= {t.id for t in task.tags}

        clauses.append(has_all_tags)

    show_completed = bool(state.show_completed)

    def completion_side(task: Task) -> bool:
        return task.completed == show_completed

    clauses.append(completion_side)

    def predicate(task: Task) -> bool:
        return all(clause(task) for clause in clauses)

    return predicate


def task_sort_key(task: Task) -> tuple[bool, datetime, float]:
    due = task.due_date
    return (
        due is None,
        due if due is not None else datetime.min,
        -task.created_at.timestamp(),
    )


def filter_tasks(tasks: Iterable[Task], state: FilterState) -> list[Task]:
    """Apply the filter to an in-memory collection (deduplicated by id, sorted)."""
    predicate = build_predicate(state)
    seen: set[str] = set()
    out: list[Task] = []
    for task in tasks:
        if task.id in seen:
            continue
        seen.add(task.id)
        if predicate(task):
            out.append(task)
    out.sort(key=task_sort_key)
    return out


def run_query(store: TaskRepo, state: FilterState) -> list[Task]:
    """Execute the filter against the store."""
    return store.fetch_tasks(build_predicate(state), task_sort_key)

# src/taskmaster/tasks/task_stats.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .task_models import Category, Task, TaskPriority

UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True, slots=True)
class TaskStatistics:
    total: int
    completed: int
    by_category: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)

    @property
    def completion_rate(self) -> float:
        return self.completed / self.total if self.total else 0.0


def compute_statistics(tasks: Iterable[Task], categories: Iterable[Category] = ()) -> TaskStatistics:
    """
    Counts over the whole collection.

    Every known category gets a bucket (possibly 0); the uncategorized bucket
    only appears when some task has no category.
    """
    items = list(tasks)

    by_category: dict[str, int] = {c.name: 0 for c in categories}
    uncategorized = 0
    for t in items:
        if t.category is None:
            uncategorized += 1
        else:
            by_category[t.category.name] = by_category.get(t.category.name, 0) + 1
    if uncategorized:
        by_category[UNCATEGORIZED] = uncategorized

    by_priority = {p.value: 0 for p in TaskPriority}
    for t in items:
        by_priority[t.priority.value] += 1

    return TaskStatistics(
        total=len(items),
        completed=sum(1 for t in items if t.completed),
        by_category=by_category,
        by_priority=by_priority,
    )

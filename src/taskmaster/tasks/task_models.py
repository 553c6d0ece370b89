# src/taskmaster/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

DEFAULT_CATEGORY_COLOR = "#007AFF"


def new_id() -> str:
    return str(uuid.uuid4())


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


# Entities compare and hash by identity: the store keeps exactly one live object
# per id, so `task.tags` can be a plain set and `is` checks are meaningful.


@dataclass(slots=True, eq=False)
class Category:
    id: str = field(default_factory=new_id)
    name: str = ""
    color_hex: str = DEFAULT_CATEGORY_COLOR

    def __repr__(self) -> str:
        return f"Category(id={self.id!r}, name={self.name!r})"


@dataclass(slots=True, eq=False)
class Tag:
    id: str = field(default_factory=new_id)
    name: str = ""

    def __repr__(self) -> str:
        return f"Tag(id={self.id!r}, name={self.name!r})"


@dataclass(slots=True, eq=False)
class Task:
    id: str = field(default_factory=new_id)
    title: str = ""
    description: str = ""
    completed: bool = False
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)

    category: Category | None = None
    tags: set[Tag] = field(default_factory=set)

    def has_tag(self, tag: Tag) -> bool:
        return any(t.id == tag.id for t in self.tags)

    def __repr__(self) -> str:
        return f"Task(id={self.id!r}, title={self.title!r}, completed={self.completed})"


@dataclass(slots=True)
class FilterState:
    """
    Current filter criteria (not persisted).

    show_completed is a partition switch: False lists open tasks only,
    True lists completed tasks only.
    """

    search_text: str = ""
    category: Category | None = None
    tags: set[Tag] = field(default_factory=set)
    show_completed: bool = False

    def is_default(self) -> bool:
        return (
            not self.search_text.strip()
            and self.category is None
            and not self.tags
            and not self.show_completed
        )

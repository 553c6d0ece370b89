# src/taskmaster/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.errors import StoreFailure
from ..core.ports import TaskPredicate, TaskSortKey
from .task_models import Category, Tag, Task, TaskPriority

logger = logging.getLogger(__name__)

Entity = Task | Category | Tag
_EntityKey = tuple[str, str]


def _key(obj: Entity) -> _EntityKey:
    return (type(obj).__name__, obj.id)


def _dt_to_ts(dt: datetime | None) -> float | None:
    return dt.timestamp() if dt is not None else None


def _ts_to_dt(ts: Any) -> datetime | None:
    return datetime.fromtimestamp(float(ts)) if ts is not None else None


class TaskStore:
    """
    SQLite task store with a unit-of-work front.

    Objects handed out by the store are live: callers mutate them in place and
    nothing reaches disk until commit(). rollback() restores every object to its
    last committed state, drops pending inserts and brings back pending deletes.

    Identity map:
    - exactly one Python object per id, so relationships (task.category,
      task.tags) are plain object references

    Schema is created if missing; missing task columns are added with ALTER TABLE.
    Each operation opens its own SQLite connection.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._tasks: dict[str, Task] = {}
        self._categories: dict[str, Category] = {}
        self._tags: dict[str, Tag] = {}

        # Last committed field values per object.
        self._snapshots: dict[_EntityKey, tuple[Any, ...]] = {}
        self._inserted: dict[_EntityKey, Entity] = {}
        self._deleted: dict[_EntityKey, Entity] = {}

        self._ensure_schema()
        self._load()
        logger.info(
            "TaskStore ready db=%s tasks=%s categories=%s tags=%s",
            self._db_path,
            len(self._tasks),
            len(self._categories),
            len(self._tags),
        )

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL DEFAULT '',
                    color_hex TEXT NOT NULL DEFAULT '#007AFF'
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tags (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL DEFAULT ''
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    completed INTEGER NOT NULL DEFAULT 0,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    due_at REAL,
                    created_at REAL NOT NULL,
                    category_id TEXT REFERENCES categories(id)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_tags (
                    task_id TEXT NOT NULL REFERENCES tasks(id),
                    tag_id TEXT NOT NULL REFERENCES tags(id),
                    PRIMARY KEY (task_id, tag_id)
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("priority", "TEXT NOT NULL DEFAULT 'medium'")
            add_col("due_at", "REAL")
            add_col("category_id", "TEXT REFERENCES categories(id)")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(completed, due_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_category ON tasks(category_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_task_tags_tag ON task_tags(tag_id)")

            conn.commit()
        finally:
            conn.close()

    def _load(self) -> None:
        conn = self._get_conn()
        try:
            for row in conn.execute("SELECT * FROM categories"):
                cat = Category(
                    id=str(row["id"]),
                    name=str(row["name"] or ""),
                    color_hex=str(row["color_hex"] or ""),
                )
                self._categories[cat.id] = cat

            for row in conn.execute("SELECT * FROM tags"):
                tag = Tag(id=str(row["id"]), name=str(row["name"] or ""))
                self._tags[tag.id] = tag

            for row in conn.execute("SELECT * FROM tasks"):
                self._tasks[str(row["id"])] = self._row_to_task(row)

            for row in conn.execute("SELECT task_id, tag_id FROM task_tags"):
                task = self._tasks.get(row["task_id"])
                tag = self._tags.get(row["tag_id"])
                if task is not None and tag is not None:
                    task.tags.add(tag)
        finally:
            conn.close()

        for obj in self._live_objects():
            self._snapshots[_key(obj)] = self._snapshot(obj)

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        category_id = row["category_id"]
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            completed=bool(row["completed"]),
            priority=TaskPriority.from_db(row["priority"]),
            due_date=_ts_to_dt(row["due_at"]),
            created_at=_ts_to_dt(row["created_at"]) or datetime.now(),
            category=self._categories.get(category_id) if category_id else None,
        )

    @staticmethod
    def _snapshot(obj: Entity) -> tuple[Any, ...]:
        if isinstance(obj, Task):
            return (
                obj.title,
                obj.description,
                obj.completed,
                obj.priority,
                obj.due_date,
                obj.created_at,
                obj.category.id if obj.category is not None else None,
                frozenset(t.id for t in obj.tags),
            )
        if isinstance(obj, Category):
            return (obj.name, obj.color_hex)
        return (obj.name,)

    def _restore(self, obj: Entity, snap: tuple[Any, ...]) -> None:
        if isinstance(obj, Task):
            (
                obj.title,
                obj.description,
                obj.completed,
                obj.priority,
                obj.due_date,
                obj.created_at,
                category_id,
                tag_ids,
            ) = snap
            obj.category = self._categories.get(category_id) if category_id else None
            obj.tags = {self._tags[t] for t in tag_ids if t in self._tags}
        elif isinstance(obj, Category):
            obj.name, obj.color_hex = snap
        else:
            (obj.name,) = snap

    def _map_for(self, obj: Entity) -> dict[str, Any]:
        if isinstance(obj, Task):
            return self._tasks
        if isinstance(obj, Category):
            return self._categories
        if isinstance(obj, Tag):
            return self._tags
        raise TypeError(f"unsupported entity type: {type(obj).__name__}")

    def _live_objects(self) -> list[Entity]:
        # Categories and tags first: tasks reference them.
        return [*self._categories.values(), *self._tags.values(), *self._tasks.values()]

    def _dirty_objects(self) -> list[Entity]:
        out: list[Entity] = []
        for obj in self._live_objects():
            snap = self._snapshots.get(_key(obj))
            if snap is None or snap != self._snapshot(obj):
                out.append(obj)
        return out

    def _adopt_reachable(self, held: set[_EntityKey]) -> None:
        """Insert categories/tags that live tasks reference but the store has never seen."""
        for task in list(self._tasks.values()):
            if _key(task) in held:
                continue
            related: list[Entity] = list(task.tags)
            if task.category is not None:
                related.append(task.category)
            for obj in related:
                k = _key(obj)
                if k in self._deleted or obj.id in self._map_for(obj):
                    continue
                self.insert(obj)

    def _persisted_ids(self, table: str) -> list[str]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            raise StoreFailure(f"fetch from {table} failed: {exc}") from exc
        try:
            rows = conn.execute(f"SELECT id FROM {table}").fetchall()
            return [str(r["id"]) for r in rows]
        except sqlite3.Error as exc:
            raise StoreFailure(f"fetch from {table} failed: {exc}") from exc
        finally:
            conn.close()

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def fetch_tasks(
        self,
        predicate: TaskPredicate | None = None,
        key: TaskSortKey | None = None,
    ) -> list[Task]:
        """
        Committed tasks (in their current in-memory state) that satisfy `predicate`,
        deduplicated by id and sorted by `key`.

        Tasks inserted but not yet committed are never returned.
        """
        seen: set[str] = set()
        out: list[Task] = []
        for task_id in self._persisted_ids("tasks"):
            if task_id in seen:
                continue
            seen.add(task_id)
            task = self._tasks.get(task_id)
            if task is None:
                # Deleted in the pending unit of work.
                continue
            if predicate is not None and not predicate(task):
                continue
            out.append(task)
        if key is not None:
            out.sort(key=key)
        return out

    def fetch_categories(self) -> list[Category]:
        ids = self._persisted_ids("categories")
        cats = [self._categories[i] for i in ids if i in self._categories]
        return sorted(cats, key=lambda c: (c.name.casefold(), c.id))

    def fetch_tags(self) -> list[Tag]:
        ids = self._persisted_ids("tags")
        tags = [self._tags[i] for i in ids if i in self._tags]
        return sorted(tags, key=lambda t: (t.name.casefold(), t.id))

    def get_task(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def live_tasks(self) -> list[Task]:
        """Every task in the unit of work: committed ones plus pending inserts, minus pending deletes."""
        return list(self._tasks.values())

    def insert(self, obj: Entity) -> None:
        k = _key(obj)
        objects = self._map_for(obj)

        if k in self._deleted:
            # Re-inserting something deleted in this unit of work just cancels the delete.
            objects[obj.id] = self._deleted.pop(k)
            return
        if obj.id in objects:
            return

        objects[obj.id] = obj
        self._inserted[k] = obj
        logger.debug("TaskStore insert %s id=%s", k[0], obj.id)

    def delete(self, obj: Entity) -> None:
        """
        Schedule `obj` for deletion at the next commit.

        Relationship clean-up (clearing task.category, detaching tags) is the
        caller's job; a commit that leaves dangling references fails.
        """
        k = _key(obj)
        objects = self._map_for(obj)
        if obj.id not in objects:
            return

        del objects[obj.id]
        if k in self._inserted:
            del self._inserted[k]
            return
        self._deleted[k] = obj
        logger.debug("TaskStore delete %s id=%s", k[0], obj.id)

    def is_persisted(self, obj: Entity) -> bool:
        k = _key(obj)
        return k in self._snapshots and k not in self._deleted

    def has_changes(self) -> bool:
        return bool(self._inserted or self._deleted or self._dirty_objects())

    def commit(self, *, hold: Iterable[Entity] = ()) -> None:
        """
        Write all pending inserts, updates and deletes in one transaction.

        Objects in `hold` and tasks whose title is blank stay pending: they are
        neither written nor cleared, and a later commit picks them up.

        On failure the SQLite transaction is rolled back, pending in-memory state is
        kept as-is and StoreFailure is raised.
        """
        held = {_key(obj) for obj in hold}
        held.update(_key(t) for t in self._tasks.values() if not t.title.strip())

        self._adopt_reachable(held)
        dirty = [obj for obj in self._dirty_objects() if _key(obj) not in held]
        deleted = list(self._deleted.values())
        if not dirty and not deleted:
            return

        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            raise StoreFailure(f"commit failed: {exc}") from exc

        try:
            with conn:
                for obj in dirty:
                    self._write(conn, obj)
                self._delete_rows(conn, deleted)
        except sqlite3.Error as exc:
            logger.warning("TaskStore commit failed, transaction rolled back: %s", exc)
            raise StoreFailure(f"commit failed: {exc}") from exc
        finally:
            conn.close()

        for obj in dirty:
            k = _key(obj)
            self._snapshots[k] = self._snapshot(obj)
            self._inserted.pop(k, None)
        for obj in deleted:
            self._snapshots.pop(_key(obj), None)
        self._deleted.clear()
        logger.debug(
            "TaskStore commit: written=%s deleted=%s held=%s",
            len(dirty),
            len(deleted),
            len(held),
        )

    def rollback(self) -> None:
        """Discard uncommitted changes. Safe to call with nothing pending."""
        for obj in self._inserted.values():
            self._map_for(obj).pop(obj.id, None)
        for obj in self._deleted.values():
            self._map_for(obj)[obj.id] = obj

        n_inserted, n_deleted = len(self._inserted), len(self._deleted)
        self._inserted.clear()
        self._deleted.clear()

        for obj in self._live_objects():
            snap = self._snapshots.get(_key(obj))
            if snap is not None:
                self._restore(obj, snap)

        if n_inserted or n_deleted:
            logger.debug("TaskStore rollback: dropped=%s restored=%s", n_inserted, n_deleted)

    # ---- SQL writers ----

    @staticmethod
    def _write(conn: sqlite3.Connection, obj: Entity) -> None:
        if isinstance(obj, Category):
            conn.execute(
                """
                INSERT INTO categories(id, name, color_hex) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name, color_hex = excluded.color_hex
                """,
                (obj.id, obj.name, obj.color_hex),
            )
            return

        if isinstance(obj, Tag):
            conn.execute(
                """
                INSERT INTO tags(id, name) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name
                """,
                (obj.id, obj.name),
            )
            return

        conn.execute(
            """
            INSERT INTO tasks(
                id, title, description, completed, priority, due_at, created_at, category_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                title = excluded.title,
                description = excluded.description,
                completed = excluded.completed,
                priority = excluded.priority,
                due_at = excluded.due_at,
                created_at = excluded.created_at,
                category_id = excluded.category_id
            """,
            (
                obj.id,
                obj.title,
                obj.description,
                1 if obj.completed else 0,
                obj.priority.value,
                _dt_to_ts(obj.due_date),
                _dt_to_ts(obj.created_at),
                obj.category.id if obj.category is not None else None,
            ),
        )
        conn.execute("DELETE FROM task_tags WHERE task_id = ?", (obj.id,))
        conn.executemany(
            "INSERT INTO task_tags(task_id, tag_id) VALUES (?, ?)",
            [(obj.id, t.id) for t in obj.tags],
        )

    @staticmethod
    def _delete_rows(conn: sqlite3.Connection, deleted: Iterable[Entity]) -> None:
        items = list(deleted)
        # Dependents first so foreign keys hold at every step.
        for obj in items:
            if isinstance(obj, Task):
                conn.execute("DELETE FROM task_tags WHERE task_id = ?", (obj.id,))
                conn.execute("DELETE FROM tasks WHERE id = ?", (obj.id,))
        for obj in items:
            if isinstance(obj, Tag):
                conn.execute("DELETE FROM tags WHERE id = ?", (obj.id,))
        for obj in items:
            if isinstance(obj, Category):
                conn.execute("DELETE FROM categories WHERE id = ?", (obj.id,))

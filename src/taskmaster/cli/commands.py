# src/taskmaster/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..core.errors import TaskMasterError
from ..core.state import AppState
from ..reminders.notification_center import describe_pending
from ..reminders.triggers import CalendarTrigger, DateComponents
from ..tasks.task_models import Category, Tag, Task

CommandHandler = Callable[[AppState, list[str]], Awaitable[str]]

logger = logging.getLogger(__name__)

_WEEKDAYS = {"mon": 1, "tue": 2, "wed": 3, "thu": 4, "fri": 5, "sat": 6, "sun": 7}


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return await handler(state, args)
        except TaskMasterError as e:
            logger.info("/%s failed: %s", name, e)
            return f"{type(e).__name__}: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _format_task(i: int, task: Task) -> str:
    mark = "x" if task.completed else " "
    parts = [f"{i}. [{mark}] {task.title}"]
    if task.due_date is not None:
        parts.append(f"due {task.due_date:%Y-%m-%d %H:%M}")
    if task.category is not None:
        parts.append(f"@{task.category.name}")
    if task.tags:
        parts.append(" ".join(f"#{t.name}" for t in sorted(task.tags, key=lambda t: t.name)))
    parts.append(f"({task.priority.value})")
    return "  ".join(parts)


def _format_results(state: AppState) -> str:
    tasks = state.manager.results
    if not tasks:
        return "No tasks match the current filter."
    return "\n".join(_format_task(i, t) for i, t in enumerate(tasks, start=1))


def _task_at(state: AppState, raw: str) -> Task | None:
    try:
        idx = int(raw)
    except ValueError:
        return None
    tasks = state.manager.results
    if 1 <= idx <= len(tasks):
        return tasks[idx - 1]
    return None


def _category_named(state: AppState, name: str) -> Category | None:
    needle = name.strip().casefold()
    return next((c for c in state.manager.categories if c.name.casefold() == needle), None)


def _tag_named(state: AppState, name: str) -> Tag | None:
    needle = name.strip().lstrip("#").casefold()
    return next((t for t in state.manager.tags if t.name.casefold() == needle), None)


def _parse_hhmm(raw: str) -> tuple[int, int] | None:
    try:
        t = datetime.strptime(raw, "%H:%M")
    except ValueError:
        return None
    return t.hour, t.minute


# ---- commands ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_add(state: AppState, args: list[str]) -> str:
    """/add <title> [-- description]"""
    text = " ".join(args)
    title, _, description = text.partition(" -- ")
    task = state.manager.create()
    task.title = title
    task.description = description.strip()
    try:
        await state.manager.commit(task)
    except TaskMasterError:
        await state.manager.discard(task)
        raise
    return f"Added: {task.title}\n{_format_results(state)}"


async def cmd_list(state: AppState, args: list[str]) -> str:
    await state.manager.refresh()
    return _format_results(state)


async def cmd_done(state: AppState, args: list[str]) -> str:
    task = _task_at(state, args[0]) if args else None
    if task is None:
        return "Usage: /done <n> (number from /list)."
    await state.manager.toggle_completion(task)
    return _format_results(state)


async def cmd_del(state: AppState, args: list[str]) -> str:
    task = _task_at(state, args[0]) if args else None
    if task is None:
        return "Usage: /del <n> (number from /list)."
    await state.manager.delete(task)
    return f"Deleted: {task.title}\n{_format_results(state)}"


async def cmd_search(state: AppState, args: list[str]) -> str:
    await state.manager.set_search_text(" ".join(args))
    return _format_results(state)


async def cmd_completed(state: AppState, args: list[str]) -> str:
    """
    /completed on  -> list completed tasks
    /completed off -> list open tasks
    """
    if not args or args[0].lower() not in ("on", "off"):
        side = "completed" if state.manager.filter_state.show_completed else "open"
        return f"Showing {side} tasks. Use /completed on or /completed off."
    await state.manager.set_show_completed(args[0].lower() == "on")
    return _format_results(state)


async def cmd_cat(state: AppState, args: list[str]) -> str:
    """
    /cat                   -> list categories
    /cat add <name> [#hex] -> create a category
    /cat del <name>        -> delete a category (its tasks become uncategorized)
    /cat use <name>|all    -> filter by category
    /cat set <n> <name>|none -> assign a category to task n
    """
    manager = state.manager
    if not args:
        await manager.refresh()
        if not manager.categories:
            return "No categories."
        current = manager.filter_state.category
        return "\n".join(
            f"{'*' if current is not None and current.id == c.id else ' '} {c.name} {c.color_hex}"
            for c in manager.categories
        )

    sub, rest = args[0].lower(), args[1:]

    if sub == "add" and rest:
        color = rest[-1] if len(rest) > 1 and rest[-1].startswith("#") else None
        name = " ".join(rest[:-1] if color else rest)
        category = await manager.create_category(name, color)
        return f"Category created: {category.name}"

    if sub == "del" and rest:
        category = _category_named(state, " ".join(rest))
        if category is None:
            return "No such category."
        await manager.delete_category(category)
        return f"Category deleted: {category.name}"

    if sub == "use" and rest:
        if rest[0].lower() == "all":
            await manager.filter_by_category(None)
            return _format_results(state)
        category = _category_named(state, " ".join(rest))
        if category is None:
            return "No such category."
        await manager.filter_by_category(category)
        return _format_results(state)

    if sub == "set" and len(rest) >= 2:
        task = _task_at(state, rest[0])
        if task is None:
            return "No such task."
        name = " ".join(rest[1:])
        category = None if name.lower() == "none" else _category_named(state, name)
        if category is None and name.lower() != "none":
            return "No such category."
        await manager.assign_category(task, category)
        return _format_results(state)

    return "Usage: /cat | /cat add <name> [#hex] | /cat del <name> | /cat use <name>|all | /cat set <n> <name>|none"


async def cmd_tag(state: AppState, args: list[str]) -> str:
    """
    /tag                  -> list tags (* = selected in filter)
    /tag add <name>       -> create a tag
    /tag del <name>       -> delete a tag (detached from all tasks)
    /tag filter <name>    -> toggle tag in the filter (tasks must carry all selected tags)
    /tag clear            -> clear the tag filter
    /tag on <n> <name>    -> attach tag to task n
    /tag off <n> <name>   -> detach tag from task n
    """
    manager = state.manager
    if not args:
        await manager.refresh()
        if not manager.tags:
            return "No tags."
        selected = {t.id for t in manager.filter_state.tags}
        return "\n".join(f"{'*' if t.id in selected else ' '} #{t.name}" for t in manager.tags)

    sub, rest = args[0].lower(), args[1:]

    if sub == "add" and rest:
        tag = await manager.create_tag(" ".join(rest).lstrip("#"))
        return f"Tag created: #{tag.name}"

    if sub == "clear":
        await manager.clear_tag_filter()
        return _format_results(state)

    if sub in ("del", "filter") and rest:
        tag = _tag_named(state, " ".join(rest))
        if tag is None:
            return "No such tag."
        if sub == "del":
            await manager.delete_tag(tag)
            return f"Tag deleted: #{tag.name}"
        await manager.toggle_tag_filter(tag)
        return _format_results(state)

    if sub in ("on", "off") and len(rest) >= 2:
        task = _task_at(state, rest[0])
        tag = _tag_named(state, " ".join(rest[1:]))
        if task is None or tag is None:
            return "No such task or tag."
        if sub == "on":
            await manager.add_tag(task, tag)
        else:
            await manager.remove_tag(task, tag)
        return _format_results(state)

    return "Usage: /tag | /tag add|del|filter <name> | /tag clear | /tag on|off <n> <name>"


async def cmd_remind(state: AppState, args: list[str]) -> str:
    """
    /remind <n> <YYYY-MM-DD> <HH:MM>    -> one-shot reminder at the due date
    /remind <n> daily <HH:MM>           -> every day
    /remind <n> weekly <mon..sun> <HH:MM> -> every week
    """
    usage = "Usage: /remind <n> <YYYY-MM-DD> <HH:MM> | /remind <n> daily <HH:MM> | /remind <n> weekly <day> <HH:MM>"
    task = _task_at(state, args[0]) if args else None
    if task is None or len(args) < 3:
        return usage

    mode = args[1].lower()
    recurrence: DateComponents | None = None

    if mode == "daily":
        hm = _parse_hhmm(args[2])
        if hm is None:
            return usage
        recurrence = DateComponents(hour=hm[0], minute=hm[1])
    elif mode == "weekly" and len(args) >= 4:
        weekday = _WEEKDAYS.get(args[2].lower()[:3])
        hm = _parse_hhmm(args[3])
        if weekday is None or hm is None:
            return usage
        recurrence = DateComponents(hour=hm[0], minute=hm[1], weekday=weekday)
    else:
        try:
            due = datetime.strptime(f"{args[1]} {args[2]}", "%Y-%m-%d %H:%M")
        except ValueError:
            return usage
        await state.manager.enable_reminder(task, due)
        return f"Reminder set for {task.title} at {due:%Y-%m-%d %H:%M}."

    # A repeating reminder still needs a due date: use its first occurrence.
    first = CalendarTrigger(components=recurrence, repeats=True).next_fire_date(datetime.now())
    if first is None:
        return usage
    await state.manager.enable_reminder(task, first, recurrence)
    return f"Repeating reminder set for {task.title}, next at {first:%Y-%m-%d %H:%M}."


async def cmd_unremind(state: AppState, args: list[str]) -> str:
    task = _task_at(state, args[0]) if args else None
    if task is None:
        return "Usage: /unremind <n>."
    await state.manager.disable_reminder(task)
    return f"Reminder removed for {task.title}."


async def cmd_reminders(state: AppState, args: list[str]) -> str:
    pending = await state.scheduler.pending_reminders()
    status = await state.scheduler.authorization_status()
    if not pending:
        return f"No pending reminders (notifications: {status.value})."
    lines = [f"Pending reminders (notifications: {status.value}):"]
    for req in pending:
        d = describe_pending(req)
        kind = "repeats" if d["repeats"] else "once"
        lines.append(f"  {d['body']} [{kind}] {d['components']}")
    return "\n".join(lines)


async def cmd_stats(state: AppState, args: list[str]) -> str:
    stats = await state.manager.statistics()
    lines = [
        f"Tasks: {stats.total}, completed: {stats.completed} ({stats.completion_rate:.0%})",
        "By category:",
        *(f"  {name}: {n}" for name, n in stats.by_category.items()),
        "By priority:",
        *(f"  {name}: {n}" for name, n in stats.by_priority.items()),
    ]
    return "\n".join(lines)


async def cmd_reset(state: AppState, args: list[str]) -> str:
    await state.manager.reset_filters()
    return _format_results(state)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("add", cmd_add, help_text="Add a task: /add <title> [-- description].")
registry.register("list", cmd_list, help_text="List tasks for the current filter.", aliases=["ls"])
registry.register("done", cmd_done, help_text="Toggle completion: /done <n>.")
registry.register("del", cmd_del, help_text="Delete a task: /del <n>.", aliases=["rm"])
registry.register("search", cmd_search, help_text="Search title/description: /search <text>.")
registry.register("completed", cmd_completed, help_text="Show completed or open tasks: /completed on|off.")
registry.register("cat", cmd_cat, help_text="Categories: /cat add|del|use|set.")
registry.register("tag", cmd_tag, help_text="Tags: /tag add|del|filter|clear|on|off.")
registry.register("remind", cmd_remind, help_text="Set a reminder: /remind <n> <date> <time> | daily | weekly.")
registry.register("unremind", cmd_unremind, help_text="Remove a reminder: /unremind <n>.")
registry.register("reminders", cmd_reminders, help_text="List pending reminders.")
registry.register("stats", cmd_stats, help_text="Task statistics.")
registry.register("reset", cmd_reset, help_text="Reset all filters.")

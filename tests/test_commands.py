# tests/test_commands.py

from __future__ import annotations

import pytest

from taskmaster.cli.commands import CommandRegistry, registry
from taskmaster.core.errors import ValidationError
from taskmaster.core.state import AppState
from taskmaster.reminders.reminder_scheduler import reminder_identifier, repeating_identifier


@pytest.mark.asyncio
async def test_command_registry_routes_and_aliases(state: AppState) -> None:
    reg = CommandRegistry()
    called: list[list[str]] = []

    async def echo(_state: AppState, args: list[str]) -> str:
        called.append(args)
        return "ok"

    reg.register("echo", echo, "echo", aliases=["e"])

    assert await reg.handle(state, "/echo a b") == "ok"
    assert await reg.handle(state, "/E c") == "ok"
    assert called == [["a", "b"], ["c"]]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state: AppState) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_domain_errors_become_replies(state: AppState) -> None:
    reg = CommandRegistry()

    async def bad(_state: AppState, _args: list[str]) -> str:
        raise ValidationError("nope")

    reg.register("bad", bad, "bad")

    assert await reg.handle(state, "/bad") == "ValidationError: nope"


@pytest.mark.asyncio
async def test_add_list_done_and_delete(state: AppState) -> None:
    out = await registry.handle(state, "/add Buy milk -- two litres")
    assert out is not None and out.startswith("Added: Buy milk")
    await registry.handle(state, "/add Walk dog")

    listing = await registry.handle(state, "/ls")
    assert "1. [ ] Walk dog" in listing
    assert "2. [ ] Buy milk" in listing

    await registry.handle(state, "/done 2")
    assert [t.title for t in state.manager.results] == ["Walk dog"]

    await registry.handle(state, "/completed on")
    assert [t.title for t in state.manager.results] == ["Buy milk"]
    assert state.manager.results[0].description == "two litres"

    out = await registry.handle(state, "/del 1")
    assert out.startswith("Deleted: Buy milk")
    assert state.manager.results == []


@pytest.mark.asyncio
async def test_add_without_title_leaves_nothing_pending(state: AppState) -> None:
    out = await registry.handle(state, "/add")

    assert out is not None and out.startswith("ValidationError")
    assert not state.store.has_changes()


@pytest.mark.asyncio
async def test_search_and_reset(state: AppState) -> None:
    await registry.handle(state, "/add Café order")
    await registry.handle(state, "/add Walk dog")

    out = await registry.handle(state, "/search cafe")
    assert "Café order" in out
    assert "Walk dog" not in out

    assert "No tasks match" in await registry.handle(state, "/search zzz")

    await registry.handle(state, "/reset")
    assert len(state.manager.results) == 2


@pytest.mark.asyncio
async def test_categories_and_tags(state: AppState) -> None:
    await registry.handle(state, "/add Quarterly report")
    await registry.handle(state, "/cat add Work #FF9500")
    await registry.handle(state, "/cat set 1 work")
    await registry.handle(state, "/tag add urgent")
    await registry.handle(state, "/tag on 1 #urgent")

    listing = await registry.handle(state, "/list")
    assert "@Work" in listing and "#urgent" in listing
    assert "Work #FF9500" in await registry.handle(state, "/cat")

    await registry.handle(state, "/tag filter urgent")
    assert len(state.manager.results) == 1
    assert "* #urgent" in await registry.handle(state, "/tag")

    await registry.handle(state, "/cat del Work")
    await registry.handle(state, "/tag del urgent")

    [task] = state.manager.results
    assert task.category is None
    assert task.tags == set()
    assert await registry.handle(state, "/cat") == "No categories."
    assert await registry.handle(state, "/tag") == "No tags."


@pytest.mark.asyncio
async def test_remind_variants(state: AppState) -> None:
    await registry.handle(state, "/add Buy milk")
    task = state.manager.results[0]

    out = await registry.handle(state, "/remind 1 2099-01-10 09:00")
    assert "Reminder set" in out
    assert [r.identifier for r in await state.scheduler.pending_reminders()] == [
        reminder_identifier(task.id)
    ]

    out = await registry.handle(state, "/remind 1 weekly mon 10:00")
    assert "Repeating reminder set" in out
    [req] = await state.scheduler.pending_reminders()
    assert req.identifier == repeating_identifier(task.id)
    assert req.trigger.components.weekday == 1
    assert task.due_date is not None and task.due_date.isoweekday() == 1

    assert "[repeats]" in await registry.handle(state, "/reminders")

    await registry.handle(state, "/unremind 1")
    assert await state.scheduler.pending_reminders() == []
    assert task.due_date is None

    assert (await registry.handle(state, "/remind 1 someday")).startswith("Usage")
    assert (await registry.handle(state, "/remind 1 daily 25:00")).startswith("Usage")


@pytest.mark.asyncio
async def test_stats(state: AppState) -> None:
    await registry.handle(state, "/add a")
    await registry.handle(state, "/add b")
    await registry.handle(state, "/done 1")

    out = await registry.handle(state, "/stats")

    assert "Tasks: 2, completed: 1 (50%)" in out
    assert "Uncategorized: 2" in out


@pytest.mark.asyncio
async def test_help_lists_commands(state: AppState) -> None:
    out = await registry.handle(state, "/help")

    assert "/add" in out and "/remind" in out and "/stats" in out

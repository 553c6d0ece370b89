# tests/test_reminder_scheduler.py

from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from taskmaster.core.errors import AuthorizationDenied, SchedulingFailure
from taskmaster.reminders.reminder_scheduler import (
    TASK_ID_KEY,
    ReminderScheduler,
    reminder_identifier,
    repeating_identifier,
)
from taskmaster.reminders.triggers import DateComponents
from taskmaster.tasks.task_models import Task

from .fakes import FakeNotificationCenter

DUE = datetime(2024, 1, 10, 9, 0)


def _milk() -> Task:
    return Task(title="Buy milk", due_date=DUE)


@pytest.mark.asyncio
async def test_schedule_registers_one_entry_with_payload(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    task = _milk()

    await scheduler.schedule(task)

    assert list(center.pending) == [f"task-{task.id}"]
    request = center.pending[reminder_identifier(task.id)]
    assert request.content.title == "Task reminder"
    assert request.content.body == "Buy milk"
    assert request.content.user_info == {TASK_ID_KEY: task.id}
    assert request.trigger.repeats is False
    assert request.trigger.components.as_dict() == {
        "year": 2024,
        "month": 1,
        "day": 10,
        "hour": 9,
        "minute": 0,
    }


@pytest.mark.asyncio
async def test_schedule_without_due_date_is_a_programming_error(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    with pytest.raises(ValueError):
        await scheduler.schedule(Task(title="undated"))
    with pytest.raises(ValueError):
        await scheduler.schedule_repeating(Task(title="undated"), DateComponents(hour=9, minute=0))

    assert center.pending == {}


@pytest.mark.asyncio
async def test_denied_authorization_leaves_no_entry() -> None:
    center = FakeNotificationCenter(grant=False)
    scheduler = ReminderScheduler(center)

    with pytest.raises(AuthorizationDenied):
        await scheduler.schedule(_milk())

    assert center.pending == {}
    assert [kind for kind, _ in center.calls] == ["authorize"]


@pytest.mark.asyncio
async def test_registration_error_becomes_scheduling_failure(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    center.fail_add = True

    with pytest.raises(SchedulingFailure):
        await scheduler.schedule(_milk())

    assert center.pending == {}


@pytest.mark.asyncio
async def test_cancel_is_idempotent_and_clears_both_kinds(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    task = _milk()
    await scheduler.schedule(task)
    await scheduler.schedule_repeating(task, DateComponents(hour=9, minute=0))
    assert len(center.entries_for(task.id)) == 2

    assert await scheduler.cancel(task) is True
    assert await scheduler.cancel(task) is True
    assert center.entries_for(task.id) == []


@pytest.mark.asyncio
async def test_cancel_failure_is_reported_not_raised(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    center.fail_remove = True

    assert await scheduler.cancel(_milk()) is False


@pytest.mark.asyncio
async def test_repeated_schedule_and_update_keep_at_most_one_entry(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    task = _milk()

    await scheduler.schedule(task)
    await scheduler.schedule(task)
    task.due_date = datetime(2024, 1, 11, 18, 30)
    await scheduler.update(task)
    await scheduler.update(task)

    assert center.entries_for(task.id) == [reminder_identifier(task.id)]
    trigger = center.pending[reminder_identifier(task.id)].trigger
    assert trigger.components.day == 11
    assert trigger.components.hour == 18


@pytest.mark.asyncio
async def test_update_to_repeating_swaps_namespaces(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    task = _milk()
    await scheduler.schedule(task)

    await scheduler.update(task, DateComponents(weekday=1, hour=10, minute=0))

    assert center.entries_for(task.id) == [repeating_identifier(task.id)]
    request = center.pending[repeating_identifier(task.id)]
    assert request.trigger.repeats is True
    assert request.trigger.components.as_dict() == {"weekday": 1, "hour": 10, "minute": 0}


@pytest.mark.asyncio
async def test_update_removes_before_adding(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    task = _milk()
    await scheduler.schedule(task)
    center.calls.clear()

    await scheduler.update(task)

    assert [kind for kind, _ in center.calls] == ["remove", "authorize", "add"]


@pytest.mark.asyncio
async def test_cancel_during_in_flight_schedule_wins(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    task = _milk()
    center.add_gate = asyncio.Event()

    scheduling = asyncio.create_task(scheduler.schedule(task))
    while ("add", reminder_identifier(task.id)) not in center.calls:
        await asyncio.sleep(0)

    cancelling = asyncio.create_task(scheduler.cancel(task))
    await asyncio.sleep(0)
    assert not cancelling.done()

    center.add_gate.set()
    await scheduling
    assert await cancelling is True

    assert center.entries_for(task.id) == []
    assert [kind for kind, _ in center.calls] == ["authorize", "add", "remove"]


@pytest.mark.asyncio
async def test_delivery_round_trip_emits_task_selected(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    selected: list[str] = []
    scheduler.add_selection_listener(selected.append)
    task = _milk()
    await scheduler.schedule(task)

    payload = center.pending[reminder_identifier(task.id)].content.user_info
    assert center.handler is not None
    resolved = center.handler(dict(payload))

    assert resolved == task.id
    assert selected == [task.id]


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"task_id": None},
        {"task_id": "not-a-uuid"},
        {"other": "x"},
        "task_id",
        None,
        ["task_id"],
    ],
)
def test_malformed_payload_is_ignored(payload: object, scheduler: ReminderScheduler) -> None:
    selected: list[str] = []
    scheduler.add_selection_listener(selected.append)

    assert scheduler.resolve_delivery(payload) is None
    assert selected == []


def test_listener_error_does_not_escape(scheduler: ReminderScheduler) -> None:
    task = _milk()

    def broken(_task_id: str) -> None:
        raise RuntimeError("listener broke")

    scheduler.add_selection_listener(broken)

    assert scheduler.resolve_delivery({TASK_ID_KEY: task.id}) == task.id


@pytest.mark.asyncio
async def test_diagnostics(scheduler: ReminderScheduler, center: FakeNotificationCenter) -> None:
    a, b = _milk(), _milk()
    await scheduler.schedule(a)
    await scheduler.schedule_repeating(b, DateComponents(hour=7, minute=15))

    assert await scheduler.has_reminder(a)
    assert len(await scheduler.pending_reminders()) == 2

    assert await scheduler.cancel_all() == 2
    assert not await scheduler.has_reminder(a)
    assert await scheduler.cancel_all() == 0


@pytest.mark.asyncio
async def test_task_locks_are_released_after_use(
    scheduler: ReminderScheduler, center: FakeNotificationCenter
) -> None:
    task = _milk()
    await scheduler.schedule(task)
    await scheduler.update(task)
    await scheduler.cancel(task)
    assert scheduler._locks == {}

    center.add_gate = asyncio.Event()
    scheduling = asyncio.create_task(scheduler.schedule(task))
    while ("add", reminder_identifier(task.id)) not in center.calls[-1:]:
        await asyncio.sleep(0)
    cancelling = asyncio.create_task(scheduler.cancel(task))
    await asyncio.sleep(0)

    # Both callers share one lock while either is holding or waiting.
    assert list(scheduler._locks) == [task.id]
    assert scheduler._locks[task.id][1] == 2

    center.add_gate.set()
    await asyncio.gather(scheduling, cancelling)

    assert scheduler._locks == {}
    assert center.entries_for(task.id) == []

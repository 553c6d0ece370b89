# src/taskmaster/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..reminders.notification_center import run_delivery_loop
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    def on_selected(task: Task) -> None:
        _print_ts(f"[REMINDER] {task.title}")

    state.manager.subscribe_selection(on_selected)

    interval = float(getattr(state.settings, "delivery_interval_seconds", 15.0))
    delivery = asyncio.create_task(run_delivery_loop(state.notifications, interval_seconds=interval))

    try:
        await state.manager.refresh()
        while True:
            try:
                user_input = (await asyncio.to_thread(input, ">>> ")).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            # Bare text is shorthand for /add.
            line = user_input if user_input.startswith("/") else f"/add {user_input}"

            try:
                response = await command_registry.handle(state, line)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is not None:
                _print_ts(response)
    finally:
        delivery.cancel()
        try:
            await delivery
        except asyncio.CancelledError:
            pass

    logger.info("Console connector finished.")

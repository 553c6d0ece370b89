# src/taskmaster/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console REPL with the
reminder delivery loop in the background.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import parse_level, setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        if state.store.has_changes():
            logger.info("Discarding uncommitted changes on exit.")
            state.store.rollback()
    except Exception:
        logger.exception("Failed to discard pending changes.")

    try:
        state.store.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(log_dir=settings.log_dir, console_level=parse_level(settings.log_level))

    logger.info("Starting %s (log file: %s)", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    try:
        if settings.console_enabled:
            asyncio.run(run_console_loop(state))
        else:
            logger.info("Console disabled; nothing to run.")
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()

# src/tasksync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, resolves the remote scope, opens the task feed
(push subscription or a single poll) and runs the console REPL until /exit or EOF.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown
from ..config import get_settings
from ..connectors.console_connector import print_ts, run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.task_api import task_stats
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)


def _announce(state: AppState):
    """Print a short line whenever the remote (or cache) delivers a new list."""
    first = True

    def on_change(tasks: list[Task]) -> None:
        nonlocal first
        stats = task_stats(tasks)
        sync = "ONLINE" if state.orchestrator.health_status() else "OFFLINE"
        if first:
            print_ts(f"[SYNC] {stats.total} tasks loaded ({stats.active} active) [{sync}]")
            first = False
        else:
            print_ts(f"[SYNC] Task list updated: {stats.total} tasks ({stats.active} active) [{sync}]")

    return on_change


async def run(state: AppState) -> None:
    orch = state.orchestrator
    if not await orch.initialize():
        logger.warning("Starting offline; changes are kept in the local cache.")

    unsubscribe = None
    try:
        unsubscribe = await orch.open_task_feed(_announce(state))
    except Exception:
        logger.exception("Could not open the task feed; use /refresh to retry.")

    try:
        await run_console_loop(state)
    finally:
        if unsubscribe is not None:
            unsubscribe()
        await shutdown(state)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/tasksync")
    log_file = setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "tasksync"))
    logger.debug("Full log: %s", log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()

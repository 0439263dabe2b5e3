# src/tasksync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

_EOF = None


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str | None]) -> threading.Thread:
    """
    Read stdin in a daemon thread so a blocked input() never keeps the process alive.
    EOF (Ctrl+D) is forwarded as None.
    """

    def run() -> None:
        while True:
            try:
                line = input()
            except EOFError:
                loop.call_soon_threadsafe(lines.put_nowait, _EOF)
                return
            except Exception:
                logger.debug("stdin reader failed", exc_info=True)
                loop.call_soon_threadsafe(lines.put_nowait, _EOF)
                return
            loop.call_soon_threadsafe(lines.put_nowait, line)

    t = threading.Thread(target=run, name="tasksync-stdin", daemon=True)
    t.start()
    return t


async def run_console_loop(state: AppState) -> None:
    orch = state.orchestrator
    logger.info(
        "Console connector started (fallback=%s push=%s).",
        orch.config.enable_local_fallback,
        orch.config.prefer_push,
    )
    print_ts("[CONSOLE] Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (e.g. /diag)
        print_ts(text)

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    _start_stdin_reader(asyncio.get_running_loop(), lines)

    while True:
        print(">>> ", end="", flush=True)
        raw = await lines.get()
        if raw is _EOF:
            logger.info("Console EOF received, exiting.")
            print()
            break

        user_input = raw.strip()
        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        # Plain text is a shortcut for /add.
        if not user_input.startswith("/"):
            user_input = f"/add {user_input}"

        try:
            response = await command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is not None:
            print_ts(response)

    logger.info("Console connector finished.")

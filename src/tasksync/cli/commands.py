# src/tasksync/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import cast

from ..core.errors import NotFound, TaskValidationError
from ..core.state import AppState
from ..sync.diagnostics import check_connection
from ..tasks.task_api import TaskFilter, filter_tasks, find_task, task_stats
from ..tasks.task_models import Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


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

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
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
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def format_task_line(index: int, task: Task) -> str:
    mark = "x" if task.completed else " "
    line = f"{index}. [{mark}] {task.text} ({task.priority.value})"
    if task.alarm_time is not None:
        line += f" alarm {_fmt_ts(task.alarm_time)}"
    return line


def _offline_note(state: AppState) -> str:
    return "" if state.orchestrator.health_status() else " (saved offline)"


def _resolve_task(state: AppState, ref: str) -> Task | None:
    """`ref` is a 1-based position in the last printed list, or a task id."""
    if ref.isdigit():
        n = int(ref)
        if 1 <= n <= len(state.last_listing):
            return state.last_listing[n - 1]
    return find_task(state.orchestrator.tasks, ref)


def _render_listing(state: AppState, tasks: list[Task]) -> str:
    mode = TaskFilter.from_raw(state.filter_mode)
    shown = filter_tasks(tasks, mode)
    state.last_listing = shown
    sync = "ONLINE" if state.orchestrator.health_status() else "OFFLINE"
    if not shown:
        empty = {
            TaskFilter.ALL: "No tasks yet.",
            TaskFilter.ACTIVE: "All tasks are done!",
            TaskFilter.COMPLETED: "Nothing completed yet.",
        }[mode]
        return f"{empty} [{sync}]"
    lines = [f"Tasks ({mode.value}, {len(shown)}) [{sync}]:"]
    lines.extend(format_task_line(i, t) for i, t in enumerate(shown, start=1))
    return "\n".join(lines)


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    orch = state.orchestrator
    scope = state.sync_state.scope
    return (
        "Status:\n"
        f"  Sync: {'ONLINE' if orch.health_status() else 'OFFLINE'}\n"
        f"  Scope: {scope.collection_path if scope else '(not resolved)'}\n"
        f"  Local fallback: {'ON' if orch.config.enable_local_fallback else 'OFF'}\n"
        f"  Updates: {'push' if orch.config.prefer_push else 'manual refresh'}"
    )


async def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list            -> current filter
    /list active     -> only open tasks (filter is remembered)
    """
    if args:
        state.filter_mode = TaskFilter.from_raw(args[0]).value
    return _render_listing(state, state.orchestrator.tasks)


async def cmd_refresh(state: AppState, args: list[str]) -> str:
    tasks = await state.orchestrator.list_tasks()
    return _render_listing(state, tasks)


async def cmd_add(state: AppState, args: list[str]) -> str:
    text = " ".join(args)
    try:
        task_id = await state.orchestrator.add_task(text)
    except TaskValidationError as e:
        return f"Invalid task: {e}"
    return f"Added task {task_id}{_offline_note(state)}."


async def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <n>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}. Use /list first."
    try:
        completed = await state.orchestrator.toggle_task(task.id, task.completed)
    except NotFound:
        return "Task not found (it may have been deleted elsewhere)."
    task.completed = completed
    label = "done" if completed else "active"
    return f"Task {task.text!r} marked {label}{_offline_note(state)}."


async def cmd_prio(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /prio <n> <high|medium|low>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}. Use /list first."
    try:
        await state.orchestrator.set_priority(task.id, args[1])
    except TaskValidationError as e:
        return f"Invalid priority: {e}"
    except NotFound:
        return "Task not found (it may have been deleted elsewhere)."
    return f"Priority of {task.text!r} set to {args[1].lower()}{_offline_note(state)}."


async def cmd_rm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /rm <n>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}. Use /list first."
    if task.notification_id and emit:
        with contextlib.suppress(Exception):
            emit(f"[ALARM] Task had a scheduled notification {task.notification_id}; cancel it in the scheduler.")
    try:
        await state.orchestrator.delete_task(task.id)
    except NotFound:
        return "Task not found (it may have been deleted elsewhere)."
    state.last_listing = [t for t in state.last_listing if t.id != task.id]
    return f"Deleted {task.text!r}{_offline_note(state)}."


async def cmd_alarm(state: AppState, args: list[str]) -> str:
    """
    /alarm <n> off -> clear the alarm reference stored on the task
    """
    if len(args) < 2 or args[1].lower() != "off":
        return "Usage: /alarm <n> off"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No task {args[0]!r}. Use /list first."
    try:
        await state.orchestrator.clear_alarm(task.id)
    except NotFound:
        return "Task not found (it may have been deleted elsewhere)."
    return f"Alarm cleared for {task.text!r}{_offline_note(state)}."


async def cmd_stats(state: AppState, args: list[str]) -> str:
    stats = task_stats(state.orchestrator.tasks)
    return f"Tasks: {stats.total} total, {stats.completed} completed, {stats.active} active."


async def cmd_diag(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        with contextlib.suppress(Exception):
            emit("[DIAG] Testing remote connection...")
    report = await check_connection(state.orchestrator)
    if report.success:
        return f"Connection OK ({report.tasks_count} tasks)."
    return f"Connection FAILED [{report.code}]: {report.message}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show sync status (online/offline, scope).")
registry.register("list", cmd_list, help_text="List tasks: /list [all|active|completed].", aliases=["ls"])
registry.register("refresh", cmd_refresh, help_text="Reload tasks from the remote store (cache when offline).")
registry.register("add", cmd_add, help_text="Add a task: /add <text>.")
registry.register("done", cmd_done, help_text="Toggle completion: /done <n>.", aliases=["toggle"])
registry.register("prio", cmd_prio, help_text="Set priority: /prio <n> <high|medium|low>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <n>.", aliases=["del"])
registry.register("alarm", cmd_alarm, help_text="Clear a task alarm: /alarm <n> off.")
registry.register("stats", cmd_stats, help_text="Show task counters.")
registry.register("diag", cmd_diag, help_text="Test the remote connection.")

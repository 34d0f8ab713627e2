# src/mindthreads/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.errors import MindThreadsError, NotFoundError, PreconditionViolation, StorageError
from ..core.state import AppState
from ..tasks import hierarchy
from ..tasks.task_models import Task, TaskList

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

SHORT_ID_LEN = 8

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

    def handle(
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
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)

            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except StorageError as e:
            logger.warning("/%s: storage failure: %s", name, e)
            return f"Could not save changes: {e}"
        except (MindThreadsError, ValueError) as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def short_id(task_id: str) -> str:
    return task_id[:SHORT_ID_LEN]


def resolve_task(state: AppState, token: str | None) -> Task:
    """
    Find a task by id or unique id prefix; with no token, the active task.
    """
    if token is None:
        active = state.focus.active_id
        if active is None:
            raise NotFoundError("No active task. Pass a task id or use /focus ID.")
        task = state.task_store.get_task(active)
        if task is None:
            state.focus.forget([active])
            raise NotFoundError("The active task no longer exists.")
        return task

    task = state.task_store.get_task(token)
    if task is not None:
        return task

    matches = state.task_store.find_tasks_by_prefix(token)
    if not matches:
        raise NotFoundError(f"No task with id {token!r}.")
    if len(matches) > 1:
        raise NotFoundError(f"Id {token!r} is ambiguous ({len(matches)} tasks).")
    return matches[0]


def _resolve_list(state: AppState, name: str) -> TaskList:
    found = state.task_store.find_list_by_name(name)
    if found is None:
        raise NotFoundError(f"No list named {name!r}.")
    return found


def render_task_line(task: Task, *, active: bool = False) -> str:
    marker = ">" if active else " "
    box = "[x]" if task.is_complete else "[ ]"
    indent = "  " * task.display_indentation
    title = task.title or "(untitled)"
    return f"{marker} {indent}{box} {title}  ({short_id(task.id)})"


def render_list(state: AppState) -> str:
    tasks = hierarchy.filter_tasks_for_list(
        state.task_store.tasks_in_list(state.current_list.id), state.current_list
    )
    header = f"{state.current_list.name} ({len(tasks)} task(s))"
    if not tasks:
        return f"{header}\n  (empty) Use /add TITLE to create a task."
    lines = [header]
    for t in tasks:
        lines.append(render_task_line(t, active=t.id == state.focus.active_id))
    return "\n".join(lines)


def _created(state: AppState, task_id: str, verb: str) -> str:
    state.focus.request(task_id)
    return f"{verb} task {short_id(task_id)}.\n{render_list(state)}"


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.task_store
    active = state.focus.active_id
    db_path = getattr(store, "db_path", None)
    return (
        "Status:\n"
        f"  List: {state.current_list.name}\n"
        f"  Lists: {len(store.query(TaskList))}  Tasks: {len(store.query(Task))}\n"
        f"  Active task: {short_id(active) if active else '-'}\n"
        f"  Database: {db_path or '-'}"
    )


def cmd_lists(state: AppState, args: list[str]) -> str:
    lists = state.task_store.query(TaskList, "name")
    lines = ["Lists:"]
    for tl in lists:
        marker = "*" if tl.id == state.current_list.id else " "
        count = len(state.task_store.tasks_in_list(tl.id))
        lines.append(f"  {marker} {tl.name} ({count})")
    return "\n".join(lines)


def cmd_newlist(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /newlist NAME"
    task_list = hierarchy.create_list(state.task_store, " ".join(args))
    return f"Created list {task_list.name!r}. Use /use {task_list.name} to switch to it."


def cmd_use(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /use NAME"
    state.current_list = _resolve_list(state, " ".join(args))
    state.focus.active_id = None
    return render_list(state)


def cmd_ls(state: AppState, args: list[str]) -> str:
    return render_list(state)


def cmd_add(state: AppState, args: list[str]) -> str:
    task_id = hierarchy.add_new_task(
        state.task_store, " ".join(args).strip(), task_list=state.current_list
    )
    return _created(state, task_id, "Added")


def cmd_sub(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /sub ID [TITLE]"
    parent = resolve_task(state, args[0])
    task_id = hierarchy.add_subtask(state.task_store, parent, " ".join(args[1:]).strip())
    return _created(state, task_id, "Added sub")


def cmd_below(state: AppState, args: list[str]) -> str:
    current = resolve_task(state, args[0] if args else None)
    task_id = hierarchy.create_task_below(state.task_store, current)
    return _created(state, task_id, "Created")


def cmd_dup(state: AppState, args: list[str]) -> str:
    task = resolve_task(state, args[0] if args else None)
    task_id = hierarchy.duplicate_task(state.task_store, task)
    return _created(state, task_id, "Duplicated as")


def cmd_done(state: AppState, args: list[str]) -> str:
    task = resolve_task(state, args[0] if args else None)
    done = hierarchy.toggle_completion(state.task_store, task)
    return f"Marked {short_id(task.id)} as {'complete' if done else 'incomplete'}."


def cmd_title(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /title ID TEXT"
    task = resolve_task(state, args[0])
    hierarchy.rename_task(state.task_store, task, " ".join(args[1:]))
    return render_task_line(task, active=task.id == state.focus.active_id)


def cmd_indent(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /indent ID LEVEL"
    task = resolve_task(state, args[0])
    try:
        level = int(args[1])
    except ValueError:
        return f"LEVEL must be an integer, got {args[1]!r}."
    hierarchy.set_indentation(state.task_store, task, level)
    return render_list(state)


def cmd_rm(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    """
    /rm           -> delete the active task
    /rm ID [ID..] -> delete the given tasks, each with its subtasks
    """
    tokens: list[str | None] = list(args) if args else [None]
    tasks = [resolve_task(state, tok) for tok in tokens]

    for t in tasks:
        n_sub = len(state.task_store.subtasks_of(t.id))
        if n_sub and emit:
            with contextlib.suppress(Exception):
                emit(f"{short_id(t.id)} has {n_sub} subtask(s); deleting them too.")

    removed = hierarchy.delete_tasks(state.task_store, tasks)
    state.focus.forget(removed)
    return f"Deleted {len(removed)} task(s).\n{render_list(state)}"


def cmd_focus(state: AppState, args: list[str]) -> str:
    if not args:
        active = state.focus.active_id
        return f"Active task: {short_id(active)}" if active else "No active task."
    task = resolve_task(state, args[0])
    state.focus.active_id = task.id
    return render_task_line(task, active=True)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current list, counts and database path.")
registry.register("lists", cmd_lists, help_text="Show all lists.")
registry.register("newlist", cmd_newlist, help_text="Create a list: /newlist NAME.")
registry.register("use", cmd_use, help_text="Switch to a list: /use NAME.")
registry.register("ls", cmd_ls, help_text="Show tasks of the current list.", aliases=["list"])
registry.register("add", cmd_add, help_text="Add a top-level task: /add [TITLE].")
registry.register("sub", cmd_sub, help_text="Add a subtask: /sub ID [TITLE].")
registry.register("below", cmd_below, help_text="New empty sibling below a task: /below [ID].")
registry.register("dup", cmd_dup, help_text="Duplicate a task (not its subtasks): /dup [ID].")
registry.register("done", cmd_done, help_text="Toggle completion: /done [ID].")
registry.register("title", cmd_title, help_text="Rename a task: /title ID TEXT.")
registry.register("indent", cmd_indent, help_text="Set indentation level: /indent ID LEVEL.")
registry.register("rm", cmd_rm, help_text="Delete tasks and their subtasks: /rm [ID ...].", aliases=["del"])
registry.register("focus", cmd_focus, help_text="Make a task active: /focus ID.")

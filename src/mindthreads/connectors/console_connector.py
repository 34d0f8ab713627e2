# src/mindthreads/connectors/console_connector.py

from __future__ import annotations

import logging

from ..cli.commands import registry as command_registry
from ..cli.commands import render_list, render_task_line, short_id
from ..core.errors import MindThreadsError, StorageError
from ..core.state import AppState
from ..tasks import hierarchy

logger = logging.getLogger(__name__)

PROMPT = "> "


def _prompt(state: AppState) -> str:
    active = state.focus.active_id
    return f"[{short_id(active)}] {PROMPT}" if active else PROMPT


def submit_text(state: AppState, text: str) -> str:
    """
    Plain (non-command) input: set the active task's title and open a new task
    below it, like pressing return in an inline editor.

    With no active task the text becomes a new top-level task of the current list.
    """
    store = state.task_store

    task = store.get_task(state.focus.active_id) if state.focus.active_id else None
    if task is None:
        task_id, new_id = hierarchy.add_and_submit(store, text, task_list=state.current_list)
        task = store.get_task(task_id)
    else:
        task.title = text
        new_id = hierarchy.submit_task(store, task)

    state.focus.request(new_id)
    return render_task_line(task) if task is not None else ""


def handle_line(state: AppState, line: str) -> str | None:
    """
    Route one line of console input. Returns the text to print (or None).
    """
    def emit(text: str) -> None:
        print(text, flush=True)

    with state.lock:
        reply = command_registry.handle(state, line, emit=emit)
        if reply is None:
            try:
                reply = submit_text(state, line)
            except StorageError as e:
                logger.warning("Could not save input: %s", e)
                reply = f"Could not save changes: {e}"
            except MindThreadsError as e:
                reply = f"Error: {e}"

        state.focus.consume()
    return reply


def run_console_loop(state: AppState) -> None:
    logger.info("Console started (list=%s).", state.current_list.name)
    print("Type text to edit the active task; Enter opens a task below it.")
    print("Use /help for commands. Use /exit to quit.\n")
    print(render_list(state))

    while True:
        try:
            user_input = input(_prompt(state)).strip()
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

        try:
            reply = handle_line(state, user_input)
        except Exception:
            logger.exception("Console handler crashed.")
            reply = "Internal error while handling input."

        if reply:
            print(reply)

    logger.info("Console finished.")

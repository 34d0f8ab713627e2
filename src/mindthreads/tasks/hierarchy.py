# src/mindthreads/tasks/hierarchy.py

"""
Hierarchy operations over the task graph.

Every operation runs inside repo.transaction(): it reads, stages its changes
and commits them with a single save() while holding the store lock, so no
other writer can interleave. If the commit fails the staged changes are
discarded and the StorageError propagates, so callers never see a
half-applied operation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.errors import PreconditionViolation, StorageError
from ..core.ports import TaskRepo
from .task_models import DEFAULT_LIST_NAME, Task, TaskList, display_indentation

logger = logging.getLogger(__name__)


def _commit(repo: TaskRepo, what: str) -> None:
    try:
        repo.save()
    except StorageError:
        logger.exception("Failed to save (%s); changes discarded.", what)
        repo.discard()
        raise


def _require_parent(repo: TaskRepo, parent_id: str | None) -> None:
    # A parent deleted by an earlier operation must not get new children.
    if parent_id is not None and repo.get_task(parent_id) is None:
        raise PreconditionViolation(f"Parent task {parent_id} no longer exists")


def ensure_default_list(repo: TaskRepo, name: str = DEFAULT_LIST_NAME) -> TaskList:
    """
    Create the default list if no list exists yet.

    Safe to call on every start. Returns the list named `name`, or the first
    list by name when lists exist but none carries it.
    """
    with repo.transaction():
        lists = repo.query(TaskList, "name")
        if lists:
            return repo.find_list_by_name(name) or lists[0]

        default = TaskList(name=name)
        repo.insert(default)
        _commit(repo, "create default list")
    logger.info("Created default list %r id=%s", name, default.id)
    return default


def create_list(repo: TaskRepo, name: str) -> TaskList:
    name = name.strip()
    if not name:
        raise ValueError("list name is required")
    task_list = TaskList(name=name)
    with repo.transaction():
        repo.insert(task_list)
        _commit(repo, "create list")
    logger.info("Created list %r id=%s", name, task_list.id)
    return task_list


def filter_tasks_for_list(tasks: Iterable[Task], task_list: TaskList) -> list[Task]:
    """Tasks of `task_list` in creation order. Pure: does not touch the store."""
    return sorted((t for t in tasks if t.list_id == task_list.id), key=lambda t: t.creation_date)


def _resolve_list(repo: TaskRepo, task_list: TaskList | None, list_name: str) -> TaskList:
    if task_list is None:
        task_list = repo.find_list_by_name(list_name)
    if task_list is None:
        raise PreconditionViolation(f"No list named {list_name!r}")
    return task_list


def add_new_task(
    repo: TaskRepo,
    title: str = "",
    task_list: TaskList | None = None,
    list_name: str = DEFAULT_LIST_NAME,
) -> str:
    """Append a top-level task to `task_list` (or the list named `list_name`) and return its id."""
    with repo.transaction():
        task_list = _resolve_list(repo, task_list, list_name)
        task = Task(title=title, indentation_level=0, list_id=task_list.id)
        repo.insert(task)
        _commit(repo, "add task")
    logger.debug("Added task id=%s list=%s", task.id, task_list.id)
    return task.id


def _stage_below(repo: TaskRepo, current: Task) -> Task:
    if current.list_id is None:
        raise PreconditionViolation(f"Task {current.id} is not in a list")
    _require_parent(repo, current.parent_id)

    task = Task(
        title="",
        indentation_level=max(0, current.indentation_level),
        parent_id=current.parent_id,
        list_id=current.list_id,
    )
    repo.insert(task)
    return task


def create_task_below(repo: TaskRepo, current: Task) -> str:
    """
    Insert an empty sibling of `current` (same list, same parent, same depth).

    Raises PreconditionViolation if `current` belongs to no list.
    """
    with repo.transaction():
        task = _stage_below(repo, current)
        _commit(repo, "create task below")
    logger.debug("Created task id=%s below id=%s", task.id, current.id)
    return task.id


def add_subtask(repo: TaskRepo, parent: Task, title: str = "") -> str:
    """Create a child of `parent` one level deeper, in the parent's list."""
    if parent.list_id is None:
        raise PreconditionViolation(f"Task {parent.id} is not in a list")

    with repo.transaction():
        _require_parent(repo, parent.id)
        task = Task(
            title=title,
            indentation_level=max(0, parent.indentation_level) + 1,
            parent_id=parent.id,
            list_id=parent.list_id,
        )
        repo.insert(task)
        _commit(repo, "add subtask")
    logger.debug("Added subtask id=%s parent=%s", task.id, parent.id)
    return task.id


def duplicate_task(repo: TaskRepo, task: Task) -> str:
    """Copy a task as an incomplete sibling. Its subtasks are not copied."""
    copy = Task(
        title=task.title,
        is_complete=False,
        indentation_level=display_indentation(task.indentation_level),
        parent_id=task.parent_id,
        list_id=task.list_id,
    )
    with repo.transaction():
        _require_parent(repo, copy.parent_id)
        repo.insert(copy)
        _commit(repo, "duplicate task")
    logger.debug("Duplicated task id=%s as id=%s", task.id, copy.id)
    return copy.id


def _stage_subtree_delete(repo: TaskRepo, task: Task, seen: set[str], removed: list[str]) -> None:
    if task.id in seen:
        return
    seen.add(task.id)
    # Children go first; read them before the parent is staged.
    for child in repo.subtasks_of(task.id):
        _stage_subtree_delete(repo, child, seen, removed)
    repo.delete(task)
    removed.append(task.id)


def delete_task_and_subtasks(repo: TaskRepo, task: Task) -> list[str]:
    """
    Remove `task` and every descendant in one commit.

    Returns the removed ids, deepest first.
    """
    return delete_tasks(repo, [task])


def delete_tasks(repo: TaskRepo, tasks: Iterable[Task]) -> list[str]:
    """Remove several tasks with their subtrees in one commit."""
    seen: set[str] = set()
    removed: list[str] = []
    with repo.transaction():
        for task in tasks:
            _stage_subtree_delete(repo, task, seen, removed)
        if not removed:
            return removed
        _commit(repo, "delete tasks")
    logger.info("Deleted %d task(s): %s", len(removed), ", ".join(removed))
    return removed


def _update_field(repo: TaskRepo, task: Task, name: str, value: object) -> None:
    old = getattr(task, name)
    with repo.transaction():
        setattr(task, name, value)
        repo.update(task)
        try:
            _commit(repo, f"update {name}")
        except StorageError:
            setattr(task, name, old)
            raise


def toggle_completion(repo: TaskRepo, task: Task) -> bool:
    _update_field(repo, task, "is_complete", not task.is_complete)
    return task.is_complete


def rename_task(repo: TaskRepo, task: Task, title: str) -> None:
    _update_field(repo, task, "title", title)


def set_indentation(repo: TaskRepo, task: Task, level: int) -> None:
    """Store the indentation as given. It is clamped only when displayed."""
    _update_field(repo, task, "indentation_level", int(level))


def submit_task(repo: TaskRepo, task: Task) -> str:
    """
    Return-key behaviour: trim the title, then open a new task below.

    Both changes are committed together. If the commit fails the title is
    left as it was.
    """
    if task.list_id is None:
        raise PreconditionViolation(f"Task {task.id} is not in a list")

    old_title = task.title
    with repo.transaction():
        task.title = task.title.strip()
        try:
            repo.update(task)
            below = _stage_below(repo, task)
            _commit(repo, "submit task")
        except (StorageError, PreconditionViolation):
            task.title = old_title
            repo.discard()
            raise
    logger.debug("Submitted task id=%s, created id=%s below", task.id, below.id)
    return below.id


def add_and_submit(
    repo: TaskRepo,
    title: str,
    task_list: TaskList | None = None,
    list_name: str = DEFAULT_LIST_NAME,
) -> tuple[str, str]:
    """
    Add a top-level task with a trimmed title plus an empty task below it.

    One commit for both: on failure neither exists. Returns (task id, id below).
    """
    with repo.transaction():
        task_list = _resolve_list(repo, task_list, list_name)
        task = Task(title=title.strip(), indentation_level=0, list_id=task_list.id)
        repo.insert(task)
        try:
            below = _stage_below(repo, task)
        except PreconditionViolation:
            repo.discard()
            raise
        _commit(repo, "add and submit task")
    logger.debug("Added task id=%s with id=%s below", task.id, below.id)
    return task.id, below.id

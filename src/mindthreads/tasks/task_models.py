# src/mindthreads/tasks/task_models.py

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field

DEFAULT_LIST_NAME = "Main"
MAX_INDENTATION_LEVEL = 5


def new_id() -> str:
    return str(uuid.uuid4())


def display_indentation(level: int) -> int:
    """Indentation as rendered: stored values are kept as-is, display is clamped to 0..5."""
    return max(0, min(MAX_INDENTATION_LEVEL, int(level)))


@dataclass(slots=True)
class TaskList:
    """
    Named container of tasks.

    The tasks of a list are not held here; they are the tasks whose list_id
    points at this list (see TaskStore.tasks_in_list).
    """

    name: str
    id: str = field(default_factory=new_id)


@dataclass(slots=True)
class Task:
    """
    A single to-do item.

    parent_id and list_id are plain, non-owning references resolved through
    the store. Subtasks are never stored on the object: they are every task
    whose parent_id equals this task's id (TaskStore.subtasks_of).

    indentation_level is a visual property and is not kept in sync with the
    parent chain.
    """

    title: str = ""
    is_complete: bool = False
    creation_date: float = field(default_factory=time.time)
    indentation_level: int = 0
    parent_id: str | None = None
    list_id: str | None = None
    id: str = field(default_factory=new_id)

    @property
    def display_indentation(self) -> int:
        return display_indentation(self.indentation_level)

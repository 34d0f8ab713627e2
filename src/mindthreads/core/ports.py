# src/mindthreads/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

Hierarchy operations depend on this Protocol instead of the SQLite store,
so tests and alternative backends can plug in their own implementation.
"""

from contextlib import AbstractContextManager
from typing import Any, Protocol, TypeVar

from ..tasks.task_models import Task, TaskList

Entity = Task | TaskList
E = TypeVar("E", Task, TaskList)


class TaskRepo(Protocol):
    # Unit of work: stage changes, then commit them together.
    # transaction() holds the single-writer lock across a whole operation.
    def transaction(self) -> AbstractContextManager[Any]: ...
    def insert(self, entity: Entity) -> None: ...
    def update(self, entity: Entity) -> None: ...
    def delete(self, entity: Entity) -> None: ...
    def save(self) -> None: ...
    def discard(self) -> None: ...

    # Reads (staged changes included)
    def query(self, entity_type: type[E], sort_key: str | None = None) -> list[E]: ...
    def get_task(self, task_id: str) -> Task | None: ...
    def get_list(self, list_id: str) -> TaskList | None: ...
    def find_list_by_name(self, name: str) -> TaskList | None: ...

    # Derived inverse collections
    def subtasks_of(self, task_id: str) -> list[Task]: ...
    def tasks_in_list(self, list_id: str) -> list[Task]: ...
    def find_tasks_by_prefix(self, prefix: str) -> list[Task]: ...

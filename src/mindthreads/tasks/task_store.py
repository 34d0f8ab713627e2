# src/mindthreads/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import replace
from pathlib import Path
from typing import Any, TypeVar

from ..core.errors import StorageError
from .task_models import Task, TaskList

logger = logging.getLogger(__name__)

E = TypeVar("E", Task, TaskList)

# sort key -> column, per entity table
_TASK_SORT_KEYS = {
    "creation_date": "created_at",
    "title": "title",
    "indentation_level": "indentation_level",
    "is_complete": "is_complete",
}
_LIST_SORT_KEYS = {
    "name": "name",
}


class TaskStore:
    """
    SQLite store for tasks and task lists.

    Writes are staged (insert/update/delete) and committed together by save()
    in a single transaction: either every staged change lands or none does.
    Reads see the staged state, so a sequence of operations observes one
    consistent graph before it is committed.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    - staging and commits are serialized by a per-store lock; callers hold
      it across a whole read-stage-commit sequence with `with store.transaction():`
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._lock = threading.RLock()
        # (table, id) -> ("upsert" | "delete", entity); insertion order is commit order
        self._pending: dict[tuple[str, str], tuple[str, Task | TaskList]] = {}

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory for {self._db_path}") from e

        self._ensure_schema()
        try:
            total = self.count_tasks()
        except StorageError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        if self._pending:
            logger.warning("TaskStore closed with %d unsaved change(s).", len(self._pending))

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {self._db_path}") from e
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_lists (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL DEFAULT ''
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    is_complete INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    indentation_level INTEGER NOT NULL DEFAULT 0,
                    parent_id TEXT,
                    list_id TEXT
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("title", "TEXT NOT NULL DEFAULT ''")
            add_col("is_complete", "INTEGER NOT NULL DEFAULT 0")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("indentation_level", "INTEGER NOT NULL DEFAULT 0")
            add_col("parent_id", "TEXT")
            add_col("list_id", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_list ON tasks(list_id, created_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_lists_name ON task_lists(name)")

            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Schema setup failed for {self._db_path}") from e
        finally:
            conn.close()

    def _check_available(self) -> None:
        if not self._db_path.exists():
            raise StorageError(f"Database file is missing: {self._db_path}")

    @staticmethod
    def _table_for(entity: Task | TaskList) -> str:
        if isinstance(entity, Task):
            return "tasks"
        if isinstance(entity, TaskList):
            return "task_lists"
        raise TypeError(f"Unsupported entity type: {type(entity).__name__}")

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            is_complete=bool(row["is_complete"]),
            creation_date=float(row["created_at"] or 0.0),
            indentation_level=int(row["indentation_level"] or 0),
            parent_id=row["parent_id"],
            list_id=row["list_id"],
        )

    @staticmethod
    def _row_to_list(row: sqlite3.Row) -> TaskList:
        return TaskList(id=str(row["id"]), name=str(row["name"] or ""))

    def _fetch(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            return cur.fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Query failed on {self._db_path}") from e
        finally:
            conn.close()

    def _overlay(
        self,
        table: str,
        committed: list[E],
        matches: Callable[[Any], bool],
    ) -> list[E]:
        """
        Apply staged changes on top of committed rows.

        Staged upserts replace (or append) entities that still match the
        query; staged deletes and entities that no longer match are dropped.
        """
        with self._lock:
            pending = [(op, ent) for (tbl, _), (op, ent) in self._pending.items() if tbl == table]
        if not pending:
            return committed

        by_id: dict[str, E] = {e.id: e for e in committed}
        for op, ent in pending:
            if op == "delete" or not matches(ent):
                by_id.pop(ent.id, None)
            else:
                by_id[ent.id] = replace(ent)  # type: ignore[assignment]
        return list(by_id.values())

    def _read(self, table: str, sql: str, params: tuple[Any, ...], matches: Callable[[Any], bool]) -> list[Any]:
        # Rows and staged changes are taken under one lock so a concurrent save() cannot slip in between.
        to_entity = self._row_to_task if table == "tasks" else self._row_to_list
        with self._lock:
            rows = self._fetch(sql, params)
            return self._overlay(table, [to_entity(r) for r in rows], matches)

    def _select_tasks(self, where: str, params: tuple[Any, ...], matches: Callable[[Task], bool]) -> list[Task]:
        tasks = self._read(
            "tasks", f"SELECT * FROM tasks {where} ORDER BY created_at ASC, rowid ASC", params, matches
        )
        # stable: committed insertion order breaks ties, staged inserts come last
        tasks.sort(key=lambda t: t.creation_date)
        return tasks

    # ---- unit of work ----

    def insert(self, entity: Task | TaskList) -> None:
        """Stage a new entity. It is visible to reads at once and written on save()."""
        self._check_available()
        table = self._table_for(entity)
        with self._lock:
            self._pending[(table, entity.id)] = ("upsert", replace(entity))
        logger.debug("Staged insert %s id=%s", table, entity.id)

    def update(self, entity: Task | TaskList) -> None:
        """Stage the current field values of an entity."""
        table = self._table_for(entity)
        with self._lock:
            self._pending[(table, entity.id)] = ("upsert", replace(entity))

    def delete(self, entity: Task | TaskList) -> None:
        """Stage removal. Does not touch related entities."""
        table = self._table_for(entity)
        with self._lock:
            self._pending[(table, entity.id)] = ("delete", entity)
        logger.debug("Staged delete %s id=%s", table, entity.id)

    def transaction(self) -> AbstractContextManager[Any]:
        """
        Hold the store lock for a whole operation (reads, staging and save()).

        Reentrant: operations may nest. Other threads block on every store
        call until the outermost block exits.
        """
        return self._lock

    @property
    def has_changes(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def discard(self) -> None:
        with self._lock:
            if self._pending:
                logger.debug("Discarding %d staged change(s).", len(self._pending))
            self._pending.clear()

    def save(self) -> None:
        """
        Commit every staged change in one transaction.

        On failure the transaction is rolled back, the staged changes are kept
        (the caller may retry or discard()) and StorageError is raised.
        """
        with self._lock:
            if not self._pending:
                return
            self._check_available()

            staged = list(self._pending.items())
            conn = self._get_conn()
            try:
                with conn:
                    for (table, entity_id), (op, ent) in staged:
                        if op == "delete":
                            conn.execute(f"DELETE FROM {table} WHERE id = ?", (entity_id,))
                        elif isinstance(ent, Task):
                            conn.execute(
                                """
                                INSERT INTO tasks(
                                    id, title, is_complete, created_at,
                                    indentation_level, parent_id, list_id
                                )
                                VALUES (?, ?, ?, ?, ?, ?, ?)
                                ON CONFLICT(id) DO UPDATE SET
                                    title = excluded.title,
                                    is_complete = excluded.is_complete,
                                    indentation_level = excluded.indentation_level,
                                    parent_id = excluded.parent_id,
                                    list_id = excluded.list_id
                                """,
                                (
                                    ent.id,
                                    ent.title,
                                    int(bool(ent.is_complete)),
                                    float(ent.creation_date),
                                    int(ent.indentation_level),
                                    ent.parent_id,
                                    ent.list_id,
                                ),
                            )
                        else:
                            conn.execute(
                                """
                                INSERT INTO task_lists(id, name) VALUES (?, ?)
                                ON CONFLICT(id) DO UPDATE SET name = excluded.name
                                """,
                                (ent.id, ent.name),
                            )
            except sqlite3.Error as e:
                logger.warning("TaskStore commit failed (%d staged change(s) kept): %s", len(staged), e)
                raise StorageError(f"Commit failed on {self._db_path}: {e}") from e
            finally:
                conn.close()

            self._pending.clear()
            logger.debug("TaskStore committed %d change(s).", len(staged))

    # ---- reads ----

    def query(self, entity_type: type[E], sort_key: str | None = None) -> list[E]:
        """
        All entities of a type ordered by sort_key.

        Tasks default to creation_date, lists to name.
        """
        if entity_type is Task:
            key = sort_key or "creation_date"
            col = _TASK_SORT_KEYS.get(key)
            if col is None:
                raise ValueError(f"Unknown task sort key: {key}")
            tasks = self._read("tasks", f"SELECT * FROM tasks ORDER BY {col} ASC, rowid ASC", (), lambda _: True)
            tasks.sort(key=lambda t: getattr(t, key))
            return tasks  # type: ignore[return-value]

        if entity_type is TaskList:
            key = sort_key or "name"
            col = _LIST_SORT_KEYS.get(key)
            if col is None:
                raise ValueError(f"Unknown list sort key: {key}")
            lists = self._read(
                "task_lists", f"SELECT * FROM task_lists ORDER BY {col} ASC, rowid ASC", (), lambda _: True
            )
            lists.sort(key=lambda tl: getattr(tl, key))
            return lists  # type: ignore[return-value]

        raise TypeError(f"Unsupported entity type: {entity_type!r}")

    def get_task(self, task_id: str) -> Task | None:
        found = self._select_tasks("WHERE id = ?", (task_id,), lambda t: t.id == task_id)
        return found[0] if found else None

    def get_list(self, list_id: str) -> TaskList | None:
        found = self._read(
            "task_lists", "SELECT * FROM task_lists WHERE id = ?", (list_id,), lambda tl: tl.id == list_id
        )
        return found[0] if found else None

    def find_list_by_name(self, name: str) -> TaskList | None:
        """First list (oldest) with exactly this name."""
        found = self._read(
            "task_lists",
            "SELECT * FROM task_lists WHERE name = ? ORDER BY rowid ASC",
            (name,),
            lambda tl: tl.name == name,
        )
        return found[0] if found else None

    def subtasks_of(self, task_id: str) -> list[Task]:
        """Direct children: every task whose parent_id is task_id."""
        return self._select_tasks("WHERE parent_id = ?", (task_id,), lambda t: t.parent_id == task_id)

    def tasks_in_list(self, list_id: str) -> list[Task]:
        return self._select_tasks("WHERE list_id = ?", (list_id,), lambda t: t.list_id == list_id)

    def find_tasks_by_prefix(self, prefix: str) -> list[Task]:
        """Tasks whose id starts with prefix (used to resolve short ids typed by the user)."""
        prefix = prefix.strip().lower()
        if not prefix or any(c not in "0123456789abcdef-" for c in prefix):
            return []
        return self._select_tasks("WHERE id LIKE ?", (prefix + "%",), lambda t: t.id.startswith(prefix))

    def count_tasks(self) -> int:
        return len(self.query(Task))

    def count_lists(self) -> int:
        return len(self.query(TaskList))

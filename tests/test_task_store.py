# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from mindthreads.core.errors import StorageError
from mindthreads.tasks.task_models import Task, TaskList
from mindthreads.tasks.task_store import TaskStore

from .fakes import block_deletes_of


def test_insert_is_visible_before_save_and_persists_after(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db)
    main = TaskList(name="Main")
    task = Task(title="Buy milk", list_id=main.id)

    store.insert(main)
    store.insert(task)
    assert store.has_changes
    assert store.get_task(task.id) == task

    # A second store on the same file sees nothing until save().
    assert TaskStore(db).get_task(task.id) is None

    store.save()
    assert not store.has_changes

    reopened = TaskStore(db)
    loaded = reopened.get_task(task.id)
    assert loaded == task
    assert reopened.get_list(main.id) == main
    assert reopened.count_tasks() == 1
    assert reopened.count_lists() == 1


def test_update_and_delete_are_committed(store: TaskStore) -> None:
    task = Task(title="draft")
    store.insert(task)
    store.save()

    task.title = "final"
    task.is_complete = True
    task.indentation_level = 9
    store.update(task)
    store.save()

    loaded = store.get_task(task.id)
    assert loaded is not None
    assert loaded.title == "final"
    assert loaded.is_complete is True
    # stored unclamped
    assert loaded.indentation_level == 9
    assert loaded.display_indentation == 5

    store.delete(task)
    assert store.get_task(task.id) is None
    store.save()
    assert store.get_task(task.id) is None
    assert store.count_tasks() == 0


def test_discard_drops_staged_changes(store: TaskStore) -> None:
    store.insert(Task(title="temp"))
    store.discard()
    assert not store.has_changes
    assert store.query(Task) == []


def test_query_orders_by_creation_date_and_name(store: TaskStore) -> None:
    t_late = Task(title="late", creation_date=300.0)
    t_early = Task(title="early", creation_date=100.0)
    t_mid = Task(title="mid", creation_date=200.0)
    for t in (t_late, t_early):
        store.insert(t)
    store.save()
    store.insert(t_mid)  # staged only

    assert [t.title for t in store.query(Task)] == ["early", "mid", "late"]
    assert [t.title for t in store.query(Task, "title")] == ["early", "late", "mid"]

    for name in ("Work", "Errands", "Main"):
        store.insert(TaskList(name=name))
    store.save()
    assert [tl.name for tl in store.query(TaskList, "name")] == ["Errands", "Main", "Work"]


def test_query_rejects_unknown_sort_key(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        store.query(Task, "id; DROP TABLE tasks")
    with pytest.raises(ValueError):
        store.query(TaskList, "creation_date")


def test_creation_date_ties_keep_insertion_order(store: TaskStore) -> None:
    tasks = [Task(title=f"t{i}", creation_date=42.0) for i in range(5)]
    for t in tasks:
        store.insert(t)
    store.save()
    assert [t.title for t in store.query(Task)] == ["t0", "t1", "t2", "t3", "t4"]


def test_inverse_collections_follow_references(store: TaskStore) -> None:
    main = TaskList(name="Main")
    other = TaskList(name="Other")
    parent = Task(title="parent", list_id=main.id, creation_date=1.0)
    child_a = Task(title="a", parent_id=parent.id, list_id=main.id, creation_date=2.0)
    child_b = Task(title="b", parent_id=parent.id, list_id=main.id, creation_date=3.0)
    for e in (main, other, parent, child_a, child_b):
        store.insert(e)
    store.save()

    assert [t.title for t in store.subtasks_of(parent.id)] == ["a", "b"]
    assert [t.title for t in store.tasks_in_list(main.id)] == ["parent", "a", "b"]

    # Moving a child is a plain reference change; both views follow it.
    child_b.parent_id = None
    child_b.list_id = other.id
    store.update(child_b)
    assert [t.title for t in store.subtasks_of(parent.id)] == ["a"]
    assert [t.title for t in store.tasks_in_list(other.id)] == ["b"]
    store.save()
    assert [t.title for t in store.tasks_in_list(main.id)] == ["parent", "a"]


def test_find_list_by_name_returns_oldest(store: TaskStore) -> None:
    first = TaskList(name="Main")
    second = TaskList(name="Main")
    store.insert(first)
    store.insert(second)
    store.save()
    assert store.find_list_by_name("Main") == first
    assert store.find_list_by_name("Nope") is None


def test_find_tasks_by_prefix(store: TaskStore) -> None:
    task = Task(title="x")
    store.insert(task)
    store.save()
    assert store.find_tasks_by_prefix(task.id[:6]) == [task]
    assert store.find_tasks_by_prefix("zz%") == []
    assert store.find_tasks_by_prefix("") == []


def test_failed_commit_rolls_back_and_keeps_stage(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db)
    free = Task(title="free")
    locked = Task(title="locked")
    store.insert(free)
    store.insert(locked)
    store.save()
    block_deletes_of(db, "locked")

    store.delete(free)
    store.delete(locked)
    with pytest.raises(StorageError):
        store.save()

    # Nothing was removed on disk; the staged deletes are still pending.
    reopened = TaskStore(db)
    assert {t.title for t in reopened.query(Task)} == {"free", "locked"}
    assert store.has_changes
    store.discard()
    assert {t.title for t in store.query(Task)} == {"free", "locked"}


def test_insert_fails_when_database_file_is_gone(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db)
    for suffix in ("", "-wal", "-shm"):
        Path(str(db) + suffix).unlink(missing_ok=True)

    with pytest.raises(StorageError):
        store.insert(Task(title="lost"))


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(str(db))
    conn.execute(
        "CREATE TABLE tasks (id TEXT PRIMARY KEY, title TEXT NOT NULL DEFAULT '', created_at REAL NOT NULL)"
    )
    conn.execute("INSERT INTO tasks(id, title, created_at) VALUES ('legacy-1', 'old task', 5.0)")
    conn.commit()
    conn.close()

    store = TaskStore(db)
    task = store.get_task("legacy-1")
    assert task is not None
    assert task.title == "old task"
    assert task.is_complete is False
    assert task.indentation_level == 0
    assert task.parent_id is None
    assert task.list_id is None


def test_rejects_unknown_entities(store: TaskStore) -> None:
    with pytest.raises(TypeError):
        store.insert("not an entity")  # type: ignore[arg-type]


def test_staged_entities_are_copied_in_and_out(store: TaskStore) -> None:
    task = Task(title="staged")
    store.insert(task)

    # Mutations without update() must not reach the stage.
    task.title = "changed after insert"
    read = store.get_task(task.id)
    assert read is not None and read is not task
    assert read.title == "staged"

    read.title = "changed after read"
    store.save()
    assert store.get_task(task.id).title == "staged"  # type: ignore[union-attr]


def test_transaction_is_reentrant(store: TaskStore) -> None:
    with store.transaction():
        with store.transaction():
            store.insert(Task(title="nested"))
            store.save()
    assert [t.title for t in store.query(Task)] == ["nested"]

# tests/test_commands.py

from __future__ import annotations

from mindthreads.cli.commands import CommandRegistry, registry, short_id
from mindthreads.tasks.task_models import Task, TaskList


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    assert reg.handle(state, "/a x") == "h2"
    assert reg.handle(state, "/BEE y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_add_requests_focus_and_lists_task(state) -> None:
    reply = registry.handle(state, "/add Buy milk")
    assert reply is not None
    assert "Buy milk" in reply

    (task,) = state.task_store.tasks_in_list(state.current_list.id)
    assert state.focus.pending_id == task.id
    assert state.focus.consume() == task.id


def test_below_without_active_task_reports_error(state) -> None:
    reply = registry.handle(state, "/below")
    assert reply is not None
    assert reply.startswith("Error:")
    assert state.task_store.query(Task) == []


def test_sub_and_rm_cascade(state) -> None:
    registry.handle(state, "/add Trip")
    trip = state.task_store.tasks_in_list(state.current_list.id)[0]
    registry.handle(state, f"/sub {short_id(trip.id)} Passport")
    registry.handle(state, "/add Other")
    assert state.task_store.count_tasks() == 3

    notes: list[str] = []
    reply = registry.handle(state, f"/rm {short_id(trip.id)}", emit=notes.append)
    assert reply is not None
    assert "Deleted 2 task(s)" in reply
    assert notes and "1 subtask" in notes[0]
    assert [t.title for t in state.task_store.query(Task)] == ["Other"]


def test_rm_clears_focus_of_deleted_task(state) -> None:
    registry.handle(state, "/add Gone soon")
    task_id = state.focus.consume()
    assert task_id is not None

    registry.handle(state, "/rm")
    assert state.focus.active_id is None
    assert state.task_store.get_task(task_id) is None


def test_done_title_dup_and_indent(state) -> None:
    registry.handle(state, "/add Write report")
    task_id = state.focus.consume()
    assert task_id is not None
    sid = short_id(task_id)

    assert "complete" in (registry.handle(state, f"/done {sid}") or "")
    registry.handle(state, f"/title {sid} Write the report")
    registry.handle(state, f"/indent {sid} 9")

    task = state.task_store.get_task(task_id)
    assert task is not None
    assert task.is_complete is True
    assert task.title == "Write the report"
    assert task.indentation_level == 9

    registry.handle(state, f"/dup {sid}")
    dup_id = state.focus.consume()
    dup = state.task_store.get_task(dup_id)
    assert dup is not None
    assert dup.is_complete is False
    assert dup.indentation_level == 5

    assert "integer" in (registry.handle(state, f"/indent {sid} deep") or "")


def test_lists_newlist_and_use(state) -> None:
    assert "Created list" in (registry.handle(state, "/newlist Groceries") or "")
    assert "Groceries" in (registry.handle(state, "/lists") or "")

    reply = registry.handle(state, "/use Groceries")
    assert reply is not None and reply.startswith("Groceries")
    assert state.current_list.name == "Groceries"

    registry.handle(state, "/add Apples")
    groceries = state.task_store.find_list_by_name("Groceries")
    assert isinstance(groceries, TaskList)
    assert [t.title for t in state.task_store.tasks_in_list(groceries.id)] == ["Apples"]

    assert (registry.handle(state, "/use Nowhere") or "").startswith("Error:")


def test_unknown_id_is_reported(state) -> None:
    reply = registry.handle(state, "/done abcdef")
    assert reply is not None
    assert "No task with id" in reply

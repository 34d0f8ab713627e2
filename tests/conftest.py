# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from mindthreads.cli.bootstrap import create_initial_state
from mindthreads.core.state import AppState
from mindthreads.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment and any .env file.
    """
    return SimpleNamespace(
        app_name="mindthreads-test",
        log_level="DEBUG",
        log_to_file=False,
        default_list_name="Main",
        data_dir=tmp_path / "data",
        tasks_db_path=tmp_path / "data" / "tasks.sqlite3",
    )


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "tasks.sqlite3")


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState built by the real bootstrap.

    NOTE: the SQLite store is real; its behaviour is part of what we test.
    """
    return create_initial_state(settings=settings)

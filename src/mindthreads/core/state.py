# src/mindthreads/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..connectors.focus import FocusTracker
from ..tasks.task_models import TaskList
from .ports import TaskRepo


@dataclass
class AppState:
    # Settings object (config.Settings or a test stand-in with the same attributes).
    settings: Any

    task_store: TaskRepo
    current_list: TaskList

    focus: FocusTracker = field(default_factory=FocusTracker)

    # Serializes store mutations if a front-end ever runs commands off the main thread.
    lock: threading.RLock = field(default_factory=threading.RLock)

# src/mindthreads/connectors/focus.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(slots=True)
class FocusTracker:
    """
    Which task the console is editing.

    - active_id: the task plain text input goes to
    - pending_id: a one-shot request set by a command that just created a task;
      the console applies it after the command's reply is shown
    """

    active_id: str | None = None
    pending_id: str | None = None

    def request(self, task_id: str) -> None:
        self.pending_id = task_id

    def consume(self) -> str | None:
        """Apply the pending request (if any) and return the newly active id."""
        if self.pending_id is None:
            return None
        self.active_id, self.pending_id = self.pending_id, None
        return self.active_id

    def forget(self, task_ids: Iterable[str]) -> None:
        """Drop focus on tasks that no longer exist."""
        gone = set(task_ids)
        if self.active_id in gone:
            self.active_id = None
        if self.pending_id in gone:
            self.pending_id = None

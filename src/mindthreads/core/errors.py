# src/mindthreads/core/errors.py

from __future__ import annotations


class MindThreadsError(Exception):
    """Base class for errors raised by the task model and its store."""


class StorageError(MindThreadsError):
    """The store could not open, read or commit to its database."""


class PreconditionViolation(MindThreadsError, ValueError):
    """An operation was called on an entity missing a required association."""


class NotFoundError(MindThreadsError, KeyError):
    """No task or list matches the given id/name."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else ""

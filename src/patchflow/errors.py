"""Exception types raised by patchflow."""

from __future__ import annotations

from typing import Any


class PatchflowError(Exception):
    """Base class for every error raised by patchflow."""


class InvalidConfiguration(PatchflowError, ValueError):
    """Raised at construction time when tiling or pool parameters are unusable."""


class TaskFailure(PatchflowError):
    """A tile task failed while being processed through a resource queue.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, position: Any = None) -> None:
        super().__init__(message)
        self.position = position


class Cancelled(PatchflowError):
    """A queued task was cancelled before a resource was assigned to it."""

    def __init__(self, reason: Any = None) -> None:
        message = "Task was cancelled before it started"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.reason = reason

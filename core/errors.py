"""Error taxonomy for the board storage core and the MCP bridge."""

from typing import Iterable, Optional


class BoardError(Exception):
    """Base class for every board failure."""


class TaskNotFoundError(BoardError, LookupError):
    def __init__(self, task_id: str, lane: str = "", message: Optional[str] = None):
        self.task_id = task_id
        self.lane = lane
        where = f" in lane {lane}" if lane else ""
        super().__init__(message or f"Task {task_id} not found{where}")


class LaneNotFoundError(BoardError, LookupError):
    def __init__(self, lane: str, message: Optional[str] = None):
        self.lane = lane
        super().__init__(message or f"Lane {lane} not found")


class BoardIOError(BoardError):
    """Filesystem failure (permissions, disk, races) with operation context."""


class IdentityConflictError(BoardError):
    """The same task id lives in more than one lane."""

    def __init__(self, task_id: str, lanes: Iterable[str], message: Optional[str] = None):
        self.task_id = task_id
        self.lanes = list(lanes)
        super().__init__(message or f"Task {task_id} exists in several lanes: {', '.join(self.lanes)}")


class ValidationError(BoardError, ValueError):
    """Tool arguments do not satisfy the tool's input schema."""


def with_context(exc: BaseException, context: str) -> BoardError:
    """Return a board error carrying ``context`` in front of the original message.

    NotFound, conflict and validation errors keep their type so callers can
    still tell them apart; anything else becomes a ``BoardIOError``.
    """
    message = f"{context}: {exc}"
    if isinstance(exc, TaskNotFoundError):
        return TaskNotFoundError(exc.task_id, exc.lane, message=message)
    if isinstance(exc, LaneNotFoundError):
        return LaneNotFoundError(exc.lane, message=message)
    if isinstance(exc, IdentityConflictError):
        return IdentityConflictError(exc.task_id, exc.lanes, message=message)
    if isinstance(exc, ValidationError):
        return ValidationError(message)
    return BoardIOError(message)


__all__ = [
    "BoardError",
    "TaskNotFoundError",
    "LaneNotFoundError",
    "BoardIOError",
    "IdentityConflictError",
    "ValidationError",
    "with_context",
]

from .errors import (
    BoardError,
    BoardIOError,
    IdentityConflictError,
    LaneNotFoundError,
    TaskNotFoundError,
    ValidationError,
)
from .filename import (
    TASK_EXTENSION,
    CanonicalFilename,
    LegacyFilename,
    decode_filename,
    encode_filename,
    is_task_id,
    new_task_id,
    sanitize_title,
)
from .tags import extract_tags
from .task import Lane, Task

__all__ = [
    # Errors
    "BoardError",
    "BoardIOError",
    "IdentityConflictError",
    "LaneNotFoundError",
    "TaskNotFoundError",
    "ValidationError",
    # Filenames
    "TASK_EXTENSION",
    "CanonicalFilename",
    "LegacyFilename",
    "decode_filename",
    "encode_filename",
    "is_task_id",
    "new_task_id",
    "sanitize_title",
    # Records
    "extract_tags",
    "Lane",
    "Task",
]

from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Iterator, List


class TaskLocks:
    """Per-task-id exclusive sections plus one board-wide lock.

    Entries are dropped once nobody holds or waits on them, so the map stays
    as large as the number of in-flight mutations.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, List] = {}  # id -> [lock, users]
        self._board = RLock()

    @contextmanager
    def task(self, task_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(task_id, [Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(task_id, None)

    def board(self) -> RLock:
        return self._board

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


__all__ = ["TaskLocks"]

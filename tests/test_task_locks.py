import threading
import time

from infrastructure.file_repository import FileTaskRepository
from infrastructure.ownership import OwnershipPolicy
from infrastructure.task_locks import TaskLocks


def test_lock_entries_are_released():
    locks = TaskLocks()
    with locks.task("a"):
        with locks.task("b"):
            assert len(locks) == 2
    assert len(locks) == 0


def test_same_id_is_exclusive():
    locks = TaskLocks()
    inside = []
    overlaps = []

    def worker():
        with locks.task("same"):
            if inside:
                overlaps.append(True)
            inside.append(1)
            time.sleep(0.01)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert overlaps == []
    assert len(locks) == 0


def test_board_lock_is_reentrant():
    locks = TaskLocks()
    with locks.board():
        with locks.board():
            pass


def test_concurrent_updates_leave_one_consistent_file(tmp_path):
    repo = FileTaskRepository(tmp_path / "tasks", ownership=OwnershipPolicy())
    task = repo.create_task("backlog", "t", "start")
    errors = []

    def writer(n):
        try:
            repo.update_task(task.id, content=f"version {n}")
        except Exception as exc:  # pragma: no cover - surfaced by the assert below
            errors.append(exc)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert repo.get_task(task.id).content.startswith("version ")
    assert len(repo.list_lane_tasks("backlog")) == 1

import errno
import logging
import os
import shutil
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from application.ports import TaskRepository
from core import Lane, Task, ValidationError, decode_filename, encode_filename, is_task_id, new_task_id
from core.errors import BoardError, LaneNotFoundError, with_context
from infrastructure.lane_store import LaneStore
from infrastructure.ownership import OwnershipPolicy
from infrastructure.task_locks import TaskLocks
from infrastructure.task_resolver import ResolvedTask, TaskResolver

logger = logging.getLogger("tasks_md.repository")

# Copies written during a move live here until confirmed; no .md suffix so
# lane listings never see them.
STAGING_PREFIX = "."
STAGING_SUFFIX = ".staging"


@contextmanager
def _operation(context: str) -> Iterator[None]:
    try:
        yield
    except (OSError, BoardError) as exc:
        raise with_context(exc, context) from exc


def _staging_name(filename: str) -> str:
    return f"{STAGING_PREFIX}{filename}{STAGING_SUFFIX}"


class FileTaskRepository(TaskRepository):
    """Kanban board stored as ``<tasks_dir>/<lane>/<slug>-<id>.md`` files."""

    def __init__(self, tasks_dir: Path | None = None, ownership: OwnershipPolicy | None = None):
        if tasks_dir is None:
            from config import get_tasks_dir

            tasks_dir = get_tasks_dir()
        self.tasks_dir = Path(tasks_dir)
        self.ownership = ownership if ownership is not None else OwnershipPolicy.from_config()
        self.lanes = LaneStore(self.tasks_dir)
        self.resolver = TaskResolver(self.lanes)
        self.locks = TaskLocks()

    # ------------------------------------------------------------------ helpers

    def _ensure_lane(self, lane: str) -> Path:
        path = self.lanes.lane_path(lane)
        if not path.is_dir():
            path.mkdir(parents=True, exist_ok=True)
            self.ownership.apply(path)
            logger.debug("created lane %s", lane)
        return path

    @staticmethod
    def _load(found: ResolvedTask) -> Task:
        # undecodable bytes become U+FFFD
        content = found.path.read_text(encoding="utf-8", errors="replace")
        return Task.from_file(found.lane, found.path, found.decoded, content)

    def _load_path(self, lane: str, path: Path) -> Task:
        return self._load(ResolvedTask(lane=lane, filename=path.name, path=path, decoded=decode_filename(path.name)))

    # -------------------------------------------------------------------- tasks

    def create_task(self, lane: str, title: str, content: str = "") -> Task:
        with _operation(f"Failed to create task in lane {lane}"):
            lane_dir = self._ensure_lane(lane)
            task_id = new_task_id()
            path = lane_dir / encode_filename(title, task_id)
            path.write_text(content or "", encoding="utf-8")
            self.ownership.apply(path)
            task = self._load_path(lane, path)
        logger.debug("created task %s in %s", task_id, lane)
        return task

    def get_task(self, task_id: str, lane: Optional[str] = None) -> Task:
        with _operation(f"Failed to get task content for {task_id}"):
            return self._load(self.resolver.resolve(task_id, lane))

    def update_task(
        self,
        task_id: str,
        content: Optional[str] = None,
        lane: Optional[str] = None,
        new_lane: Optional[str] = None,
    ) -> Task:
        """Overwrite content and/or move to ``new_lane``; neither just re-reads."""
        with self.locks.task(task_id), _operation(f"Failed to update task {task_id}"):
            found = self.resolver.resolve(task_id, lane)
            current_lane, path = found.lane, found.path
            if content is not None:
                path.write_text(content, encoding="utf-8")
                self.ownership.apply(path)
            if new_lane and new_lane != current_lane:
                destination = self._ensure_lane(new_lane) / found.filename
                os.replace(path, destination)
                current_lane, path = new_lane, destination
                logger.debug("moved task %s from %s to %s", task_id, found.lane, new_lane)
            return self._load_path(current_lane, path)

    def update_task_title(self, task_id: str, new_title: str, lane: str) -> Task:
        with self.locks.task(task_id), _operation(f"Failed to rename task {task_id}"):
            found = self.resolver.resolve(task_id, lane)
            if not is_task_id(found.decoded.id):
                raise ValidationError(f"Task {task_id} has a legacy id and cannot carry a title in its filename")
            destination = found.path.with_name(encode_filename(new_title, found.decoded.id))
            if destination != found.path:
                found.path.rename(destination)
            return self._load_path(found.lane, destination)

    def delete_task(self, task_id: str, lane: Optional[str] = None) -> Dict[str, Any]:
        with self.locks.task(task_id), _operation(f"Failed to delete task {task_id}"):
            found = self.resolver.resolve(task_id, lane)
            found.path.unlink()
        logger.debug("deleted task %s from %s", task_id, found.lane)
        return {"success": True, "id": task_id}

    def move_task(self, task_id: str, from_lane: str, to_lane: str) -> Task:
        """Move between lanes: stage a copy, confirm it, then drop the source.

        A crash after the confirm leaves the task in both lanes with identical
        content; ``reconcile`` keeps the newer copy.
        """
        with self.locks.task(task_id), _operation(f"Failed to move task {task_id} from {from_lane} to {to_lane}"):
            found = self.resolver.resolve(task_id, from_lane)
            if to_lane == from_lane:
                return self._load(found)
            destination_dir = self._ensure_lane(to_lane)
            destination = destination_dir / found.filename
            staging = destination_dir / _staging_name(found.filename)
            try:
                shutil.copyfile(found.path, staging)
                self.ownership.apply(staging)
                os.replace(staging, destination)
            except OSError:
                staging.unlink(missing_ok=True)
                raise
            found.path.unlink()
            logger.debug("moved task %s from %s to %s", task_id, from_lane, to_lane)
            return self._load_path(to_lane, destination)

    # -------------------------------------------------------------------- lanes

    def list_lanes(self) -> List[str]:
        with _operation("Failed to list lanes"):
            return self.lanes.list_lanes()

    def list_lane_tasks(self, lane: str) -> List[Task]:
        with _operation(f"Failed to list tasks in lane {lane}"):
            lane_dir = self.lanes.lane_path(lane)
            tasks: List[Task] = []
            for filename in self.lanes.list_lane_files(lane):
                try:
                    tasks.append(self._load_path(lane, lane_dir / filename))
                except FileNotFoundError:
                    # moved or deleted while listing
                    continue
            return tasks

    def list_all_tasks(self) -> List[Task]:
        tasks: List[Task] = []
        for lane in self.list_lanes():
            tasks.extend(self.list_lane_tasks(lane))
        return tasks

    def create_lane(self, name: Optional[str] = None) -> Lane:
        lane_id = name or str(uuid.uuid4())
        with _operation(f"Failed to create lane {lane_id}"):
            path = self.lanes.lane_path(lane_id)
            path.mkdir(parents=True, exist_ok=True)
            self.ownership.apply(path)
        logger.debug("created lane %s", lane_id)
        return Lane(id=lane_id, path=str(path))

    def delete_lane(self, name: str) -> Dict[str, Any]:
        """Remove a lane and every task in it. There is no undo."""
        with self.locks.board(), _operation(f"Failed to delete lane {name}"):
            path = self.lanes.lane_path(name)
            if not self.lanes.lane_exists(name):
                raise LaneNotFoundError(name)
            shutil.rmtree(path)
        logger.info("deleted lane %s", name)
        return {"success": True, "id": name}

    def rename_lane(self, old_name: str, new_name: str) -> Lane:
        with self.locks.board(), _operation(f"Failed to rename lane {old_name}"):
            source = self.lanes.lane_path(old_name)
            destination = self.lanes.lane_path(new_name)
            if not self.lanes.lane_exists(old_name):
                raise LaneNotFoundError(old_name)
            if destination != source:
                if destination.exists():
                    raise FileExistsError(errno.EEXIST, f"Lane {new_name} already exists", str(destination))
                source.rename(destination)
        logger.debug("renamed lane %s to %s", old_name, new_name)
        return Lane(id=new_name, path=str(destination))

    # ----------------------------------------------------------------- recovery

    def reconcile(self) -> Dict[str, Any]:
        """Repair what interrupted moves leave behind.

        - staging copies that were never confirmed are deleted (the source
          still exists);
        - an id found in several places with identical content keeps its most
          recently written copy;
        - copies with different content are identity conflicts: reported and
          left for a human.
        """
        staging_removed: List[str] = []
        duplicates_removed: List[str] = []
        conflicts: Dict[str, List[str]] = {}
        with self.locks.board(), _operation("Failed to reconcile board"):
            for lane in self.lanes.list_lanes():
                lane_dir = self.lanes.lane_path(lane)
                for name in os.listdir(lane_dir):
                    if name.startswith(STAGING_PREFIX) and name.endswith(STAGING_SUFFIX):
                        (lane_dir / name).unlink(missing_ok=True)
                        staging_removed.append(f"{lane}/{name}")
                        logger.warning("removed abandoned staging file %s/%s", lane, name)

            for task_id in self.resolver.find_conflicts():
                copies = self.resolver.locate_all(task_id)
                if len({item.path.read_bytes() for item in copies}) > 1:
                    conflicts[task_id] = [item.lane for item in copies]
                    logger.warning("task %s has diverging copies in lanes %s", task_id, ", ".join(conflicts[task_id]))
                    continue
                keep = max(copies, key=lambda item: item.path.stat().st_mtime_ns)
                for item in copies:
                    if item is keep:
                        continue
                    item.path.unlink(missing_ok=True)
                    duplicates_removed.append(f"{item.lane}/{item.filename}")
                    logger.warning("removed duplicate of task %s from %s (kept %s)", task_id, item.lane, keep.lane)
        return {
            "staging_removed": staging_removed,
            "duplicates_removed": duplicates_removed,
            "conflicts": conflicts,
        }


__all__ = ["FileTaskRepository", "STAGING_SUFFIX"]

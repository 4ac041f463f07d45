"""Locate a task file by id, with or without knowing its lane."""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from core.errors import IdentityConflictError, TaskNotFoundError
from core.filename import TaskFilename, decode_filename
from infrastructure.lane_store import LaneStore


@dataclass(frozen=True)
class ResolvedTask:
    lane: str
    filename: str
    path: Path
    decoded: TaskFilename


def _check_task_id(task_id: str) -> None:
    if not task_id:
        raise ValueError("Task id must not be empty")
    # SEC: ids end up in filenames
    if ".." in task_id or "/" in task_id or "\\" in task_id:
        raise ValueError(f"Invalid task_id: contains path traversal characters: {task_id}")


class TaskResolver:
    def __init__(self, lanes: LaneStore):
        self.lanes = lanes

    def _scan_lane(self, lane: str, task_id: Optional[str] = None) -> List[ResolvedTask]:
        lane_dir = self.lanes.lane_path(lane)
        found: List[ResolvedTask] = []
        for filename in self.lanes.list_lane_files(lane):
            decoded = decode_filename(filename)
            if task_id is None or decoded.id == task_id:
                found.append(ResolvedTask(lane=lane, filename=filename, path=lane_dir / filename, decoded=decoded))
        return found

    def resolve(self, task_id: str, lane: Optional[str] = None) -> ResolvedTask:
        """Path of ``task_id``; only ``lane`` is scanned when given.

        Without a hint lanes are scanned in enumeration order and the first
        match wins, even if the id (wrongly) exists in several lanes.
        """
        _check_task_id(task_id)
        lanes = [lane] if lane else self.lanes.list_lanes()
        for candidate in lanes:
            matches = self._scan_lane(candidate, task_id)
            if matches:
                return matches[0]
        raise TaskNotFoundError(task_id, lane or "")

    def locate_all(self, task_id: str) -> List[ResolvedTask]:
        _check_task_id(task_id)
        found: List[ResolvedTask] = []
        for lane in self.lanes.list_lanes():
            found.extend(self._scan_lane(lane, task_id))
        return found

    def find_conflicts(self) -> Dict[str, List[str]]:
        """Ids stored more than once, mapped to the lanes holding them."""
        seen: Dict[str, List[str]] = {}
        for lane in self.lanes.list_lanes():
            for item in self._scan_lane(lane):
                seen.setdefault(item.decoded.id, []).append(lane)
        return {task_id: lanes for task_id, lanes in seen.items() if len(lanes) > 1}

    def ensure_unique(self, task_id: str) -> ResolvedTask:
        found = self.locate_all(task_id)
        if not found:
            raise TaskNotFoundError(task_id)
        if len(found) > 1:
            raise IdentityConflictError(task_id, [item.lane for item in found])
        return found[0]


__all__ = ["ResolvedTask", "TaskResolver"]

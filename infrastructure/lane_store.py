import os
from pathlib import Path
from typing import List

from core.filename import TASK_EXTENSION


class LaneStore:
    """Lanes are the directories directly under the board root."""

    def __init__(self, tasks_dir: Path):
        self.tasks_dir = Path(tasks_dir)

    def lane_path(self, lane: str) -> Path:
        if not lane:
            raise ValueError("Lane name must not be empty")
        # SEC: lane names are single path components
        if lane in (".", "..") or "/" in lane or "\\" in lane or "\x00" in lane:
            raise ValueError(f"Invalid lane name: contains path traversal characters: {lane}")
        path = self.tasks_dir / lane
        if not path.resolve().is_relative_to(self.tasks_dir.resolve()):
            raise ValueError(f"Path traversal detected: {path} is outside {self.tasks_dir}")
        return path

    def lane_exists(self, lane: str) -> bool:
        return self.lane_path(lane).is_dir()

    def list_lanes(self) -> List[str]:
        """Lane names in filesystem order; creates the board root if missing."""
        self.tasks_dir.mkdir(parents=True, exist_ok=True)
        with os.scandir(self.tasks_dir) as entries:
            return [entry.name for entry in entries if entry.is_dir()]

    def list_lane_files(self, lane: str) -> List[str]:
        """Markdown filenames in a lane. A missing lane reads as empty."""
        try:
            names = os.listdir(self.lane_path(lane))
        except (FileNotFoundError, NotADirectoryError):
            return []
        return [name for name in names if name.endswith(TASK_EXTENSION)]


__all__ = ["LaneStore"]

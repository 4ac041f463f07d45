from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from .filename import TaskFilename
from .tags import extract_tags


@dataclass
class Task:
    id: str
    lane: str
    title: str = ""
    content: str = ""
    tags: List[str] = field(default_factory=list)
    path: str = ""

    @classmethod
    def from_file(cls, lane: str, path: Path, decoded: TaskFilename, content: str) -> "Task":
        title = decoded.title
        if decoded.legacy and not title:
            title = heading_title(content)
        return cls(
            id=decoded.id,
            lane=lane,
            title=title,
            content=content,
            tags=extract_tags(content),
            path=str(path),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lane": self.lane,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "path": self.path,
        }


@dataclass(frozen=True)
class Lane:
    id: str
    path: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "path": self.path}


def heading_title(content: str) -> str:
    """Title of a legacy task, taken from a leading ``# Heading`` line."""
    first_line = (content or "").lstrip("\n").split("\n", 1)[0]
    if first_line.startswith("# "):
        return first_line[2:].strip()
    return ""


__all__ = ["Task", "Lane", "heading_title"]

"""Task filename codec: (title, id) <-> ``<slug>-<id>.md``.

Two on-disk forms exist:

- canonical: ``<sanitized-title>-<id>.md``
- legacy:    ``<id>.md`` (no title segment; written by older boards)

Decoding is explicit about which form it saw. A stem that ends in
``-<uuid>`` is canonical; everything else (a bare uuid, or any other stem
such as ``task1``) is legacy and the whole stem is the id.
"""

import re
import uuid
from dataclasses import dataclass
from typing import Union

TASK_EXTENSION = ".md"

_ID_BODY = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
ID_PATTERN = re.compile(rf"^{_ID_BODY}$")
_CANONICAL_STEM = re.compile(rf"^(?P<slug>.+)-(?P<id>{_ID_BODY})$")
_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class CanonicalFilename:
    title: str
    id: str

    @property
    def legacy(self) -> bool:
        return False


@dataclass(frozen=True)
class LegacyFilename:
    id: str
    title: str = ""

    @property
    def legacy(self) -> bool:
        return True


TaskFilename = Union[CanonicalFilename, LegacyFilename]


def new_task_id() -> str:
    return str(uuid.uuid4())


def is_task_id(value: str) -> bool:
    return bool(ID_PATTERN.match(value or ""))


def sanitize_title(title: str) -> str:
    """Collapse whitespace runs to single dashes and trim edge dashes.

    Path separators are folded into dashes too, so a title never escapes its lane.
    """
    slug = _WHITESPACE_RUN.sub("-", title or "")
    slug = slug.replace("/", "-").replace("\\", "-")
    return slug.strip("-")


def encode_filename(title: str, task_id: str) -> str:
    slug = sanitize_title(title)
    if not slug:
        return f"{task_id}{TASK_EXTENSION}"
    return f"{slug}-{task_id}{TASK_EXTENSION}"


def decode_filename(filename: str) -> TaskFilename:
    stem = filename[: -len(TASK_EXTENSION)] if filename.endswith(TASK_EXTENSION) else filename
    match = _CANONICAL_STEM.match(stem)
    if match:
        return CanonicalFilename(title=match.group("slug").replace("-", " "), id=match.group("id"))
    return LegacyFilename(id=stem)


__all__ = [
    "TASK_EXTENSION",
    "ID_PATTERN",
    "CanonicalFilename",
    "LegacyFilename",
    "TaskFilename",
    "new_task_id",
    "is_task_id",
    "sanitize_title",
    "encode_filename",
    "decode_filename",
]

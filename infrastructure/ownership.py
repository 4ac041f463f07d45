import os
from pathlib import Path
from typing import Optional


class OwnershipPolicy:
    """chown() created lanes and task files to a configured uid/gid.

    Boards are usually mounted into a container and edited by a host user, so
    files written by the server are handed over to that user (PUID/PGID).
    A policy with neither id set does nothing.
    """

    def __init__(self, uid: Optional[int] = None, gid: Optional[int] = None):
        self.uid = uid
        self.gid = gid

    @property
    def enabled(self) -> bool:
        return self.uid is not None or self.gid is not None

    @classmethod
    def from_config(cls) -> "OwnershipPolicy":
        from config import get_ownership

        owner = get_ownership()
        if owner is None:
            return cls()
        return cls(*owner)

    def apply(self, path: Path) -> None:
        if not self.enabled:
            return
        os.chown(path, -1 if self.uid is None else self.uid, -1 if self.gid is None else self.gid)

    def __repr__(self) -> str:
        return f"OwnershipPolicy(uid={self.uid!r}, gid={self.gid!r})"


__all__ = ["OwnershipPolicy"]

"""File ownership for generated hashring files."""

import os
import pwd
from dataclasses import dataclass
from pathlib import Path

from hashring_watcher.errors import OwnershipError


@dataclass(frozen=True)
class FileOwner:
    """Resolved owner identity."""
    name: str
    uid: int
    gid: int


def resolve_owner(name: str, path: str | Path | None = None) -> FileOwner:
    """Look up a user name, using its primary group."""
    try:
        entry = pwd.getpwnam(name)
    except KeyError as e:
        raise OwnershipError(f"Cannot save file {path}, error: unknown user {name!r}", path) from e
    return FileOwner(name=name, uid=entry.pw_uid, gid=entry.pw_gid)


def apply_owner(path: str | Path, owner: FileOwner) -> None:
    """Set owner and group on a file. Raises OSError on failure."""
    os.chown(path, owner.uid, owner.gid)

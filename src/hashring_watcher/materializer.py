"""
Configuration Materializer

Writes reconciled hashrings next to their source file, only when the content
fingerprint differs from the file already on disk.
"""

import hashlib
import logging
import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from hashring_watcher.errors import WriteError
from hashring_watcher.ownership import apply_owner, resolve_owner
from hashring_watcher.state import HashringDefinition, encode_hashrings

GENERATED_SUFFIX = "_generated.json"
GENERATED_FILE_MODE = 0o644


def generated_path(source: str | Path) -> Path:
    """Path of the generated file derived from a source hashring file."""
    source = Path(source)
    name = source.name
    if name.endswith(".json"):
        name = name[: -len(".json")]
    return source.with_name(f"{name}{GENERATED_SUFFIX}")


def fingerprint(content: bytes) -> str:
    """SHA-256 hex digest of file content."""
    return hashlib.sha256(content).hexdigest()


@dataclass
class MaterializeResult:
    """Outcome of materializing one hashring set."""
    path: str
    written: bool
    fingerprint: str
    previous_fingerprint: Optional[str] = None
    owner_applied: bool = False


class ConfigurationMaterializer:
    """Serializes, fingerprints and conditionally writes hashring sets.

    ``owner`` names the user that should own written files. When empty the
    ownership step is skipped.
    """

    def __init__(self, owner: Optional[str] = None, logger: Optional[logging.Logger] = None):
        self.owner = owner or None
        self.logger = logger or logging.getLogger(__name__)

    def read_fingerprint(self, target: str | Path) -> Optional[str]:
        """Fingerprint of the file on disk, None when there is no file."""
        target = Path(target)
        if not target.exists():
            return None
        try:
            return fingerprint(target.read_bytes())
        except OSError as e:
            raise WriteError(f"Unable to read file {target}: {e}", target) from e

    def materialize(self, hashrings: list[HashringDefinition], target: str | Path) -> MaterializeResult:
        """Write ``hashrings`` to ``target`` unless the content is unchanged."""
        target = Path(target)
        content = encode_hashrings(hashrings)
        new_fingerprint = fingerprint(content)
        previous = self.read_fingerprint(target)

        if previous == new_fingerprint:
            self.logger.debug("Hashring file %s is OK, no update needed", target)
            return MaterializeResult(
                path=str(target),
                written=False,
                fingerprint=new_fingerprint,
                previous_fingerprint=previous,
            )

        owner = resolve_owner(self.owner, target) if self.owner else None
        self._write(target, content)

        owner_applied = False
        if owner is not None:
            try:
                apply_owner(target, owner)
                owner_applied = True
            except OSError as e:
                self.logger.error("Cannot set %s owner on file %s. %s", owner.name, target, e)

        if owner is None or owner_applied:
            self.logger.info("File %s saved.", target)

        return MaterializeResult(
            path=str(target),
            written=True,
            fingerprint=new_fingerprint,
            previous_fingerprint=previous,
            owner_applied=owner_applied,
        )

    def _write(self, target: Path, content: bytes) -> None:
        """Replace target atomically; on failure the old file stays intact.

        A symlinked target is written through to the file it points at, and an
        existing file keeps its permission bits.
        """
        dest = Path(os.path.realpath(target))
        try:
            mode = stat.S_IMODE(os.stat(dest).st_mode)
        except FileNotFoundError:
            mode = GENERATED_FILE_MODE
        except OSError as e:
            raise WriteError(f"Cannot save file {target}, error {e}", target) from e

        try:
            fd, temp_path = tempfile.mkstemp(
                dir=dest.parent,
                prefix=f".{dest.name}.",
                suffix=".tmp",
            )
        except OSError as e:
            raise WriteError(f"Cannot save file {target}, error {e}", target) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(temp_path, mode)
            os.replace(temp_path, dest)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise WriteError(f"Cannot save file {target}, error {e}", target) from e

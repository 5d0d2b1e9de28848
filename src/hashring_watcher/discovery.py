"""Discovery of source hashring files."""

import logging
import os
from typing import Optional

from hashring_watcher.config import WatcherConfig
from hashring_watcher.materializer import GENERATED_SUFFIX

logger = logging.getLogger(__name__)


def is_hashring_file(path: str) -> bool:
    """Source hashring files are JSON files that were not generated by us."""
    return path.endswith(".json") and not path.endswith(GENERATED_SUFFIX)


def list_hashring_files(directory: str, log: Optional[logging.Logger] = None) -> list[str]:
    """Walk ``directory`` in lexical order and collect source hashring files.

    Traversal errors are logged; the files found so far are still returned.
    """
    log = log or logger
    files = []

    def on_error(error: OSError) -> None:
        log.error("Unable to walk %s: %s", error.filename, error)

    for root, dirs, names in os.walk(directory, onerror=on_error):
        dirs.sort()
        for name in sorted(names):
            path = os.path.join(root, name)
            if is_hashring_file(path):
                files.append(path)
    return files


def build_file_list(config: WatcherConfig, log: Optional[logging.Logger] = None) -> list[str]:
    """Files to reconcile on this pass."""
    log = log or logger
    if config.file:
        files = [config.file]
    else:
        files = list_hashring_files(config.directory, log)
    log.debug("Watching files: %s", files)
    return files

"""Exclusive advisory file locks used to serialize link creation per scope."""

from __future__ import annotations

import contextlib
import fcntl
import logging
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


def create_locked_file(path: Path) -> None:
    """Create the lock file and its directory. Existing files are left alone."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)


@contextlib.contextmanager
def locked(path: Path) -> Iterator[None]:
    """Hold an exclusive, blocking flock on ``path`` for the duration of the block.

    flock locks belong to the open file description, so two threads of the same
    process that each open the file also exclude each other.
    """
    with path.open("r+", encoding="utf-8") as handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        logger.debug("file_lock_acquired path=%s", path)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            logger.debug("file_lock_released path=%s", path)

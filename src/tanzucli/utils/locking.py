"""
Cross-platform OS file locks.

The lock is taken on a sidecar file whose content is irrelevant; it is held
for as long as the returned handle stays open.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from pathlib import Path
from typing import IO, Generator

logger = logging.getLogger(__name__)


# Cross-platform file locking
if sys.platform == "win32":
    import msvcrt

    def lock_file(f: IO, blocking: bool = True) -> None:
        """Lock file on Windows."""
        f.seek(0)
        msvcrt.locking(f.fileno(), msvcrt.LK_LOCK if blocking else msvcrt.LK_NBLCK, 1)

    def unlock_file(f: IO) -> None:
        """Unlock file on Windows."""
        f.seek(0)
        msvcrt.locking(f.fileno(), msvcrt.LK_UNLCK, 1)
else:
    import fcntl

    def lock_file(f: IO, blocking: bool = True) -> None:
        """Lock file on Unix."""
        flags = fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        fcntl.flock(f.fileno(), flags)

    def unlock_file(f: IO) -> None:
        """Unlock file on Unix."""
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def open_lock_file(lock_path: Path) -> IO:
    """Open (creating if needed) the sidecar lock file and its directory."""
    lock_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    lock_path.touch(exist_ok=True)
    return open(lock_path, "r+")


@contextlib.contextmanager
def file_lock(path: Path) -> Generator[IO, None, None]:
    """
    Context manager holding an exclusive lock adjacent to ``path``.

    Example:
        with file_lock(cache_file):
            cache_file.write_text(data)
    """
    lock_path = path.with_suffix(path.suffix + ".lock")
    handle = open_lock_file(lock_path)
    try:
        lock_file(handle)
        yield handle
    finally:
        try:
            unlock_file(handle)
        except OSError as e:
            logger.debug(f"Failed to unlock {lock_path}: {e}")
        finally:
            handle.close()

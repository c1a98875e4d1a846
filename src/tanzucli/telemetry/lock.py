"""
Lock guarding the metrics DB.

SQLite gives no cross-process write coordination for the way the CLI opens
and closes the database per operation, so every read and write takes this
lock. It combines an in-process mutex (threads of this process) with an OS
file lock (other CLI processes), both bounded by one timeout:

    lock = MetricsDBLock(lock_path)
    with lock.acquire(timeout=3.0):
        ...
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import IO, Optional

from tanzucli.constants import FILE_LOCK_POLL_INTERVAL_S, METRICS_DB_LOCK_TIMEOUT_S
from tanzucli.utils.locking import lock_file, open_lock_file, unlock_file

logger = logging.getLogger(__name__)


class MetricsDBError(Exception):
    """Metrics DB operation failed."""


class MetricsDBLockError(MetricsDBError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"cannot acquire lock for Tanzu CLI metrics DB, reason: {reason}")


class MetricsDBLockGuard:
    """Held lock; releasing twice is a no-op."""

    def __init__(self, lock: "MetricsDBLock", handle: IO):
        self._lock = lock
        self._handle: Optional[IO] = handle

    @property
    def held(self) -> bool:
        return self._handle is not None

    def release(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            unlock_file(handle)
        except OSError as e:
            logger.debug(f"Failed to unlock {self._lock.lock_path}: {e}")
        finally:
            handle.close()
            self._lock._mutex.release()

    def __enter__(self) -> "MetricsDBLockGuard":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class MetricsDBLock:
    """In-process mutex plus OS file lock on ``lock_path``."""

    def __init__(self, lock_path: Path):
        self.lock_path = Path(lock_path)
        self._mutex = threading.Lock()

    def acquire(self, timeout: float = METRICS_DB_LOCK_TIMEOUT_S) -> MetricsDBLockGuard:
        """
        Acquire both layers within ``timeout`` seconds.

        Raises:
            MetricsDBLockError: Timed out, or the lock file could not be opened
        """
        deadline = time.monotonic() + timeout
        if not self._mutex.acquire(timeout=timeout):
            raise MetricsDBLockError("timeout waiting for lock")

        try:
            handle = open_lock_file(self.lock_path)
        except OSError as e:
            self._mutex.release()
            raise MetricsDBLockError(str(e)) from e

        while True:
            try:
                lock_file(handle, blocking=False)
                return MetricsDBLockGuard(self, handle)
            except OSError:
                if time.monotonic() >= deadline:
                    handle.close()
                    self._mutex.release()
                    raise MetricsDBLockError("timeout waiting for lock")
                time.sleep(FILE_LOCK_POLL_INTERVAL_S)

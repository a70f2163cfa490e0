"""
Cross-process mutual exclusion using directory creation.

``mkdir`` either creates the directory or fails atomically, on every
filesystem the ecosystem lives on, so the lock is simply the existence of
a directory. Acquisition retries for a bounded window and then fails; a
lock older than ``stale_after`` seconds is assumed to belong to a crashed
holder and is broken.
"""

import logging
import os
import time
from pathlib import Path
from typing import Optional

from ..exit_codes import LockTimeoutError

logger = logging.getLogger(__name__)


class DirectoryLock:
    """
    Exclusive lock held while a with-block runs.

    Example:
        with DirectoryLock(Path("build/temp/jekyll-ports.lock")):
            ...  # read-modify-write the registry
    """

    def __init__(
        self,
        path: Path,
        timeout: float = 10.0,
        interval: float = 0.1,
        stale_after: Optional[float] = 120.0,
    ):
        self.path = Path(path)
        self.timeout = timeout
        self.interval = interval
        self.stale_after = stale_after
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def _break_if_stale(self) -> None:
        if self.stale_after is None:
            return
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return
        if age > self.stale_after:
            logger.warning(f"Breaking stale lock {self.path} ({age:.0f}s old)")
            try:
                self.path.rmdir()
            except OSError:
                pass

    def acquire(self) -> None:
        """Acquire the lock or raise LockTimeoutError once the window is exhausted."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                os.mkdir(self.path)
                self._held = True
                logger.debug(f"Acquired lock {self.path}")
                return
            except FileExistsError:
                self._break_if_stale()
            if time.monotonic() >= deadline:
                raise LockTimeoutError(
                    f"Could not acquire lock {self.path} within {self.timeout:g}s"
                )
            time.sleep(self.interval)

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.rmdir()
        except FileNotFoundError:
            pass
        self._held = False
        logger.debug(f"Released lock {self.path}")

    def __enter__(self) -> 'DirectoryLock':
        self.acquire()
        return self

    def __exit__(self, *exc) -> bool:
        self.release()
        return False

"""
Single-Instance Lock
====================
Lock file guaranteeing one active engine per data directory. The cluster
store and history document are rewritten wholesale, so a second concurrent
writer would silently lose updates.

Ownership is an exclusive ``flock`` held on the open lock file for the
engine's lifetime. The kernel drops it when the holder exits, so a file left
behind by a crashed engine is taken over. A holder that has not yet written
its PID still blocks other engines; the PID in the file is informational.
"""

import fcntl
import os
from pathlib import Path
from typing import Optional

from loguru import logger

from core.exceptions import InstanceLockedError


class InstanceLock:
    """
    Exclusive lock file holding the owner's PID.

    A file whose kernel lock is free (left by a dead process) is taken over;
    a live holder makes acquire() fail immediately.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._fd: Optional[int] = None

    @property
    def is_held(self) -> bool:
        """Whether this instance currently owns the lock."""
        return self._fd is not None

    def _read_holder(self) -> Optional[int]:
        try:
            text = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        try:
            return int(text)
        except ValueError:
            # Holder still writing its PID
            return None

    def _open_locked(self) -> Optional[int]:
        """
        Open the lock file and take the kernel lock on it.

        Returns:
            The locked descriptor, or None when the file was released and
            unlinked by its previous holder between open and lock

        Raises:
            InstanceLockedError: If another engine holds the kernel lock
        """
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            raise InstanceLockedError(lock_path=str(self.path), holder_pid=self._read_holder())
        except OSError:
            os.close(fd)
            raise

        try:
            current = os.stat(self.path).st_ino
        except FileNotFoundError:
            current = None
        if current != os.fstat(fd).st_ino:
            os.close(fd)
            return None
        return fd

    def acquire(self) -> "InstanceLock":
        """
        Take the lock.

        Raises:
            InstanceLockedError: If a live engine holds the lock
        """
        if self._fd is not None:
            return self

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = None
        while fd is None:
            fd = self._open_locked()

        previous = os.read(fd, 64).decode("utf-8", errors="replace").strip()
        if previous:
            logger.warning(f"Reclaiming stale engine lock {self.path} (holder pid: {previous})")

        os.ftruncate(fd, 0)
        os.lseek(fd, 0, os.SEEK_SET)
        os.write(fd, str(os.getpid()).encode("utf-8"))
        os.fsync(fd)

        self._fd = fd
        logger.debug(f"Engine lock acquired: {self.path}")
        return self

    def release(self) -> None:
        """Remove the lock file if it is still the one this instance locked."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            try:
                owned_file = os.stat(self.path).st_ino == os.fstat(fd).st_ino
            except FileNotFoundError:
                owned_file = False
            # Unlink while still locked so a waiting engine re-opens a fresh file
            if owned_file:
                self.path.unlink()
        finally:
            os.close(fd)
        logger.debug(f"Engine lock released: {self.path}")

    def __enter__(self) -> "InstanceLock":
        return self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


__all__ = ["InstanceLock"]

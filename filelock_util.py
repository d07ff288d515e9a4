"""File lock utility.

Provides an inter-process exclusive lock backed by a lock file. FileStorage
holds it around every write and remove so that two processes never
interleave bytes in the same storage file.
"""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import types

import portalocker
from typing_extensions import Self


class LockTimeoutError(RuntimeError):
    """Raised when the lock could not be acquired in time."""


class FileLock:
    """File based exclusive lock.

    Usable as a context manager: the lock is acquired on entry and
    released on exit.
    """

    def __init__(self, lockfile: str | Path, timeout: float | None = None, poll_interval: float = 0.05) -> None:
        """Initialize the lock.

        Args:
            lockfile: Path of the lock file
            timeout: Seconds to wait for the lock. None waits forever
            poll_interval: Seconds between acquisition attempts

        """
        self.lockfile = Path(lockfile)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._lock: portalocker.Lock | None = None

    def _build_lock(self) -> portalocker.Lock:
        if self.timeout is None:
            # Blocking flags, portalocker would otherwise apply its default timeout
            return portalocker.Lock(self.lockfile, mode="a", flags=portalocker.LOCK_EX)
        return portalocker.Lock(
            self.lockfile,
            mode="a",
            timeout=self.timeout,
            check_interval=self.poll_interval,
            fail_when_locked=False,
        )

    def acquire(self) -> None:
        """Acquire the lock.

        Raises:
            LockTimeoutError: If another process holds the lock past the timeout

        """
        self.lockfile.parent.mkdir(parents=True, exist_ok=True)
        lock = self._build_lock()
        try:
            lock.acquire()
        except portalocker.exceptions.LockException as e:
            msg = f"Could not acquire lock on {self.lockfile} within {self.timeout}s"
            raise LockTimeoutError(msg) from e
        self._lock = lock

    def release(self) -> None:
        """Release the lock and close the lock file handle."""
        if self._lock is not None:
            self._lock.release()
            self._lock = None

    @property
    def locked(self) -> bool:
        return self._lock is not None

    def __enter__(self) -> Self:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.release()

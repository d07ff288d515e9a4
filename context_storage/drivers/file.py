"""JSON file driver.

Each identity is stored in ``<folder>/<sanitised key>.json``. Writes go to
a temporary file that replaces the target, and both writes and removes
hold a FileLock on ``<file>.lock`` so concurrent processes never leave a
torn file behind. Removing an identity deletes its lock file too. Lost
updates between processes remain possible: the last writer wins.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from filelock_util import FileLock, LockTimeoutError

from .base import StorageDriver

if TYPE_CHECKING:
    from context_storage.identity import SessionIdentity

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_\-]")


class FileStorage(StorageDriver):
    """File based storage driver."""

    name = "file"

    def __init__(self, folder: str | Path = "storage/context", lock_timeout: float | None = 10.0) -> None:
        """Initialize FileStorage.

        Args:
            folder: Directory holding the storage files
            lock_timeout: Seconds to wait for a file lock. None waits forever

        """
        self.folder = Path(folder)
        self.lock_timeout = lock_timeout

    @staticmethod
    def safe_name(key: str) -> str:
        return _UNSAFE_CHARS.sub("_", key)

    def path_for(self, identity: SessionIdentity) -> Path:
        return self.folder / f"{self.safe_name(identity.key)}.json"

    def read(self, identity: SessionIdentity) -> list[dict[str, Any]] | None:
        file_path = self.path_for(identity)
        if not file_path.exists():
            return None

        try:
            with file_path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read storage file %s: %s", file_path, e)
            return None

        if not isinstance(data, list):
            logger.warning("Storage file %s does not hold a list", file_path)
            return None
        return data

    def write(self, identity: SessionIdentity, data: list[dict[str, Any]]) -> bool:
        file_path = self.path_for(identity)
        tmp_path = file_path.parent / f"{file_path.name}.tmp"
        try:
            payload = json.dumps(data, ensure_ascii=False, indent=2)
            self.folder.mkdir(parents=True, exist_ok=True)
            with self._lock(file_path):
                with tmp_path.open("w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, file_path)
        except (TypeError, ValueError) as e:
            logger.warning("Records for %s are not JSON serializable: %s", identity.key, e)
            return False
        except (OSError, LockTimeoutError) as e:
            logger.warning("Failed to write storage file %s: %s", file_path, e)
            return False
        return True

    def remove(self, identity: SessionIdentity) -> bool:
        file_path = self.path_for(identity)
        if not file_path.exists():
            return True

        lock = self._lock(file_path)
        try:
            with lock:
                file_path.unlink(missing_ok=True)
            lock.lockfile.unlink(missing_ok=True)
        except (OSError, LockTimeoutError) as e:
            logger.warning("Failed to remove storage file %s: %s", file_path, e)
            return False
        return True

    def _lock(self, file_path: Path) -> FileLock:
        return FileLock(file_path.parent / f"{file_path.name}.lock", timeout=self.lock_timeout)

    def __repr__(self) -> str:
        return f"FileStorage(folder={str(self.folder)!r})"

"""In-process memory driver."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from .base import StorageDriver

if TYPE_CHECKING:
    from context_storage.identity import SessionIdentity


class InMemoryStorage(StorageDriver):
    """Keeps records in a dictionary owned by the driver instance.

    Data lives as long as the instance. Reads and writes copy the records
    so callers never share mutable state with the driver.
    """

    name = "in_memory"

    def __init__(self) -> None:
        self._storage: dict[str, list[dict[str, Any]]] = {}

    def read(self, identity: SessionIdentity) -> list[dict[str, Any]] | None:
        data = self._storage.get(identity.key)
        if data is None:
            return None
        return copy.deepcopy(data)

    def write(self, identity: SessionIdentity, data: list[dict[str, Any]]) -> bool:
        self._storage[identity.key] = copy.deepcopy(list(data))
        return True

    def remove(self, identity: SessionIdentity) -> bool:
        self._storage.pop(identity.key, None)
        return True

    def keys(self) -> list[str]:
        return list(self._storage)

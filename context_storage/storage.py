"""Lazy-loaded, dirty-tracked record storage.

A Storage binds one scoped SessionIdentity to one StorageManager. Records
are read from the drivers on first access only, mutations mark the
storage dirty, and ``save()`` writes through the manager only when dirty.

Lifecycle::

    new (empty, unloaded, clean)
      -> first access: one manager read (loaded)
      -> add / remove_at / set / clear: dirty
      -> save(): one manager write, clean if any driver accepted it
      -> remove(): manager remove, back to empty / unloaded / clean

Dirty tracking lives in process memory only; two processes saving the same
key race at the driver level.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from . import hooks as events
from .drivers.in_memory import InMemoryStorage
from .records.base import Record, RecordArray
from .storage_manager import StorageManager

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from .hooks import Hooks
    from .identity import SessionIdentity
    from .storage_manager import DriverSpec

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

DEFAULT_DRIVERS: list[DriverSpec] = [InMemoryStorage.name]


class Storage(Generic[R]):
    """Base class of every storage.

    Subclasses set ``prefix`` (the identity scope) and ``array_class`` (the
    record codec). A subclass without a prefix is scoped by its class name.
    """

    prefix: ClassVar[str] = ""
    array_class: ClassVar[type[RecordArray]] = RecordArray

    def __init__(
        self,
        identity: SessionIdentity,
        drivers: Iterable[DriverSpec] | StorageManager | None = None,
        hooks: Hooks | None = None,
    ) -> None:
        """Initialize the storage. Nothing is read until first access.

        Args:
            identity: Session identity. It is re-scoped with ``storage_prefix()``
            drivers: Driver chain or an existing StorageManager. None uses
                a single in-memory driver
            hooks: Optional event dispatcher

        Raises:
            ConfigurationError: If the driver chain is empty or invalid

        """
        self.identity = identity.with_scope(self.storage_prefix())
        if isinstance(drivers, StorageManager):
            self.storage_manager = drivers
        else:
            self.storage_manager = StorageManager(DEFAULT_DRIVERS if drivers is None else drivers)
        self.hooks = hooks
        self._items: RecordArray = self.array_class()
        self._loaded = False
        self._dirty = False

    @classmethod
    def storage_prefix(cls) -> str:
        return cls.prefix or cls.__name__

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def key(self) -> str:
        return self.identity.key

    def ensure_loaded(self) -> None:
        """Load the records from the drivers unless already loaded."""
        if not self._loaded:
            self._load()

    def _load(self) -> None:
        data = self.storage_manager.read(self.identity)
        self._items = self._decode(data)
        self._loaded = True
        self._dirty = False
        self._dispatch(events.AFTER_LOAD, count=len(self._items))

    def _decode(self, data: list[dict[str, Any]] | None) -> RecordArray:
        if data is None:
            return self.array_class()
        try:
            return self.array_class.from_list(data)
        except (TypeError, ValueError, KeyError, AttributeError):
            logger.warning("Could not decode stored records for %s, loading empty", self.key, exc_info=True)
            return self.array_class()

    def _encode(self) -> list[dict[str, Any]]:
        return self._items.to_list()

    def get(self) -> RecordArray:
        """Return a copy of the records.

        Returns:
            RecordArray of the storage's array class

        """
        self.ensure_loaded()
        return self._items.copy()

    def get_last(self) -> R | None:
        self.ensure_loaded()
        return self._items.last()

    def count(self) -> int:
        self.ensure_loaded()
        return len(self._items)

    def is_empty(self) -> bool:
        return self.count() == 0

    def add(self, record: R | dict[str, Any]) -> None:
        """Append a record and mark the storage dirty.

        Args:
            record: Record, or its dictionary form

        Raises:
            TypeError: If the record class does not belong in this storage

        """
        self.ensure_loaded()
        self._dispatch(events.BEFORE_ADD, record=record)
        self._items.add(record)
        self._dirty = True
        self._dispatch(events.AFTER_ADD, record=self._items.last())

    def remove_at(self, index: int) -> R:
        """Remove the record at an index.

        Args:
            index: Position, negative values count from the end

        Returns:
            The removed record

        Raises:
            OutOfRangeError: If no record exists at the index

        """
        self.ensure_loaded()
        record = self._items.remove_at(index)
        self._dirty = True
        return record

    def set(self, records: Iterable[R | dict[str, Any]]) -> None:
        """Replace every record and mark the storage dirty."""
        self._items = self.array_class(records)
        self._loaded = True
        self._dirty = True

    def replace(self, records: Iterable[R | dict[str, Any]]) -> None:
        self.set(records)

    def clear(self) -> None:
        """Empty the storage. The empty list is persisted on the next save."""
        self._items = self.array_class()
        self._loaded = True
        self._dirty = True

    def save(self, force: bool = False) -> bool:
        """Write the records through the driver chain if dirty.

        The storage stays dirty when every driver failed, so the next save
        retries.

        Args:
            force: Write even when the storage is clean

        Returns:
            True if nothing had to be written or every driver succeeded

        """
        if not self._dirty and not force:
            return True

        self.ensure_loaded()
        self._dispatch(events.BEFORE_SAVE)
        result = self.storage_manager.write(self.identity, self._encode())
        if result.any_succeeded:
            self._dirty = False
        else:
            logger.warning("No driver accepted the write of %s, keeping it dirty", self.key)
        self._dispatch(events.AFTER_SAVE, success=bool(result))
        return bool(result)

    def read(self) -> RecordArray:
        """Reload the records from the drivers, discarding in-memory state.

        Returns:
            Copy of the reloaded records

        """
        self._load()
        return self._items.copy()

    def remove(self) -> bool:
        """Delete the records from every driver and reset the storage.

        Returns:
            True if every driver removed the data

        """
        result = self.storage_manager.remove(self.identity)
        self._items = self.array_class()
        self._loaded = False
        self._dirty = False
        return bool(result)

    def _dispatch(self, event: str, **payload: Any) -> None:
        if self.hooks is not None:
            self.hooks.dispatch(event, storage=self, **payload)

    def __len__(self) -> int:
        return self.count()

    def __iter__(self) -> Iterator[R]:
        self.ensure_loaded()
        return iter(self._items)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r}, loaded={self._loaded}, dirty={self._dirty})"

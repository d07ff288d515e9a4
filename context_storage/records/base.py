"""Typed record base classes.

Records are small dataclasses that convert themselves to plain dictionaries
and back. ``RecordArray`` keeps them in insertion order and acts as the
codec between a storage and its drivers: ``to_list()`` encodes,
``from_list()`` decodes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Generic, TypeVar

from typing_extensions import Self

from context_storage.exceptions import OutOfRangeError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class Record(ABC):
    """A record that can be persisted as a plain dictionary."""

    # Value written to the discriminator field when several record
    # classes share one array
    record_type: ClassVar[str | None] = None

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Convert the record to a JSON-compatible dictionary."""

    @classmethod
    @abstractmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build a record from its dictionary form."""


R = TypeVar("R", bound=Record)


class RecordArray(Generic[R]):
    """Ordered collection of records of the allowed classes.

    Subclasses set ``record_classes``. When more than one class is allowed,
    ``discriminator`` names the dictionary field whose value matches a
    class's ``record_type``; records of the first class are assumed when
    the field is missing.
    """

    record_classes: ClassVar[tuple[type[Record], ...]] = ()
    discriminator: ClassVar[str] = "type"

    def __init__(self, items: Iterable[R | dict[str, Any]] | None = None) -> None:
        """Initialize the array.

        Args:
            items: Records or their dictionary forms

        """
        self._items: list[R] = []
        for item in items or []:
            self.add(item)

    def add(self, item: R | dict[str, Any]) -> Self:
        """Append a record.

        Args:
            item: Record, or a dictionary decoded with the allowed classes

        Returns:
            The array itself

        Raises:
            TypeError: If the record class is not allowed in this array

        """
        if isinstance(item, dict):
            item = self._decode_item(item)
        if self.record_classes and not isinstance(item, self.record_classes):
            msg = f"{type(item).__name__} is not allowed in {type(self).__name__}"
            raise TypeError(msg)
        self._items.append(item)
        return self

    def remove_at(self, index: int) -> R:
        """Remove and return the record at an index.

        Raises:
            OutOfRangeError: If no record exists at the index

        """
        if not -len(self._items) <= index < len(self._items):
            msg = f"Record index {index} out of range (size {len(self._items)})"
            raise OutOfRangeError(msg)
        return self._items.pop(index)

    def all(self) -> list[R]:
        """Return a shallow copy of the records as a list."""
        return list(self._items)

    def first(self) -> R | None:
        return self._items[0] if self._items else None

    def last(self) -> R | None:
        return self._items[-1] if self._items else None

    def filter(self, predicate: Callable[[R], bool]) -> Self:
        """Return a new array with the records matching a predicate."""
        return type(self)(item for item in self._items if predicate(item))

    def map(self, callback: Callable[[R], Any]) -> list[Any]:
        return [callback(item) for item in self._items]

    def has_item(self, field: str, value: Any) -> bool:
        return self.get_item(field, value) is not None

    def get_item(self, field: str, value: Any) -> R | None:
        """Return the first record whose attribute equals a value."""
        for item in self._items:
            if getattr(item, field, None) == value:
                return item
        return None

    def remove_item(self, field: str, value: Any) -> Self:
        """Drop every record whose attribute equals a value."""
        self._items = [item for item in self._items if getattr(item, field, None) != value]
        return self

    def copy(self) -> Self:
        return type(self)(self._items)

    def to_list(self) -> list[dict[str, Any]]:
        """Encode the records as a list of dictionaries.

        Returns:
            One dictionary per record, in order

        """
        encoded = []
        for item in self._items:
            data = item.to_dict()
            if len(self.record_classes) > 1 and item.record_type is not None:
                data[self.discriminator] = item.record_type
            encoded.append(data)
        return encoded

    @classmethod
    def from_list(cls, data: Iterable[dict[str, Any]]) -> Self:
        """Decode a list of dictionaries into an array.

        Args:
            data: Dictionaries produced by ``to_list()``

        Returns:
            A new array

        """
        return cls(data)

    def _decode_item(self, data: dict[str, Any]) -> R:
        if not self.record_classes:
            msg = f"{type(self).__name__} cannot decode dictionaries without record_classes"
            raise TypeError(msg)
        record_class = self.record_classes[0]
        record_type = data.get(self.discriminator)
        if len(self.record_classes) > 1 and record_type is not None:
            for candidate in self.record_classes:
                if candidate.record_type == record_type:
                    record_class = candidate
                    break
        return record_class.from_dict(data)  # type: ignore[return-value]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[R]:
        return iter(list(self._items))

    def __getitem__(self, index: int) -> R:
        return self._items[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecordArray):
            return NotImplemented
        return type(self) is type(other) and self._items == other._items

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._items!r})"

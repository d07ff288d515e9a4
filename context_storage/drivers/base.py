"""Storage driver contract.

A driver persists the encoded records of one identity in one backend.
Drivers never raise for ordinary backend errors: a failed read looks like
a miss (``None``) and a failed write or remove returns ``False``. The
StorageManager relies on that to fan out across a driver chain.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from typing_extensions import Self

if TYPE_CHECKING:
    from context_storage.identity import SessionIdentity


class StorageDriver(ABC):
    """Abstract single-backend storage driver."""

    # Name used by the driver factory and in configuration files
    name: ClassVar[str] = ""

    @abstractmethod
    def read(self, identity: SessionIdentity) -> list[dict[str, Any]] | None:
        """Read the stored records of an identity.

        Args:
            identity: Scoped session identity

        Returns:
            None if nothing is stored, an empty list if the data was
            cleared, otherwise the stored records

        """

    @abstractmethod
    def write(self, identity: SessionIdentity, data: list[dict[str, Any]]) -> bool:
        """Replace the stored records of an identity.

        Args:
            identity: Scoped session identity
            data: Encoded records

        Returns:
            True if written successfully, False if writing failed

        """

    @abstractmethod
    def remove(self, identity: SessionIdentity) -> bool:
        """Delete the stored records of an identity.

        Args:
            identity: Scoped session identity

        Returns:
            True if removed (or nothing was stored), False if removal failed

        """

    @classmethod
    def make(cls, config: dict[str, Any] | None = None) -> Self:
        """Create a driver from keyword configuration.

        Args:
            config: Constructor keyword arguments. None uses the defaults

        Returns:
            New driver instance

        """
        if config is None:
            return cls()
        return cls(**config)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

"""Driver chain orchestration.

Reads fall back through the chain in order and return the first hit.
Writes and removes go to every driver, whatever the others report. There
is no atomicity across drivers and no write-back: a value found in a later
driver is not copied into the earlier ones, and two processes saving the
same key race per driver with last-write-wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from .drivers.base import StorageDriver
from .drivers.factory import get_storage_driver
from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .identity import SessionIdentity

logger = logging.getLogger(__name__)

DriverSpec = Union[StorageDriver, type[StorageDriver], str]


@dataclass
class FanOutResult:
    """Per-driver outcome of a write or remove.

    Truthy only when every driver succeeded.
    """

    results: list[tuple[StorageDriver, bool]] = field(default_factory=list)

    @property
    def any_succeeded(self) -> bool:
        return any(ok for _, ok in self.results)

    @property
    def all_succeeded(self) -> bool:
        return all(ok for _, ok in self.results)

    @property
    def failed(self) -> list[StorageDriver]:
        return [driver for driver, ok in self.results if not ok]

    def __bool__(self) -> bool:
        return self.all_succeeded


def resolve_driver(spec: DriverSpec) -> StorageDriver:
    """Turn a driver instance, class or registered name into an instance.

    Raises:
        ConfigurationError: If the spec is none of the accepted forms

    """
    if isinstance(spec, StorageDriver):
        return spec
    if isinstance(spec, type) and issubclass(spec, StorageDriver):
        return spec.make()
    if isinstance(spec, str):
        return get_storage_driver(spec)
    msg = f"Cannot build a storage driver from {spec!r}"
    raise ConfigurationError(msg)


class StorageManager:
    """Ordered chain of storage drivers, primary first."""

    def __init__(self, drivers: Iterable[DriverSpec]) -> None:
        """Initialize StorageManager.

        Args:
            drivers: Driver instances, driver classes or registered names

        Raises:
            ConfigurationError: If the chain is empty or an entry is invalid

        """
        self.drivers: list[StorageDriver] = [resolve_driver(spec) for spec in drivers]
        if not self.drivers:
            msg = "StorageManager requires at least one driver"
            raise ConfigurationError(msg)

    def read(self, identity: SessionIdentity) -> list[dict[str, Any]] | None:
        """Read from the first driver that has data.

        Args:
            identity: Scoped session identity

        Returns:
            Records of the first driver not reporting a miss, or None

        """
        for driver in self.drivers:
            try:
                data = driver.read(identity)
            except Exception:
                logger.warning("Driver %r raised while reading %s", driver, identity.key, exc_info=True)
                continue
            if data is not None:
                return data
        return None

    def write(self, identity: SessionIdentity, data: list[dict[str, Any]]) -> FanOutResult:
        """Write to every driver.

        Args:
            identity: Scoped session identity
            data: Encoded records

        Returns:
            FanOutResult with one entry per driver

        """
        result = FanOutResult()
        for driver in self.drivers:
            try:
                ok = bool(driver.write(identity, data))
            except Exception:
                logger.warning("Driver %r raised while writing %s", driver, identity.key, exc_info=True)
                ok = False
            if not ok:
                logger.warning("Driver %r failed to write %s", driver, identity.key)
            result.results.append((driver, ok))
        return result

    def remove(self, identity: SessionIdentity) -> FanOutResult:
        """Remove from every driver.

        Args:
            identity: Scoped session identity

        Returns:
            FanOutResult with one entry per driver

        """
        result = FanOutResult()
        for driver in self.drivers:
            try:
                ok = bool(driver.remove(identity))
            except Exception:
                logger.warning("Driver %r raised while removing %s", driver, identity.key, exc_info=True)
                ok = False
            if not ok:
                logger.warning("Driver %r failed to remove %s", driver, identity.key)
            result.results.append((driver, ok))
        return result

    def __repr__(self) -> str:
        return f"StorageManager({self.drivers!r})"

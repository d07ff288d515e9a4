"""Driver factory.

Builds storage drivers from registered names so driver chains can be
declared in config.yaml::

    context_storage:
      default_storage:
        - driver: cache
          ttl: 3600
        - driver: file
          folder: storage/context
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from context_storage.exceptions import ConfigurationError

from .cache import CacheStorage
from .file import FileStorage
from .in_memory import InMemoryStorage
from .relational import RelationalStorage, SimpleRelationalStorage

if TYPE_CHECKING:
    from .base import StorageDriver

logger = logging.getLogger(__name__)

DEFAULT_SECTION = "default_storage"

DRIVERS: dict[str, type[StorageDriver]] = {
    InMemoryStorage.name: InMemoryStorage,
    CacheStorage.name: CacheStorage,
    FileStorage.name: FileStorage,
    SimpleRelationalStorage.name: SimpleRelationalStorage,
    RelationalStorage.name: RelationalStorage,
}


def register_driver(driver_class: type[StorageDriver], name: str | None = None) -> None:
    """Register a driver class under a name.

    Args:
        driver_class: StorageDriver subclass
        name: Registry name. Defaults to the class's ``name`` attribute

    Raises:
        ConfigurationError: If no name is available

    """
    driver_name = name or driver_class.name
    if not driver_name:
        msg = f"Driver {driver_class.__name__} has no name"
        raise ConfigurationError(msg)
    DRIVERS[driver_name] = driver_class


def get_storage_driver(name: str, options: dict[str, Any] | None = None) -> StorageDriver:
    """Create a driver by registered name.

    Args:
        name: Registered driver name
        options: Constructor keyword arguments

    Returns:
        New driver instance

    Raises:
        ConfigurationError: If the name is unknown or the options are invalid

    """
    driver_class = DRIVERS.get(name)
    if driver_class is None:
        msg = f"Unknown storage driver: {name}"
        raise ConfigurationError(msg)
    try:
        return driver_class.make(options or None)
    except TypeError as e:
        msg = f"Invalid options for storage driver {name}: {e}"
        raise ConfigurationError(msg) from e


def _driver_entries(config: dict[str, Any], section: str) -> list[Any]:
    storage_config = config.get("context_storage", {})
    entries = storage_config.get(section)
    if entries is None and section != DEFAULT_SECTION:
        entries = storage_config.get(DEFAULT_SECTION)
    if entries is None:
        return [InMemoryStorage.name]
    if isinstance(entries, (str, dict)):
        return [entries]
    return list(entries)


def build_drivers(config: dict[str, Any], section: str = DEFAULT_SECTION) -> list[StorageDriver]:
    """Create the driver chain declared in a configuration section.

    Each entry is a driver name or a mapping with a ``driver`` key plus
    constructor options. Missing sections fall back to ``default_storage``,
    then to a single in-memory driver. Cache and relational drivers without
    a ``url`` option use the ``redis.url`` and ``database.url`` settings.

    Args:
        config: Whole configuration dictionary
        section: Key under ``context_storage`` holding the driver list

    Returns:
        Drivers in chain order

    Raises:
        ConfigurationError: If an entry is malformed or names an unknown driver

    """
    drivers = []
    for entry in _driver_entries(config, section):
        if isinstance(entry, str):
            name, options = entry, {}
        elif isinstance(entry, dict) and entry.get("driver"):
            options = dict(entry)
            name = options.pop("driver")
        else:
            msg = f"Invalid driver entry in context_storage.{section}: {entry!r}"
            raise ConfigurationError(msg)

        if name == CacheStorage.name and "url" not in options:
            redis_url = config.get("redis", {}).get("url")
            if redis_url:
                options["url"] = redis_url
        elif name in (SimpleRelationalStorage.name, RelationalStorage.name) and "url" not in options:
            database_url = config.get("database", {}).get("url")
            if database_url:
                options["url"] = database_url

        drivers.append(get_storage_driver(name, options))

    logger.debug("Built driver chain for %s: %s", section, drivers)
    return drivers

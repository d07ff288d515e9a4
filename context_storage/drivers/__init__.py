"""Storage drivers.

Each driver persists the records of one identity in one backend.
"""

from .base import StorageDriver
from .cache import CacheStorage
from .factory import DRIVERS, build_drivers, get_storage_driver, register_driver
from .file import FileStorage
from .in_memory import InMemoryStorage
from .relational import RelationalStorage, SimpleRelationalStorage

__all__ = [
    "DRIVERS",
    "CacheStorage",
    "FileStorage",
    "InMemoryStorage",
    "RelationalStorage",
    "SimpleRelationalStorage",
    "StorageDriver",
    "build_drivers",
    "get_storage_driver",
    "register_driver",
]

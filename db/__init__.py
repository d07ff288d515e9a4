"""Database access layer.

SQLAlchemy models and engine management for the relational storage
drivers.
"""

from .storage_db import Base, DBStorageEntry, DBStorageRecord, StorageDBManager

__all__ = ["Base", "DBStorageEntry", "DBStorageRecord", "StorageDBManager"]

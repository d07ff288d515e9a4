"""Relational database drivers.

SimpleRelationalStorage keeps one row per storage key with the whole
record list as JSON. RelationalStorage keeps one row per record, which
makes individual messages queryable at the cost of rewriting every row of
a key on each write.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from db.storage_db import DBStorageEntry, DBStorageRecord, StorageDBManager

from .base import StorageDriver

if TYPE_CHECKING:
    from context_storage.identity import SessionIdentity

logger = logging.getLogger(__name__)


class _DatabaseDriver(StorageDriver):
    """Shared engine handling for the relational drivers."""

    def __init__(
        self,
        url: str | None = None,
        manager: StorageDBManager | None = None,
        create_tables: bool = True,
    ) -> None:
        """Initialize the driver.

        Args:
            url: Database URL. Ignored when manager is given
            manager: Shared StorageDBManager
            create_tables: Create missing tables on start-up

        """
        if manager is None:
            config = {"database": {"url": url}} if url else None
            manager = StorageDBManager(config)
        self.manager = manager
        if create_tables:
            self.manager.create_tables()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(engine={self.manager.engine.url!r})"


class SimpleRelationalStorage(_DatabaseDriver):
    """One row per storage key."""

    name = "simple_relational"

    def read(self, identity: SessionIdentity) -> list[dict[str, Any]] | None:
        try:
            with self.manager.get_session() as session:
                entry = session.get(DBStorageEntry, identity.key)
                if entry is None:
                    return None
                data = entry.data
        except SQLAlchemyError as e:
            logger.warning("Database read failed for %s: %s", identity.key, e)
            return None

        if not isinstance(data, list):
            logger.warning("Stored data for %s is not a list", identity.key)
            return None
        return list(data)

    def write(self, identity: SessionIdentity, data: list[dict[str, Any]]) -> bool:
        try:
            with self.manager.get_session() as session:
                session.merge(DBStorageEntry(key=identity.key, data=list(data)))
                session.commit()
        except (SQLAlchemyError, TypeError) as e:
            logger.warning("Database write failed for %s: %s", identity.key, e)
            return False
        return True

    def remove(self, identity: SessionIdentity) -> bool:
        try:
            with self.manager.get_session() as session:
                session.query(DBStorageEntry).filter(DBStorageEntry.key == identity.key).delete()
                session.commit()
        except SQLAlchemyError as e:
            logger.warning("Database delete failed for %s: %s", identity.key, e)
            return False
        return True


class RelationalStorage(_DatabaseDriver):
    """One row per record.

    A key whose record list was cleared has no rows left, so it reads back
    as ``None`` like a key that was never written.
    """

    name = "relational"

    def read(self, identity: SessionIdentity) -> list[dict[str, Any]] | None:
        try:
            with self.manager.get_session() as session:
                rows = (
                    session.query(DBStorageRecord)
                    .filter(DBStorageRecord.session_key == identity.key)
                    .order_by(DBStorageRecord.position)
                    .all()
                )
                payloads = [row.payload for row in rows]
        except SQLAlchemyError as e:
            logger.warning("Database read failed for %s: %s", identity.key, e)
            return None

        if not payloads:
            return None
        return payloads

    def write(self, identity: SessionIdentity, data: list[dict[str, Any]]) -> bool:
        try:
            with self.manager.get_session() as session:
                # Replace all rows of the key in one transaction
                session.query(DBStorageRecord).filter(DBStorageRecord.session_key == identity.key).delete()
                session.add_all(
                    DBStorageRecord(
                        session_key=identity.key,
                        position=position,
                        role=item.get("role") if isinstance(item.get("role"), str) else None,
                        payload=item,
                    )
                    for position, item in enumerate(data)
                )
                session.commit()
        except (SQLAlchemyError, TypeError, AttributeError) as e:
            logger.warning("Database write failed for %s: %s", identity.key, e)
            return False
        return True

    def remove(self, identity: SessionIdentity) -> bool:
        try:
            with self.manager.get_session() as session:
                session.query(DBStorageRecord).filter(DBStorageRecord.session_key == identity.key).delete()
                session.commit()
        except SQLAlchemyError as e:
            logger.warning("Database delete failed for %s: %s", identity.key, e)
            return False
        return True

"""Relational persistence layer for context storage.

Provides the ORM models behind the relational storage drivers and
StorageDBManager, which owns the engine and session factory.

Main components:
- DBStorageEntry: one row per storage key holding the whole record list
- DBStorageRecord: one row per record, ordered by position
- StorageDBManager: engine, session and table management
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Integer,
    String,
    create_engine,
    make_url,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///storage/context_storage.db"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


class DBStorageEntry(Base):
    """Whole record list of one storage key, stored as JSON."""

    __tablename__ = "context_storage"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    data: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class DBStorageRecord(Base):
    """A single record of a storage key.

    ``role`` is copied out of the payload when present so message rows
    can be queried without decoding JSON.
    """

    __tablename__ = "context_storage_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_key: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (Index("ix_context_storage_records_key_position", "session_key", "position"),)


class StorageDBManager:
    """Owns the engine and session factory of the relational drivers.

    Several drivers may share one manager so they share one connection pool.
    """

    def __init__(self, config: dict[str, Any] | None = None, engine: Engine | None = None) -> None:
        """Initialize StorageDBManager.

        Args:
            config: Settings dictionary. The database section is used
            engine: Existing engine. Overrides the configured URL

        """
        self.config = config or {}
        self._engine = engine if engine is not None else self._create_engine()
        self._session_factory = sessionmaker(bind=self._engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def _create_engine(self) -> Engine:
        """Create the SQLAlchemy engine from the database section.

        SQLite URLs get no pool sizing. In-memory SQLite shares a single
        connection so every session sees the same database.

        Returns:
            Engine: SQLAlchemy engine

        """
        db_config = self.config.get("database", {})
        database_url = db_config.get("url") or DEFAULT_DATABASE_URL

        logger.info("Connecting to database: %s", database_url.split("@")[-1])

        if database_url.startswith("sqlite"):
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                return create_engine(
                    database_url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            database = make_url(database_url).database
            if database:
                Path(database).parent.mkdir(parents=True, exist_ok=True)
            return create_engine(database_url)

        return create_engine(
            database_url,
            pool_size=db_config.get("pool_size", 5),
            max_overflow=db_config.get("max_overflow", 10),
            pool_pre_ping=True,
        )

    def get_session(self) -> Session:
        """Return a new session.

        Returns:
            Session: SQLAlchemy session

        """
        return self._session_factory()

    def create_tables(self) -> None:
        """Create the storage tables if they do not exist."""
        Base.metadata.create_all(self._engine)
        logger.info("Context storage tables created")

    def close(self) -> None:
        """Dispose of the engine."""
        self._engine.dispose()
        logger.info("Database connection closed")

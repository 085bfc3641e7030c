"""SQLAlchemy-backed key/value store."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from marginalia.core.exceptions import StorageError
from .kv_store import KeyValueStore


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class KeyValueItem(Base):
    __tablename__ = "kv_items"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class SqlKeyValueStore(KeyValueStore):
    """Key/value store persisting each item as a row of ``kv_items``."""

    def __init__(self, url: str, engine: Engine | None = None) -> None:
        # pool_pre_ping: validate connections before using
        self.engine = engine or create_engine(url, future=True, pool_pre_ping=True)
        self._sessions = sessionmaker(self.engine, expire_on_commit=False)
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to initialise key/value table: {exc}") from exc

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        with self._sessions() as session:
            try:
                yield session
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"Key/value operation failed: {exc}") from exc

    def get_item(self, key: str) -> Optional[str]:
        with self._session() as session:
            item = session.get(KeyValueItem, key)
            return item.value if item is not None else None

    def set_item(self, key: str, value: str) -> None:
        with self._session() as session:
            item = session.get(KeyValueItem, key)
            if item is None:
                session.add(KeyValueItem(key=key, value=value))
            else:
                item.value = value
                item.updated_at = datetime.now(timezone.utc)

    def close(self) -> None:
        self.engine.dispose()


__all__ = ["Base", "KeyValueItem", "SqlKeyValueStore"]

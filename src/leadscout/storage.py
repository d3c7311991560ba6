"""Local key/value persistence backed by SQLAlchemy.

Each collection (``leads``, ``projects``, ``notes``) is stored as one JSON
document under its key and rewritten whole on every mutation. Collections
are user-curated and small, so incremental writes are not worth it.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, String, Text, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import config
from .errors import PersistenceError

logger = logging.getLogger(__name__)

LEADS_KEY = "leads"
PROJECTS_KEY = "projects"
NOTES_KEY = "notes"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class KeyValueEntry(Base):
    """One stored collection."""

    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<KeyValueEntry(key={self.key!r}, updated_at={self.updated_at})>"


class KeyValueStore:
    """JSON documents keyed by name in a SQL table.

    Opened once per process or session and written through on every
    ``put``. Errors surface as :class:`PersistenceError`.

    Example:
        >>> with KeyValueStore("sqlite:///leads.db") as store:
        ...     store.put("leads", [])
        ...     store.get("leads", [])
        []
    """

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None) -> None:
        self.database_url = database_url or config.DATABASE_URL
        self._engine: Optional[Engine] = engine
        self._session_factory: Optional[sessionmaker[Session]] = None

    @property
    def is_open(self) -> bool:
        return self._session_factory is not None

    def open(self) -> "KeyValueStore":
        """Create the engine and the table if needed.

        Raises:
            PersistenceError: If the database cannot be reached.
        """
        if self.is_open:
            return self
        try:
            if self._engine is None:
                self._engine = create_engine(self.database_url, future=True)
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise PersistenceError("*", str(e)) from e

        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)
        logger.info("Opened store at %s", self._engine.url.render_as_string(hide_password=True))
        return self

    def close(self) -> None:
        """Dispose the engine and release all connections."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Closed store")
        self._engine = None
        self._session_factory = None

    def __enter__(self) -> "KeyValueStore":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _session(self) -> Session:
        if self._session_factory is None:
            self.open()
        return self._session_factory()

    def get(self, key: str, default: Any = None) -> Any:
        """Decoded document stored under ``key``, or ``default``.

        Raises:
            PersistenceError: If the read fails or the document is not JSON.
        """
        try:
            with self._session() as session:
                raw = session.scalar(select(KeyValueEntry.value).where(KeyValueEntry.key == key))
        except SQLAlchemyError as e:
            raise PersistenceError(key, str(e)) from e

        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            raise PersistenceError(key, f"corrupt JSON document: {e}") from e

    def put(self, key: str, value: Any) -> None:
        """Replace the document stored under ``key``.

        Raises:
            PersistenceError: If the value cannot be encoded or written.
        """
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(key, f"value is not JSON serializable: {e}") from e

        try:
            with self._session() as session, session.begin():
                entry = session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=encoded))
                else:
                    entry.value = encoded
                    entry.updated_at = datetime.now(timezone.utc)
        except SQLAlchemyError as e:
            raise PersistenceError(key, str(e)) from e

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        try:
            with self._session() as session, session.begin():
                entry = session.get(KeyValueEntry, key)
                if entry is not None:
                    session.delete(entry)
        except SQLAlchemyError as e:
            raise PersistenceError(key, str(e)) from e


def memory_store() -> KeyValueStore:
    """In-memory SQLite store sharing one connection, for tests and dry runs."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return KeyValueStore(database_url="sqlite://", engine=engine).open()


class Collection:
    """Base for stores that keep one collection in a :class:`KeyValueStore`.

    Read failures yield the empty value and write failures are dropped,
    both logged.
    """

    key: str = ""
    container: type = list

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def _empty(self) -> Any:
        return self.container()

    def _load(self) -> Any:
        try:
            data = self.store.get(self.key, self._empty())
        except PersistenceError as e:
            logger.error("Error reading %s: %s", self.key, e.reason)
            return self._empty()
        if not isinstance(data, self.container):
            logger.error("Ignoring malformed %s document of type %s", self.key, type(data).__name__)
            return self._empty()
        return data

    def _save(self, data: Any) -> bool:
        try:
            self.store.put(self.key, data)
        except PersistenceError as e:
            logger.error("Error saving %s: %s", self.key, e.reason)
            return False
        return True

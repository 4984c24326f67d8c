"""
Key/value storage backends for flow snapshots.

``KeyValueStore`` is the capability the persistence layer depends on. Two
implementations are provided: an in-memory dictionary and a SQLAlchemy table.
Backends raise ``StorageError``; callers decide whether to swallow it.
"""
from typing import Dict, Optional, Protocol

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from error_handling.exceptions import StorageError
from models import database
from models.database import KeyValueEntry, get_db_session


class KeyValueStore(Protocol):
    """Durable string storage keyed by name."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    """Dictionary-backed store, one per process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class SqlKeyValueStore:
    """
    Store backed by the ``key_value_entries`` table.

    Args:
        database_url: SQLAlchemy URL; when given, the module-level engine is
                      (re)initialized and tables are created
    """

    def __init__(self, database_url: Optional[str] = None):
        if database_url is not None or database.engine is None:
            database.init_db(database_url)
        database.create_tables()
        logger.info(f"SQL key/value store ready ({database.engine.url.drivername})")

    def get(self, key: str) -> Optional[str]:
        try:
            with get_db_session() as session:
                entry = session.get(KeyValueEntry, key)
                return entry.value if entry is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read '{key}'", key=key, original_error=e)

    def set(self, key: str, value: str) -> None:
        try:
            with get_db_session() as session:
                entry = session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write '{key}'", key=key, original_error=e)

    def delete(self, key: str) -> None:
        try:
            with get_db_session() as session:
                entry = session.get(KeyValueEntry, key)
                if entry is not None:
                    session.delete(entry)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete '{key}'", key=key, original_error=e)

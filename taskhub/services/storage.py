"""
Durable client storage. One protocol, two backends: in-memory (tests, throwaway sessions)
and SQLAlchemy (survives restarts, like browser local storage).
"""
import logging
import threading
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from taskhub.models.stored_value import StoredValue

logger = logging.getLogger(__name__)


class TokenStorage(Protocol):
    """Interface for anything that can hold the auth token across restarts."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def clear(self, key: str) -> None:
        ...


class MemoryStorage:
    """Process-local storage. Constructing a new client over the same instance simulates a reload."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def clear(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)


class DatabaseStorage:
    """Key/value rows in the stored_values table."""

    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        if session_factory is None:
            from taskhub.db.session import SessionLocal, init_db

            init_db()
            session_factory = SessionLocal
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def get(self, key: str) -> str | None:
        db = self._session()
        try:
            row = db.query(StoredValue).filter(StoredValue.key == key).first()
            return row.value if row else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self._session()
        try:
            row = db.query(StoredValue).filter(StoredValue.key == key).first()
            if row:
                row.value = value
            else:
                db.add(StoredValue(key=key, value=value))
            db.commit()
        except Exception:
            logger.exception("Storage write failed for key %s", key)
            db.rollback()
            raise
        finally:
            db.close()

    def clear(self, key: str) -> None:
        db = self._session()
        try:
            db.query(StoredValue).filter(StoredValue.key == key).delete()
            db.commit()
        except Exception:
            logger.exception("Storage clear failed for key %s", key)
            db.rollback()
            raise
        finally:
            db.close()

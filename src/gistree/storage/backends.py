"""Key/value backends for the Store's persisted slots."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.engine import Engine, make_url
from sqlmodel import Session, SQLModel, create_engine

from gistree.models import GlobalStateEntry, utcnow


class StorageBackend(ABC):
    """Synchronous key/value store. Values are JSON-serializable."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when the key is unset."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; a missing key is not an error."""
        pass


class MemoryBackend(StorageBackend):
    """Process-local backend, used by tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so readers never share a mutable value
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SQLBackend(StorageBackend):
    """Backend persisting each key as one row of the ``global_state`` table."""

    def __init__(self, engine: Engine):
        self.engine = engine
        SQLModel.metadata.create_all(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SQLBackend":
        """Create a backend for a database URL, e.g. ``sqlite:///gistree.db``."""
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        return cls(create_engine(database_url, echo=False))

    def get(self, key: str) -> Optional[Any]:
        with Session(self.engine) as session:
            entry = session.get(GlobalStateEntry, key)
            return None if entry is None else json.loads(entry.value)

    def set(self, key: str, value: Any) -> None:
        with Session(self.engine) as session:
            entry = session.get(GlobalStateEntry, key)
            if entry is None:
                entry = GlobalStateEntry(key=key, value=json.dumps(value))
            else:
                entry.value = json.dumps(value)
                entry.updated_at = utcnow()
            session.add(entry)
            session.commit()

    def delete(self, key: str) -> None:
        with Session(self.engine) as session:
            entry = session.get(GlobalStateEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()

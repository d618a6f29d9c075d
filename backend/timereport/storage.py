"""Flat key-value persistence for the serialized collections.

Every key carries a version number. Writers pass the version they loaded
and the write only goes through if nobody else wrote in between.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Any, Generator, Iterator, NamedTuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import settings
from .database import db_session
from .errors import ConcurrentModification
from .models import StoredCollection
from .utils import utcnow


logger = logging.getLogger(__name__)


ENTRIES_KEY = "time_entries"
REPORTS_KEY = "time_reports"
SETTINGS_KEY = "runtime_settings"


class StoredPayload(NamedTuple):
    payload: Any
    version: int


class Storage(ABC):
    @abstractmethod
    def load(self, key: str) -> StoredPayload:
        """Return the stored document and its version; version 0 means absent."""

    @abstractmethod
    def save(self, key: str, payload: Any, expected_version: int) -> int:
        """Replace the document if it is still at ``expected_version``; return the new version."""


class SqlStorage(Storage):
    def __init__(self, db: Session):
        self.db = db

    def _record(self, key: str) -> StoredCollection | None:
        return self.db.query(StoredCollection).filter(StoredCollection.key == key).one_or_none()

    def load(self, key: str) -> StoredPayload:
        record = self._record(key)
        if record is None:
            return StoredPayload(None, 0)
        return StoredPayload(json.loads(record.value), record.version)

    def save(self, key: str, payload: Any, expected_version: int) -> int:
        value = json.dumps(payload)
        if expected_version == 0:
            existing = self._record(key)
            if existing is not None:
                raise self._conflict(key, expected_version, existing.version)
            self.db.add(StoredCollection(key=key, value=value, version=1))
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                raise self._conflict(key, expected_version) from exc
            return 1
        updated = (
            self.db.query(StoredCollection)
            .filter(StoredCollection.key == key, StoredCollection.version == expected_version)
            .update(
                {"value": value, "version": expected_version + 1, "updated_at": utcnow()},
                synchronize_session=False,
            )
        )
        if updated != 1:
            current = self._record(key)
            raise self._conflict(key, expected_version, current.version if current else None)
        self.db.commit()
        return expected_version + 1

    @staticmethod
    def _conflict(key: str, expected_version: int, actual_version: int | None = None) -> ConcurrentModification:
        logger.warning("Version conflict on %s (expected %s, found %s)", key, expected_version, actual_version)
        return ConcurrentModification(key, expected_version, actual_version)


class JsonStorage(Storage):
    """One JSON file per key, replaced atomically on every write."""

    _lock = RLock()

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> StoredPayload:
        path = self._path(key)
        if not path.exists():
            return StoredPayload(None, 0)
        document = json.loads(path.read_text(encoding="utf-8"))
        return StoredPayload(document.get("payload"), int(document.get("version", 0)))

    def save(self, key: str, payload: Any, expected_version: int) -> int:
        with self._lock:
            current = self.load(key).version
            if current != expected_version:
                logger.warning("Version conflict on %s (expected %s, found %s)", key, expected_version, current)
                raise ConcurrentModification(key, expected_version, current)
            version = current + 1
            document = {"version": version, "updated_at": utcnow().isoformat(), "payload": payload}
            path = self._path(key)
            tmp_path = path.with_name(f"{path.name}.tmp")
            tmp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
            tmp_path.replace(path)
            return version


@contextmanager
def open_storage() -> Iterator[Storage]:
    if settings.storage_backend == "json":
        yield JsonStorage(settings.json_dir)
        return
    if settings.storage_backend != "sqlite":
        raise NotImplementedError(f"Unknown storage backend '{settings.storage_backend}'")
    with db_session() as session:
        yield SqlStorage(session)


def get_storage() -> Generator:
    with open_storage() as storage:
        yield storage

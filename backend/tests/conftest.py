from __future__ import annotations

import datetime as dt
import os
import tempfile
from pathlib import Path
from typing import Generator

_TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="timereport-tests-"))
os.environ["TR_SQLITE_PATH"] = str(_TEST_DATA_DIR / "startup.db")
os.environ["TR_JSON_DIR"] = str(_TEST_DATA_DIR / "state")
os.environ["TR_AUTOPOPULATE_ON_STARTUP"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from timereport import models
from timereport.config import settings
from timereport.main import app, get_today
from timereport.schemas import DayEntry
from timereport.state import RuntimeState
from timereport.storage import SqlStorage, get_storage


@pytest.fixture(scope="session")
def temp_db_path() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        yield path


@pytest.fixture(scope="session")
def engine(temp_db_path: Path):
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionTesting = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def storage(session: Session) -> SqlStorage:
    return SqlStorage(session)


@pytest.fixture()
def runtime_state() -> RuntimeState:
    return RuntimeState(settings)


@pytest.fixture()
def today() -> dt.date:
    return dt.date(2024, 3, 20)


@pytest.fixture(scope="function")
def client(storage: SqlStorage, runtime_state: RuntimeState, today: dt.date) -> Generator[TestClient, None, None]:
    def override_get_storage():
        yield storage

    previous_state = app.state.runtime_state
    app.state.runtime_state = runtime_state
    app.dependency_overrides[get_storage] = override_get_storage
    app.dependency_overrides[get_today] = lambda: today
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    app.state.runtime_state = previous_state


@pytest.fixture()
def make_entry():
    def _make(day: dt.date, hours: float = 8.0, status: str = "worked", project_id: str = "p1", **extra) -> DayEntry:
        return DayEntry(
            date=day,
            hours=hours,
            status=status,
            project_id=project_id,
            project_name=extra.pop("project_name", f"Project {project_id}"),
            **extra,
        )

    return _make

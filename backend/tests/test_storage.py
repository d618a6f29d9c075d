from __future__ import annotations

import datetime as dt

import pytest

from timereport.config import settings
from timereport.errors import ConcurrentModification, LockedStateRejection
from timereport.schemas import DayEntry
from timereport.state import RuntimeState
from timereport.storage import ENTRIES_KEY, REPORTS_KEY, SETTINGS_KEY, JsonStorage, SqlStorage
from timereport.tracker import TimeTracker


TODAY = dt.date(2024, 3, 20)


def _entry(day: dt.date, hours: float = 8.0, project_id: str = "p1") -> DayEntry:
    return DayEntry(date=day, hours=hours, status="worked", project_id=project_id, project_name="Main Project")


def test_sql_storage_versions_each_write(storage: SqlStorage):
    assert storage.load(ENTRIES_KEY) == (None, 0)

    assert storage.save(ENTRIES_KEY, [{"a": 1}], 0) == 1
    assert storage.save(ENTRIES_KEY, [{"a": 2}], 1) == 2
    assert storage.load(ENTRIES_KEY) == ([{"a": 2}], 2)


def test_sql_storage_rejects_stale_version(storage: SqlStorage):
    storage.save(REPORTS_KEY, [], 0)
    storage.save(REPORTS_KEY, [{"year": 2024}], 1)

    with pytest.raises(ConcurrentModification) as excinfo:
        storage.save(REPORTS_KEY, [], 1)
    assert excinfo.value.actual_version == 2
    with pytest.raises(ConcurrentModification):
        storage.save(REPORTS_KEY, [], 0)
    assert storage.load(REPORTS_KEY).payload == [{"year": 2024}]


def test_json_storage_round_trip_and_conflict(tmp_path):
    storage = JsonStorage(tmp_path / "state")
    assert storage.load(ENTRIES_KEY).version == 0

    assert storage.save(ENTRIES_KEY, [{"date": "2024-03-04"}], 0) == 1
    assert (tmp_path / "state" / f"{ENTRIES_KEY}.json").exists()
    assert storage.load(ENTRIES_KEY) == ([{"date": "2024-03-04"}], 1)

    with pytest.raises(ConcurrentModification):
        storage.save(ENTRIES_KEY, [], 0)
    assert storage.load(ENTRIES_KEY).payload == [{"date": "2024-03-04"}]


def test_tracker_flushes_and_rehydrates(storage: SqlStorage, runtime_state: RuntimeState):
    tracker = TimeTracker(storage, runtime_state, TODAY).load()
    tracker.save_entry(_entry(dt.date(2024, 3, 4)))

    reloaded = TimeTracker(storage, runtime_state, TODAY).load()
    assert [entry.date for entry in reloaded.entries] == [dt.date(2024, 3, 4)]
    assert isinstance(storage.load(ENTRIES_KEY).payload[0]["date"], str)


def test_tracker_detects_concurrent_writer(tmp_path, runtime_state: RuntimeState):
    storage = JsonStorage(tmp_path)
    first = TimeTracker(storage, runtime_state, TODAY).load()
    second = TimeTracker(storage, runtime_state, TODAY).load()

    first.save_entry(_entry(dt.date(2024, 3, 4)))
    with pytest.raises(ConcurrentModification):
        second.save_entry(_entry(dt.date(2024, 3, 5)))

    stored = TimeTracker(storage, runtime_state, TODAY).load()
    assert [entry.date for entry in stored.entries] == [dt.date(2024, 3, 4)]


def test_locked_save_leaves_storage_untouched(tmp_path, runtime_state: RuntimeState):
    storage = JsonStorage(tmp_path)
    tracker = TimeTracker(storage, runtime_state, TODAY).load()
    tracker.save_entry(_entry(dt.date(2024, 3, 4)))
    tracker.submit_report(2024, 3, acknowledge_shortfall=True)

    with pytest.raises(LockedStateRejection):
        tracker.save_entry(_entry(dt.date(2024, 3, 5)))

    assert len(tracker.entries) == 1
    assert storage.load(ENTRIES_KEY).version == 1
    assert storage.load(REPORTS_KEY).payload[0]["report_status"] == "pending-approval"


def test_runtime_state_persists_settings(storage: SqlStorage):
    state = RuntimeState(settings)
    state.apply({"monthly_salary": 4000, "projects": [{"id": "x", "name": "X"}, {"id": "x", "name": "Dup"}]})
    state.persist(storage)
    state.apply({"hourly_rate": 25})
    state.persist(storage)

    restored = RuntimeState(settings)
    restored.load(storage)
    assert restored.monthly_salary == 4000
    assert restored.hourly_rate == 25
    assert [project.id for project in restored.projects] == ["x"]
    assert storage.load(SETTINGS_KEY).version == 2

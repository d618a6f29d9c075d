from __future__ import annotations

import datetime as dt
from collections import defaultdict
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import InvariantViolation
from .schemas import DayEntry, ReportStatus, TimeReport


EntryKey = Tuple[dt.date, str]
MonthKey = Tuple[int, int]


class EntryStore:
    """Day entries indexed by ``(date, project_id)``.

    The dict keeps insertion order, and assigning to an existing key keeps
    that key's position, so a replacement takes the slot of the entry it replaces.
    """

    def __init__(self, entries: Iterable[DayEntry] = ()) -> None:
        self._entries: Dict[EntryKey, DayEntry] = {}
        self._projects_by_date: Dict[dt.date, List[str]] = defaultdict(list)
        for entry in entries:
            self.insert(entry)

    @staticmethod
    def key(entry: DayEntry) -> EntryKey:
        return entry.date, entry.project_id

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DayEntry]:
        return iter(list(self._entries.values()))

    def get(self, day: dt.date, project_id: str) -> Optional[DayEntry]:
        return self._entries.get((day, project_id))

    def insert(self, entry: DayEntry) -> DayEntry:
        key = self.key(entry)
        if key in self._entries:
            raise InvariantViolation(
                f"Duplicate entry for {entry.date.isoformat()} and project '{entry.project_id}'"
            )
        return self._store(key, entry)

    def upsert(self, entry: DayEntry) -> DayEntry:
        return self._store(self.key(entry), entry)

    def _store(self, key: EntryKey, entry: DayEntry) -> DayEntry:
        if key not in self._entries:
            self._projects_by_date[entry.date].append(entry.project_id)
        self._entries[key] = entry
        return entry

    def query(self, year: int, month: int, project_id: Optional[str] = None) -> Iterator[DayEntry]:
        for entry in list(self._entries.values()):
            if entry.date.year != year or entry.date.month != month:
                continue
            if project_id is not None and entry.project_id != project_id:
                continue
            yield entry

    def entries_on(self, day: dt.date) -> List[DayEntry]:
        return [self._entries[(day, project_id)] for project_id in self._projects_by_date.get(day, [])]

    def has_entry_on(self, day: dt.date) -> bool:
        return bool(self._projects_by_date.get(day))

    def to_payload(self) -> List[Dict[str, Any]]:
        return [entry.model_dump(mode="json") for entry in self._entries.values()]

    @classmethod
    def from_payload(cls, items: Iterable[Dict[str, Any]]) -> "EntryStore":
        return cls(DayEntry.model_validate(item) for item in items)


class ReportRegistry:
    """One report per ``(year, month)``; a missing record means ``upcoming``."""

    def __init__(self, reports: Iterable[TimeReport] = ()) -> None:
        self._reports: Dict[MonthKey, TimeReport] = {}
        for report in reports:
            self.insert(report)

    def __len__(self) -> int:
        return len(self._reports)

    def __iter__(self) -> Iterator[TimeReport]:
        return iter(list(self._reports.values()))

    def get(self, year: int, month: int) -> Optional[TimeReport]:
        return self._reports.get((year, month))

    def status(self, year: int, month: int) -> ReportStatus:
        report = self.get(year, month)
        return report.report_status if report else "upcoming"

    def insert(self, report: TimeReport) -> TimeReport:
        key = (report.year, report.month)
        if key in self._reports:
            raise InvariantViolation(f"Duplicate time report for {report.year}-{report.month:02d}")
        self._reports[key] = report
        return report

    def put(self, report: TimeReport) -> TimeReport:
        self._reports[(report.year, report.month)] = report
        return report

    def to_payload(self) -> List[Dict[str, Any]]:
        return [report.model_dump(mode="json") for report in self._reports.values()]

    @classmethod
    def from_payload(cls, items: Iterable[Dict[str, Any]]) -> "ReportRegistry":
        return cls(TimeReport.model_validate(item) for item in items)

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, List, Optional

from .autopopulate import autopopulate_previous_months
from .config import settings
from .errors import LockedStateRejection, UnknownProject
from .lifecycle import ReportLifecycle, shortfall_warning
from .schemas import DayEntry, EntrySaveRequest, MonthSummary, ReviewDecision, TimeReport
from .state import RuntimeState
from .storage import ENTRIES_KEY, REPORTS_KEY, Storage
from .store import EntryStore, ReportRegistry
from .summary import calculate_month_summary


logger = logging.getLogger(__name__)


class TimeTracker:
    """Session over the entry store and report registry.

    ``load`` reads both collections in full; each mutating call rewrites the
    collection it changed in full before returning. Nothing is cached
    between sessions.
    """

    def __init__(self, storage: Storage, state: RuntimeState, today: dt.date):
        self.storage = storage
        self.state = state
        self.today = today
        self.entries = EntryStore()
        self.reports = ReportRegistry()
        self.lifecycle = ReportLifecycle(self.reports, today)
        self._versions: Dict[str, int] = {ENTRIES_KEY: 0, REPORTS_KEY: 0}
        self._dirty: set[str] = set()

    def load(self) -> "TimeTracker":
        stored_entries = self.storage.load(ENTRIES_KEY)
        stored_reports = self.storage.load(REPORTS_KEY)
        self.entries = EntryStore.from_payload(stored_entries.payload or [])
        self.reports = ReportRegistry.from_payload(stored_reports.payload or [])
        self.lifecycle = ReportLifecycle(self.reports, self.today)
        self._versions = {ENTRIES_KEY: stored_entries.version, REPORTS_KEY: stored_reports.version}
        self._dirty.clear()
        return self

    def flush(self) -> None:
        payloads = {
            ENTRIES_KEY: self.entries.to_payload,
            REPORTS_KEY: self.reports.to_payload,
        }
        for key in sorted(self._dirty):
            self._versions[key] = self.storage.save(key, payloads[key](), self._versions[key])
        self._dirty.clear()

    def _mark_dirty(self, key: str) -> None:
        self._dirty.add(key)

    # Entries

    def build_entry(self, payload: EntrySaveRequest) -> DayEntry:
        project = self.state.project(payload.project_id)
        if project is None:
            raise UnknownProject(f"Project '{payload.project_id}' is not configured")
        return DayEntry(
            date=payload.date,
            hours=payload.hours if payload.status == "worked" else 0.0,
            status=payload.status,
            project_id=project.id,
            project_name=project.name,
            notes=payload.notes,
        )

    def save_entry(self, entry: DayEntry) -> DayEntry:
        try:
            self.lifecycle.ensure_entry_editable(entry.date)
        except LockedStateRejection:
            logger.info("Rejected save for %s on project %s", entry.date.isoformat(), entry.project_id)
            raise
        saved = self.entries.upsert(entry)
        self._mark_dirty(ENTRIES_KEY)
        self.flush()
        logger.debug("Saved %s entry for %s on project %s", entry.status, entry.date.isoformat(), entry.project_id)
        return saved

    def month_entries(self, year: int, month: int, project_id: Optional[str] = None) -> List[DayEntry]:
        return list(self.entries.query(year, month, project_id))

    def entries_on(self, day: dt.date) -> List[DayEntry]:
        return self.entries.entries_on(day)

    def is_editable(self, entry: DayEntry) -> bool:
        return self.lifecycle.is_entry_editable(entry.date)

    def autopopulate(self) -> List[DayEntry]:
        created = autopopulate_previous_months(
            self.entries,
            self.state.projects,
            self.today,
            months=settings.autopopulate_months,
            hours=settings.autopopulate_hours,
            is_editable=self.lifecycle.is_entry_editable,
        )
        if created:
            self._mark_dirty(ENTRIES_KEY)
            self.flush()
        return created

    # Summary and reports

    def month_summary(
        self,
        year: int,
        month: int,
        project_id: Optional[str] = None,
        expected_hours: Optional[float] = None,
    ) -> MonthSummary:
        if expected_hours is None:
            expected_hours = self.state.expected_hours
        return calculate_month_summary(
            year,
            month,
            self.entries.query(year, month, project_id),
            monthly_salary=self.state.monthly_salary,
            hourly_rate=self.state.hourly_rate,
            expected_hours=expected_hours,
            contracted_hours_per_day=self.state.contracted_hours_per_day,
        )

    def report_overview(self, year: int, month: int) -> Dict[str, Any]:
        summary = self.month_summary(year, month)
        report = self.reports.get(year, month)
        can_submit = self.lifecycle.can_submit(year, month)
        return {
            "year": year,
            "month": month,
            "report_status": self.lifecycle.current_status(year, month),
            "submitted_at": report.submitted_at if report else None,
            "editable": self.lifecycle.is_month_editable(year, month),
            "can_submit": can_submit,
            "requires_confirmation": can_submit and self.lifecycle.requires_confirmation(summary),
            "warning": shortfall_warning(summary) if can_submit else None,
            "summary": summary,
        }

    def submit_report(self, year: int, month: int, *, acknowledge_shortfall: bool = False) -> TimeReport:
        summary = self.month_summary(year, month)
        report = self.lifecycle.submit(year, month, summary, acknowledge_shortfall=acknowledge_shortfall)
        self._mark_dirty(REPORTS_KEY)
        self.flush()
        return report

    def review_report(self, year: int, month: int, decision: ReviewDecision) -> TimeReport:
        report = self.lifecycle.record_review(year, month, decision)
        self._mark_dirty(REPORTS_KEY)
        self.flush()
        return report

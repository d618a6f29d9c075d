from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, Optional, Set

from .errors import LockedStateRejection, ShortfallNotAcknowledged
from .schemas import MonthSummary, ReportStatus, ReviewDecision, TimeReport
from .store import ReportRegistry
from .utils import utcnow


logger = logging.getLogger(__name__)


REPORT_TRANSITIONS: Dict[str, Set[str]] = {
    "upcoming": {"pending-approval"},
    "declined": {"pending-approval"},
    "pending-approval": {"approved", "declined"},
    "approved": set(),
}

EDITABLE_STATUSES: Set[str] = {"upcoming", "declined"}

SHORTFALL_WARNING = (
    "You have reported {reported:.1f} of {expected:.1f} expected hours. "
    "Submitting now risks losing earnings for the missing {remaining:.1f} hours."
)


def can_transition(current: str, target: str) -> bool:
    return target in REPORT_TRANSITIONS.get(current, set())


def shortfall_warning(summary: MonthSummary) -> Optional[str]:
    if summary.reported_hours >= summary.expected_hours:
        return None
    return SHORTFALL_WARNING.format(
        reported=summary.reported_hours,
        expected=summary.expected_hours,
        remaining=summary.remaining_hours,
    )


class ReportLifecycle:
    """Approval workflow of monthly reports and the rules for editing entries.

    Every decision about whether an entry may be changed goes through
    :meth:`is_entry_editable`.
    """

    def __init__(self, registry: ReportRegistry, today: dt.date):
        self.registry = registry
        self.today = today

    def current_status(self, year: int, month: int) -> ReportStatus:
        return self.registry.status(year, month)

    def is_month_editable(self, year: int, month: int) -> bool:
        return self.current_status(year, month) in EDITABLE_STATUSES

    def is_entry_editable(self, day: dt.date) -> bool:
        if day > self.today:
            return False
        return self.is_month_editable(day.year, day.month)

    def ensure_entry_editable(self, day: dt.date) -> None:
        if day > self.today:
            raise LockedStateRejection(f"Entries for {day.isoformat()} lie in the future")
        status = self.current_status(day.year, day.month)
        if status not in EDITABLE_STATUSES:
            raise LockedStateRejection(
                f"Report for {day.year}-{day.month:02d} is {status}; entries are read-only"
            )

    def can_submit(self, year: int, month: int) -> bool:
        return can_transition(self.current_status(year, month), "pending-approval")

    @staticmethod
    def requires_confirmation(summary: MonthSummary) -> bool:
        return summary.reported_hours < summary.expected_hours

    def submit(
        self,
        year: int,
        month: int,
        summary: MonthSummary,
        *,
        acknowledge_shortfall: bool = False,
        submitted_at: Optional[dt.datetime] = None,
    ) -> TimeReport:
        status = self.current_status(year, month)
        if not can_transition(status, "pending-approval"):
            logger.info("Rejected submission for %s-%02d in state %s", year, month, status)
            raise LockedStateRejection(f"Report for {year}-{month:02d} is {status} and cannot be submitted")
        warning = shortfall_warning(summary)
        if warning and not acknowledge_shortfall:
            raise ShortfallNotAcknowledged(warning, remaining_hours=summary.remaining_hours)
        report = TimeReport(
            year=year,
            month=month,
            report_status="pending-approval",
            submitted_at=submitted_at or utcnow(),
        )
        self.registry.put(report)
        logger.info(
            "Submitted report for %s-%02d (%.1f of %.1f hours)",
            year,
            month,
            summary.reported_hours,
            summary.expected_hours,
        )
        return report

    def record_review(self, year: int, month: int, decision: ReviewDecision) -> TimeReport:
        """Store an approver's decision on a pending report."""
        current = self.registry.get(year, month)
        status = current.report_status if current else "upcoming"
        if current is None or not can_transition(status, decision):
            raise LockedStateRejection(f"Report for {year}-{month:02d} is {status} and cannot be {decision}")
        report = current.model_copy(update={"report_status": decision})
        self.registry.put(report)
        logger.info("Report for %s-%02d %s", year, month, decision)
        return report

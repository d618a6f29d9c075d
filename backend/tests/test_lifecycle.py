from __future__ import annotations

import datetime as dt

import pytest

from timereport.errors import LockedStateRejection, ShortfallNotAcknowledged
from timereport.lifecycle import ReportLifecycle, can_transition
from timereport.schemas import DayEntry, TimeReport
from timereport.store import ReportRegistry
from timereport.summary import calculate_month_summary, weekdays_in_month


TODAY = dt.date(2024, 3, 20)


def _summary(reported: float, expected: float = 40):
    days = weekdays_in_month(2024, 3)[:5]
    entries = [DayEntry(date=day, hours=reported / 5, status="worked", project_id="p1") for day in days]
    return calculate_month_summary(2024, 3, entries, monthly_salary=3500, hourly_rate=19.89, expected_hours=expected)


def _lifecycle(*reports: TimeReport) -> ReportLifecycle:
    return ReportLifecycle(ReportRegistry(reports), TODAY)


def test_transition_table():
    assert can_transition("upcoming", "pending-approval")
    assert can_transition("declined", "pending-approval")
    assert can_transition("pending-approval", "approved")
    assert can_transition("pending-approval", "declined")
    assert not can_transition("approved", "pending-approval")
    assert not can_transition("approved", "declined")
    assert not can_transition("upcoming", "approved")


@pytest.mark.parametrize(
    "status, editable",
    [
        ("upcoming", True),
        ("declined", True),
        ("pending-approval", False),
        ("approved", False),
    ],
)
def test_month_editability_follows_status(status, editable):
    reports = [] if status == "upcoming" else [TimeReport(year=2024, month=3, report_status=status)]
    lifecycle = _lifecycle(*reports)
    assert lifecycle.is_month_editable(2024, 3) is editable
    assert lifecycle.is_entry_editable(dt.date(2024, 3, 4)) is editable


def test_future_dates_are_read_only():
    lifecycle = _lifecycle()
    assert lifecycle.is_entry_editable(TODAY)
    assert not lifecycle.is_entry_editable(TODAY + dt.timedelta(days=1))
    with pytest.raises(LockedStateRejection):
        lifecycle.ensure_entry_editable(dt.date(2024, 4, 1))


def test_locked_month_rejects_edits():
    lifecycle = _lifecycle(TimeReport(year=2024, month=2, report_status="pending-approval"))
    with pytest.raises(LockedStateRejection):
        lifecycle.ensure_entry_editable(dt.date(2024, 2, 12))
    lifecycle.ensure_entry_editable(dt.date(2024, 3, 12))


def test_submit_with_full_hours_moves_to_pending():
    lifecycle = _lifecycle()
    submitted_at = dt.datetime(2024, 3, 20, 12, tzinfo=dt.timezone.utc)
    report = lifecycle.submit(2024, 3, _summary(40), submitted_at=submitted_at)
    assert report.report_status == "pending-approval"
    assert report.submitted_at == submitted_at
    assert lifecycle.current_status(2024, 3) == "pending-approval"
    assert not lifecycle.is_month_editable(2024, 3)


def test_submit_of_pending_report_is_rejected():
    pending = TimeReport(year=2024, month=3, report_status="pending-approval")
    lifecycle = _lifecycle(pending)
    with pytest.raises(LockedStateRejection):
        lifecycle.submit(2024, 3, _summary(40))
    assert lifecycle.registry.get(2024, 3) == pending


def test_shortfall_requires_acknowledgement():
    lifecycle = _lifecycle()
    summary = _summary(30)
    assert lifecycle.requires_confirmation(summary)

    with pytest.raises(ShortfallNotAcknowledged) as excinfo:
        lifecycle.submit(2024, 3, summary)
    assert excinfo.value.remaining_hours == 10
    assert "losing earnings" in str(excinfo.value)
    assert lifecycle.current_status(2024, 3) == "upcoming"

    report = lifecycle.submit(2024, 3, summary, acknowledge_shortfall=True)
    assert report.report_status == "pending-approval"


def test_declined_report_can_be_resubmitted():
    lifecycle = _lifecycle(TimeReport(year=2024, month=3, report_status="declined"))
    report = lifecycle.submit(2024, 3, _summary(45))
    assert report.report_status == "pending-approval"
    assert len(lifecycle.registry) == 1


def test_review_only_applies_to_pending_reports():
    lifecycle = _lifecycle()
    with pytest.raises(LockedStateRejection):
        lifecycle.record_review(2024, 3, "approved")

    lifecycle.submit(2024, 3, _summary(40))
    report = lifecycle.record_review(2024, 3, "declined")
    assert report.report_status == "declined"
    assert lifecycle.is_month_editable(2024, 3)


def test_approved_report_is_terminal():
    approved = TimeReport(year=2024, month=3, report_status="approved")
    lifecycle = _lifecycle(approved)

    with pytest.raises(LockedStateRejection):
        lifecycle.submit(2024, 3, _summary(40), acknowledge_shortfall=True)
    with pytest.raises(LockedStateRejection):
        lifecycle.record_review(2024, 3, "declined")
    with pytest.raises(LockedStateRejection):
        lifecycle.ensure_entry_editable(dt.date(2024, 3, 4))

    assert lifecycle.current_status(2024, 3) == "approved"
    assert lifecycle.registry.get(2024, 3) == approved

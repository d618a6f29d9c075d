"""Monthly hours and pay summary.

Everything here is a pure function of its arguments. Callers pass the
entries already restricted to the month (and project) they want to see.
"""

from __future__ import annotations

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

from .schemas import DayEntry, MonthSummary
from .utils import days_in_month, is_weekday


DEFAULT_CONTRACTED_HOURS_PER_DAY = 2.0
FLEX_DAYS_FACTOR = 2.0


def weekdays_in_month(year: int, month: int) -> List[dt.date]:
    return [day for day in days_in_month(year, month) if is_weekday(day)]


def calculate_reported_hours(entries: Iterable[DayEntry]) -> float:
    return sum(entry.hours for entry in entries if entry.status == "worked")


def calculate_contracted_hours(
    year: int,
    month: int,
    entries: Iterable[DayEntry],
    hours_per_day: float = DEFAULT_CONTRACTED_HOURS_PER_DAY,
) -> float:
    project_count = max(1, len({entry.project_id for entry in entries}))
    return len(weekdays_in_month(year, month)) * hours_per_day * project_count


def calculate_flex_days(reported_hours: float, expected_hours: float) -> float:
    if expected_hours <= 0:
        return 0.0
    flex_days = Decimal(str(max(0.0, FLEX_DAYS_FACTOR * reported_hours / expected_hours)))
    return float(flex_days.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _count_missed_days(weekdays: List[dt.date], entries: List[DayEntry]) -> int:
    missed = {entry.date for entry in entries if entry.status == "missed"}
    return sum(1 for day in weekdays if day in missed)


def calculate_month_summary(
    year: int,
    month: int,
    entries: Iterable[DayEntry],
    *,
    monthly_salary: float,
    hourly_rate: float,
    expected_hours: Optional[float] = None,
    contracted_hours_per_day: float = DEFAULT_CONTRACTED_HOURS_PER_DAY,
) -> MonthSummary:
    """Derive hours, deviation and pay for one month.

    ``expected_hours`` overrides the contracted hours as the target the
    month is measured against. Only shortfall is priced: reporting more
    than expected leaves ``deviation_cost`` at zero.
    """
    entries = list(entries)
    weekdays = weekdays_in_month(year, month)
    reported = calculate_reported_hours(entries)
    contracted = calculate_contracted_hours(year, month, entries, contracted_hours_per_day)
    expected = contracted if expected_hours is None else expected_hours

    deviation_hours = reported - expected
    deviation_cost = -(abs(deviation_hours) * hourly_rate) if deviation_hours < 0 else 0.0

    return MonthSummary(
        expected_hours=expected,
        reported_hours=reported,
        remaining_hours=max(0.0, expected - reported),
        contracted_hours=contracted,
        monthly_salary=monthly_salary,
        hourly_rate=hourly_rate,
        deviation_hours=deviation_hours,
        deviation_cost=deviation_cost,
        earned_flex_days=calculate_flex_days(reported, expected),
        subtotal=monthly_salary + deviation_cost,
        weekdays=len(weekdays),
        missed_days=_count_missed_days(weekdays, entries),
    )

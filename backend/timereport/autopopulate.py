from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from .schemas import DayEntry, Project
from .store import EntryStore
from .summary import weekdays_in_month
from .utils import shift_month


logger = logging.getLogger(__name__)


DEFAULT_BACKFILL_MONTHS = 3
DEFAULT_BACKFILL_HOURS = 8.0


def previous_months(today: dt.date, count: int) -> List[Tuple[int, int]]:
    """Return the ``count`` months before the month of ``today``, oldest first."""
    return [shift_month(today.year, today.month, -offset) for offset in range(count, 0, -1)]


def autopopulate_previous_months(
    store: EntryStore,
    projects: Sequence[Project],
    today: dt.date,
    *,
    months: int = DEFAULT_BACKFILL_MONTHS,
    hours: float = DEFAULT_BACKFILL_HOURS,
    is_editable: Optional[Callable[[dt.date], bool]] = None,
) -> List[DayEntry]:
    """Fill past weekdays without any entry with a worked day on the first project.

    A date that already has an entry of any status, for any project, is
    left alone, and so is any date ``is_editable`` rejects. Returns the
    entries that were added.
    """
    if not projects:
        return []
    project = projects[0]
    created: List[DayEntry] = []
    for year, month in previous_months(today, months):
        for day in weekdays_in_month(year, month):
            if day >= today or store.has_entry_on(day):
                continue
            if is_editable is not None and not is_editable(day):
                continue
            entry = DayEntry(
                date=day,
                hours=hours,
                status="worked",
                project_id=project.id,
                project_name=project.name,
            )
            created.append(store.upsert(entry))
    if created:
        logger.info(
            "Auto-populated %d weekday entries on project %s between %s and %s",
            len(created),
            project.id,
            created[0].date.isoformat(),
            created[-1].date.isoformat(),
        )
    return created

from __future__ import annotations

import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Path, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import init_db
from .errors import ConcurrentModification, LockedStateRejection, ShortfallNotAcknowledged, UnknownProject
from .schemas import (
    AutopopulateResponse,
    DayEntry,
    EntryResponse,
    EntrySaveRequest,
    MonthSummary,
    Project,
    ReportOverviewResponse,
    ReviewRequest,
    SettingsResponse,
    SettingsUpdateRequest,
    SubmitRequest,
    TimeReport,
)
from .state import RuntimeState
from .storage import Storage, get_storage, open_storage
from .tracker import TimeTracker
from .utils import local_today


logger = logging.getLogger(__name__)


init_db()

runtime_state = RuntimeState(settings)
try:
    with open_storage() as startup_storage:
        runtime_state.load(startup_storage)
except Exception:
    logger.exception("Could not load stored runtime settings, using defaults")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.autopopulate_on_startup:
        with open_storage() as storage:
            tracker = TimeTracker(storage, app.state.runtime_state, local_today()).load()
            tracker.autopopulate()
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.state.runtime_state = runtime_state
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.exception_handler(LockedStateRejection)
async def locked_state_handler(request: Request, exc: LockedStateRejection) -> JSONResponse:
    return JSONResponse({"detail": str(exc)}, status_code=status.HTTP_409_CONFLICT)


@app.exception_handler(ShortfallNotAcknowledged)
async def shortfall_handler(request: Request, exc: ShortfallNotAcknowledged) -> JSONResponse:
    return JSONResponse(
        {
            "detail": "Confirmation required",
            "warning": str(exc),
            "remaining_hours": exc.remaining_hours,
        },
        status_code=status.HTTP_409_CONFLICT,
    )


@app.exception_handler(ConcurrentModification)
async def conflict_handler(request: Request, exc: ConcurrentModification) -> JSONResponse:
    return JSONResponse({"detail": str(exc)}, status_code=status.HTTP_409_CONFLICT)


@app.exception_handler(UnknownProject)
async def unknown_project_handler(request: Request, exc: UnknownProject) -> JSONResponse:
    return JSONResponse({"detail": str(exc)}, status_code=status.HTTP_404_NOT_FOUND)


def get_today() -> dt.date:
    return local_today()


def get_tracker(
    request: Request,
    storage: Storage = Depends(get_storage),
    today: dt.date = Depends(get_today),
) -> TimeTracker:
    state: RuntimeState = request.app.state.runtime_state
    return TimeTracker(storage, state, today).load()


def _entry_response(tracker: TimeTracker, entry: DayEntry) -> EntryResponse:
    return EntryResponse(**entry.model_dump(), editable=tracker.is_editable(entry))


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/projects", response_model=list[Project])
def list_projects(request: Request) -> list[Project]:
    state: RuntimeState = request.app.state.runtime_state
    return state.projects


@app.get("/entries", response_model=list[EntryResponse])
def list_entries(
    year: int = Query(ge=1000, le=9999),
    month: int = Query(ge=1, le=12),
    project_id: Optional[str] = None,
    tracker: TimeTracker = Depends(get_tracker),
) -> list[EntryResponse]:
    return [_entry_response(tracker, entry) for entry in tracker.month_entries(year, month, project_id)]


@app.get("/entries/day/{day}", response_model=list[EntryResponse])
def entries_for_day(day: dt.date, tracker: TimeTracker = Depends(get_tracker)) -> list[EntryResponse]:
    return [_entry_response(tracker, entry) for entry in tracker.entries_on(day)]


@app.put("/entries", response_model=EntryResponse)
def save_entry(payload: EntrySaveRequest, tracker: TimeTracker = Depends(get_tracker)) -> EntryResponse:
    entry = tracker.save_entry(tracker.build_entry(payload))
    return _entry_response(tracker, entry)


@app.post("/entries/autopopulate", response_model=AutopopulateResponse)
def run_autopopulate(tracker: TimeTracker = Depends(get_tracker)) -> AutopopulateResponse:
    created = tracker.autopopulate()
    return AutopopulateResponse(
        created=[_entry_response(tracker, entry) for entry in created],
        total_entries=len(tracker.entries),
    )


@app.get("/months/{year}/{month}/summary", response_model=MonthSummary)
def month_summary(
    year: int = Path(ge=1000, le=9999),
    month: int = Path(ge=1, le=12),
    project_id: Optional[str] = None,
    expected_hours: Optional[float] = Query(default=None, ge=0),
    tracker: TimeTracker = Depends(get_tracker),
) -> MonthSummary:
    return tracker.month_summary(year, month, project_id, expected_hours)


@app.get("/months/{year}/{month}/report", response_model=ReportOverviewResponse)
def month_report(
    year: int = Path(ge=1000, le=9999),
    month: int = Path(ge=1, le=12),
    tracker: TimeTracker = Depends(get_tracker),
) -> ReportOverviewResponse:
    return ReportOverviewResponse(**tracker.report_overview(year, month))


@app.post("/months/{year}/{month}/submit", response_model=TimeReport)
def submit_report(
    payload: SubmitRequest,
    year: int = Path(ge=1000, le=9999),
    month: int = Path(ge=1, le=12),
    tracker: TimeTracker = Depends(get_tracker),
) -> TimeReport:
    return tracker.submit_report(year, month, acknowledge_shortfall=payload.acknowledge_shortfall)


@app.post("/months/{year}/{month}/review", response_model=TimeReport)
def review_report(
    payload: ReviewRequest,
    year: int = Path(ge=1000, le=9999),
    month: int = Path(ge=1, le=12),
    tracker: TimeTracker = Depends(get_tracker),
) -> TimeReport:
    return tracker.review_report(year, month, payload.decision)


@app.get("/settings", response_model=SettingsResponse)
def read_settings(request: Request) -> SettingsResponse:
    state: RuntimeState = request.app.state.runtime_state
    snapshot = state.snapshot()
    return SettingsResponse(
        environment=settings.environment,
        timezone=settings.timezone,
        storage=settings.storage_backend,
        projects=snapshot["projects"],
        monthly_salary=snapshot["monthly_salary"],
        hourly_rate=snapshot["hourly_rate"],
        expected_hours=snapshot["expected_hours"],
        contracted_hours_per_day=snapshot["contracted_hours_per_day"],
    )


@app.put("/settings", response_model=SettingsResponse)
def write_settings(
    payload: SettingsUpdateRequest,
    request: Request,
    storage: Storage = Depends(get_storage),
) -> SettingsResponse:
    state: RuntimeState = request.app.state.runtime_state
    updates = payload.model_dump(exclude_unset=True)
    state.apply(updates)
    state.persist(storage)
    return read_settings(request)

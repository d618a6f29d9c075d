from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional

from typing_extensions import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .utils import as_date, normalize_text


EntryStatus = Literal["worked", "missed", "day-off", "suspended-client"]
ReportStatus = Literal["upcoming", "pending-approval", "approved", "declined"]
ReviewDecision = Literal["approved", "declined"]


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


class Project(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str

    @field_validator("id", mode="before")
    @classmethod
    def _strip_id(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class DayEntry(BaseModel):
    """Work status and hours recorded for one project on one calendar day."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    hours: float = Field(default=0.0, ge=0, le=24, allow_inf_nan=False)
    status: EntryStatus
    project_id: str = Field(min_length=1)
    project_name: str = ""
    notes: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _truncate_time(cls, value: Any) -> Any:
        return as_date(value)

    @field_validator("project_id", mode="before")
    @classmethod
    def _strip_project_id(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("notes", mode="before")
    @classmethod
    def _blank_notes(cls, value: Any) -> Any:
        return normalize_text(value) if isinstance(value, str) else value


class TimeReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int = Field(ge=1000, le=9999)
    month: int = Field(ge=1, le=12)
    report_status: ReportStatus
    submitted_at: Optional[dt.datetime] = None

    @field_serializer("submitted_at", when_used="json")
    def _serialize_submitted_at(self, value: Optional[dt.datetime]) -> Optional[str]:
        return _serialize_datetime(value) if value else None


class MonthSummary(BaseModel):
    expected_hours: float
    reported_hours: float
    remaining_hours: float
    contracted_hours: float
    monthly_salary: float
    hourly_rate: float
    deviation_hours: float
    deviation_cost: float
    earned_flex_days: float
    subtotal: float
    weekdays: int
    missed_days: int


class EntrySaveRequest(BaseModel):
    date: dt.date
    status: EntryStatus
    hours: float = Field(default=8.0, ge=0, le=24, allow_inf_nan=False)
    project_id: str = Field(min_length=1)
    notes: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _truncate_time(cls, value: Any) -> Any:
        return as_date(value)


class EntryResponse(BaseModel):
    date: dt.date
    hours: float
    status: EntryStatus
    project_id: str
    project_name: str
    notes: Optional[str]
    editable: bool


class AutopopulateResponse(BaseModel):
    created: List[EntryResponse]
    total_entries: int


class SubmitRequest(BaseModel):
    acknowledge_shortfall: bool = False


class ReviewRequest(BaseModel):
    decision: ReviewDecision


class ReportOverviewResponse(BaseModel):
    year: int
    month: int
    report_status: ReportStatus
    submitted_at: Optional[dt.datetime]
    editable: bool
    can_submit: bool
    requires_confirmation: bool
    warning: Optional[str] = None
    summary: MonthSummary

    @field_serializer("submitted_at", when_used="json")
    def _serialize_submitted_at(self, value: Optional[dt.datetime]) -> Optional[str]:
        return _serialize_datetime(value) if value else None


class SettingsResponse(BaseModel):
    environment: str
    timezone: str
    storage: str
    projects: List[Project]
    monthly_salary: float
    hourly_rate: float
    expected_hours: Optional[float]
    contracted_hours_per_day: float


class SettingsUpdateRequest(BaseModel):
    projects: Optional[List[Project]] = None
    monthly_salary: Optional[float] = Field(default=None, ge=0)
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    expected_hours: Optional[float] = Field(default=None, ge=0)

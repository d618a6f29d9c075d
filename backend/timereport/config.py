from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PROJECTS = "p1:Main Project,p2:Side Project,p3:Client X,p4:Training"


def parse_projects(value: str) -> List[Dict[str, str]]:
    """Parse ``id:name`` pairs separated by commas into project dicts."""
    projects: List[Dict[str, str]] = []
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        project_id, _, name = chunk.partition(":")
        project_id = project_id.strip()
        if not project_id:
            continue
        projects.append({"id": project_id, "name": name.strip() or project_id})
    return projects


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "TimeReport"
    environment: str = "development"
    host: str = os.getenv("TR_HOST", "127.0.0.1")
    port: int = int(os.getenv("TR_PORT", "8080"))
    log_level: str = os.getenv("TR_LOG_LEVEL", "info")

    storage_backend: str = os.getenv("TR_STORAGE", "sqlite")
    sqlite_path: Path = Path(os.getenv("TR_SQLITE_PATH", "./data/timereport.db"))
    json_dir: Path = Path(os.getenv("TR_JSON_DIR", "./data/state"))

    timezone: str = os.getenv("TZ", "Europe/Berlin")

    projects: List[Dict[str, str]] = Field(
        default_factory=lambda: parse_projects(os.getenv("TR_PROJECTS", DEFAULT_PROJECTS))
    )
    monthly_salary: float = float(os.getenv("TR_MONTHLY_SALARY", "3500"))
    hourly_rate: float = float(os.getenv("TR_HOURLY_RATE", "19.89"))
    expected_hours: Optional[float] = (
        float(os.getenv("TR_EXPECTED_HOURS"))
        if os.getenv("TR_EXPECTED_HOURS")
        else None
    )
    contracted_hours_per_day: float = float(os.getenv("TR_CONTRACTED_HOURS_PER_DAY", "2"))

    autopopulate_on_startup: bool = os.getenv("TR_AUTOPOPULATE_ON_STARTUP", "true").lower() == "true"
    autopopulate_months: int = int(os.getenv("TR_AUTOPOPULATE_MONTHS", "3"))
    autopopulate_hours: float = float(os.getenv("TR_AUTOPOPULATE_HOURS", "8"))

    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://127.0.0.1:5173", "http://localhost:5173"]
    )

    @field_validator("projects", mode="before")
    @classmethod
    def _split_projects(cls, value: str | List[Dict[str, str]]) -> List[Dict[str, str]]:
        if isinstance(value, list):
            return value
        if not value:
            return []
        return parse_projects(value)


settings = Settings()

# Ensure essential directories exist
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
settings.json_dir.mkdir(parents=True, exist_ok=True)

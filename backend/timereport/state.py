from __future__ import annotations

from threading import RLock
from typing import Any, Dict, Iterable, List, Optional

from .config import Settings
from .schemas import Project
from .storage import SETTINGS_KEY, Storage


PERSISTED_KEYS = ("projects", "monthly_salary", "hourly_rate", "expected_hours")


def _normalize_projects(values: Iterable[Any]) -> List[Project]:
    seen: set[str] = set()
    projects: List[Project] = []
    for value in values:
        project = value if isinstance(value, Project) else Project.model_validate(value)
        if project.id in seen:
            continue
        projects.append(project)
        seen.add(project.id)
    return projects


class RuntimeState:
    """Mutable runtime configuration that can be adjusted at runtime."""

    def __init__(self, base_settings: Settings):
        self._lock = RLock()
        self._projects: List[Project] = _normalize_projects(base_settings.projects)
        self.monthly_salary: float = base_settings.monthly_salary
        self.hourly_rate: float = base_settings.hourly_rate
        self.expected_hours: Optional[float] = base_settings.expected_hours
        self.contracted_hours_per_day: float = base_settings.contracted_hours_per_day

    @property
    def projects(self) -> List[Project]:
        with self._lock:
            return list(self._projects)

    def project(self, project_id: str) -> Optional[Project]:
        with self._lock:
            for project in self._projects:
                if project.id == project_id:
                    return project
        return None

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "projects": [project.model_dump() for project in self._projects],
                "monthly_salary": self.monthly_salary,
                "hourly_rate": self.hourly_rate,
                "expected_hours": self.expected_hours,
                "contracted_hours_per_day": self.contracted_hours_per_day,
            }

    def apply(self, updates: Dict[str, Any]) -> None:
        with self._lock:
            if "projects" in updates and updates["projects"] is not None:
                self._projects = _normalize_projects(updates["projects"])
            if "monthly_salary" in updates and updates["monthly_salary"] is not None:
                self.monthly_salary = float(updates["monthly_salary"])
            if "hourly_rate" in updates and updates["hourly_rate"] is not None:
                self.hourly_rate = float(updates["hourly_rate"])
            if "expected_hours" in updates:
                value = updates.get("expected_hours")
                self.expected_hours = float(value) if value not in (None, "") else None

    def load(self, storage: Storage) -> None:
        stored = storage.load(SETTINGS_KEY)
        if isinstance(stored.payload, dict):
            self.apply(stored.payload)

    def persist(self, storage: Storage) -> None:
        with self._lock:
            snapshot = self.snapshot()
            payload = {key: snapshot[key] for key in PERSISTED_KEYS}
            # Settings are last-writer-wins; only the collections are versioned.
            storage.save(SETTINGS_KEY, payload, storage.load(SETTINGS_KEY).version)

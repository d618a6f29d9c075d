from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for time report rule violations."""


class InvariantViolation(DomainError):
    """Raised when a write would break a uniqueness invariant.

    Only the strict insert paths used while hydrating from storage raise
    this; regular saves go through upsert and cannot produce duplicates.
    """


class LockedStateRejection(DomainError):
    """Raised when a save, submit or review targets a locked month or entry."""


class ShortfallNotAcknowledged(DomainError):
    """Raised when a report with missing hours is submitted without confirmation."""

    def __init__(self, message: str, *, remaining_hours: float) -> None:
        super().__init__(message)
        self.remaining_hours = remaining_hours


class ConcurrentModification(DomainError):
    """Raised when a stored collection changed since it was loaded."""

    def __init__(self, key: str, expected_version: int, actual_version: Optional[int] = None) -> None:
        super().__init__(
            f"Collection '{key}' was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version


class UnknownProject(DomainError):
    """Raised when an entry references a project that is not configured."""

"""Schemas for per-run report records and aggregated report results."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReportRecord:
    """Raw timing and outcome of one test case run."""
    method: str = ""
    api: str = ""
    body: str = ""
    begin_time: datetime = field(default_factory=_now)
    end_time: datetime | None = None
    error: Exception | None = None
    # Kept apart from ``error`` so a cleanup failure never hides the run's own outcome.
    cleanup_error: Exception | None = None

    @property
    def duration(self) -> timedelta:
        if self.end_time is None:
            return timedelta(0)
        return self.end_time - self.begin_time

    @property
    def error_count(self) -> int:
        if self.error is None and self.cleanup_error is None:
            return 0
        return 1


class ReportResult(BaseModel):
    """Aggregated statistics for all runs against the same API."""
    api: str
    count: int
    average: timedelta
    max: timedelta
    min: timedelta
    qps: int
    error: int

    model_config = {"frozen": True}

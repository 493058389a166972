"""
Value Objects and Identity

Opaque string identifiers for every aggregate plus the TimeRange used by
metric-data queries.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, NewType, Optional
import uuid


DashboardID = NewType("DashboardID", str)
ReportID = NewType("ReportID", str)
MetricID = NewType("MetricID", str)
WidgetID = NewType("WidgetID", str)
UserID = NewType("UserID", str)


def _new_id() -> str:
    return str(uuid.uuid4())


def new_dashboard_id() -> DashboardID:
    return DashboardID(_new_id())


def new_report_id() -> ReportID:
    return ReportID(_new_id())


def new_metric_id() -> MetricID:
    return MetricID(_new_id())


def new_widget_id() -> WidgetID:
    return WidgetID(_new_id())


def new_user_id() -> UserID:
    return UserID(_new_id())


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or pass through a datetime) as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class TimeRange:
    """Closed time interval used to window metric samples"""
    start: datetime
    end: datetime

    def is_valid(self) -> bool:
        """A range is valid when start lies strictly before end."""
        return self.start < self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, moment: datetime) -> bool:
        """Inclusive on both ends"""
        return self.start <= moment <= self.end

    def to_dict(self) -> Dict[str, Any]:
        return {"start": format_datetime(self.start), "end": format_datetime(self.end)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeRange":
        return cls(start=parse_datetime(data["start"]), end=parse_datetime(data["end"]))

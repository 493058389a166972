"""
Report Aggregate

Reports carry a rendering template, generation parameters, an optional
schedule and a recipient list. The aggregate computes when it is next due;
running the scheduler loop is left to the caller (see `is_due`).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import DomainError, NotFoundError
from .events import DescribedAggregate
from .policy import DEFAULT_POLICY, DomainPolicy
from .values import ReportID, UserID, format_datetime, new_report_id, parse_datetime


class ReportType(str, Enum):
    PERFORMANCE = "PERFORMANCE"
    COMPLIANCE = "COMPLIANCE"
    BUSINESS = "BUSINESS"
    CUSTOM = "CUSTOM"


class OutputFormat(str, Enum):
    PDF = "PDF"
    EXCEL = "EXCEL"
    CSV = "CSV"
    JSON = "JSON"
    HTML = "HTML"


class ReportStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    GENERATING = "GENERATING"
    ERROR = "ERROR"


class ScheduleType(str, Enum):
    ONCE = "ONCE"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


@dataclass(frozen=True)
class Margins:
    top: float = 0.0
    bottom: float = 0.0
    left: float = 0.0
    right: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"top": self.top, "bottom": self.bottom, "left": self.left, "right": self.right}


@dataclass(frozen=True)
class ReportLayout:
    orientation: str = "portrait"  # portrait or landscape
    page_size: str = "A4"
    margins: Margins = field(default_factory=Margins)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orientation": self.orientation,
            "pageSize": self.page_size,
            "margins": self.margins.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ReportLayout":
        data = data or {}
        return cls(
            orientation=data.get("orientation", "portrait"),
            page_size=data.get("pageSize", "A4"),
            margins=Margins(**(data.get("margins") or {})),
        )


@dataclass(frozen=True)
class ReportSection:
    id: str
    type: str  # text, chart, table, image
    title: str = ""
    content: Dict[str, Any] = field(default_factory=dict)
    order: int = 0
    visible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "content": dict(self.content),
            "order": self.order,
            "visible": self.visible,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportSection":
        return cls(
            id=data["id"],
            type=data["type"],
            title=data.get("title", ""),
            content=dict(data.get("content") or {}),
            order=int(data.get("order", 0)),
            visible=bool(data.get("visible", True)),
        )


@dataclass(frozen=True)
class ReportTemplate:
    """Rendering template; sections keep their given order"""
    id: str = ""
    name: str = ""
    description: str = ""
    layout: ReportLayout = field(default_factory=ReportLayout)
    sections: List[ReportSection] = field(default_factory=list)
    styles: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "layout": self.layout.to_dict(),
            "sections": [s.to_dict() for s in self.sections],
            "styles": dict(self.styles),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ReportTemplate":
        data = data or {}
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description", ""),
            layout=ReportLayout.from_dict(data.get("layout")),
            sections=[ReportSection.from_dict(s) for s in data.get("sections") or []],
            styles=dict(data.get("styles") or {}),
        )


@dataclass(frozen=True)
class ReportSchedule:
    """
    Generation cadence.

    `interval` is in hours and only meaningful for HOURLY. `days` (0-6,
    Sunday first) and `time` (HH:MM) are validated for WEEKLY and DAILY but
    not used when computing the next run.
    """
    type: ScheduleType
    interval: int = 0
    days: List[int] = field(default_factory=list)
    time: str = ""
    timezone: str = "UTC"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "interval": self.interval,
            "days": list(self.days),
            "time": self.time,
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ReportSchedule"]:
        if not data:
            return None
        return cls(
            type=ScheduleType(data["type"]),
            interval=int(data.get("interval", 0)),
            days=[int(d) for d in data.get("days") or []],
            time=data.get("time", ""),
            timezone=data.get("timezone", "UTC"),
        )


@dataclass(kw_only=True)
class Report(DescribedAggregate):
    """Report aggregate root"""

    aggregate_type = "report"

    id: ReportID
    type: ReportType
    owner_id: UserID
    template: ReportTemplate = field(default_factory=ReportTemplate)
    parameters: Dict[str, Any] = field(default_factory=dict)
    schedule: Optional[ReportSchedule] = None
    output_format: OutputFormat = OutputFormat.PDF
    recipients: List[str] = field(default_factory=list)
    status: ReportStatus = ReportStatus.ACTIVE
    last_generated_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        report_type: ReportType,
        owner_id: UserID,
        policy: Optional[DomainPolicy] = None,
    ) -> "Report":
        policy = policy or DEFAULT_POLICY
        now = policy.now()
        return cls(
            id=new_report_id(),
            name=name,
            description=description,
            type=ReportType(report_type),
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
            policy=policy,
        )

    def set_template(self, template: ReportTemplate) -> None:
        self.template = template
        self._record("TemplateUpdated", {"templateId": template.id})

    def set_parameters(self, parameters: Dict[str, Any]) -> None:
        self.parameters = dict(parameters)
        self._record("ParametersUpdated", {"parameters": self.parameters})

    def set_schedule(self, schedule: Optional[ReportSchedule]) -> None:
        """
        Replace the schedule and recompute `next_run_at`.

        Passing None removes the schedule but keeps the previous
        `next_run_at`.
        """
        if schedule is not None:
            self._validate_schedule(schedule)
            self.next_run_at = self._compute_next_run(schedule, self.policy.now())
        self.schedule = schedule
        self._record("ScheduleUpdated", {"schedule": schedule})

    def set_output_format(self, output_format: Union[OutputFormat, str]) -> None:
        try:
            output_format = OutputFormat(output_format)
        except ValueError:
            raise DomainError(
                "INVALID_OUTPUT_FORMAT", "Invalid output format", str(output_format)
            ) from None
        self.output_format = output_format
        self._record("OutputFormatChanged", {"outputFormat": output_format})

    def add_recipient(self, email: str) -> None:
        if not email or len(email) >= self.policy.max_email_length:
            raise DomainError("INVALID_EMAIL", "Invalid email address")
        if email in self.recipients:
            raise DomainError("DUPLICATE_RECIPIENT", "Recipient already exists", email)
        self.recipients.append(email)
        self._record("RecipientAdded", {"email": email})

    def remove_recipient(self, email: str) -> None:
        if email not in self.recipients:
            raise NotFoundError("recipient", email)
        self.recipients.remove(email)
        self._record("RecipientRemoved", {"email": email})

    def set_status(self, status: Union[ReportStatus, str]) -> None:
        self.status = ReportStatus(status)
        self._record("StatusChanged", {"status": self.status})

    def mark_as_generated(self) -> None:
        now = self.policy.now()
        self.last_generated_at = now
        self.status = ReportStatus.ACTIVE
        if self.schedule is not None:
            self.next_run_at = self._compute_next_run(self.schedule, now)
        self._record("ReportGenerated", {"generatedAt": now})

    def is_due(self, at: datetime) -> bool:
        """True when the report is active, scheduled, and its next run is at or before `at`."""
        return (
            self.status == ReportStatus.ACTIVE
            and self.schedule is not None
            and self.next_run_at is not None
            and self.next_run_at <= at
        )

    def _validate_schedule(self, schedule: ReportSchedule) -> None:
        policy = self.policy
        if schedule.type == ScheduleType.HOURLY:
            if not policy.min_hourly_interval <= schedule.interval <= policy.max_hourly_interval:
                raise DomainError(
                    "INVALID_HOURLY_INTERVAL",
                    f"Hourly interval must be between {policy.min_hourly_interval} "
                    f"and {policy.max_hourly_interval} hours",
                )
        elif schedule.type == ScheduleType.DAILY:
            if not schedule.time:
                raise DomainError("INVALID_DAILY_SCHEDULE", "Daily schedule must have a time")
        elif schedule.type == ScheduleType.WEEKLY:
            if not schedule.days:
                raise DomainError(
                    "INVALID_WEEKLY_SCHEDULE", "Weekly schedule must have at least one day"
                )

    @staticmethod
    def _compute_next_run(schedule: ReportSchedule, now: datetime) -> Optional[datetime]:
        # ONCE and MONTHLY never come due again
        if schedule.type == ScheduleType.HOURLY:
            return now + timedelta(hours=schedule.interval)
        if schedule.type == ScheduleType.DAILY:
            return now + timedelta(days=1)
        if schedule.type == ScheduleType.WEEKLY:
            return now + timedelta(days=7)
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "template": self.template.to_dict(),
            "parameters": dict(self.parameters),
            "schedule": self.schedule.to_dict() if self.schedule else None,
            "outputFormat": self.output_format.value,
            "recipients": list(self.recipients),
            "status": self.status.value,
            "lastGeneratedAt": format_datetime(self.last_generated_at),
            "nextRunAt": format_datetime(self.next_run_at),
            "ownerId": self.owner_id,
            "createdAt": format_datetime(self.created_at),
            "updatedAt": format_datetime(self.updated_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], policy: Optional[DomainPolicy] = None) -> "Report":
        return cls(
            id=ReportID(data["id"]),
            name=data["name"],
            description=data.get("description", ""),
            type=ReportType(data["type"]),
            owner_id=UserID(data["ownerId"]),
            template=ReportTemplate.from_dict(data.get("template")),
            parameters=dict(data.get("parameters") or {}),
            schedule=ReportSchedule.from_dict(data.get("schedule")),
            output_format=OutputFormat(data.get("outputFormat", "PDF")),
            recipients=list(data.get("recipients") or []),
            status=ReportStatus(data.get("status", "ACTIVE")),
            last_generated_at=parse_datetime(data.get("lastGeneratedAt")),
            next_run_at=parse_datetime(data.get("nextRunAt")),
            created_at=parse_datetime(data["createdAt"]),
            updated_at=parse_datetime(data["updatedAt"]),
            version=int(data.get("version", 1)),
            policy=policy or DEFAULT_POLICY,
        )

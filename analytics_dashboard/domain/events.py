"""
Domain Events and Aggregate Root

Every aggregate mutation appends exactly one DomainEvent and bumps the
aggregate version by one. Events hold the aggregate id as a string and only
JSON-serializable payload data, never a reference to the aggregate itself.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple
import uuid

from .errors import DomainError
from .policy import DEFAULT_POLICY, DomainPolicy
from .values import format_datetime, parse_datetime


def to_json_value(value: Any) -> Any:
    """Convert enums, datetimes and value objects into JSON-safe primitives."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_value(v) for v in value]
    return value


@dataclass(frozen=True)
class DomainEvent:
    """Immutable record of a past aggregate mutation"""
    type: str
    aggregate_id: str
    version: int
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def create(
        cls,
        event_type: str,
        aggregate_id: str,
        version: int,
        data: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "DomainEvent":
        return cls(
            type=event_type,
            aggregate_id=str(aggregate_id),
            version=version,
            data=to_json_value(data or {}),
            metadata=to_json_value(metadata or {}),
            timestamp=timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "aggregateId": self.aggregate_id,
            "version": self.version,
            "data": self.data,
            "metadata": self.metadata,
            "timestamp": format_datetime(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainEvent":
        return cls(
            id=data["id"],
            type=data["type"],
            aggregate_id=data["aggregateId"],
            version=int(data["version"]),
            data=dict(data.get("data") or {}),
            metadata=dict(data.get("metadata") or {}),
            timestamp=parse_datetime(data.get("timestamp")),
        )


@dataclass(kw_only=True)
class AggregateRoot:
    """
    Shared bookkeeping for Dashboard, Metric and Report.

    `version` is the optimistic-concurrency token. `persisted_version` is
    the version last read from or written to storage; repositories compare
    against it when updating.
    """

    aggregate_type: ClassVar[str] = "aggregate"

    created_at: datetime
    updated_at: datetime
    version: int = 1
    persisted_version: Optional[int] = field(default=None, compare=False, repr=False)
    policy: DomainPolicy = field(default=DEFAULT_POLICY, compare=False, repr=False)
    _events: List[DomainEvent] = field(default_factory=list, compare=False, repr=False)

    @property
    def aggregate_id(self) -> str:
        return str(getattr(self, "id"))

    @property
    def pending_events(self) -> Tuple[DomainEvent, ...]:
        return tuple(self._events)

    def clear_events(self) -> None:
        self._events = []

    def pull_events(self) -> List[DomainEvent]:
        """Drain pending events in the order they were raised."""
        events, self._events = self._events, []
        return events

    def mark_persisted(self) -> None:
        self.persisted_version = self.version

    def _record(self, event_type: str, data: Dict[str, Any]) -> DomainEvent:
        now = self.policy.now()
        self.updated_at = now
        self.version += 1
        event = DomainEvent.create(event_type, self.aggregate_id, self.version, data, timestamp=now)
        self._events.append(event)
        return event


@dataclass(kw_only=True)
class DescribedAggregate(AggregateRoot):
    """Aggregate with a user-facing name and description"""

    name: str
    description: str = ""

    def update_details(self, name: str, description: Optional[str] = None) -> None:
        if not name or not name.strip():
            raise DomainError("INVALID_NAME", f"{self.aggregate_type.capitalize()} name is required")
        description = self.description if description is None else description
        self.name = name
        self.description = description
        self._record("DetailsUpdated", {"name": name, "description": description})

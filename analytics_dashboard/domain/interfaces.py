"""
Collaborator Interfaces

Abstract repositories, the metric data store, the event bus and the report
generation hooks. SQLAlchemy, Kafka and in-memory implementations live in the
infrastructure packages.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .aggregation import AggregationResult
from .dashboard import Dashboard
from .events import DomainEvent
from .metric import AggregationType, Metric, MetricCategory, MetricData, MetricType
from .report import Report, ReportStatus
from .values import DashboardID, MetricID, ReportID, TimeRange, UserID


EventHandler = Callable[[DomainEvent], Awaitable[None]]


class DashboardRepository(ABC):
    @abstractmethod
    async def save(self, dashboard: Dashboard) -> None: ...

    @abstractmethod
    async def find_by_id(self, dashboard_id: DashboardID) -> Dashboard:
        """Raises NotFoundError when absent."""

    @abstractmethod
    async def find_by_owner(self, owner_id: UserID) -> List[Dashboard]: ...

    @abstractmethod
    async def find_public(self) -> List[Dashboard]: ...

    @abstractmethod
    async def update(self, dashboard: Dashboard) -> None:
        """Compare-and-swap on the version read at load time."""

    @abstractmethod
    async def delete(self, dashboard_id: DashboardID) -> None: ...


class MetricRepository(ABC):
    @abstractmethod
    async def save(self, metric: Metric) -> None: ...

    @abstractmethod
    async def find_by_id(self, metric_id: MetricID) -> Metric: ...

    @abstractmethod
    async def find_by_category(self, category: MetricCategory) -> List[Metric]: ...

    @abstractmethod
    async def find_by_type(self, metric_type: MetricType) -> List[Metric]: ...

    @abstractmethod
    async def find_all(self) -> List[Metric]: ...

    @abstractmethod
    async def update(self, metric: Metric) -> None: ...

    @abstractmethod
    async def delete(self, metric_id: MetricID) -> None: ...


class ReportRepository(ABC):
    @abstractmethod
    async def save(self, report: Report) -> None: ...

    @abstractmethod
    async def find_by_id(self, report_id: ReportID) -> Report: ...

    @abstractmethod
    async def find_by_owner(self, owner_id: UserID) -> List[Report]: ...

    @abstractmethod
    async def find_by_status(self, status: ReportStatus) -> List[Report]: ...

    @abstractmethod
    async def find_scheduled(self, before: datetime) -> List[Report]:
        """Reports with a schedule whose next run is at or before `before`."""

    @abstractmethod
    async def update(self, report: Report) -> None: ...

    @abstractmethod
    async def delete(self, report_id: ReportID) -> None: ...


class MetricDataStore(ABC):
    @abstractmethod
    async def save(self, data: MetricData) -> None: ...

    @abstractmethod
    async def save_batch(self, data: List[MetricData]) -> None: ...

    @abstractmethod
    async def find_by_metric_id(
        self, metric_id: MetricID, time_range: Optional[TimeRange] = None
    ) -> List[MetricData]: ...

    @abstractmethod
    async def find_by_metric_id_and_dimensions(
        self,
        metric_id: MetricID,
        dimensions: Dict[str, Any],
        time_range: Optional[TimeRange] = None,
    ) -> List[MetricData]: ...

    @abstractmethod
    async def aggregate_by_metric_id(
        self,
        metric_id: MetricID,
        aggregation: AggregationType,
        time_range: Optional[TimeRange] = None,
        dimensions: Optional[Dict[str, Any]] = None,
    ) -> AggregationResult: ...

    @abstractmethod
    async def delete_older_than(self, before: datetime) -> int:
        """Delete samples strictly older than `before`; returns the count removed."""


class EventBus(ABC):
    @abstractmethod
    async def publish(self, event: DomainEvent) -> None: ...

    @abstractmethod
    async def subscribe(self, event_type: str, handler: EventHandler) -> None: ...

    async def publish_all(self, events: List[DomainEvent]) -> None:
        for event in events:
            await self.publish(event)


class ReportGenerator(ABC):
    @abstractmethod
    async def generate(self, report: Report, data: Dict[str, Any]) -> bytes: ...


class ReportNotifier(ABC):
    @abstractmethod
    async def notify(self, report: Report, recipients: List[str], content: bytes) -> None: ...

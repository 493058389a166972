"""
Command Handlers

Each handler loads or constructs an aggregate, applies one mutation,
persists it, commits, and then drains and publishes the pending events.
Publishing is best-effort; a failed publish never undoes a committed
change.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_dashboard.database.repositories import (
    SQLDashboardRepository,
    SQLMetricDataStore,
    SQLMetricRepository,
    SQLReportRepository,
)
from analytics_dashboard.domain.dashboard import Dashboard, DashboardLayout, DataSource, Widget
from analytics_dashboard.domain.errors import DomainError, RepositoryError
from analytics_dashboard.domain.events import AggregateRoot
from analytics_dashboard.domain.interfaces import (
    DashboardRepository,
    EventBus,
    MetricDataStore,
    MetricRepository,
    ReportRepository,
)
from analytics_dashboard.domain.metric import (
    Dimension,
    Metric,
    MetricCalculation,
    MetricCategory,
    MetricData,
    MetricType,
)
from analytics_dashboard.domain.policy import DEFAULT_POLICY, DomainPolicy
from analytics_dashboard.domain.report import (
    Report,
    ReportSchedule,
    ReportStatus,
    ReportTemplate,
    ReportType,
)
from analytics_dashboard.domain.values import (
    DashboardID,
    MetricID,
    ReportID,
    UserID,
    WidgetID,
)
from analytics_dashboard.messaging.event_bus import publish_events
from analytics_dashboard.serving.cache import CacheManager

logger = structlog.get_logger(__name__)

MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 1000
MAX_UNIT_LENGTH = 50

A = TypeVar("A", bound=AggregateRoot)


def validate_details(kind: str, name: str, description: str) -> None:
    if not name or not name.strip():
        raise DomainError("INVALID_NAME", f"{kind} name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise DomainError(
            "INVALID_NAME", f"{kind} name must be less than {MAX_NAME_LENGTH} characters"
        )
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise DomainError(
            "INVALID_DESCRIPTION",
            f"{kind} description must be less than {MAX_DESCRIPTION_LENGTH} characters",
        )


def _parse_enum(enum_class, value: Any, code: str, label: str):
    try:
        return enum_class(value)
    except ValueError:
        raise DomainError(code, f"Invalid {label}", str(value)) from None


async def commit_session(session: AsyncSession) -> None:
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        raise RepositoryError("Failed to commit transaction") from exc


class UnitOfWork:
    """Commits the session and flushes pending domain events to the bus"""

    def __init__(self, session: AsyncSession, event_bus: EventBus):
        self.session = session
        self.event_bus = event_bus

    async def commit(self) -> None:
        await commit_session(self.session)

    async def complete(self, *aggregates: AggregateRoot) -> None:
        await self.commit()
        for aggregate in aggregates:
            events = aggregate.pull_events()
            if events:
                await publish_events(self.event_bus, events)


class _AggregateCommands(Generic[A]):
    kind: str
    repository: Any

    def __init__(self, session: AsyncSession, event_bus: EventBus, policy: Optional[DomainPolicy] = None):
        self.policy = policy or DEFAULT_POLICY
        self.uow = UnitOfWork(session, event_bus)

    async def _create(self, aggregate: A) -> A:
        await self.repository.save(aggregate)
        await self.uow.complete(aggregate)
        logger.info(
            "Aggregate created",
            aggregate_type=aggregate.aggregate_type,
            id=aggregate.aggregate_id,
        )
        return aggregate

    async def _mutate(self, aggregate_id: str, action: Callable[[A], Any]) -> A:
        aggregate = await self.repository.find_by_id(aggregate_id)
        action(aggregate)
        await self.repository.update(aggregate)
        await self.uow.complete(aggregate)
        return aggregate

    async def update_details(self, aggregate_id: str, name: str, description: Optional[str] = None) -> A:
        validate_details(self.kind, name, description or "")
        return await self._mutate(aggregate_id, lambda a: a.update_details(name, description))

    async def delete(self, aggregate_id: str) -> None:
        await self.repository.delete(aggregate_id)
        await self.uow.commit()
        logger.info("Aggregate deleted", kind=self.kind, id=aggregate_id)


class DashboardCommands(_AggregateCommands[Dashboard]):
    kind = "Dashboard"

    def __init__(
        self,
        session: AsyncSession,
        event_bus: EventBus,
        policy: Optional[DomainPolicy] = None,
        repository: Optional[DashboardRepository] = None,
    ):
        super().__init__(session, event_bus, policy)
        self.repository = repository or SQLDashboardRepository(session, self.policy)

    async def create(self, name: str, description: str, owner_id: str) -> Dashboard:
        validate_details("Dashboard", name, description)
        if not owner_id:
            raise DomainError("INVALID_OWNER", "Owner ID is required")
        dashboard = Dashboard.create(name, description, UserID(owner_id), policy=self.policy)
        return await self._create(dashboard)

    async def add_widget(self, dashboard_id: DashboardID, widget: Widget) -> Dashboard:
        return await self._mutate(dashboard_id, lambda d: d.add_widget(widget))

    async def update_widget(self, dashboard_id: DashboardID, widget: Widget) -> Dashboard:
        return await self._mutate(dashboard_id, lambda d: d.update_widget(widget))

    async def remove_widget(self, dashboard_id: DashboardID, widget_id: WidgetID) -> Dashboard:
        return await self._mutate(dashboard_id, lambda d: d.remove_widget(widget_id))

    async def update_layout(self, dashboard_id: DashboardID, layout: DashboardLayout) -> Dashboard:
        return await self._mutate(dashboard_id, lambda d: d.update_layout(layout))

    async def set_public(self, dashboard_id: DashboardID, is_public: bool) -> Dashboard:
        return await self._mutate(dashboard_id, lambda d: d.set_public(is_public))

    async def set_refresh_interval(self, dashboard_id: DashboardID, interval: int) -> Dashboard:
        return await self._mutate(dashboard_id, lambda d: d.set_refresh_interval(interval))


class MetricCommands(_AggregateCommands[Metric]):
    kind = "Metric"

    def __init__(
        self,
        session: AsyncSession,
        event_bus: EventBus,
        policy: Optional[DomainPolicy] = None,
        repository: Optional[MetricRepository] = None,
    ):
        super().__init__(session, event_bus, policy)
        self.repository = repository or SQLMetricRepository(session, self.policy)

    async def create(
        self,
        name: str,
        description: str,
        metric_type: Any,
        category: Any,
        unit: str = "",
    ) -> Metric:
        validate_details("Metric", name, description)
        metric_type = _parse_enum(MetricType, metric_type, "INVALID_TYPE", "metric type")
        category = _parse_enum(MetricCategory, category, "INVALID_CATEGORY", "metric category")
        if len(unit) > MAX_UNIT_LENGTH:
            raise DomainError("INVALID_UNIT", f"Unit must be less than {MAX_UNIT_LENGTH} characters")
        metric = Metric.create(name, description, metric_type, category, policy=self.policy)
        if unit:
            # Initial unit is part of construction, not a separate change
            metric.unit = unit
        return await self._create(metric)

    async def set_unit(self, metric_id: MetricID, unit: str) -> Metric:
        if len(unit) > MAX_UNIT_LENGTH:
            raise DomainError("INVALID_UNIT", f"Unit must be less than {MAX_UNIT_LENGTH} characters")
        return await self._mutate(metric_id, lambda m: m.set_unit(unit))

    async def set_aggregation(self, metric_id: MetricID, aggregation: Any) -> Metric:
        return await self._mutate(metric_id, lambda m: m.set_aggregation(aggregation))

    async def set_data_source(self, metric_id: MetricID, data_source: DataSource) -> Metric:
        return await self._mutate(metric_id, lambda m: m.set_data_source(data_source))

    async def add_dimension(self, metric_id: MetricID, dimension: Dimension) -> Metric:
        return await self._mutate(metric_id, lambda m: m.add_dimension(dimension))

    async def remove_dimension(self, metric_id: MetricID, name: str) -> Metric:
        return await self._mutate(metric_id, lambda m: m.remove_dimension(name))

    async def set_calculation(self, metric_id: MetricID, calculation: MetricCalculation) -> Metric:
        return await self._mutate(metric_id, lambda m: m.set_calculation(calculation))

    async def add_filter(self, metric_id: MetricID, key: str, value: Any) -> Metric:
        return await self._mutate(metric_id, lambda m: m.add_filter(key, value))

    async def remove_filter(self, metric_id: MetricID, key: str) -> Metric:
        return await self._mutate(metric_id, lambda m: m.remove_filter(key))


class ReportCommands(_AggregateCommands[Report]):
    kind = "Report"

    def __init__(
        self,
        session: AsyncSession,
        event_bus: EventBus,
        policy: Optional[DomainPolicy] = None,
        repository: Optional[ReportRepository] = None,
    ):
        super().__init__(session, event_bus, policy)
        self.repository = repository or SQLReportRepository(session, self.policy)

    async def create(self, name: str, description: str, report_type: Any, owner_id: str) -> Report:
        validate_details("Report", name, description)
        report_type = _parse_enum(ReportType, report_type, "INVALID_TYPE", "report type")
        if not owner_id:
            raise DomainError("INVALID_OWNER", "Owner ID is required")
        report = Report.create(name, description, report_type, UserID(owner_id), policy=self.policy)
        return await self._create(report)

    async def set_schedule(self, report_id: ReportID, schedule: Optional[ReportSchedule]) -> Report:
        return await self._mutate(report_id, lambda r: r.set_schedule(schedule))

    async def set_output_format(self, report_id: ReportID, output_format: Any) -> Report:
        return await self._mutate(report_id, lambda r: r.set_output_format(output_format))

    async def set_template(self, report_id: ReportID, template: ReportTemplate) -> Report:
        return await self._mutate(report_id, lambda r: r.set_template(template))

    async def set_parameters(self, report_id: ReportID, parameters: Dict[str, Any]) -> Report:
        return await self._mutate(report_id, lambda r: r.set_parameters(parameters))

    async def add_recipient(self, report_id: ReportID, email: str) -> Report:
        return await self._mutate(report_id, lambda r: r.add_recipient(email))

    async def remove_recipient(self, report_id: ReportID, email: str) -> Report:
        return await self._mutate(report_id, lambda r: r.remove_recipient(email))

    async def set_status(self, report_id: ReportID, status: Any) -> Report:
        status = _parse_enum(ReportStatus, status, "INVALID_STATUS", "report status")
        return await self._mutate(report_id, lambda r: r.set_status(status))

    async def mark_as_generated(self, report_id: ReportID) -> Report:
        return await self._mutate(report_id, lambda r: r.mark_as_generated())


class MetricDataCommands:
    """Sample ingestion and retention"""

    def __init__(
        self,
        session: AsyncSession,
        cache: Optional[CacheManager] = None,
        metrics: Optional[MetricRepository] = None,
        store: Optional[MetricDataStore] = None,
    ):
        self.session = session
        self.cache = cache
        self.metrics = metrics or SQLMetricRepository(session)
        self.store = store or SQLMetricDataStore(session)

    async def ingest(self, metric_id: MetricID, samples: List[MetricData]) -> int:
        # Raises NotFoundError for unknown metrics
        await self.metrics.find_by_id(metric_id)
        await self.store.save_batch(samples)
        await commit_session(self.session)
        await self._invalidate(f"{metric_id}:")
        logger.info("Metric data ingested", metric_id=metric_id, count=len(samples))
        return len(samples)

    async def purge_older_than(self, before: datetime) -> int:
        deleted = await self.store.delete_older_than(before)
        await commit_session(self.session)
        await self._invalidate("")
        return deleted

    async def _invalidate(self, prefix: str) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.invalidate_prefix(prefix)
        except Exception as e:
            logger.warning("Aggregation cache invalidation failed", prefix=prefix, error=str(e))

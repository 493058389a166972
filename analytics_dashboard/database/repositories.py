"""
SQLAlchemy Repositories

Async implementations of the domain repository interfaces. Aggregates are
persisted as JSON documents; updates are compare-and-swap on the version
the aggregate was loaded with:

    UPDATE ... WHERE id = :id AND version = :persisted_version

Zero affected rows means the row is gone (NotFoundError) or another writer
got there first (ConcurrencyConflictError). Driver failures are re-raised
as RepositoryError.

Repositories flush but never commit; the session owner decides when the
unit of work ends.
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_dashboard.database.models import (
    DashboardRecord,
    MetricDataRecord,
    MetricRecord,
    ReportRecord,
)
from analytics_dashboard.domain.aggregation import (
    AggregationResult,
    aggregate,
    filter_by_dimensions,
)
from analytics_dashboard.domain.dashboard import Dashboard
from analytics_dashboard.domain.errors import (
    ConcurrencyConflictError,
    NotFoundError,
    RepositoryError,
)
from analytics_dashboard.domain.events import AggregateRoot
from analytics_dashboard.domain.interfaces import (
    DashboardRepository,
    MetricDataStore,
    MetricRepository,
    ReportRepository,
)
from analytics_dashboard.domain.metric import (
    AggregationType,
    Metric,
    MetricCategory,
    MetricData,
    MetricType,
)
from analytics_dashboard.domain.policy import DEFAULT_POLICY, DomainPolicy
from analytics_dashboard.domain.report import Report, ReportStatus
from analytics_dashboard.domain.values import MetricID, TimeRange, ensure_utc

logger = structlog.get_logger(__name__)

A = TypeVar("A", bound=AggregateRoot)


class _DocumentRepository(Generic[A]):
    """Shared load/save/CAS-update/delete over a document table"""

    model: Type[Any]
    aggregate_class: Type[A]

    def __init__(self, session: AsyncSession, policy: Optional[DomainPolicy] = None):
        self.session = session
        self.policy = policy or DEFAULT_POLICY

    @property
    def resource(self) -> str:
        return self.aggregate_class.aggregate_type

    def _columns(self, aggregate: A) -> Dict[str, Any]:
        """Indexed scalar columns derived from the aggregate"""
        return {}

    def _to_aggregate(self, record: Any) -> A:
        instance = self.aggregate_class.from_dict(record.document, policy=self.policy)
        instance.mark_persisted()
        return instance

    async def _execute(self, statement):
        try:
            return await self.session.execute(statement)
        except SQLAlchemyError as exc:
            logger.error(
                "Repository statement failed",
                resource=self.resource,
                error=str(exc),
            )
            raise RepositoryError(f"{self.resource} storage failure") from exc

    async def _find_many(self, *criteria) -> List[A]:
        statement = (
            select(self.model)
            .where(*criteria)
            .order_by(self.model.created_at)
            .execution_options(populate_existing=True)
        )
        result = await self._execute(statement)
        return [self._to_aggregate(record) for record in result.scalars().all()]

    async def save(self, aggregate: A) -> None:
        record = self.model(
            id=aggregate.aggregate_id,
            version=aggregate.version,
            document=aggregate.to_dict(),
            created_at=ensure_utc(aggregate.created_at),
            updated_at=ensure_utc(aggregate.updated_at),
            **self._columns(aggregate),
        )
        self.session.add(record)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Failed to save {self.resource} {aggregate.aggregate_id}") from exc
        aggregate.mark_persisted()
        logger.debug("Aggregate saved", resource=self.resource, id=aggregate.aggregate_id)

    async def find_by_id(self, aggregate_id: str) -> A:
        result = await self._execute(
            select(self.model)
            .where(self.model.id == aggregate_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError(self.resource, aggregate_id)
        return self._to_aggregate(record)

    async def update(self, aggregate: A) -> None:
        expected = aggregate.persisted_version
        if expected is None:
            expected = aggregate.version
        statement = (
            update(self.model)
            .where(self.model.id == aggregate.aggregate_id, self.model.version == expected)
            .values(
                version=aggregate.version,
                document=aggregate.to_dict(),
                updated_at=ensure_utc(aggregate.updated_at),
                **self._columns(aggregate),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(statement)
        if result.rowcount == 0:
            exists = await self._execute(
                select(self.model.id).where(self.model.id == aggregate.aggregate_id)
            )
            if exists.scalar_one_or_none() is None:
                raise NotFoundError(self.resource, aggregate.aggregate_id)
            logger.warning(
                "Concurrent modification detected",
                resource=self.resource,
                id=aggregate.aggregate_id,
                expected_version=expected,
            )
            raise ConcurrencyConflictError(self.resource, aggregate.aggregate_id, expected)
        aggregate.mark_persisted()

    async def delete(self, aggregate_id: str) -> None:
        result = await self._execute(
            delete(self.model)
            .where(self.model.id == aggregate_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(self.resource, aggregate_id)


class SQLDashboardRepository(_DocumentRepository[Dashboard], DashboardRepository):
    model = DashboardRecord
    aggregate_class = Dashboard

    def _columns(self, aggregate: Dashboard) -> Dict[str, Any]:
        return {
            "owner_id": aggregate.owner_id,
            "name": aggregate.name,
            "is_public": aggregate.is_public,
        }

    async def find_by_owner(self, owner_id: str) -> List[Dashboard]:
        return await self._find_many(DashboardRecord.owner_id == owner_id)

    async def find_public(self) -> List[Dashboard]:
        return await self._find_many(DashboardRecord.is_public.is_(True))


class SQLMetricRepository(_DocumentRepository[Metric], MetricRepository):
    model = MetricRecord
    aggregate_class = Metric

    def _columns(self, aggregate: Metric) -> Dict[str, Any]:
        return {
            "name": aggregate.name,
            "category": aggregate.category.value,
            "type": aggregate.type.value,
        }

    async def find_by_category(self, category: MetricCategory) -> List[Metric]:
        return await self._find_many(MetricRecord.category == MetricCategory(category).value)

    async def find_by_type(self, metric_type: MetricType) -> List[Metric]:
        return await self._find_many(MetricRecord.type == MetricType(metric_type).value)

    async def find_all(self) -> List[Metric]:
        return await self._find_many()


class SQLReportRepository(_DocumentRepository[Report], ReportRepository):
    model = ReportRecord
    aggregate_class = Report

    def _columns(self, aggregate: Report) -> Dict[str, Any]:
        return {
            "owner_id": aggregate.owner_id,
            "name": aggregate.name,
            "status": aggregate.status.value,
            "has_schedule": aggregate.schedule is not None,
            "next_run_at": ensure_utc(aggregate.next_run_at) if aggregate.next_run_at else None,
        }

    async def find_by_owner(self, owner_id: str) -> List[Report]:
        return await self._find_many(ReportRecord.owner_id == owner_id)

    async def find_by_status(self, status: ReportStatus) -> List[Report]:
        return await self._find_many(ReportRecord.status == ReportStatus(status).value)

    async def find_scheduled(self, before: datetime) -> List[Report]:
        return await self._find_many(
            ReportRecord.has_schedule.is_(True),
            ReportRecord.next_run_at.is_not(None),
            ReportRecord.next_run_at <= ensure_utc(before),
        )


class SQLMetricDataStore(MetricDataStore):
    """Sample storage; aggregation reuses the in-process polars engine"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_record(data: MetricData) -> MetricDataRecord:
        return MetricDataRecord(
            id=data.id,
            metric_id=data.metric_id,
            timestamp=ensure_utc(data.timestamp),
            value=float(data.value),
            dimensions=dict(data.dimensions),
            labels=dict(data.labels),
        )

    @staticmethod
    def _to_sample(record: MetricDataRecord) -> MetricData:
        return MetricData(
            id=record.id,
            metric_id=MetricID(record.metric_id),
            timestamp=ensure_utc(record.timestamp),
            value=record.value,
            dimensions=dict(record.dimensions or {}),
            labels=dict(record.labels or {}),
        )

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to store metric data") from exc

    async def save(self, data: MetricData) -> None:
        self.session.add(self._to_record(data))
        await self._flush()

    async def save_batch(self, data: List[MetricData]) -> None:
        if not data:
            return
        self.session.add_all([self._to_record(d) for d in data])
        await self._flush()
        logger.debug("Metric data batch stored", count=len(data), metric_id=data[0].metric_id)

    async def find_by_metric_id(
        self, metric_id: MetricID, time_range: Optional[TimeRange] = None
    ) -> List[MetricData]:
        statement = select(MetricDataRecord).where(MetricDataRecord.metric_id == metric_id)
        if time_range is not None:
            statement = statement.where(
                MetricDataRecord.timestamp >= ensure_utc(time_range.start),
                MetricDataRecord.timestamp <= ensure_utc(time_range.end),
            )
        statement = statement.order_by(MetricDataRecord.timestamp)
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to load metric data") from exc
        return [self._to_sample(r) for r in result.scalars().all()]

    async def find_by_metric_id_and_dimensions(
        self,
        metric_id: MetricID,
        dimensions: Dict[str, Any],
        time_range: Optional[TimeRange] = None,
    ) -> List[MetricData]:
        # JSON containment differs between JSONB and sqlite JSON, so the
        # dimension predicate runs in Python over the time-windowed rows
        samples = await self.find_by_metric_id(metric_id, time_range)
        return filter_by_dimensions(samples, dimensions)

    async def aggregate_by_metric_id(
        self,
        metric_id: MetricID,
        aggregation: AggregationType,
        time_range: Optional[TimeRange] = None,
        dimensions: Optional[Dict[str, Any]] = None,
    ) -> AggregationResult:
        samples = await self.find_by_metric_id_and_dimensions(metric_id, dimensions or {}, time_range)
        return aggregate(samples, aggregation, time_range)

    async def delete_older_than(self, before: datetime) -> int:
        statement = (
            delete(MetricDataRecord)
            .where(MetricDataRecord.timestamp < ensure_utc(before))
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as exc:
            raise RepositoryError("Failed to purge metric data") from exc
        logger.info("Purged metric data", before=before.isoformat(), deleted=result.rowcount)
        return result.rowcount

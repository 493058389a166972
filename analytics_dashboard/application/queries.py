"""
Query Handlers

Read-side handlers. They load aggregates or samples and return them
unmodified. Aggregation results are cached in Redis when a cache is
available; cache failures fall back to computing the result.
"""

import json
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from prometheus_client import Histogram
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_dashboard.database.repositories import (
    SQLDashboardRepository,
    SQLMetricDataStore,
    SQLMetricRepository,
    SQLReportRepository,
)
from analytics_dashboard.domain.aggregation import AggregationResult
from analytics_dashboard.domain.dashboard import Dashboard
from analytics_dashboard.domain.errors import DomainError
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
from analytics_dashboard.domain.policy import DomainPolicy
from analytics_dashboard.domain.report import Report, ReportStatus
from analytics_dashboard.domain.values import (
    DashboardID,
    MetricID,
    ReportID,
    TimeRange,
    format_datetime,
)
from analytics_dashboard.serving.cache import CacheManager

logger = structlog.get_logger(__name__)


AGGREGATION_DURATION = Histogram(
    "analytics_aggregation_duration_seconds",
    "Time spent computing metric aggregations",
    ["aggregation", "cached"],
)


def validate_time_range(time_range: Optional[TimeRange]) -> None:
    if time_range is not None and not time_range.is_valid():
        raise DomainError(
            "INVALID_TIME_RANGE",
            "Time range start must be before end",
            f"start={format_datetime(time_range.start)} end={format_datetime(time_range.end)}",
        )


def _parse_filter(enum_class, value: Any, code: str, label: str):
    try:
        return enum_class(value)
    except ValueError:
        raise DomainError(code, f"Invalid {label}", str(value)) from None


class DashboardQueries:
    def __init__(
        self,
        session: AsyncSession,
        policy: Optional[DomainPolicy] = None,
        repository: Optional[DashboardRepository] = None,
    ):
        self.repository = repository or SQLDashboardRepository(session, policy)

    async def get(self, dashboard_id: DashboardID) -> Dashboard:
        if not dashboard_id:
            raise DomainError("INVALID_ID", "Dashboard ID is required")
        return await self.repository.find_by_id(dashboard_id)

    async def list(self, owner_id: Optional[str] = None, public: Optional[bool] = None) -> List[Dashboard]:
        """
        Dashboards by owner, public dashboards, or both intersected.

        At least one of `owner_id` or `public=True` is required.
        """
        if owner_id:
            dashboards = await self.repository.find_by_owner(owner_id)
            if public is not None:
                dashboards = [d for d in dashboards if d.is_public == public]
            return dashboards
        if public:
            return await self.repository.find_public()
        raise DomainError("INVALID_OWNER", "Owner ID is required unless listing public dashboards")


class MetricQueries:
    def __init__(
        self,
        session: AsyncSession,
        policy: Optional[DomainPolicy] = None,
        repository: Optional[MetricRepository] = None,
    ):
        self.repository = repository or SQLMetricRepository(session, policy)

    async def get(self, metric_id: MetricID) -> Metric:
        return await self.repository.find_by_id(metric_id)

    async def list(self, category: Optional[str] = None, metric_type: Optional[str] = None) -> List[Metric]:
        if category:
            category = _parse_filter(MetricCategory, category, "INVALID_CATEGORY", "metric category")
        if metric_type:
            metric_type = _parse_filter(MetricType, metric_type, "INVALID_TYPE", "metric type")

        if category:
            metrics = await self.repository.find_by_category(category)
            if metric_type:
                metrics = [m for m in metrics if m.type == metric_type]
            return metrics
        if metric_type:
            return await self.repository.find_by_type(metric_type)
        return await self.repository.find_all()


class ReportQueries:
    def __init__(
        self,
        session: AsyncSession,
        policy: Optional[DomainPolicy] = None,
        repository: Optional[ReportRepository] = None,
    ):
        self.repository = repository or SQLReportRepository(session, policy)

    async def get(self, report_id: ReportID) -> Report:
        return await self.repository.find_by_id(report_id)

    async def list(self, owner_id: Optional[str] = None, status: Optional[str] = None) -> List[Report]:
        if status:
            status = _parse_filter(ReportStatus, status, "INVALID_STATUS", "report status")
        if owner_id:
            reports = await self.repository.find_by_owner(owner_id)
            if status:
                reports = [r for r in reports if r.status == status]
            return reports
        if status:
            return await self.repository.find_by_status(status)
        raise DomainError("INVALID_OWNER", "Owner ID or status is required")

    async def due(self, before: datetime) -> List[Report]:
        """Scheduled reports that are active and due at `before`"""
        scheduled = await self.repository.find_scheduled(before)
        return [r for r in scheduled if r.is_due(before)]


class MetricDataQueries:
    def __init__(
        self,
        session: AsyncSession,
        cache: Optional[CacheManager] = None,
        metrics: Optional[MetricRepository] = None,
        store: Optional[MetricDataStore] = None,
    ):
        self.cache = cache
        self.metrics = metrics or SQLMetricRepository(session)
        self.store = store or SQLMetricDataStore(session)

    async def find(self, metric_id: MetricID, time_range: Optional[TimeRange] = None) -> List[MetricData]:
        validate_time_range(time_range)
        await self.metrics.find_by_id(metric_id)
        return await self.store.find_by_metric_id(metric_id, time_range)

    async def search(
        self,
        metric_id: MetricID,
        dimensions: Dict[str, Any],
        time_range: Optional[TimeRange] = None,
    ) -> List[MetricData]:
        validate_time_range(time_range)
        await self.metrics.find_by_id(metric_id)
        return await self.store.find_by_metric_id_and_dimensions(metric_id, dimensions, time_range)

    async def aggregate(
        self,
        metric_id: MetricID,
        aggregation: Optional[Any] = None,
        time_range: Optional[TimeRange] = None,
        dimensions: Optional[Dict[str, Any]] = None,
    ) -> AggregationResult:
        """
        Aggregate a metric's samples.

        Without an explicit aggregation the metric's configured default is
        used; the metric's own filters are not applied to samples.
        """
        validate_time_range(time_range)
        metric = await self.metrics.find_by_id(metric_id)
        if aggregation is None:
            aggregation = metric.aggregation
        aggregation = _parse_filter(AggregationType, aggregation, "INVALID_AGGREGATION", "aggregation type")

        key = self._cache_key(metric_id, aggregation, time_range, dimensions)
        start = time.perf_counter()

        cached = await self._cache_get(key)
        if cached is not None:
            AGGREGATION_DURATION.labels(aggregation=aggregation.value, cached="true").observe(
                time.perf_counter() - start
            )
            return AggregationResult.from_dict(cached)

        result = await self.store.aggregate_by_metric_id(metric_id, aggregation, time_range, dimensions)
        AGGREGATION_DURATION.labels(aggregation=aggregation.value, cached="false").observe(
            time.perf_counter() - start
        )
        await self._cache_set(key, result.to_dict())
        return result

    @staticmethod
    def _cache_key(
        metric_id: MetricID,
        aggregation: AggregationType,
        time_range: Optional[TimeRange],
        dimensions: Optional[Dict[str, Any]],
    ) -> str:
        window = "all"
        if time_range is not None:
            window = f"{time_range.start.isoformat()}/{time_range.end.isoformat()}"
        dims = json.dumps(dimensions, sort_keys=True, default=str) if dimensions else ""
        return f"{metric_id}:{aggregation.value}:{window}:{dims}"

    async def _cache_get(self, key: str) -> Optional[Dict[str, Any]]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning("Aggregation cache read failed", key=key, error=str(e))
            return None

    async def _cache_set(self, key: str, value: Dict[str, Any]) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, value)
        except Exception as e:
            logger.warning("Aggregation cache write failed", key=key, error=str(e))

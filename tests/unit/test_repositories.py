"""
Unit Tests - SQLAlchemy Repositories
"""
from datetime import timedelta

import pytest

from analytics_dashboard.database.repositories import (
    SQLDashboardRepository,
    SQLMetricDataStore,
    SQLMetricRepository,
    SQLReportRepository,
)
from analytics_dashboard.domain.dashboard import Dashboard
from analytics_dashboard.domain.errors import ConcurrencyConflictError, NotFoundError
from analytics_dashboard.domain.metric import AggregationType, Metric, MetricCategory, MetricType
from analytics_dashboard.domain.report import Report, ReportSchedule, ReportStatus, ReportType, ScheduleType
from analytics_dashboard.domain.values import TimeRange


@pytest.fixture
def dashboards(test_db, policy) -> SQLDashboardRepository:
    return SQLDashboardRepository(test_db, policy)


@pytest.fixture
def reports(test_db, policy) -> SQLReportRepository:
    return SQLReportRepository(test_db, policy)


class TestDashboardRepository:
    """Tests for SQLDashboardRepository"""

    async def test_save_and_find(self, dashboards, policy):
        """Saved dashboards load back with their persisted version"""
        dashboard = Dashboard.create("Sales", "", "user-1", policy=policy)
        await dashboards.save(dashboard)

        loaded = await dashboards.find_by_id(dashboard.id)

        assert loaded.to_dict() == dashboard.to_dict()
        assert loaded.persisted_version == 1

    async def test_find_missing(self, dashboards):
        """Unknown ids raise NotFoundError"""
        with pytest.raises(NotFoundError):
            await dashboards.find_by_id("missing")

    async def test_update_bumps_stored_version(self, dashboards, policy):
        """A successful update stores the new version"""
        dashboard = Dashboard.create("Sales", "", "user-1", policy=policy)
        await dashboards.save(dashboard)

        dashboard.set_public(True)
        await dashboards.update(dashboard)

        loaded = await dashboards.find_by_id(dashboard.id)
        assert loaded.version == 2
        assert loaded.is_public is True

    async def test_concurrent_update_conflicts(self, dashboards, policy):
        """The second writer holding a stale version gets a conflict"""
        dashboard = Dashboard.create("Sales", "", "user-1", policy=policy)
        await dashboards.save(dashboard)

        first = await dashboards.find_by_id(dashboard.id)
        second = await dashboards.find_by_id(dashboard.id)

        first.set_public(True)
        await dashboards.update(first)

        second.set_refresh_interval(60)
        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await dashboards.update(second)

        assert exc_info.value.expected_version == 1
        stored = await dashboards.find_by_id(dashboard.id)
        assert stored.is_public is True
        assert stored.refresh_interval == 300

    async def test_update_deleted(self, dashboards, policy):
        """Updating a deleted aggregate raises NotFoundError"""
        dashboard = Dashboard.create("Sales", "", "user-1", policy=policy)
        await dashboards.save(dashboard)
        await dashboards.delete(dashboard.id)

        dashboard.set_public(True)
        with pytest.raises(NotFoundError):
            await dashboards.update(dashboard)

    async def test_delete_missing(self, dashboards):
        """Deleting an unknown id raises NotFoundError"""
        with pytest.raises(NotFoundError):
            await dashboards.delete("missing")

    async def test_find_by_owner_and_public(self, dashboards, policy):
        """Owner and visibility lookups use the indexed columns"""
        mine = Dashboard.create("Mine", "", "user-1", policy=policy)
        shared = Dashboard.create("Shared", "", "user-2", policy=policy)
        shared.set_public(True)
        await dashboards.save(mine)
        await dashboards.save(shared)

        assert [d.id for d in await dashboards.find_by_owner("user-1")] == [mine.id]
        assert [d.id for d in await dashboards.find_public()] == [shared.id]


class TestMetricRepository:
    """Tests for SQLMetricRepository"""

    async def test_find_by_category_and_type(self, test_db, policy):
        """Category and type filters match the stored columns"""
        repository = SQLMetricRepository(test_db, policy)
        revenue = Metric.create("Revenue", "", MetricType.COUNTER, MetricCategory.BUSINESS, policy=policy)
        latency = Metric.create("Latency", "", MetricType.GAUGE, MetricCategory.PERFORMANCE, policy=policy)
        await repository.save(revenue)
        await repository.save(latency)

        assert [m.id for m in await repository.find_by_category(MetricCategory.BUSINESS)] == [revenue.id]
        assert [m.id for m in await repository.find_by_type(MetricType.GAUGE)] == [latency.id]
        assert len(await repository.find_all()) == 2


class TestReportRepository:
    """Tests for SQLReportRepository"""

    async def test_find_scheduled(self, reports, policy, clock):
        """Only reports with a next run at or before the cutoff are returned"""
        hourly = Report.create("Hourly", "", ReportType.BUSINESS, "user-1", policy=policy)
        hourly.set_schedule(ReportSchedule(type=ScheduleType.HOURLY, interval=1))
        daily = Report.create("Daily", "", ReportType.BUSINESS, "user-1", policy=policy)
        daily.set_schedule(ReportSchedule(type=ScheduleType.DAILY, time="08:00"))
        unscheduled = Report.create("Adhoc", "", ReportType.CUSTOM, "user-1", policy=policy)
        for report in (hourly, daily, unscheduled):
            await reports.save(report)

        due = await reports.find_scheduled(clock() + timedelta(hours=1))

        assert [r.id for r in due] == [hourly.id]

    async def test_find_scheduled_skips_cleared_schedule(self, reports, policy, clock):
        """Reports whose schedule was removed are not returned"""
        report = Report.create("Hourly", "", ReportType.BUSINESS, "user-1", policy=policy)
        report.set_schedule(ReportSchedule(type=ScheduleType.HOURLY, interval=1))
        await reports.save(report)
        report.set_schedule(None)
        await reports.update(report)

        assert await reports.find_scheduled(clock() + timedelta(days=1)) == []

    async def test_find_by_status(self, reports, policy):
        """Status lookups follow status changes"""
        report = Report.create("KPIs", "", ReportType.BUSINESS, "user-1", policy=policy)
        await reports.save(report)
        report.set_status(ReportStatus.INACTIVE)
        await reports.update(report)

        assert await reports.find_by_status(ReportStatus.ACTIVE) == []
        assert [r.id for r in await reports.find_by_status(ReportStatus.INACTIVE)] == [report.id]


class TestMetricDataStore:
    """Tests for SQLMetricDataStore"""

    async def test_find_by_metric_id_in_range(self, test_db, samples):
        """Range lookups are inclusive and ordered by timestamp"""
        store = SQLMetricDataStore(test_db)
        await store.save_batch(list(reversed(samples)))

        window = TimeRange(start=samples[1].timestamp, end=samples[2].timestamp)
        found = await store.find_by_metric_id("metric-1", window)

        assert [s.value for s in found] == [20.0, 30.0]
        assert found[0].timestamp == samples[1].timestamp
        assert await store.find_by_metric_id("other") == []

    async def test_find_by_dimensions(self, test_db, samples):
        """Dimension search keeps samples matching every key"""
        store = SQLMetricDataStore(test_db)
        await store.save_batch(samples)

        found = await store.find_by_metric_id_and_dimensions("metric-1", {"region": "eu"})

        assert [s.value for s in found] == [10.0, 30.0]

    async def test_aggregate_by_metric_id(self, test_db, samples):
        """Stored samples aggregate with the polars engine"""
        store = SQLMetricDataStore(test_db)
        await store.save_batch(samples)

        result = await store.aggregate_by_metric_id("metric-1", AggregationType.SUM)
        eu = await store.aggregate_by_metric_id(
            "metric-1", AggregationType.AVG, dimensions={"region": "eu"}
        )

        assert result.value == 60.0
        assert eu.value == 20.0
        assert eu.count == 2

    async def test_delete_older_than(self, test_db, samples):
        """Purging is strict: samples at the cutoff stay"""
        store = SQLMetricDataStore(test_db)
        await store.save_batch(samples)

        deleted = await store.delete_older_than(samples[1].timestamp)

        assert deleted == 1
        assert [s.value for s in await store.find_by_metric_id("metric-1")] == [20.0, 30.0]

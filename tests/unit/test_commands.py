"""
Unit Tests - Command Handlers
"""
from datetime import timedelta

import pytest
from fakeredis import aioredis

from analytics_dashboard.application.commands import (
    DashboardCommands,
    MetricCommands,
    MetricDataCommands,
    ReportCommands,
)
from analytics_dashboard.domain.dashboard import Widget, WidgetPosition, WidgetSize, WidgetType
from analytics_dashboard.domain.errors import DomainError, EventBusError, NotFoundError
from analytics_dashboard.domain.interfaces import EventBus
from analytics_dashboard.domain.metric import Dimension, MetricData
from analytics_dashboard.domain.report import ReportSchedule, ScheduleType
from analytics_dashboard.serving.cache import CacheManager


class BrokenBus(EventBus):
    """Bus whose transport is down"""

    def __init__(self):
        self.attempts = 0

    async def publish(self, event):
        self.attempts += 1
        raise EventBusError("broker unavailable")

    async def subscribe(self, event_type, handler):
        pass


def widget(x=0, y=0) -> Widget:
    return Widget(
        type=WidgetType.TABLE,
        title="Orders",
        position=WidgetPosition(x, y),
        size=WidgetSize(1, 1),
    )


class TestDashboardCommands:
    """Tests for DashboardCommands"""

    async def test_create_persists_without_events(self, test_db, event_bus, policy):
        """Creating a dashboard stores it and publishes nothing"""
        commands = DashboardCommands(test_db, event_bus, policy)

        dashboard = await commands.create("Sales", "Overview", "user-1")

        stored = await commands.repository.find_by_id(dashboard.id)
        assert stored.name == "Sales"
        assert event_bus.published == []

    @pytest.mark.parametrize(
        "name,description,owner,code",
        [
            ("", "", "user-1", "INVALID_NAME"),
            ("x" * 256, "", "user-1", "INVALID_NAME"),
            ("Sales", "d" * 1001, "user-1", "INVALID_DESCRIPTION"),
            ("Sales", "", "", "INVALID_OWNER"),
        ],
    )
    async def test_create_validation(self, test_db, event_bus, policy, name, description, owner, code):
        """Create validates name, description and owner"""
        commands = DashboardCommands(test_db, event_bus, policy)

        with pytest.raises(DomainError) as exc_info:
            await commands.create(name, description, owner)
        assert exc_info.value.code == code

    async def test_mutation_publishes_after_commit(self, test_db, event_bus, policy):
        """Each mutation publishes exactly its own event"""
        commands = DashboardCommands(test_db, event_bus, policy)
        dashboard = await commands.create("Sales", "", "user-1")

        await commands.add_widget(dashboard.id, widget())
        updated = await commands.set_refresh_interval(dashboard.id, 60)

        assert [e.type for e in event_bus.published] == ["WidgetAdded", "RefreshIntervalChanged"]
        assert [e.version for e in event_bus.published] == [2, 3]
        assert updated.version == 3

    async def test_publish_failure_is_swallowed(self, test_db, policy):
        """A broken bus never undoes the committed change"""
        bus = BrokenBus()
        commands = DashboardCommands(test_db, bus, policy)
        dashboard = await commands.create("Sales", "", "user-1")

        result = await commands.set_public(dashboard.id, True)

        assert bus.attempts == 1
        assert result.pending_events == ()
        stored = await commands.repository.find_by_id(dashboard.id)
        assert stored.is_public is True
        assert stored.version == 2

    async def test_failed_mutation_publishes_nothing(self, test_db, event_bus, policy):
        """A rejected mutation is neither stored nor published"""
        commands = DashboardCommands(test_db, event_bus, policy)
        dashboard = await commands.create("Sales", "", "user-1")

        with pytest.raises(DomainError):
            await commands.add_widget(dashboard.id, widget(x=10))

        assert event_bus.published == []
        assert (await commands.repository.find_by_id(dashboard.id)).version == 1

    async def test_unknown_dashboard(self, test_db, event_bus, policy):
        """Commands against unknown ids raise NotFoundError"""
        commands = DashboardCommands(test_db, event_bus, policy)
        with pytest.raises(NotFoundError):
            await commands.set_public("missing", True)

    async def test_delete(self, test_db, event_bus, policy):
        """Deleted dashboards can no longer be loaded"""
        commands = DashboardCommands(test_db, event_bus, policy)
        dashboard = await commands.create("Sales", "", "user-1")

        await commands.delete(dashboard.id)

        with pytest.raises(NotFoundError):
            await commands.repository.find_by_id(dashboard.id)


class TestMetricCommands:
    """Tests for MetricCommands"""

    async def test_create_with_unit(self, test_db, event_bus, policy):
        """The initial unit is stored without an event"""
        commands = MetricCommands(test_db, event_bus, policy)

        metric = await commands.create("Revenue", "", "COUNTER", "BUSINESS", unit="USD")

        assert metric.unit == "USD"
        assert metric.version == 1
        assert event_bus.published == []

    @pytest.mark.parametrize(
        "metric_type,category,unit,code",
        [
            ("RATE", "BUSINESS", "", "INVALID_TYPE"),
            ("COUNTER", "FINANCE", "", "INVALID_CATEGORY"),
            ("COUNTER", "BUSINESS", "u" * 51, "INVALID_UNIT"),
        ],
    )
    async def test_create_validation(self, test_db, event_bus, policy, metric_type, category, unit, code):
        """Type, category and unit are validated"""
        commands = MetricCommands(test_db, event_bus, policy)

        with pytest.raises(DomainError) as exc_info:
            await commands.create("Revenue", "", metric_type, category, unit=unit)
        assert exc_info.value.code == code

    async def test_duplicate_dimension(self, test_db, event_bus, policy):
        """Duplicate dimensions are rejected through the handler"""
        commands = MetricCommands(test_db, event_bus, policy)
        metric = await commands.create("Revenue", "", "COUNTER", "BUSINESS")
        await commands.add_dimension(metric.id, Dimension(name="region"))

        with pytest.raises(DomainError) as exc_info:
            await commands.add_dimension(metric.id, Dimension(name="region"))

        assert exc_info.value.code == "DUPLICATE_DIMENSION"
        assert len((await commands.repository.find_by_id(metric.id)).dimensions) == 1

    async def test_remove_absent_filter(self, test_db, event_bus, policy):
        """Removing an absent filter succeeds without an event"""
        commands = MetricCommands(test_db, event_bus, policy)
        metric = await commands.create("Revenue", "", "COUNTER", "BUSINESS")

        result = await commands.remove_filter(metric.id, "missing")

        assert result.version == 1
        assert event_bus.published == []


class TestReportCommands:
    """Tests for ReportCommands"""

    async def test_schedule_and_generate(self, test_db, event_bus, policy, clock):
        """mark_as_generated moves the stored next run"""
        commands = ReportCommands(test_db, event_bus, policy)
        report = await commands.create("KPIs", "", "BUSINESS", "user-1")
        await commands.set_schedule(report.id, ReportSchedule(type=ScheduleType.HOURLY, interval=6))

        clock.advance(hours=1)
        generated = await commands.mark_as_generated(report.id)

        assert generated.next_run_at == clock() + timedelta(hours=6)
        assert [e.type for e in event_bus.published] == ["ScheduleUpdated", "ReportGenerated"]

    async def test_invalid_status(self, test_db, event_bus, policy):
        """Unknown statuses are rejected with INVALID_STATUS"""
        commands = ReportCommands(test_db, event_bus, policy)
        report = await commands.create("KPIs", "", "BUSINESS", "user-1")

        with pytest.raises(DomainError) as exc_info:
            await commands.set_status(report.id, "PAUSED")
        assert exc_info.value.code == "INVALID_STATUS"

    async def test_invalid_report_type(self, test_db, event_bus, policy):
        """Unknown report types are rejected with INVALID_TYPE"""
        commands = ReportCommands(test_db, event_bus, policy)
        with pytest.raises(DomainError) as exc_info:
            await commands.create("KPIs", "", "SALES", "user-1")
        assert exc_info.value.code == "INVALID_TYPE"


class TestMetricDataCommands:
    """Tests for ingestion and retention"""

    async def test_ingest_unknown_metric(self, test_db):
        """Samples for unknown metrics are rejected"""
        commands = MetricDataCommands(test_db)
        with pytest.raises(NotFoundError):
            await commands.ingest("missing", [])

    async def test_ingest_invalidates_cache(self, test_db, event_bus, policy, samples):
        """Ingestion drops cached aggregations for the metric only"""
        client = aioredis.FakeRedis(decode_responses=True)
        cache = CacheManager("agg", client=client)
        metric = await MetricCommands(test_db, event_bus, policy).create("Revenue", "", "COUNTER", "BUSINESS")
        await cache.set(f"{metric.id}:SUM:all:", {"value": 1})
        await cache.set("other:SUM:all:", {"value": 2})

        batch = [MetricData(metric_id=metric.id, timestamp=s.timestamp, value=s.value) for s in samples]
        count = await MetricDataCommands(test_db, cache=cache).ingest(metric.id, batch)

        assert count == 3
        assert await cache.get(f"{metric.id}:SUM:all:") is None
        assert await cache.get("other:SUM:all:") == {"value": 2}
        await client.aclose()

    async def test_purge(self, test_db, event_bus, policy, samples):
        """Purging deletes samples strictly older than the cutoff"""
        metric = await MetricCommands(test_db, event_bus, policy).create("Revenue", "", "COUNTER", "BUSINESS")
        batch = [MetricData(metric_id=metric.id, timestamp=s.timestamp, value=s.value) for s in samples]
        commands = MetricDataCommands(test_db)
        await commands.ingest(metric.id, batch)

        assert await commands.purge_older_than(samples[2].timestamp) == 2

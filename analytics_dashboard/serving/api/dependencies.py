"""
FastAPI Dependencies

Wires request-scoped sessions, the application event bus, the domain
policy and the optional aggregation cache into the handler classes.
"""

from datetime import datetime
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_dashboard.application.commands import (
    DashboardCommands,
    MetricCommands,
    MetricDataCommands,
    ReportCommands,
)
from analytics_dashboard.application.queries import (
    DashboardQueries,
    MetricDataQueries,
    MetricQueries,
    ReportQueries,
)
from analytics_dashboard.application.reporting import ReportGenerationService
from analytics_dashboard.config import get_settings
from analytics_dashboard.database.connection import get_db_dependency
from analytics_dashboard.domain.errors import DomainError
from analytics_dashboard.domain.interfaces import EventBus
from analytics_dashboard.domain.policy import DomainPolicy
from analytics_dashboard.domain.values import TimeRange, ensure_utc
from analytics_dashboard.serving.cache import CacheManager, aggregation_cache


@lru_cache()
def get_policy() -> DomainPolicy:
    return get_settings().domain.to_policy()


def get_event_bus(request: Request) -> EventBus:
    bus = getattr(request.app.state, "event_bus", None)
    if bus is None:
        raise RuntimeError("Event bus not initialized")
    return bus


def get_aggregation_cache() -> Optional[CacheManager]:
    return aggregation_cache()


def time_range_from(start: Optional[datetime], end: Optional[datetime]) -> Optional[TimeRange]:
    """Both bounds or neither; a half-open window is rejected"""
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise DomainError("INVALID_TIME_RANGE", "Both start and end are required")
    return TimeRange(start=ensure_utc(start), end=ensure_utc(end))


def dashboard_commands(
    db: AsyncSession = Depends(get_db_dependency),
    bus: EventBus = Depends(get_event_bus),
    policy: DomainPolicy = Depends(get_policy),
) -> DashboardCommands:
    return DashboardCommands(db, bus, policy)


def dashboard_queries(
    db: AsyncSession = Depends(get_db_dependency),
    policy: DomainPolicy = Depends(get_policy),
) -> DashboardQueries:
    return DashboardQueries(db, policy)


def metric_commands(
    db: AsyncSession = Depends(get_db_dependency),
    bus: EventBus = Depends(get_event_bus),
    policy: DomainPolicy = Depends(get_policy),
) -> MetricCommands:
    return MetricCommands(db, bus, policy)


def metric_queries(
    db: AsyncSession = Depends(get_db_dependency),
    policy: DomainPolicy = Depends(get_policy),
) -> MetricQueries:
    return MetricQueries(db, policy)


def metric_data_commands(
    db: AsyncSession = Depends(get_db_dependency),
    cache: Optional[CacheManager] = Depends(get_aggregation_cache),
) -> MetricDataCommands:
    return MetricDataCommands(db, cache=cache)


def metric_data_queries(
    db: AsyncSession = Depends(get_db_dependency),
    cache: Optional[CacheManager] = Depends(get_aggregation_cache),
) -> MetricDataQueries:
    return MetricDataQueries(db, cache=cache)


def report_commands(
    db: AsyncSession = Depends(get_db_dependency),
    bus: EventBus = Depends(get_event_bus),
    policy: DomainPolicy = Depends(get_policy),
) -> ReportCommands:
    return ReportCommands(db, bus, policy)


def report_queries(
    db: AsyncSession = Depends(get_db_dependency),
    policy: DomainPolicy = Depends(get_policy),
) -> ReportQueries:
    return ReportQueries(db, policy)


def report_generation(
    request: Request,
    db: AsyncSession = Depends(get_db_dependency),
    bus: EventBus = Depends(get_event_bus),
    policy: DomainPolicy = Depends(get_policy),
    cache: Optional[CacheManager] = Depends(get_aggregation_cache),
) -> ReportGenerationService:
    return ReportGenerationService(
        db,
        bus,
        policy,
        generator=getattr(request.app.state, "report_generator", None),
        notifier=getattr(request.app.state, "report_notifier", None),
        cache=cache,
    )

"""Domain model: aggregates, events, errors and the aggregation engine"""

from .aggregation import AggregationResult, aggregate, filter_by_dimensions, filter_by_time_range
from .dashboard import (
    Dashboard,
    DashboardLayout,
    DataSource,
    Widget,
    WidgetPosition,
    WidgetSize,
    WidgetType,
)
from .errors import (
    AnalyticsError,
    ConcurrencyConflictError,
    DomainError,
    EventBusError,
    NotFoundError,
    RepositoryError,
)
from .events import AggregateRoot, DomainEvent
from .metric import (
    AggregationType,
    CalculationCondition,
    Dimension,
    Metric,
    MetricCalculation,
    MetricCategory,
    MetricData,
    MetricType,
)
from .policy import DEFAULT_POLICY, DomainPolicy
from .report import (
    OutputFormat,
    Report,
    ReportSchedule,
    ReportSection,
    ReportStatus,
    ReportTemplate,
    ReportType,
    ScheduleType,
)
from .values import TimeRange

__all__ = [
    "AggregateRoot",
    "AggregationResult",
    "AggregationType",
    "AnalyticsError",
    "CalculationCondition",
    "ConcurrencyConflictError",
    "DEFAULT_POLICY",
    "Dashboard",
    "DashboardLayout",
    "DataSource",
    "Dimension",
    "DomainError",
    "DomainEvent",
    "DomainPolicy",
    "EventBusError",
    "Metric",
    "MetricCalculation",
    "MetricCategory",
    "MetricData",
    "MetricType",
    "NotFoundError",
    "OutputFormat",
    "Report",
    "ReportSchedule",
    "ReportSection",
    "ReportStatus",
    "ReportTemplate",
    "ReportType",
    "RepositoryError",
    "ScheduleType",
    "TimeRange",
    "Widget",
    "WidgetPosition",
    "WidgetSize",
    "WidgetType",
    "aggregate",
    "filter_by_dimensions",
    "filter_by_time_range",
]

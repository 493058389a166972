"""
Application Layer - command and query handlers
"""
from .commands import (
    DashboardCommands,
    MetricCommands,
    MetricDataCommands,
    ReportCommands,
)
from .queries import DashboardQueries, MetricDataQueries, MetricQueries, ReportQueries
from .reporting import JsonReportGenerator, LoggingReportNotifier, ReportGenerationService

__all__ = [
    "DashboardCommands",
    "MetricCommands",
    "MetricDataCommands",
    "ReportCommands",
    "DashboardQueries",
    "MetricDataQueries",
    "MetricQueries",
    "ReportQueries",
    "JsonReportGenerator",
    "LoggingReportNotifier",
    "ReportGenerationService",
]

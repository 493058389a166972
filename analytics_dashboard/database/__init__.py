"""
Database Module
"""
from .connection import (
    check_database_health,
    close_database,
    get_db,
    get_db_dependency,
    init_database,
)
from .models import Base
from .repositories import (
    SQLDashboardRepository,
    SQLMetricDataStore,
    SQLMetricRepository,
    SQLReportRepository,
)

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_db_dependency",
    "check_database_health",
    "Base",
    "SQLDashboardRepository",
    "SQLMetricDataStore",
    "SQLMetricRepository",
    "SQLReportRepository",
]

"""
API Routes Module
"""
from .health import router as health_router
from .dashboards import router as dashboards_router
from .metrics import router as metrics_router
from .metrics import metric_data_router
from .reports import router as reports_router

__all__ = [
    "health_router",
    "dashboards_router",
    "metrics_router",
    "metric_data_router",
    "reports_router",
]

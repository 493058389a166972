"""
FastAPI Application Factory

Creates and configures the main API application.
"""

from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from prometheus_client import make_asgi_app

from analytics_dashboard.config import get_settings
from analytics_dashboard.serving.api.errors import register_exception_handlers
from analytics_dashboard.serving.api.middleware import RequestLoggingMiddleware
from analytics_dashboard.serving.api.routes import (
    dashboards_router,
    health_router,
    metric_data_router,
    metrics_router,
    reports_router,
)

settings = get_settings()


def create_api_app(lifespan: Optional[Any] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Optional lifespan context manager owning startup and shutdown

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Analytics Dashboard API",
        description="Dashboards, metrics and scheduled reports",
        version=settings.version,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan,
    )

    # Add CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add compression
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(dashboards_router, prefix="/api/v1/dashboards", tags=["Dashboards"])
    app.include_router(metrics_router, prefix="/api/v1/metrics", tags=["Metrics"])
    app.include_router(metric_data_router, prefix="/api/v1/metric-data", tags=["Metrics"])
    app.include_router(reports_router, prefix="/api/v1/reports", tags=["Reports"])

    if settings.monitoring.enable_metrics:
        app.mount("/metrics", make_asgi_app())

    return app

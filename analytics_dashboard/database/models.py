"""
Database Models - Document Storage

Each aggregate is stored as its camelCase JSON document alongside the
scalar columns the repositories filter on. `version` is duplicated into its
own column so updates can compare-and-swap on it.

Tables:
- dashboards: Dashboard documents (owner, visibility)
- metrics: Metric documents (category, type)
- reports: Report documents (owner, status, next run)
- metric_data: Time-stamped metric samples
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# JSONB on PostgreSQL, plain JSON elsewhere (sqlite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class DashboardRecord(Base):
    __tablename__ = "dashboards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    document: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_dashboards_owner", "owner_id"),
        Index("ix_dashboards_public", "is_public"),
    )


class MetricRecord(Base):
    __tablename__ = "metrics"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    document: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_metrics_category", "category"),
        Index("ix_metrics_type", "type"),
    )


class ReportRecord(Base):
    __tablename__ = "reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    has_schedule: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    next_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    document: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_reports_owner", "owner_id"),
        Index("ix_reports_status", "status"),
        Index("ix_reports_next_run", "has_schedule", "next_run_at"),
    )


class MetricDataRecord(Base):
    __tablename__ = "metric_data"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    metric_id: Mapped[str] = mapped_column(String(36), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    dimensions: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, default=dict)
    labels: Mapped[Dict[str, str]] = mapped_column(JSONDocument, default=dict)

    __table_args__ = (
        Index("ix_metric_data_metric_time", "metric_id", "timestamp"),
        Index("ix_metric_data_timestamp", "timestamp"),
    )

"""
API Request Models

Request bodies use camelCase field names, matching the aggregate JSON.
Enum-valued fields the domain validates itself (aggregation, output format,
metric type, status) stay plain strings so the domain error codes reach the
client instead of a generic 422.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from analytics_dashboard.domain.dashboard import (
    DashboardLayout,
    DataSource,
    Widget,
    WidgetPosition,
    WidgetSize,
    WidgetType,
)
from analytics_dashboard.domain.metric import (
    CalculationCondition,
    Dimension,
    MetricCalculation,
    MetricData,
)
from analytics_dashboard.domain.report import (
    Margins,
    ReportLayout,
    ReportSchedule,
    ReportSection,
    ReportTemplate,
    ScheduleType,
)
from analytics_dashboard.domain.values import MetricID, WidgetID, ensure_utc


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# SHARED
# =============================================================================

class UpdateDetailsRequest(CamelModel):
    name: str
    description: Optional[str] = None


class DataSourceModel(CamelModel):
    type: str = ""
    endpoint: str = ""
    query: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)

    def to_domain(self) -> DataSource:
        return DataSource(
            type=self.type,
            endpoint=self.endpoint,
            query=self.query,
            parameters=dict(self.parameters),
        )


# =============================================================================
# DASHBOARDS
# =============================================================================

class CreateDashboardRequest(CamelModel):
    name: str
    description: str = ""
    owner_id: str


class PositionModel(CamelModel):
    x: int
    y: int


class SizeModel(CamelModel):
    width: int
    height: int


class WidgetRequest(CamelModel):
    type: WidgetType
    title: str = ""
    position: PositionModel
    size: SizeModel
    configuration: Dict[str, Any] = Field(default_factory=dict)
    data_source: DataSourceModel = Field(default_factory=DataSourceModel)
    refresh_interval: int = 300

    def to_domain(self, widget_id: Optional[str] = None) -> Widget:
        fields = dict(
            type=self.type,
            title=self.title,
            position=WidgetPosition(x=self.position.x, y=self.position.y),
            size=WidgetSize(width=self.size.width, height=self.size.height),
            configuration=dict(self.configuration),
            data_source=self.data_source.to_domain(),
            refresh_interval=self.refresh_interval,
        )
        if widget_id is not None:
            fields["id"] = WidgetID(widget_id)
        return Widget(**fields)


class LayoutRequest(CamelModel):
    columns: int
    rows: int
    grid_size: int = 12
    responsive: bool = True

    def to_domain(self) -> DashboardLayout:
        return DashboardLayout(
            columns=self.columns,
            rows=self.rows,
            grid_size=self.grid_size,
            responsive=self.responsive,
        )


class VisibilityRequest(CamelModel):
    is_public: bool


class RefreshIntervalRequest(CamelModel):
    refresh_interval: int


# =============================================================================
# METRICS
# =============================================================================

class CreateMetricRequest(CamelModel):
    name: str
    description: str = ""
    type: str
    category: str
    unit: str = ""


class AggregationRequest(CamelModel):
    aggregation: str


class UnitRequest(CamelModel):
    unit: str


class DimensionRequest(CamelModel):
    name: str
    type: str = "string"
    description: str = ""
    required: bool = False

    def to_domain(self) -> Dimension:
        return Dimension(
            name=self.name,
            type=self.type,
            description=self.description,
            required=self.required,
        )


class ConditionModel(CamelModel):
    field: str = ""
    operator: str = ""
    value: Any = None


class CalculationRequest(CamelModel):
    formula: str = ""
    variables: Dict[str, Any] = Field(default_factory=dict)
    conditions: List[ConditionModel] = Field(default_factory=list)

    def to_domain(self) -> MetricCalculation:
        return MetricCalculation(
            formula=self.formula,
            variables=dict(self.variables),
            conditions=[
                CalculationCondition(field=c.field, operator=c.operator, value=c.value)
                for c in self.conditions
            ],
        )


class FilterValueRequest(CamelModel):
    value: Any = None


class MetricDataPoint(CamelModel):
    timestamp: datetime
    value: float
    dimensions: Dict[str, Any] = Field(default_factory=dict)
    labels: Dict[str, str] = Field(default_factory=dict)

    def to_domain(self, metric_id: str) -> MetricData:
        return MetricData(
            metric_id=MetricID(metric_id),
            timestamp=ensure_utc(self.timestamp),
            value=self.value,
            dimensions=dict(self.dimensions),
            labels=dict(self.labels),
        )


class IngestRequest(CamelModel):
    data: List[MetricDataPoint]


class DimensionSearchRequest(CamelModel):
    dimensions: Dict[str, Any] = Field(default_factory=dict)
    start: Optional[datetime] = None
    end: Optional[datetime] = None


# =============================================================================
# REPORTS
# =============================================================================

class CreateReportRequest(CamelModel):
    name: str
    description: str = ""
    type: str
    owner_id: str


class ScheduleModel(CamelModel):
    type: ScheduleType
    interval: int = 0
    days: List[int] = Field(default_factory=list)
    time: str = ""
    timezone: str = "UTC"

    def to_domain(self) -> ReportSchedule:
        return ReportSchedule(
            type=self.type,
            interval=self.interval,
            days=list(self.days),
            time=self.time,
            timezone=self.timezone,
        )


class ScheduleRequest(CamelModel):
    schedule: Optional[ScheduleModel] = None


class OutputFormatRequest(CamelModel):
    output_format: str


class MarginsModel(CamelModel):
    top: float = 0.0
    bottom: float = 0.0
    left: float = 0.0
    right: float = 0.0


class ReportLayoutModel(CamelModel):
    orientation: str = "portrait"
    page_size: str = "A4"
    margins: MarginsModel = Field(default_factory=MarginsModel)


class SectionModel(CamelModel):
    id: str
    type: str
    title: str = ""
    content: Dict[str, Any] = Field(default_factory=dict)
    order: int = 0
    visible: bool = True


class TemplateRequest(CamelModel):
    id: str = ""
    name: str = ""
    description: str = ""
    layout: ReportLayoutModel = Field(default_factory=ReportLayoutModel)
    sections: List[SectionModel] = Field(default_factory=list)
    styles: Dict[str, Any] = Field(default_factory=dict)

    def to_domain(self) -> ReportTemplate:
        return ReportTemplate(
            id=self.id,
            name=self.name,
            description=self.description,
            layout=ReportLayout(
                orientation=self.layout.orientation,
                page_size=self.layout.page_size,
                margins=Margins(**self.layout.margins.model_dump()),
            ),
            sections=[ReportSection(**s.model_dump()) for s in self.sections],
            styles=dict(self.styles),
        )


class ParametersRequest(CamelModel):
    parameters: Dict[str, Any] = Field(default_factory=dict)


class RecipientRequest(CamelModel):
    email: str


class StatusRequest(CamelModel):
    status: str

"""
Metric API Endpoints

Metric definitions, sample ingestion, sample search and aggregation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from analytics_dashboard.application.commands import MetricCommands, MetricDataCommands
from analytics_dashboard.application.queries import MetricDataQueries, MetricQueries
from analytics_dashboard.domain.values import ensure_utc
from analytics_dashboard.serving.api.dependencies import (
    metric_commands,
    metric_data_commands,
    metric_data_queries,
    metric_queries,
    time_range_from,
)
from analytics_dashboard.serving.api.schemas import (
    AggregationRequest,
    CalculationRequest,
    CreateMetricRequest,
    DataSourceModel,
    DimensionRequest,
    DimensionSearchRequest,
    FilterValueRequest,
    IngestRequest,
    UnitRequest,
    UpdateDetailsRequest,
)

router = APIRouter()
metric_data_router = APIRouter()


# =============================================================================
# DEFINITIONS
# =============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_metric(
    body: CreateMetricRequest,
    commands: MetricCommands = Depends(metric_commands),
) -> Dict[str, Any]:
    metric = await commands.create(body.name, body.description, body.type, body.category, body.unit)
    return metric.to_dict()


@router.get("")
async def list_metrics(
    category: Optional[str] = None,
    metric_type: Optional[str] = Query(None, alias="type"),
    queries: MetricQueries = Depends(metric_queries),
) -> List[Dict[str, Any]]:
    metrics = await queries.list(category=category, metric_type=metric_type)
    return [m.to_dict() for m in metrics]


@router.get("/{metric_id}")
async def get_metric(
    metric_id: str,
    queries: MetricQueries = Depends(metric_queries),
) -> Dict[str, Any]:
    return (await queries.get(metric_id)).to_dict()


@router.patch("/{metric_id}")
async def update_metric(
    metric_id: str,
    body: UpdateDetailsRequest,
    commands: MetricCommands = Depends(metric_commands),
) -> Dict[str, Any]:
    return (await commands.update_details(metric_id, body.name, body.description)).to_dict()


@router.delete("/{metric_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_metric(
    metric_id: str,
    commands: MetricCommands = Depends(metric_commands),
) -> None:
    await commands.delete(metric_id)


@router.put("/{metric_id}/aggregation")
async def set_aggregation(
    metric_id: str,
    body: AggregationRequest,
    commands: MetricCommands = Depends(metric_commands),
) -> Dict[str, Any]:
    return (await commands.set_aggregation(metric_id, body.aggregation)).to_dict()


@router.put("/{metric_id}/unit")
async def set_unit(
    metric_id: str,
    body: UnitRequest,
    commands: MetricCommands = Depends(metric_commands),
) -> Dict[str, Any]:
    return (await commands.set_unit(metric_id, body.unit)).to_dict()


@router.put("/{metric_id}/data-source")
async def set_data_source(
    metric_id: str,
    body: DataSourceModel,
    commands: MetricCommands = Depends(metric_commands),
) -> Dict[str, Any]:
    return (await commands.set_data_source(metric_id, body.to_domain())).to_dict()


@router.post("/{metric_id}/dimensions", status_code=status.HTTP_201_CREATED)
async def add_dimension(
    metric_id: str,
    body: DimensionRequest,
    commands: MetricCommands = Depends(metric_commands),
) -> Dict[str, Any]:
    return (await commands.add_dimension(metric_id, body.to_domain())).to_dict()


@router.delete("/{metric_id}/dimensions/{name}")
async def remove_dimension(
    metric_id: str,
    name: str,
    commands: MetricCommands = Depends(metric_commands),
) -> Dict[str, Any]:
    return (await commands.remove_dimension(metric_id, name)).to_dict()


@router.put("/{metric_id}/calculation")
async def set_calculation(
    metric_id: str,
    body: CalculationRequest,
    commands: MetricCommands = Depends(metric_commands),
) -> Dict[str, Any]:
    return (await commands.set_calculation(metric_id, body.to_domain())).to_dict()


@router.put("/{metric_id}/filters/{key}")
async def add_filter(
    metric_id: str,
    key: str,
    body: FilterValueRequest,
    commands: MetricCommands = Depends(metric_commands),
) -> Dict[str, Any]:
    return (await commands.add_filter(metric_id, key, body.value)).to_dict()


@router.delete("/{metric_id}/filters/{key}")
async def remove_filter(
    metric_id: str,
    key: str,
    commands: MetricCommands = Depends(metric_commands),
) -> Dict[str, Any]:
    return (await commands.remove_filter(metric_id, key)).to_dict()


# =============================================================================
# SAMPLES
# =============================================================================

@router.post("/{metric_id}/data", status_code=status.HTTP_201_CREATED)
async def ingest_data(
    metric_id: str,
    body: IngestRequest,
    commands: MetricDataCommands = Depends(metric_data_commands),
) -> Dict[str, Any]:
    samples = [point.to_domain(metric_id) for point in body.data]
    count = await commands.ingest(metric_id, samples)
    return {"metricId": metric_id, "ingested": count}


@router.get("/{metric_id}/data")
async def get_data(
    metric_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    queries: MetricDataQueries = Depends(metric_data_queries),
) -> List[Dict[str, Any]]:
    samples = await queries.find(metric_id, time_range_from(start, end))
    return [s.to_dict() for s in samples]


@router.post("/{metric_id}/data/search")
async def search_data(
    metric_id: str,
    body: DimensionSearchRequest,
    queries: MetricDataQueries = Depends(metric_data_queries),
) -> List[Dict[str, Any]]:
    samples = await queries.search(metric_id, body.dimensions, time_range_from(body.start, body.end))
    return [s.to_dict() for s in samples]


@router.get("/{metric_id}/aggregate")
async def aggregate_data(
    metric_id: str,
    aggregation: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    queries: MetricDataQueries = Depends(metric_data_queries),
) -> Dict[str, Any]:
    result = await queries.aggregate(metric_id, aggregation, time_range_from(start, end))
    return {"metricId": metric_id, **result.to_dict()}


@metric_data_router.delete("")
async def purge_metric_data(
    before: datetime,
    commands: MetricDataCommands = Depends(metric_data_commands),
) -> Dict[str, Any]:
    deleted = await commands.purge_older_than(ensure_utc(before))
    return {"deleted": deleted}

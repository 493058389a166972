"""
Dashboard API Endpoints
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from analytics_dashboard.application.commands import DashboardCommands
from analytics_dashboard.application.queries import DashboardQueries
from analytics_dashboard.serving.api.dependencies import dashboard_commands, dashboard_queries
from analytics_dashboard.serving.api.schemas import (
    CreateDashboardRequest,
    LayoutRequest,
    RefreshIntervalRequest,
    UpdateDetailsRequest,
    VisibilityRequest,
    WidgetRequest,
)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_dashboard(
    body: CreateDashboardRequest,
    commands: DashboardCommands = Depends(dashboard_commands),
) -> Dict[str, Any]:
    dashboard = await commands.create(body.name, body.description, body.owner_id)
    return dashboard.to_dict()


@router.get("")
async def list_dashboards(
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    public: Optional[bool] = None,
    queries: DashboardQueries = Depends(dashboard_queries),
) -> List[Dict[str, Any]]:
    dashboards = await queries.list(owner_id=owner_id, public=public)
    return [d.to_dict() for d in dashboards]


@router.get("/{dashboard_id}")
async def get_dashboard(
    dashboard_id: str,
    queries: DashboardQueries = Depends(dashboard_queries),
) -> Dict[str, Any]:
    return (await queries.get(dashboard_id)).to_dict()


@router.patch("/{dashboard_id}")
async def update_dashboard(
    dashboard_id: str,
    body: UpdateDetailsRequest,
    commands: DashboardCommands = Depends(dashboard_commands),
) -> Dict[str, Any]:
    dashboard = await commands.update_details(dashboard_id, body.name, body.description)
    return dashboard.to_dict()


@router.delete("/{dashboard_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dashboard(
    dashboard_id: str,
    commands: DashboardCommands = Depends(dashboard_commands),
) -> None:
    await commands.delete(dashboard_id)


@router.post("/{dashboard_id}/widgets", status_code=status.HTTP_201_CREATED)
async def add_widget(
    dashboard_id: str,
    body: WidgetRequest,
    commands: DashboardCommands = Depends(dashboard_commands),
) -> Dict[str, Any]:
    dashboard = await commands.add_widget(dashboard_id, body.to_domain())
    return dashboard.to_dict()


@router.put("/{dashboard_id}/widgets/{widget_id}")
async def update_widget(
    dashboard_id: str,
    widget_id: str,
    body: WidgetRequest,
    commands: DashboardCommands = Depends(dashboard_commands),
) -> Dict[str, Any]:
    dashboard = await commands.update_widget(dashboard_id, body.to_domain(widget_id))
    return dashboard.to_dict()


@router.delete("/{dashboard_id}/widgets/{widget_id}")
async def remove_widget(
    dashboard_id: str,
    widget_id: str,
    commands: DashboardCommands = Depends(dashboard_commands),
) -> Dict[str, Any]:
    dashboard = await commands.remove_widget(dashboard_id, widget_id)
    return dashboard.to_dict()


@router.put("/{dashboard_id}/layout")
async def update_layout(
    dashboard_id: str,
    body: LayoutRequest,
    commands: DashboardCommands = Depends(dashboard_commands),
) -> Dict[str, Any]:
    dashboard = await commands.update_layout(dashboard_id, body.to_domain())
    return dashboard.to_dict()


@router.put("/{dashboard_id}/visibility")
async def set_visibility(
    dashboard_id: str,
    body: VisibilityRequest,
    commands: DashboardCommands = Depends(dashboard_commands),
) -> Dict[str, Any]:
    dashboard = await commands.set_public(dashboard_id, body.is_public)
    return dashboard.to_dict()


@router.put("/{dashboard_id}/refresh-interval")
async def set_refresh_interval(
    dashboard_id: str,
    body: RefreshIntervalRequest,
    commands: DashboardCommands = Depends(dashboard_commands),
) -> Dict[str, Any]:
    dashboard = await commands.set_refresh_interval(dashboard_id, body.refresh_interval)
    return dashboard.to_dict()

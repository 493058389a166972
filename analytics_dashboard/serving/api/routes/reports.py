"""
Report API Endpoints
"""

import base64
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from analytics_dashboard.application.commands import ReportCommands
from analytics_dashboard.application.queries import ReportQueries
from analytics_dashboard.application.reporting import ReportGenerationService
from analytics_dashboard.domain.report import OutputFormat
from analytics_dashboard.domain.values import ensure_utc
from analytics_dashboard.serving.api.dependencies import (
    report_commands,
    report_generation,
    report_queries,
)
from analytics_dashboard.serving.api.schemas import (
    CreateReportRequest,
    OutputFormatRequest,
    ParametersRequest,
    RecipientRequest,
    ScheduleRequest,
    StatusRequest,
    TemplateRequest,
    UpdateDetailsRequest,
)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_report(
    body: CreateReportRequest,
    commands: ReportCommands = Depends(report_commands),
) -> Dict[str, Any]:
    report = await commands.create(body.name, body.description, body.type, body.owner_id)
    return report.to_dict()


@router.get("")
async def list_reports(
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    report_status: Optional[str] = Query(None, alias="status"),
    queries: ReportQueries = Depends(report_queries),
) -> List[Dict[str, Any]]:
    reports = await queries.list(owner_id=owner_id, status=report_status)
    return [r.to_dict() for r in reports]


@router.get("/due")
async def list_due_reports(
    before: datetime,
    queries: ReportQueries = Depends(report_queries),
) -> List[Dict[str, Any]]:
    return [r.to_dict() for r in await queries.due(ensure_utc(before))]


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    queries: ReportQueries = Depends(report_queries),
) -> Dict[str, Any]:
    return (await queries.get(report_id)).to_dict()


@router.patch("/{report_id}")
async def update_report(
    report_id: str,
    body: UpdateDetailsRequest,
    commands: ReportCommands = Depends(report_commands),
) -> Dict[str, Any]:
    return (await commands.update_details(report_id, body.name, body.description)).to_dict()


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_id: str,
    commands: ReportCommands = Depends(report_commands),
) -> None:
    await commands.delete(report_id)


@router.put("/{report_id}/schedule")
async def set_schedule(
    report_id: str,
    body: ScheduleRequest,
    commands: ReportCommands = Depends(report_commands),
) -> Dict[str, Any]:
    schedule = body.schedule.to_domain() if body.schedule else None
    return (await commands.set_schedule(report_id, schedule)).to_dict()


@router.put("/{report_id}/output-format")
async def set_output_format(
    report_id: str,
    body: OutputFormatRequest,
    commands: ReportCommands = Depends(report_commands),
) -> Dict[str, Any]:
    return (await commands.set_output_format(report_id, body.output_format)).to_dict()


@router.put("/{report_id}/template")
async def set_template(
    report_id: str,
    body: TemplateRequest,
    commands: ReportCommands = Depends(report_commands),
) -> Dict[str, Any]:
    return (await commands.set_template(report_id, body.to_domain())).to_dict()


@router.put("/{report_id}/parameters")
async def set_parameters(
    report_id: str,
    body: ParametersRequest,
    commands: ReportCommands = Depends(report_commands),
) -> Dict[str, Any]:
    return (await commands.set_parameters(report_id, body.parameters)).to_dict()


@router.post("/{report_id}/recipients", status_code=status.HTTP_201_CREATED)
async def add_recipient(
    report_id: str,
    body: RecipientRequest,
    commands: ReportCommands = Depends(report_commands),
) -> Dict[str, Any]:
    return (await commands.add_recipient(report_id, body.email)).to_dict()


@router.delete("/{report_id}/recipients/{email}")
async def remove_recipient(
    report_id: str,
    email: str,
    commands: ReportCommands = Depends(report_commands),
) -> Dict[str, Any]:
    return (await commands.remove_recipient(report_id, email)).to_dict()


@router.put("/{report_id}/status")
async def set_status(
    report_id: str,
    body: StatusRequest,
    commands: ReportCommands = Depends(report_commands),
) -> Dict[str, Any]:
    return (await commands.set_status(report_id, body.status)).to_dict()


@router.post("/{report_id}/generated")
async def mark_as_generated(
    report_id: str,
    commands: ReportCommands = Depends(report_commands),
) -> Dict[str, Any]:
    return (await commands.mark_as_generated(report_id)).to_dict()


@router.post("/{report_id}/generate")
async def generate_report(
    report_id: str,
    service: ReportGenerationService = Depends(report_generation),
) -> Dict[str, Any]:
    report, content = await service.generate(report_id)
    if report.output_format == OutputFormat.JSON:
        body = content.decode("utf-8")
        encoding = "utf-8"
    else:
        body = base64.b64encode(content).decode("ascii")
        encoding = "base64"
    return {"report": report.to_dict(), "content": body, "encoding": encoding}

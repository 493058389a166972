"""
Report Generation

Default generator and notifier plus the service that drives one
generation run:

    ACTIVE -> GENERATING -> (render, notify) -> mark_as_generated (ACTIVE)
                         +-> ERROR when rendering or notification fails

Only JSON rendering ships in-process; other output formats need a
ReportGenerator registered by the deployment.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_dashboard.application.commands import ReportCommands
from analytics_dashboard.application.queries import MetricDataQueries
from analytics_dashboard.domain.errors import DomainError
from analytics_dashboard.domain.interfaces import EventBus, ReportGenerator, ReportNotifier
from analytics_dashboard.domain.policy import DomainPolicy
from analytics_dashboard.domain.report import OutputFormat, Report, ReportStatus
from analytics_dashboard.domain.values import MetricID, ReportID, TimeRange
from analytics_dashboard.serving.cache import CacheManager

logger = structlog.get_logger(__name__)


class JsonReportGenerator(ReportGenerator):
    """Renders the report definition and its data as a JSON document"""

    async def generate(self, report: Report, data: Dict[str, Any]) -> bytes:
        if report.output_format != OutputFormat.JSON:
            raise DomainError(
                "UNSUPPORTED_OUTPUT_FORMAT",
                "Output format is not supported by the JSON generator",
                report.output_format.value,
            )
        sections = sorted(
            (s for s in report.template.sections if s.visible), key=lambda s: s.order
        )
        document = {
            "report": {
                "id": report.id,
                "name": report.name,
                "description": report.description,
                "type": report.type.value,
            },
            "template": report.template.id,
            "sections": [s.to_dict() for s in sections],
            "parameters": dict(report.parameters),
            "data": data,
        }
        return json.dumps(document, default=str, indent=2).encode("utf-8")


class LoggingReportNotifier(ReportNotifier):
    """Notifier that only records deliveries in the log"""

    async def notify(self, report: Report, recipients: List[str], content: bytes) -> None:
        logger.info(
            "Report delivered",
            report_id=report.id,
            recipients=len(recipients),
            size_bytes=len(content),
            output_format=report.output_format.value,
        )


class ReportGenerationService:
    """
    Runs a single report generation.

    Metric data is gathered for every id listed in `parameters["metricIds"]`,
    aggregated over the optional `parameters["timeRange"]`.
    """

    def __init__(
        self,
        session: AsyncSession,
        event_bus: EventBus,
        policy: Optional[DomainPolicy] = None,
        generator: Optional[ReportGenerator] = None,
        notifier: Optional[ReportNotifier] = None,
        cache: Optional[CacheManager] = None,
    ):
        self.commands = ReportCommands(session, event_bus, policy)
        self.metric_data = MetricDataQueries(session, cache=cache)
        self.generator = generator or JsonReportGenerator()
        self.notifier = notifier or LoggingReportNotifier()

    async def _collect(self, report: Report) -> Dict[str, Any]:
        raw_range = report.parameters.get("timeRange")
        time_range = TimeRange.from_dict(raw_range) if raw_range else None
        metrics = {}
        for metric_id in report.parameters.get("metricIds", []):
            result = await self.metric_data.aggregate(MetricID(metric_id), time_range=time_range)
            metrics[metric_id] = result.to_dict()
        return {"metrics": metrics}

    async def generate(self, report_id: ReportID) -> Tuple[Report, bytes]:
        report = await self.commands.set_status(report_id, ReportStatus.GENERATING)
        log = logger.bind(report_id=report_id, output_format=report.output_format.value)
        log.info("Report generation started")

        try:
            data = await self._collect(report)
            content = await self.generator.generate(report, data)
            if report.recipients:
                await self.notifier.notify(report, list(report.recipients), content)
        except Exception as e:
            log.error("Report generation failed", error=str(e), error_type=type(e).__name__)
            await self.commands.set_status(report_id, ReportStatus.ERROR)
            raise

        report = await self.commands.mark_as_generated(report_id)
        log.info("Report generation completed", size_bytes=len(content))
        return report, content

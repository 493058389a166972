"""
Unit Tests - Report Aggregate
"""
from datetime import timedelta

import pytest

from analytics_dashboard.domain.errors import DomainError, NotFoundError
from analytics_dashboard.domain.report import (
    OutputFormat,
    Report,
    ReportSchedule,
    ReportSection,
    ReportStatus,
    ReportTemplate,
    ReportType,
    ScheduleType,
)


@pytest.fixture
def report(policy) -> Report:
    return Report.create("Weekly KPIs", "KPI digest", ReportType.BUSINESS, "user-1", policy=policy)


class TestSchedule:
    """Tests for schedules and next-run computation"""

    def test_hourly_schedule_sets_next_run(self, report, clock):
        """HOURLY schedules run `interval` hours from now"""
        report.set_schedule(ReportSchedule(type=ScheduleType.HOURLY, interval=6))

        assert report.next_run_at == clock() + timedelta(hours=6)
        assert report.pending_events[0].type == "ScheduleUpdated"

    def test_mark_as_generated_advances_next_run(self, report, clock):
        """Each generation moves the next run relative to its own time"""
        report.set_schedule(ReportSchedule(type=ScheduleType.HOURLY, interval=6))

        first = clock.advance(minutes=30)
        report.mark_as_generated()
        assert report.last_generated_at == first
        assert report.next_run_at == first + timedelta(hours=6)

        second = clock.advance(hours=2)
        report.mark_as_generated()
        assert report.last_generated_at == second
        assert report.next_run_at == second + timedelta(hours=6)

    @pytest.mark.parametrize(
        "schedule,delta",
        [
            (ReportSchedule(type=ScheduleType.DAILY, time="08:00"), timedelta(days=1)),
            (ReportSchedule(type=ScheduleType.WEEKLY, days=[1, 3]), timedelta(days=7)),
        ],
    )
    def test_daily_and_weekly(self, report, clock, schedule, delta):
        """DAILY and WEEKLY schedules run one day or one week out"""
        report.set_schedule(schedule)
        assert report.next_run_at == clock() + delta

    @pytest.mark.parametrize("schedule_type", [ScheduleType.ONCE, ScheduleType.MONTHLY])
    def test_once_and_monthly_have_no_next_run(self, report, schedule_type):
        """ONCE and MONTHLY schedules never come due"""
        report.set_schedule(ReportSchedule(type=schedule_type))
        assert report.next_run_at is None

    @pytest.mark.parametrize(
        "schedule,code",
        [
            (ReportSchedule(type=ScheduleType.HOURLY, interval=0), "INVALID_HOURLY_INTERVAL"),
            (ReportSchedule(type=ScheduleType.HOURLY, interval=25), "INVALID_HOURLY_INTERVAL"),
            (ReportSchedule(type=ScheduleType.DAILY), "INVALID_DAILY_SCHEDULE"),
            (ReportSchedule(type=ScheduleType.WEEKLY), "INVALID_WEEKLY_SCHEDULE"),
        ],
    )
    def test_invalid_schedule(self, report, schedule, code):
        """Invalid schedules are rejected without changes"""
        with pytest.raises(DomainError) as exc_info:
            report.set_schedule(schedule)

        assert exc_info.value.code == code
        assert report.schedule is None
        assert report.version == 1

    def test_clearing_schedule_keeps_next_run(self, report, clock):
        """Removing the schedule leaves the previous next run in place"""
        report.set_schedule(ReportSchedule(type=ScheduleType.HOURLY, interval=1))
        expected = report.next_run_at

        report.set_schedule(None)

        assert report.schedule is None
        assert report.next_run_at == expected

    def test_is_due(self, report, clock):
        """Active reports are due once the next run has passed"""
        report.set_schedule(ReportSchedule(type=ScheduleType.HOURLY, interval=2))

        assert not report.is_due(clock())
        assert report.is_due(clock() + timedelta(hours=2))

        report.set_status(ReportStatus.INACTIVE)
        assert not report.is_due(clock() + timedelta(hours=3))

    def test_cleared_schedule_not_due(self, report, clock):
        """A report without a schedule is never due, even with a stale next run"""
        report.set_schedule(ReportSchedule(type=ScheduleType.HOURLY, interval=1))
        report.set_schedule(None)

        assert report.next_run_at is not None
        assert not report.is_due(clock() + timedelta(days=1))


class TestRecipients:
    """Tests for the recipient list"""

    def test_recipients_ordered_and_unique(self, report):
        """Recipients keep insertion order and reject duplicates"""
        report.add_recipient("b@example.com")
        report.add_recipient("a@example.com")

        with pytest.raises(DomainError) as exc_info:
            report.add_recipient("b@example.com")

        assert exc_info.value.code == "DUPLICATE_RECIPIENT"
        assert report.recipients == ["b@example.com", "a@example.com"]
        assert report.version == 3

    @pytest.mark.parametrize("email", ["", "x" * 255])
    def test_invalid_email(self, report, email):
        """Empty or over-long addresses are rejected"""
        with pytest.raises(DomainError) as exc_info:
            report.add_recipient(email)
        assert exc_info.value.code == "INVALID_EMAIL"

    def test_remove_recipient(self, report):
        """Removing a recipient records RecipientRemoved"""
        report.add_recipient("a@example.com")
        report.remove_recipient("a@example.com")

        assert report.recipients == []
        assert report.pending_events[-1].data == {"email": "a@example.com"}

    def test_remove_unknown_recipient(self, report):
        """Removing an absent recipient raises NotFoundError"""
        report.add_recipient("a@example.com")

        with pytest.raises(NotFoundError):
            report.remove_recipient("b@example.com")

        assert report.recipients == ["a@example.com"]
        assert report.version == 2


class TestReportSettings:
    """Tests for template, parameters, output format and status"""

    def test_set_output_format(self, report):
        """Output format accepts enum values by name"""
        report.set_output_format("JSON")
        assert report.output_format == OutputFormat.JSON

    def test_invalid_output_format(self, report):
        """Unknown output formats are rejected"""
        with pytest.raises(DomainError) as exc_info:
            report.set_output_format("DOCX")

        assert exc_info.value.code == "INVALID_OUTPUT_FORMAT"
        assert report.output_format == OutputFormat.PDF

    def test_set_template(self, report):
        """TemplateUpdated carries only the template id"""
        template = ReportTemplate(
            id="tpl-1",
            name="Default",
            sections=[ReportSection(id="s1", type="chart", title="Revenue", order=1)],
        )
        report.set_template(template)

        assert report.template.sections[0].title == "Revenue"
        assert report.pending_events[0].data == {"templateId": "tpl-1"}

    def test_set_parameters_copies(self, report):
        """Parameters are copied, not aliased"""
        parameters = {"metricIds": ["m-1"]}
        report.set_parameters(parameters)
        parameters["metricIds"].append("m-2")
        parameters["extra"] = True

        assert "extra" not in report.parameters

    def test_mark_as_generated_reactivates(self, report):
        """Generation returns the report to ACTIVE"""
        report.set_status(ReportStatus.GENERATING)
        report.mark_as_generated()

        assert report.status == ReportStatus.ACTIVE
        assert report.pending_events[-1].type == "ReportGenerated"

    def test_document_round_trip(self, report, policy):
        """to_dict/from_dict preserve schedule, recipients and timestamps"""
        report.set_schedule(ReportSchedule(type=ScheduleType.WEEKLY, days=[1], time="09:00"))
        report.add_recipient("a@example.com")
        report.mark_as_generated()

        restored = Report.from_dict(report.to_dict(), policy=policy)

        assert restored.to_dict() == report.to_dict()
        assert restored.next_run_at == report.next_run_at

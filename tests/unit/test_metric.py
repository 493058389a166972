"""
Unit Tests - Metric Aggregate
"""
import pytest

from analytics_dashboard.domain.dashboard import DataSource
from analytics_dashboard.domain.errors import DomainError, NotFoundError
from analytics_dashboard.domain.metric import (
    AggregationType,
    CalculationCondition,
    Dimension,
    Metric,
    MetricCalculation,
    MetricCategory,
    MetricType,
)


@pytest.fixture
def metric(policy) -> Metric:
    return Metric.create(
        "Revenue", "Gross revenue", MetricType.COUNTER, MetricCategory.BUSINESS, policy=policy
    )


class TestMetricCreate:
    """Tests for Metric.create"""

    def test_defaults(self, metric):
        """New metrics sum their samples and carry no dimensions"""
        assert metric.aggregation == AggregationType.SUM
        assert metric.dimensions == []
        assert metric.is_calculated is False
        assert metric.version == 1
        assert metric.pending_events == ()

    def test_accepts_enum_values(self, policy):
        """Plain enum values are converted"""
        metric = Metric.create("Latency", "", "GAUGE", "PERFORMANCE", policy=policy)
        assert metric.type == MetricType.GAUGE
        assert metric.category == MetricCategory.PERFORMANCE


class TestDimensions:
    """Tests for dimension management"""

    def test_add_dimension(self, metric):
        """Adding a dimension records DimensionAdded"""
        metric.add_dimension(Dimension(name="region", required=True))

        assert metric.has_dimension("region")
        (event,) = metric.pending_events
        assert event.type == "DimensionAdded"
        assert event.data["dimension"]["name"] == "region"
        assert metric.version == 2

    def test_duplicate_dimension_rejected(self, metric):
        """A second dimension with the same name is rejected"""
        metric.add_dimension(Dimension(name="region"))

        with pytest.raises(DomainError) as exc_info:
            metric.add_dimension(Dimension(name="region", type="number"))

        assert exc_info.value.code == "DUPLICATE_DIMENSION"
        assert metric.dimensions == [Dimension(name="region")]
        assert metric.version == 2

    def test_empty_dimension_name_rejected(self, metric):
        """Dimensions need a name"""
        with pytest.raises(DomainError) as exc_info:
            metric.add_dimension(Dimension(name=""))
        assert exc_info.value.code == "INVALID_DIMENSION"

    def test_remove_dimension(self, metric):
        """Removing a dimension keeps the others in order"""
        for name in ("region", "tier", "channel"):
            metric.add_dimension(Dimension(name=name))

        metric.remove_dimension("tier")

        assert [d.name for d in metric.dimensions] == ["region", "channel"]
        assert metric.pending_events[-1].data == {"dimensionName": "tier"}

    def test_remove_unknown_dimension(self, metric):
        """Removing an absent dimension raises NotFoundError and changes nothing"""
        metric.add_dimension(Dimension(name="region"))

        with pytest.raises(NotFoundError):
            metric.remove_dimension("tier")

        assert len(metric.dimensions) == 1
        assert metric.version == 2


class TestConfiguration:
    """Tests for aggregation, unit, data source and filters"""

    def test_set_aggregation(self, metric):
        """Aggregation accepts enum values by name"""
        metric.set_aggregation("AVG")

        assert metric.aggregation == AggregationType.AVG
        assert metric.pending_events[0].data == {"aggregation": "AVG"}

    def test_set_invalid_aggregation(self, metric):
        """Unknown aggregation types are rejected"""
        with pytest.raises(DomainError) as exc_info:
            metric.set_aggregation("MEDIAN")

        assert exc_info.value.code == "INVALID_AGGREGATION"
        assert metric.aggregation == AggregationType.SUM
        assert metric.version == 1

    def test_set_unit(self, metric):
        """set_unit records UnitChanged"""
        metric.set_unit("USD")

        assert metric.unit == "USD"
        assert metric.pending_events[0].type == "UnitChanged"

    def test_set_data_source(self, metric):
        """Data source changes are recorded with the serialized source"""
        metric.set_data_source(DataSource(type="sql", query="select 1"))

        assert metric.data_source.type == "sql"
        assert metric.pending_events[0].data["dataSource"]["query"] == "select 1"

    def test_filters(self, metric):
        """add_filter overwrites; remove_filter reports whether a key was removed"""
        metric.add_filter("region", "eu")
        metric.add_filter("region", "us")

        assert metric.filters == {"region": "us"}
        assert metric.remove_filter("region") is True
        assert metric.version == 4

    def test_remove_absent_filter_is_noop(self, metric):
        """Removing an absent filter records nothing"""
        assert metric.remove_filter("missing") is False
        assert metric.version == 1
        assert metric.pending_events == ()


class TestCalculation:
    """Tests for calculated metrics"""

    def test_set_calculation(self, metric, clock):
        """A valid calculation marks the metric calculated"""
        metric.set_calculation(
            MetricCalculation(
                formula="a / b",
                variables={"a": "orders", "b": "visits"},
                conditions=[CalculationCondition(field="region", operator="=", value="eu")],
            )
        )

        assert metric.is_calculated is True
        assert metric.calculation.is_valid is True
        assert metric.calculation.last_validated == clock()
        assert metric.pending_events[0].type == "CalculationUpdated"

    @pytest.mark.parametrize(
        "calculation,code",
        [
            (MetricCalculation(formula=""), "INVALID_CALCULATION"),
            (MetricCalculation(formula="ab"), "INVALID_FORMULA"),
            (
                MetricCalculation(
                    formula="a + b",
                    conditions=[CalculationCondition(field="region", operator="")],
                ),
                "INVALID_CONDITION",
            ),
        ],
    )
    def test_invalid_calculation(self, metric, calculation, code):
        """Invalid calculations are rejected before any change"""
        with pytest.raises(DomainError) as exc_info:
            metric.set_calculation(calculation)

        assert exc_info.value.code == code
        assert metric.is_calculated is False
        assert metric.version == 1

    def test_document_round_trip(self, metric, policy):
        """to_dict/from_dict preserve dimensions and calculation"""
        metric.add_dimension(Dimension(name="region"))
        metric.set_calculation(MetricCalculation(formula="a + b"))
        metric.add_filter("region", ["eu", "us"])

        restored = Metric.from_dict(metric.to_dict(), policy=policy)

        assert restored.to_dict() == metric.to_dict()

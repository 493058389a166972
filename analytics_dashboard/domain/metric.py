"""
Metric Aggregate

A metric definition: type, category, default aggregation, dimensions,
filters and an optional calculation formula for derived metrics. Raw
time-stamped samples live in MetricData, which references the metric by id.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import uuid

from .dashboard import DataSource
from .errors import DomainError, NotFoundError
from .events import DescribedAggregate
from .policy import DEFAULT_POLICY, DomainPolicy
from .values import MetricID, format_datetime, new_metric_id, parse_datetime


class MetricType(str, Enum):
    COUNTER = "COUNTER"
    GAUGE = "GAUGE"
    HISTOGRAM = "HISTOGRAM"
    SUMMARY = "SUMMARY"


class MetricCategory(str, Enum):
    PERFORMANCE = "PERFORMANCE"
    BUSINESS = "BUSINESS"
    SYSTEM = "SYSTEM"
    USER = "USER"


class AggregationType(str, Enum):
    """Reduction applied to metric samples"""
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    COUNT = "COUNT"
    DISTINCT = "DISTINCT"


@dataclass(frozen=True)
class Dimension:
    """Named attribute metric samples can be grouped or filtered by"""
    name: str
    type: str = "string"  # string, number, date, boolean
    description: str = ""
    required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "required": self.required,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Dimension":
        return cls(
            name=data["name"],
            type=data.get("type", "string"),
            description=data.get("description", ""),
            required=bool(data.get("required", False)),
        )


@dataclass(frozen=True)
class CalculationCondition:
    field: str
    operator: str  # =, !=, >, <, >=, <=, IN, NOT_IN
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}


@dataclass(frozen=True)
class MetricCalculation:
    """Formula configuration for derived metrics"""
    formula: str = ""
    variables: Dict[str, Any] = field(default_factory=dict)
    conditions: List[CalculationCondition] = field(default_factory=list)
    is_valid: bool = False
    last_validated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formula": self.formula,
            "variables": dict(self.variables),
            "conditions": [c.to_dict() for c in self.conditions],
            "isValid": self.is_valid,
            "lastValidated": format_datetime(self.last_validated),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MetricCalculation":
        data = data or {}
        return cls(
            formula=data.get("formula", ""),
            variables=dict(data.get("variables") or {}),
            conditions=[
                CalculationCondition(
                    field=c.get("field", ""),
                    operator=c.get("operator", ""),
                    value=c.get("value"),
                )
                for c in data.get("conditions") or []
            ],
            is_valid=bool(data.get("isValid", False)),
            last_validated=parse_datetime(data.get("lastValidated")),
        )


@dataclass(frozen=True)
class MetricData:
    """One time-stamped sample for a metric"""
    metric_id: MetricID
    timestamp: datetime
    value: float
    dimensions: Dict[str, Any] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "metricId": self.metric_id,
            "timestamp": format_datetime(self.timestamp),
            "value": self.value,
            "dimensions": dict(self.dimensions),
            "labels": dict(self.labels),
        }


@dataclass(kw_only=True)
class Metric(DescribedAggregate):
    """Metric aggregate root"""

    aggregate_type = "metric"

    id: MetricID
    type: MetricType
    category: MetricCategory
    unit: str = ""
    aggregation: AggregationType = AggregationType.SUM
    data_source: DataSource = field(default_factory=DataSource)
    dimensions: List[Dimension] = field(default_factory=list)
    filters: Dict[str, Any] = field(default_factory=dict)
    calculation: MetricCalculation = field(default_factory=MetricCalculation)
    is_calculated: bool = False

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        metric_type: MetricType,
        category: MetricCategory,
        policy: Optional[DomainPolicy] = None,
    ) -> "Metric":
        policy = policy or DEFAULT_POLICY
        now = policy.now()
        return cls(
            id=new_metric_id(),
            name=name,
            description=description,
            type=MetricType(metric_type),
            category=MetricCategory(category),
            created_at=now,
            updated_at=now,
            policy=policy,
        )

    def set_unit(self, unit: str) -> None:
        self.unit = unit
        self._record("UnitChanged", {"unit": unit})

    def set_aggregation(self, aggregation: Union[AggregationType, str]) -> None:
        try:
            aggregation = AggregationType(aggregation)
        except ValueError:
            raise DomainError(
                "INVALID_AGGREGATION", "Invalid aggregation type", str(aggregation)
            ) from None
        self.aggregation = aggregation
        self._record("AggregationChanged", {"aggregation": aggregation})

    def set_data_source(self, data_source: DataSource) -> None:
        self.data_source = data_source
        self._record("DataSourceChanged", {"dataSource": data_source})

    def has_dimension(self, name: str) -> bool:
        return any(d.name == name for d in self.dimensions)

    def add_dimension(self, dimension: Dimension) -> None:
        if not dimension.name:
            raise DomainError("INVALID_DIMENSION", "Dimension name cannot be empty")
        if self.has_dimension(dimension.name):
            raise DomainError(
                "DUPLICATE_DIMENSION", "Dimension name already exists", dimension.name
            )
        self.dimensions.append(dimension)
        self._record("DimensionAdded", {"dimension": dimension})

    def remove_dimension(self, name: str) -> None:
        for index, dimension in enumerate(self.dimensions):
            if dimension.name == name:
                del self.dimensions[index]
                self._record("DimensionRemoved", {"dimensionName": name})
                return
        raise NotFoundError("dimension", name)

    def set_calculation(self, calculation: MetricCalculation) -> None:
        self._validate_calculation(calculation)
        now = self.policy.now()
        self.calculation = MetricCalculation(
            formula=calculation.formula,
            variables=dict(calculation.variables),
            conditions=list(calculation.conditions),
            is_valid=True,
            last_validated=now,
        )
        self.is_calculated = True
        self._record("CalculationUpdated", {"calculation": self.calculation})

    def add_filter(self, key: str, value: Any) -> None:
        self.filters[key] = value
        self._record("FilterAdded", {"key": key, "value": value})

    def remove_filter(self, key: str) -> bool:
        """Remove a filter; returns False (and records nothing) when absent."""
        if key not in self.filters:
            return False
        del self.filters[key]
        self._record("FilterRemoved", {"key": key})
        return True

    def _validate_calculation(self, calculation: MetricCalculation) -> None:
        if not calculation.formula:
            raise DomainError("INVALID_CALCULATION", "Calculation formula cannot be empty")
        if len(calculation.formula) < self.policy.min_formula_length:
            raise DomainError("INVALID_FORMULA", "Formula is too short", calculation.formula)
        for condition in calculation.conditions:
            if not condition.field or not condition.operator:
                raise DomainError(
                    "INVALID_CONDITION", "Condition must have field and operator"
                )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "category": self.category.value,
            "unit": self.unit,
            "aggregation": self.aggregation.value,
            "dataSource": self.data_source.to_dict(),
            "dimensions": [d.to_dict() for d in self.dimensions],
            "filters": dict(self.filters),
            "calculation": self.calculation.to_dict(),
            "isCalculated": self.is_calculated,
            "createdAt": format_datetime(self.created_at),
            "updatedAt": format_datetime(self.updated_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], policy: Optional[DomainPolicy] = None) -> "Metric":
        return cls(
            id=MetricID(data["id"]),
            name=data["name"],
            description=data.get("description", ""),
            type=MetricType(data["type"]),
            category=MetricCategory(data["category"]),
            unit=data.get("unit", ""),
            aggregation=AggregationType(data.get("aggregation", "SUM")),
            data_source=DataSource.from_dict(data.get("dataSource")),
            dimensions=[Dimension.from_dict(d) for d in data.get("dimensions", [])],
            filters=dict(data.get("filters") or {}),
            calculation=MetricCalculation.from_dict(data.get("calculation")),
            is_calculated=bool(data.get("isCalculated", False)),
            created_at=parse_datetime(data["createdAt"]),
            updated_at=parse_datetime(data["updatedAt"]),
            version=int(data.get("version", 1)),
            policy=policy or DEFAULT_POLICY,
        )

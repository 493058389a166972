"""
Metric Data Aggregation Engine

Pure functions that reduce MetricData samples to a single value. Samples are
loaded into a polars DataFrame and reduced with polars expressions, so the
same code path serves the in-process store and query-side re-aggregation.

Empty input never yields NaN: SUM is 0.0, COUNT and DISTINCT are 0, and
AVG/MIN/MAX report None with `has_data=False`.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import polars as pl

from .metric import AggregationType, MetricData
from .values import TimeRange, ensure_utc, format_datetime, parse_datetime


FRAME_SCHEMA = {"timestamp": pl.Datetime("us", "UTC"), "value": pl.Float64}

_REDUCERS = {
    AggregationType.SUM: lambda col: col.sum(),
    AggregationType.AVG: lambda col: col.mean(),
    AggregationType.MIN: lambda col: col.min(),
    AggregationType.MAX: lambda col: col.max(),
    AggregationType.COUNT: lambda col: col.len(),
    AggregationType.DISTINCT: lambda col: col.n_unique(),
}


@dataclass(frozen=True)
class AggregationResult:
    """Outcome of reducing a set of samples"""
    aggregation: AggregationType
    value: Optional[float]
    count: int
    timestamp: Optional[datetime] = None
    time_range: Optional[TimeRange] = None

    @property
    def has_data(self) -> bool:
        return self.count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "aggregation": self.aggregation.value,
            "value": self.value,
            "count": self.count,
            "hasData": self.has_data,
            "timestamp": format_datetime(self.timestamp),
            "timeRange": self.time_range.to_dict() if self.time_range else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregationResult":
        time_range = data.get("timeRange")
        return cls(
            aggregation=AggregationType(data["aggregation"]),
            value=data.get("value"),
            count=int(data.get("count", 0)),
            timestamp=parse_datetime(data.get("timestamp")),
            time_range=TimeRange.from_dict(time_range) if time_range else None,
        )


def to_frame(samples: Iterable[MetricData]) -> pl.DataFrame:
    """Build the (timestamp, value) frame the reducers operate on."""
    samples = list(samples)
    return pl.DataFrame(
        {
            "timestamp": [ensure_utc(s.timestamp) for s in samples],
            "value": [float(s.value) for s in samples],
        },
        schema=FRAME_SCHEMA,
    )


def aggregate(
    samples: Iterable[MetricData],
    aggregation: Union[AggregationType, str],
    time_range: Optional[TimeRange] = None,
) -> AggregationResult:
    """
    Reduce samples with the given aggregation.

    When `time_range` is given only samples with start <= timestamp <= end
    contribute. The result timestamp is the latest contributing timestamp.
    """
    aggregation = AggregationType(aggregation)
    df = to_frame(samples)

    if time_range is not None:
        df = df.filter(
            pl.col("timestamp").is_between(
                ensure_utc(time_range.start), ensure_utc(time_range.end), closed="both"
            )
        )

    reducer = _REDUCERS[aggregation]
    row = df.select(
        reducer(pl.col("value")).alias("value"),
        pl.col("timestamp").max().alias("timestamp"),
        pl.len().alias("count"),
    )

    count = int(row["count"].item())
    value = row["value"].item()
    if aggregation in (AggregationType.COUNT, AggregationType.DISTINCT):
        value = int(value or 0)
    elif aggregation == AggregationType.SUM:
        value = float(value or 0.0)
    elif count == 0:
        value = None
    else:
        value = float(value)

    timestamp = row["timestamp"].item() if count else None
    return AggregationResult(
        aggregation=aggregation,
        value=value,
        count=count,
        timestamp=ensure_utc(timestamp) if timestamp is not None else None,
        time_range=time_range,
    )


def filter_by_dimensions(
    samples: Iterable[MetricData], dimensions: Optional[Dict[str, Any]]
) -> List[MetricData]:
    """Keep samples whose dimensions contain every requested key with an equal value."""
    if not dimensions:
        return list(samples)
    return [
        s for s in samples
        if all(key in s.dimensions and s.dimensions[key] == value for key, value in dimensions.items())
    ]


def filter_by_time_range(
    samples: Sequence[MetricData], time_range: Optional[TimeRange]
) -> List[MetricData]:
    if time_range is None:
        return list(samples)
    return [s for s in samples if time_range.contains(ensure_utc(s.timestamp))]

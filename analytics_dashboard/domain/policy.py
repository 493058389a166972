"""
Domain Policy

Explicit configuration handed to aggregates at construction time. Aggregates
never read process-wide settings; the application layer builds a policy from
`DomainSettings.to_policy()` and passes it in.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from .values import utcnow


@dataclass(frozen=True)
class DomainPolicy:
    """Defaults and bounds enforced by the aggregates"""

    # Dashboard
    default_columns: int = 4
    default_rows: int = 3
    default_grid_size: int = 12
    default_responsive: bool = True
    default_refresh_interval: int = 300
    min_refresh_interval: int = 30
    max_refresh_interval: int = 3600

    # Metric
    min_formula_length: int = 3

    # Report
    min_hourly_interval: int = 1
    max_hourly_interval: int = 24
    max_email_length: int = 255

    clock: Callable[[], datetime] = field(default=utcnow, compare=False)

    def now(self) -> datetime:
        return self.clock()


DEFAULT_POLICY = DomainPolicy()

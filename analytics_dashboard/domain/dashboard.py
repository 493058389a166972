"""
Dashboard Aggregate

A dashboard owns its grid layout, the ordered widget list, filters,
visibility and refresh cadence. Every widget placed through `add_widget` or
`update_widget` must fit inside `layout.columns x layout.rows`.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import DomainError, NotFoundError
from .events import DescribedAggregate
from .policy import DEFAULT_POLICY, DomainPolicy
from .values import (
    DashboardID,
    UserID,
    WidgetID,
    format_datetime,
    new_dashboard_id,
    new_widget_id,
    parse_datetime,
)


class WidgetType(str, Enum):
    """Widget visualisation types"""
    CHART = "CHART"
    TABLE = "TABLE"
    KPI = "KPI"
    GAUGE = "GAUGE"
    HEATMAP = "HEATMAP"
    MAP = "MAP"
    TEXT = "TEXT"
    IMAGE = "IMAGE"


@dataclass(frozen=True)
class DashboardLayout:
    columns: int
    rows: int
    grid_size: int = 12
    responsive: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": self.columns,
            "rows": self.rows,
            "gridSize": self.grid_size,
            "responsive": self.responsive,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DashboardLayout":
        return cls(
            columns=int(data["columns"]),
            rows=int(data["rows"]),
            grid_size=int(data.get("gridSize", 12)),
            responsive=bool(data.get("responsive", True)),
        )


@dataclass(frozen=True)
class WidgetPosition:
    x: int
    y: int

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class WidgetSize:
    width: int
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class DataSource:
    """Where a widget or metric reads its data from"""
    type: str = ""
    endpoint: str = ""
    query: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "endpoint": self.endpoint,
            "query": self.query,
            "parameters": dict(self.parameters),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DataSource":
        data = data or {}
        return cls(
            type=data.get("type", ""),
            endpoint=data.get("endpoint", ""),
            query=data.get("query", ""),
            parameters=dict(data.get("parameters") or {}),
        )


@dataclass(frozen=True)
class Widget:
    """A single tile on a dashboard grid"""
    type: WidgetType
    title: str
    position: WidgetPosition
    size: WidgetSize
    configuration: Dict[str, Any] = field(default_factory=dict)
    data_source: DataSource = field(default_factory=DataSource)
    refresh_interval: int = 300
    id: WidgetID = field(default_factory=new_widget_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "position": self.position.to_dict(),
            "size": self.size.to_dict(),
            "configuration": dict(self.configuration),
            "dataSource": self.data_source.to_dict(),
            "refreshInterval": self.refresh_interval,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Widget":
        return cls(
            id=WidgetID(data["id"]),
            type=WidgetType(data["type"]),
            title=data.get("title", ""),
            position=WidgetPosition(**data["position"]),
            size=WidgetSize(**data["size"]),
            configuration=dict(data.get("configuration") or {}),
            data_source=DataSource.from_dict(data.get("dataSource")),
            refresh_interval=int(data.get("refreshInterval", 300)),
        )


@dataclass(kw_only=True)
class Dashboard(DescribedAggregate):
    """Dashboard aggregate root"""

    aggregate_type = "dashboard"

    id: DashboardID
    owner_id: UserID
    layout: DashboardLayout
    widgets: List[Widget] = field(default_factory=list)
    filters: Dict[str, Any] = field(default_factory=dict)
    refresh_interval: int = 300
    is_public: bool = False

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        owner_id: UserID,
        policy: Optional[DomainPolicy] = None,
    ) -> "Dashboard":
        """
        Build a new dashboard with the policy's default layout.

        Construction does not raise a domain event; the first event a
        dashboard emits comes from its first mutation.
        """
        policy = policy or DEFAULT_POLICY
        now = policy.now()
        return cls(
            id=new_dashboard_id(),
            name=name,
            description=description,
            owner_id=owner_id,
            layout=DashboardLayout(
                columns=policy.default_columns,
                rows=policy.default_rows,
                grid_size=policy.default_grid_size,
                responsive=policy.default_responsive,
            ),
            refresh_interval=policy.default_refresh_interval,
            created_at=now,
            updated_at=now,
            policy=policy,
        )

    def find_widget(self, widget_id: WidgetID) -> Optional[Widget]:
        return next((w for w in self.widgets if w.id == widget_id), None)

    def add_widget(self, widget: Widget) -> None:
        if self.find_widget(widget.id) is not None:
            raise DomainError("DUPLICATE_WIDGET", "Widget ID already exists", widget.id)
        self._check_widget_bounds(widget)
        self.widgets.append(widget)
        self._record("WidgetAdded", {"widgetId": widget.id, "type": widget.type})

    def update_widget(self, widget: Widget) -> None:
        index = self._widget_index(widget.id)
        self._check_widget_bounds(widget)
        self.widgets[index] = widget
        self._record("WidgetUpdated", {"widgetId": widget.id, "type": widget.type})

    def remove_widget(self, widget_id: WidgetID) -> None:
        index = self._widget_index(widget_id)
        del self.widgets[index]
        self._record("WidgetRemoved", {"widgetId": widget_id})

    def update_layout(self, layout: DashboardLayout) -> None:
        """
        Replace the grid layout.

        Existing widgets are not re-checked against the new bounds, so a
        shrink can leave widgets outside the grid.
        """
        if layout.columns <= 0 or layout.rows <= 0:
            raise DomainError("INVALID_LAYOUT", "Layout dimensions must be positive")
        self.layout = layout
        self._record("LayoutUpdated", {"layout": layout})

    def set_public(self, is_public: bool) -> None:
        self.is_public = bool(is_public)
        self._record("VisibilityChanged", {"isPublic": self.is_public})

    def set_refresh_interval(self, interval: int) -> None:
        low, high = self.policy.min_refresh_interval, self.policy.max_refresh_interval
        if interval < low or interval > high:
            raise DomainError(
                "INVALID_REFRESH_INTERVAL",
                f"Refresh interval must be between {low} and {high} seconds",
            )
        self.refresh_interval = interval
        self._record("RefreshIntervalChanged", {"refreshInterval": interval})

    def out_of_bounds_widgets(self) -> List[Widget]:
        """Widgets that no longer fit the current layout"""
        return [w for w in self.widgets if not self._fits(w)]

    def _fits(self, widget: Widget) -> bool:
        position, size = widget.position, widget.size
        return (
            position.x >= 0
            and position.y >= 0
            and position.x + size.width <= self.layout.columns
            and position.y + size.height <= self.layout.rows
        )

    def _check_widget_bounds(self, widget: Widget) -> None:
        if not self._fits(widget):
            raise DomainError(
                "INVALID_WIDGET_POSITION",
                "Widget position is outside dashboard bounds",
                f"layout={self.layout.columns}x{self.layout.rows}",
            )

    def _widget_index(self, widget_id: WidgetID) -> int:
        for index, widget in enumerate(self.widgets):
            if widget.id == widget_id:
                return index
        raise NotFoundError("widget", widget_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "layout": self.layout.to_dict(),
            "widgets": [w.to_dict() for w in self.widgets],
            "filters": dict(self.filters),
            "refreshInterval": self.refresh_interval,
            "isPublic": self.is_public,
            "ownerId": self.owner_id,
            "createdAt": format_datetime(self.created_at),
            "updatedAt": format_datetime(self.updated_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], policy: Optional[DomainPolicy] = None) -> "Dashboard":
        return cls(
            id=DashboardID(data["id"]),
            name=data["name"],
            description=data.get("description", ""),
            owner_id=UserID(data["ownerId"]),
            layout=DashboardLayout.from_dict(data["layout"]),
            widgets=[Widget.from_dict(w) for w in data.get("widgets", [])],
            filters=dict(data.get("filters") or {}),
            refresh_interval=int(data.get("refreshInterval", 300)),
            is_public=bool(data.get("isPublic", False)),
            created_at=parse_datetime(data["createdAt"]),
            updated_at=parse_datetime(data["updatedAt"]),
            version=int(data.get("version", 1)),
            policy=policy or DEFAULT_POLICY,
        )


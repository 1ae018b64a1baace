"""
═══════════════════════════════════════════════════════════════════════════════
                    SCHEDULE VIEW PROJECTIONS
═══════════════════════════════════════════════════════════════════════════════

Read-only transforms of a Schedule into view-specific shapes:
- Gantt: tasks with progress, resource, naive same-product dependencies
- Calendar: events colored by order status
- Board: orders grouped by status

Approximate slack flag:
    slack = due_date - scheduled_end
    approximate_slack_flag = slack <= 0

This is a slack approximation per task. It is NOT a Critical-Path-Method solve:
there is no precedence network in the input, so no float is computed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from prd_engine.scheduling.errors import InvalidInput
from prd_engine.scheduling.types import (
    Assignment,
    Clock,
    OrderStatus,
    ProductionOrder,
    Schedule,
    WorkCenter,
    system_clock,
)

STATUS_COLORS = {
    OrderStatus.PLANNED: "#007bff",
    OrderStatus.RELEASED: "#ffc107",
    OrderStatus.IN_PROGRESS: "#28a745",
    OrderStatus.COMPLETED: "#6c757d",
    OrderStatus.CANCELLED: "#dc3545",
}

STATUS_TITLES = {
    OrderStatus.PLANNED: "Planeada",
    OrderStatus.RELEASED: "Libertada",
    OrderStatus.IN_PROGRESS: "Em produção",
    OrderStatus.COMPLETED: "Concluída",
    OrderStatus.CANCELLED: "Cancelada",
}


@dataclass
class GanttTask:
    """Single task (one assignment) in the Gantt chart."""
    id: str
    label: str
    start: datetime
    end: datetime
    duration_hours: float
    progress: float
    resource: str
    resource_name: str
    status: str
    priority: str
    color: str
    slack_days: float
    approximate_slack_flag: bool
    dependencies: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_hours": round(self.duration_hours, 4),
            "progress": round(self.progress, 2),
            "resource": self.resource,
            "resource_name": self.resource_name,
            "status": self.status,
            "priority": self.priority,
            "color": self.color,
            "slack_days": round(self.slack_days, 4),
            "approximate_slack_flag": self.approximate_slack_flag,
            "dependencies": list(self.dependencies),
        }


@dataclass
class GanttChart:
    """Complete Gantt data for a schedule."""
    schedule_id: str
    tasks: List[GanttTask] = field(default_factory=list)
    resources: List[Dict[str, str]] = field(default_factory=list)
    timeline_start: Optional[datetime] = None
    timeline_end: Optional[datetime] = None

    @property
    def flagged_task_ids(self) -> List[str]:
        return [t.id for t in self.tasks if t.approximate_slack_flag]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "tasks": [t.to_dict() for t in self.tasks],
            "resources": self.resources,
            "timeline": {
                "start": self.timeline_start.isoformat() if self.timeline_start else None,
                "end": self.timeline_end.isoformat() if self.timeline_end else None,
            },
            "approximate_slack_task_ids": self.flagged_task_ids,
        }


def _order_index(orders: Union[Mapping[str, ProductionOrder], Iterable[ProductionOrder], None]) -> Dict[str, ProductionOrder]:
    if orders is None:
        return {}
    if isinstance(orders, Mapping):
        return dict(orders)
    return {o.id: o for o in orders}


def _center_index(work_centers: Union[Mapping[str, WorkCenter], Iterable[WorkCenter], None]) -> Dict[str, WorkCenter]:
    if work_centers is None:
        return {}
    if isinstance(work_centers, Mapping):
        return dict(work_centers)
    return {c.id: c for c in work_centers}


def task_progress(order: Optional[ProductionOrder], assignment: Assignment, now: datetime) -> float:
    """
    Percent complete.

    completed -> 100, cancelled -> 0, in_progress -> elapsed / total (clamped),
    anything else -> 0.
    """
    if order is None:
        return 0.0
    if order.status == OrderStatus.COMPLETED:
        return 100.0
    if order.status != OrderStatus.IN_PROGRESS:
        return 0.0

    started = order.actual_start or assignment.scheduled_start
    total = (assignment.scheduled_end - started).total_seconds()
    if total <= 0:
        return 100.0 if now >= assignment.scheduled_end else 0.0
    elapsed = (now - started).total_seconds()
    return max(0.0, min(100.0, elapsed / total * 100.0))


def gantt(
    schedule: Schedule,
    orders: Union[Mapping[str, ProductionOrder], Iterable[ProductionOrder], None] = None,
    work_centers: Union[Mapping[str, WorkCenter], Iterable[WorkCenter], None] = None,
    clock: Clock = system_clock,
) -> GanttChart:
    """
    Build Gantt tasks for a schedule.

    A task depends on every other task of the same product that ends at or before
    its start (naive inference, no routing data).
    """
    order_map = _order_index(orders)
    center_map = _center_index(work_centers)
    now = clock()

    by_product: Dict[str, List[Assignment]] = {}
    for assignment in schedule.assignments:
        order = order_map.get(assignment.order_id)
        product = order.product_id if order else assignment.order_id
        by_product.setdefault(product, []).append(assignment)

    chart = GanttChart(schedule_id=schedule.id)
    used_centers: List[str] = []
    for assignment in schedule.assignments:
        order = order_map.get(assignment.order_id)
        product = order.product_id if order else assignment.order_id
        status = order.status if order else OrderStatus.PLANNED
        center = center_map.get(assignment.work_center_id)
        slack = (assignment.due_date - assignment.scheduled_end).total_seconds() / 86400.0

        dependencies = [
            other.order_id
            for other in by_product[product]
            if other.order_id != assignment.order_id and other.scheduled_end <= assignment.scheduled_start
        ]

        chart.tasks.append(GanttTask(
            id=assignment.order_id,
            label=order.label if order else assignment.order_id,
            start=assignment.scheduled_start,
            end=assignment.scheduled_end,
            duration_hours=assignment.duration_hours,
            progress=task_progress(order, assignment, now),
            resource=assignment.work_center_id,
            resource_name=center.display_name if center else assignment.work_center_id,
            status=status.value,
            priority=order.priority.value if order else "normal",
            color=STATUS_COLORS[status],
            slack_days=slack,
            approximate_slack_flag=slack <= 0,
            dependencies=dependencies,
        ))
        if assignment.work_center_id not in used_centers:
            used_centers.append(assignment.work_center_id)

    chart.resources = [
        {
            "id": center_id,
            "name": center_map[center_id].display_name if center_id in center_map else center_id,
        }
        for center_id in used_centers
    ]
    if schedule.assignments:
        chart.timeline_start = min(a.scheduled_start for a in schedule.assignments)
        chart.timeline_end = max(a.scheduled_end for a in schedule.assignments)
    return chart


def calendar_events(
    schedule: Schedule,
    orders: Union[Mapping[str, ProductionOrder], Iterable[ProductionOrder], None] = None,
    work_centers: Union[Mapping[str, WorkCenter], Iterable[WorkCenter], None] = None,
) -> List[Dict[str, Any]]:
    """Calendar events, one per assignment, colored by order status."""
    order_map = _order_index(orders)
    center_map = _center_index(work_centers)

    events = []
    for assignment in schedule.assignments:
        order = order_map.get(assignment.order_id)
        status = order.status if order else OrderStatus.PLANNED
        center = center_map.get(assignment.work_center_id)
        events.append({
            "id": assignment.order_id,
            "title": order.label if order else assignment.order_id,
            "start": assignment.scheduled_start.isoformat(),
            "end": assignment.scheduled_end.isoformat(),
            "color": STATUS_COLORS[status],
            "resource_id": assignment.work_center_id,
            "resource_name": center.display_name if center else assignment.work_center_id,
            "extended": {
                "status": status.value,
                "priority": order.priority.value if order else "normal",
                "quantity": order.quantity if order else None,
                "product_id": order.product_id if order else None,
                "lateness_days": round(assignment.lateness_days, 4),
            },
        })
    return events


def status_board(
    schedule: Schedule,
    orders: Union[Mapping[str, ProductionOrder], Iterable[ProductionOrder], None] = None,
) -> Dict[str, Any]:
    """Orders grouped by status with per-status counts."""
    order_map = _order_index(orders)
    columns = {status: [] for status in OrderStatus}

    for assignment in schedule.assignments:
        order = order_map.get(assignment.order_id)
        status = order.status if order else OrderStatus.PLANNED
        columns[status].append({
            "order_id": assignment.order_id,
            "label": order.label if order else assignment.order_id,
            "work_center_id": assignment.work_center_id,
            "start": assignment.scheduled_start.isoformat(),
            "end": assignment.scheduled_end.isoformat(),
            "priority": order.priority.value if order else "normal",
        })

    return {
        "schedule_id": schedule.id,
        "columns": [
            {
                "status": status.value,
                "title": STATUS_TITLES[status],
                "color": STATUS_COLORS[status],
                "count": len(items),
                "items": items,
            }
            for status, items in columns.items()
        ],
        "total": len(schedule.assignments),
    }


VIEW_TYPES = ("gantt", "calendar", "board")


def build_view(
    view_type: str,
    schedule: Schedule,
    orders: Union[Mapping[str, ProductionOrder], Iterable[ProductionOrder], None] = None,
    work_centers: Union[Mapping[str, WorkCenter], Iterable[WorkCenter], None] = None,
    clock: Clock = system_clock,
) -> Dict[str, Any]:
    """Dispatch to a view by name (gantt / calendar / board)."""
    if view_type == "gantt":
        return gantt(schedule, orders, work_centers, clock).to_dict()
    if view_type == "calendar":
        return {"schedule_id": schedule.id, "events": calendar_events(schedule, orders, work_centers)}
    if view_type == "board":
        return status_board(schedule, orders)
    raise InvalidInput(None, "view_type", f"unknown view {view_type!r}, expected one of {VIEW_TYPES}")

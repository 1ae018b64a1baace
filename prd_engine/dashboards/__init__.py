"""
════════════════════════════════════════════════════════════════════════════════
DASHBOARDS - Projeções de Schedules
════════════════════════════════════════════════════════════════════════════════

Vistas read-only de um Schedule:
- Gantt (com flag aproximada de folga)
- Calendário
- Quadro por estado
"""

from prd_engine.dashboards.schedule_views import (
    GanttTask,
    GanttChart,
    gantt,
    calendar_events,
    status_board,
    build_view,
    STATUS_COLORS,
)

__all__ = [
    "GanttTask",
    "GanttChart",
    "gantt",
    "calendar_events",
    "status_board",
    "build_view",
    "STATUS_COLORS",
]

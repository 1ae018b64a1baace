"""
PRD Engine - Evaluation

Métricas de schedules e análise de capacidade:
- KPIs (on-time rate, lateness, span, utilização)
- Capacity analysis por centro de trabalho
- Bottlenecks com severidade, impacto e sugestões
"""

from prd_engine.evaluation.metrics import (
    compute_metrics,
    current_schedule_metrics,
    assignments_from_orders,
    schedule_improvements,
    schedule_density,
    resource_flexibility,
    metrics_summary,
)
from prd_engine.evaluation.bottlenecks import (
    CapacityAnalysis,
    WorkCenterLoad,
    Bottleneck,
    BottleneckReport,
    capacity_analysis,
    bottlenecks,
    identify_bottlenecks,
)

__all__ = [
    "compute_metrics",
    "current_schedule_metrics",
    "assignments_from_orders",
    "schedule_improvements",
    "schedule_density",
    "resource_flexibility",
    "metrics_summary",
    "CapacityAnalysis",
    "WorkCenterLoad",
    "Bottleneck",
    "BottleneckReport",
    "capacity_analysis",
    "bottlenecks",
    "identify_bottlenecks",
]

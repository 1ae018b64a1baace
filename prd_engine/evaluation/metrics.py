"""
PRD Engine - Schedule Metrics

KPIs de um Schedule (ou de qualquer conjunto de assignments).

Mathematical Definitions
========================

Lateness (Lⱼ):
-------------
    Lⱼ = max(0, Cⱼ - dⱼ)   [dias]

    where Cⱼ is the scheduled end and dⱼ the due date of order j.

On-Time Rate:
------------
    OTR = |{j : Lⱼ = 0}| / |Orders| × 100%

Schedule Span:
-------------
    S = (max Cⱼ - min Sⱼ)   [dias]

Utilization Rate:
----------------
    U = Σⱼ (processingⱼ + setupⱼ) / (S × 24)

    Razão 0-1 sobre o tempo de calendário total.

Resource Flexibility:
--------------------
    F = max(0, 1 - σ(nₘ) / μ(nₘ))

    where nₘ is the number of orders on work center m (σ populacional).
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from prd_engine.scheduling.types import (
    Assignment,
    ProductionOrder,
    Schedule,
    ScheduleMetrics,
    lateness_days,
)

logger = logging.getLogger(__name__)

ASSIGNMENT_COLUMNS = [
    "order_id",
    "work_center_id",
    "scheduled_start",
    "scheduled_end",
    "duration_hours",
    "due_date",
    "lateness_days",
]


def _assignments(source: Union[Schedule, Iterable[Assignment]]) -> List[Assignment]:
    if isinstance(source, Schedule):
        return list(source.assignments)
    return list(source)


def assignments_frame(source: Union[Schedule, Iterable[Assignment]]) -> pd.DataFrame:
    """DataFrame com uma linha por assignment."""
    rows = [
        {
            "order_id": a.order_id,
            "work_center_id": a.work_center_id,
            "scheduled_start": a.scheduled_start,
            "scheduled_end": a.scheduled_end,
            "duration_hours": a.duration_hours,
            "due_date": a.due_date,
            "lateness_days": a.lateness_days,
        }
        for a in _assignments(source)
    ]
    return pd.DataFrame(rows, columns=ASSIGNMENT_COLUMNS)


def compute_metrics(source: Union[Schedule, Iterable[Assignment]]) -> ScheduleMetrics:
    """
    Calcula as métricas de um Schedule.

    Conjunto vazio -> tudo a zero.
    """
    df = assignments_frame(source)
    if df.empty:
        return ScheduleMetrics()

    total = len(df)
    on_time = int((df["lateness_days"] <= 0).sum())
    total_duration = float(df["duration_hours"].sum())
    span_days = (df["scheduled_end"].max() - df["scheduled_start"].min()).total_seconds() / 86400.0

    return ScheduleMetrics(
        total_orders=total,
        on_time_count=on_time,
        on_time_rate=on_time / total * 100.0,
        avg_lateness_days=float(df["lateness_days"].mean()),
        max_lateness_days=float(df["lateness_days"].max()),
        total_duration_hours=total_duration,
        schedule_span_days=span_days,
        utilization_rate=total_duration / (span_days * 24.0) if span_days > 0 else 0.0,
    )


def metrics(source: Union[Schedule, Iterable[Assignment]]) -> ScheduleMetrics:
    """Alias público de compute_metrics."""
    return compute_metrics(source)


def assignments_from_orders(orders: Iterable[ProductionOrder]) -> List[Assignment]:
    """Assignments a partir das janelas planeadas já comprometidas das ordens."""
    result = []
    for order in orders:
        if order.planned_start is None or order.planned_end is None:
            continue
        result.append(Assignment(
            order_id=order.id,
            work_center_id=order.work_center_id,
            scheduled_start=order.planned_start,
            scheduled_end=order.planned_end,
            duration_hours=order.total_hours,
            due_date=order.due_date,
            lateness_days=lateness_days(order.planned_end, order.due_date),
        ))
    return result


def current_schedule_metrics(orders: Iterable[ProductionOrder]) -> ScheduleMetrics:
    """Métricas do estado atual (janelas planeadas das ordens)."""
    return compute_metrics(assignments_from_orders(orders))


def schedule_improvements(baseline: ScheduleMetrics, optimized: ScheduleMetrics) -> Dict[str, float]:
    """
    Ganhos de um schedule otimizado face a uma baseline.

    Valores positivos significam melhoria.
    """
    return {
        "on_time_rate": round(optimized.on_time_rate - baseline.on_time_rate, 4),
        "avg_lateness_days": round(baseline.avg_lateness_days - optimized.avg_lateness_days, 4),
        "utilization_rate": round(optimized.utilization_rate - baseline.utilization_rate, 4),
        "schedule_span_days": round(baseline.schedule_span_days - optimized.schedule_span_days, 4),
    }


def schedule_density(
    source: Union[Schedule, Iterable[Assignment]],
    period_start: Optional[datetime] = None,
    period_end: Optional[datetime] = None,
) -> float:
    """
    Ordens por dia.

    Sem período, usa o span do próprio schedule (arredondado para cima).
    """
    df = assignments_frame(source)
    if df.empty:
        return 0.0
    if period_start is None:
        period_start = df["scheduled_start"].min()
    if period_end is None:
        period_end = df["scheduled_end"].max()

    in_period = df[(df["scheduled_start"] >= period_start) & (df["scheduled_start"] <= period_end)]
    total_days = math.ceil((period_end - period_start).total_seconds() / 86400.0)
    return len(in_period) / total_days if total_days > 0 else 0.0


def resource_flexibility(source: Union[Schedule, Iterable[Assignment]]) -> float:
    """1 - σ/μ do número de ordens por centro de trabalho (mínimo 0)."""
    df = assignments_frame(source)
    if df.empty:
        return 0.0
    counts = df.groupby("work_center_id").size().to_numpy(dtype=float)
    mean = counts.mean()
    if mean <= 0:
        return 0.0
    return float(max(0.0, 1.0 - np.std(counts) / mean))


def metrics_summary(source: Union[Schedule, Iterable[Assignment]]) -> Dict[str, Any]:
    """Métricas base + densidade + flexibilidade, prontas a serializar."""
    result = compute_metrics(source).to_dict()
    result["schedule_density"] = round(schedule_density(source), 4)
    result["resource_flexibility"] = round(resource_flexibility(source), 4)
    return result

"""
PRD Engine - Capacity Analysis & Bottlenecks
============================================

Análise de carga por centro de trabalho num período e identificação de gargalos.

    capacity_total      = effective_daily_capacity × days_in_period
    utilization_percent = scheduled_hours / capacity_total × 100

Bandas: sobrecarga > 100, alta_utilizacao > 90, normal > 70, senão baixa_utilizacao.

Gargalo: utilization_percent > threshold (default 90).
    severity     = critical (>100) / high (>95) / medium
    impact_score = min(utilization_percent/100, 2) × scheduled_hours/1000
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from prd_engine.settings import Settings
from prd_engine.evaluation.metrics import assignments_frame
from prd_engine.scheduling.calendar import effective_daily_capacity
from prd_engine.scheduling.errors import InvalidInput
from prd_engine.scheduling.types import Assignment, Schedule, WorkCenter

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class WorkCenterLoad:
    """Carga de um centro de trabalho no período."""
    work_center_id: str
    name: str
    effective_daily_capacity: float
    capacity_total: float
    scheduled_hours: float
    utilization_percent: float
    status: str

    @property
    def available_hours(self) -> float:
        return self.capacity_total - self.scheduled_hours

    def to_dict(self) -> Dict[str, Any]:
        return {
            "work_center_id": self.work_center_id,
            "name": self.name,
            "effective_daily_capacity": round(self.effective_daily_capacity, 4),
            "capacity_total": round(self.capacity_total, 4),
            "scheduled_hours": round(self.scheduled_hours, 4),
            "available_hours": round(self.available_hours, 4),
            "utilization_percent": round(self.utilization_percent, 2),
            "status": self.status,
        }


@dataclass
class CapacityAnalysis:
    """Análise de capacidade de um período."""
    period_start: datetime
    period_end: datetime
    days_in_period: int
    work_centers: List[WorkCenterLoad] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        capacity = sum(w.capacity_total for w in self.work_centers)
        scheduled = sum(w.scheduled_hours for w in self.work_centers)
        avg = (
            sum(w.utilization_percent for w in self.work_centers) / len(self.work_centers)
            if self.work_centers else 0.0
        )
        return {
            "capacity_total": round(capacity, 4),
            "scheduled_total": round(scheduled, 4),
            "avg_utilization_percent": round(avg, 2),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "days_in_period": self.days_in_period,
            "work_centers": [w.to_dict() for w in self.work_centers],
            "summary": self.summary(),
        }


@dataclass
class Bottleneck:
    """Centro de trabalho sobre-utilizado."""
    work_center_id: str
    name: str
    utilization_percent: float
    scheduled_hours: float
    capacity_total: float
    severity: str
    impact_score: float
    impact_description: str
    affected_orders: int
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "work_center_id": self.work_center_id,
            "name": self.name,
            "utilization_percent": round(self.utilization_percent, 2),
            "scheduled_hours": round(self.scheduled_hours, 4),
            "capacity_total": round(self.capacity_total, 4),
            "severity": self.severity,
            "impact_score": round(self.impact_score, 4),
            "impact_description": self.impact_description,
            "affected_orders": self.affected_orders,
            "suggestions": list(self.suggestions),
        }


@dataclass
class BottleneckReport:
    """Gargalos ordenados por utilização (maior primeiro)."""
    period_start: datetime
    period_end: datetime
    analyzed_work_centers: int
    bottlenecks: List[Bottleneck] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "bottlenecks": [b.to_dict() for b in self.bottlenecks],
            "summary": {
                "analyzed_work_centers": self.analyzed_work_centers,
                "total_bottlenecks": len(self.bottlenecks),
                "critical_count": sum(1 for b in self.bottlenecks if b.severity == "critical"),
                "total_impact_score": round(sum(b.impact_score for b in self.bottlenecks), 4),
            },
        }


# ═══════════════════════════════════════════════════════════════════════════════
# CAPACITY ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════════

def utilization_status(utilization_percent: float) -> str:
    if utilization_percent > 100:
        return "sobrecarga"
    if utilization_percent > 90:
        return "alta_utilizacao"
    if utilization_percent > 70:
        return "normal"
    return "baixa_utilizacao"


def capacity_analysis(
    assignments: Union[Schedule, Iterable[Assignment]],
    work_centers: Union[Mapping[str, WorkCenter], Iterable[WorkCenter]],
    period_start: datetime,
    period_end: datetime,
    work_center_ids: Optional[Iterable[str]] = None,
) -> CapacityAnalysis:
    """
    Carga por centro de trabalho no período.

    As horas de um assignment contam no período em que começa.

    Args:
        assignments: Schedule ou assignments (ex.: assignments_from_orders)
        work_centers: Centros a analisar
        period_start: Início do período
        period_end: Fim do período
        work_center_ids: Filtro opcional de centros
    """
    if period_end <= period_start:
        raise InvalidInput(None, "period_end", "period end must be after period start")

    centers = list(work_centers.values()) if isinstance(work_centers, Mapping) else list(work_centers)
    if work_center_ids is not None:
        wanted = set(work_center_ids)
        centers = [c for c in centers if c.id in wanted]

    days = math.ceil((period_end - period_start).total_seconds() / 86400.0)

    df = assignments_frame(assignments)
    in_period = df[(df["scheduled_start"] >= period_start) & (df["scheduled_start"] <= period_end)]
    hours_by_center: pd.Series = in_period.groupby("work_center_id")["duration_hours"].sum()

    analysis = CapacityAnalysis(period_start=period_start, period_end=period_end, days_in_period=days)
    for center in centers:
        effective = effective_daily_capacity(center)
        capacity_total = effective * days
        scheduled = float(hours_by_center.get(center.id, 0.0))
        utilization = scheduled / capacity_total * 100.0 if capacity_total > 0 else 0.0
        analysis.work_centers.append(WorkCenterLoad(
            work_center_id=center.id,
            name=center.display_name,
            effective_daily_capacity=effective,
            capacity_total=capacity_total,
            scheduled_hours=scheduled,
            utilization_percent=utilization,
            status=utilization_status(utilization),
        ))
    return analysis


# ═══════════════════════════════════════════════════════════════════════════════
# BOTTLENECKS
# ═══════════════════════════════════════════════════════════════════════════════

def bottleneck_severity(utilization_percent: float) -> str:
    if utilization_percent > 100:
        return "critical"
    if utilization_percent > 95:
        return "high"
    return "medium"


def impact_score(utilization_percent: float, scheduled_hours: float) -> float:
    return min(utilization_percent / 100.0, 2.0) * (scheduled_hours / 1000.0)


def impact_description(score: float) -> str:
    if score > 1.5:
        return "Alto"
    if score > 1:
        return "Médio"
    return "Baixo"


def bottleneck_suggestions(utilization_percent: float) -> List[str]:
    """Sugestões de mitigação por regras de threshold."""
    suggestions = []
    if utilization_percent > 100:
        suggestions.extend([
            "Redistribuir carga para outros centros de trabalho",
            "Considerar turnos extra",
            "Rever tempos de setup",
        ])
    if utilization_percent > 95:
        suggestions.extend([
            "Agendar manutenção preventiva em horários de menor procura",
            "Formar operadores adicionais",
        ])
    suggestions.append("Monitorizar de perto a evolução da carga")
    return suggestions


def bottlenecks(
    analysis: CapacityAnalysis,
    threshold: Optional[float] = None,
) -> BottleneckReport:
    """
    Gargalos de uma análise de capacidade, ordenados por utilização descendente.

    Args:
        analysis: Resultado de capacity_analysis
        threshold: Utilização mínima (exclusiva) para ser gargalo (default: settings)
    """
    if threshold is None:
        threshold = Settings.get_config().bottleneck_threshold

    found = []
    for load in analysis.work_centers:
        if load.utilization_percent <= threshold:
            continue
        score = impact_score(load.utilization_percent, load.scheduled_hours)
        found.append(Bottleneck(
            work_center_id=load.work_center_id,
            name=load.name,
            utilization_percent=load.utilization_percent,
            scheduled_hours=load.scheduled_hours,
            capacity_total=load.capacity_total,
            severity=bottleneck_severity(load.utilization_percent),
            impact_score=score,
            impact_description=impact_description(score),
            affected_orders=int(load.scheduled_hours // 8),
            suggestions=bottleneck_suggestions(load.utilization_percent),
        ))

    found.sort(key=lambda b: b.utilization_percent, reverse=True)
    if found:
        logger.info(
            f"{len(found)} bottlenecks between {analysis.period_start.date()} and "
            f"{analysis.period_end.date()}: {[b.work_center_id for b in found]}"
        )
    return BottleneckReport(
        period_start=analysis.period_start,
        period_end=analysis.period_end,
        analyzed_work_centers=len(analysis.work_centers),
        bottlenecks=found,
    )


def identify_bottlenecks(
    assignments: Union[Schedule, Iterable[Assignment]],
    work_centers: Union[Mapping[str, WorkCenter], Iterable[WorkCenter]],
    period_start: datetime,
    period_end: datetime,
    work_center_ids: Optional[Iterable[str]] = None,
    threshold: Optional[float] = None,
) -> BottleneckReport:
    """capacity_analysis + bottlenecks para um período (e filtro opcional de centros)."""
    analysis = capacity_analysis(assignments, work_centers, period_start, period_end, work_center_ids)
    return bottlenecks(analysis, threshold)

"""
PRD Engine - Scenario Simulator
===============================

What-if determinístico: perturba o conjunto de ordens, volta a correr o scheduler
e compara as métricas com a baseline.

Cenários:
- capacity_increase: processing_hours × (1 - percentual_aumento/100)
- new_orders: acrescenta uma lista literal de ordens
- maintenance_downtime: soma duration_hours às ordens do centro em manutenção

Recomendações (thresholds):
- on_time_rate < 80%      -> alert / high
- avg_lateness_days > 5   -> action / medium
- utilization_rate < 0.6  -> optimization / low
"""

from __future__ import annotations

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from prd_engine.evaluation.metrics import compute_metrics
from prd_engine.scheduling.conflicts import overlaps
from prd_engine.scheduling.engine import run
from prd_engine.scheduling.errors import InvalidInput
from prd_engine.scheduling.types import (
    Clock,
    ProductionOrder,
    Schedule,
    ScheduleMetrics,
    WorkCenter,
    parse_timestamp,
    system_clock,
)
from prd_engine.scheduling.validation import validate_orders, validate_work_centers

logger = logging.getLogger(__name__)


class ScenarioType(str, Enum):
    """Cenários suportados."""
    CAPACITY_INCREASE = "capacity_increase"
    NEW_ORDERS = "new_orders"
    MAINTENANCE_DOWNTIME = "maintenance_downtime"


SCENARIO_ALIASES = {
    "aumento_capacidade": ScenarioType.CAPACITY_INCREASE,
    "novos_pedidos": ScenarioType.NEW_ORDERS,
    "manutencao_programada": ScenarioType.MAINTENANCE_DOWNTIME,
}

ON_TIME_ALERT_THRESHOLD = 80.0
LATENESS_ACTION_THRESHOLD = 5.0
UTILIZATION_OPTIMIZATION_THRESHOLD = 0.6


def resolve_scenario(name: Union[str, ScenarioType]) -> ScenarioType:
    if isinstance(name, ScenarioType):
        return name
    key = (name or "").strip().lower()
    if key in SCENARIO_ALIASES:
        return SCENARIO_ALIASES[key]
    try:
        return ScenarioType(key)
    except ValueError:
        raise InvalidInput(None, "scenario", f"unknown scenario {name!r}") from None


def _to_float(value: Any, field_name: str, record_id: Optional[str] = None) -> float:
    if value is None:
        raise InvalidInput(record_id, field_name, "required")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidInput(record_id, field_name, f"not a number: {value!r}") from None


# ═══════════════════════════════════════════════════════════════════════════════
# SCENARIO DELTA
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class MaintenanceWindow:
    """Manutenção num centro de trabalho."""
    work_center_id: str
    duration_hours: float
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MaintenanceWindow":
        center = payload.get("work_center_id") or payload.get("centro_trabalho_id")
        hours = payload.get("duration_hours", payload.get("duracao_horas"))
        if not center:
            raise InvalidInput(None, "work_center_id", "maintenance entry without work center")
        duration = _to_float(hours, "duration_hours", str(center))
        if duration < 0:
            raise InvalidInput(str(center), "duration_hours", "maintenance duration must be >= 0")
        start = payload.get("start") or payload.get("data_inicio")
        end = payload.get("end") or payload.get("data_fim")
        try:
            start_at = parse_timestamp(start) if start else None
            end_at = parse_timestamp(end) if end else None
        except ValueError as e:
            raise InvalidInput(str(center), "start/end", str(e)) from None
        return cls(
            work_center_id=str(center),
            duration_hours=duration,
            start=start_at,
            end=end_at,
        )

    def affects(self, order: ProductionOrder) -> bool:
        if order.work_center_id != self.work_center_id:
            return False
        if self.start and self.end and order.planned_start and order.planned_end:
            return overlaps(order.planned_start, order.planned_end, self.start, self.end)
        return True


@dataclass
class ScenarioDelta:
    """Perturbação estruturada a aplicar a uma cópia das ordens."""
    scenario: ScenarioType
    capacity_increase_percent: float = 0.0
    new_orders: List[Mapping[str, Any]] = field(default_factory=list)
    maintenance: List[MaintenanceWindow] = field(default_factory=list)

    @classmethod
    def from_dict(cls, scenario: Union[str, ScenarioType], payload: Optional[Mapping[str, Any]]) -> "ScenarioDelta":
        kind = resolve_scenario(scenario)
        payload = payload or {}
        delta = cls(scenario=kind)

        if kind == ScenarioType.CAPACITY_INCREASE:
            raw = payload.get("percentual_aumento", payload.get("percent"))
            percent = _to_float(raw, "percentual_aumento")
            if percent < 0 or percent >= 100:
                raise InvalidInput(None, "percentual_aumento", "must be within [0, 100)")
            delta.capacity_increase_percent = percent
        elif kind == ScenarioType.NEW_ORDERS:
            delta.new_orders = list(payload.get("new_orders") or payload.get("novos_pedidos") or [])
        elif kind == ScenarioType.MAINTENANCE_DOWNTIME:
            entries = payload.get("maintenance") or payload.get("manutencao") or []
            delta.maintenance = [MaintenanceWindow.from_dict(e) for e in entries]
        return delta


def apply_scenario(
    delta: ScenarioDelta,
    orders: List[ProductionOrder],
    work_centers: Mapping[str, WorkCenter],
) -> List[ProductionOrder]:
    """Aplica o delta a uma cópia das ordens e devolve a nova lista."""
    if delta.scenario == ScenarioType.CAPACITY_INCREASE:
        factor = 1.0 - delta.capacity_increase_percent / 100.0
        return [dataclasses.replace(o, processing_hours=o.processing_hours * factor) for o in orders]

    if delta.scenario == ScenarioType.NEW_ORDERS:
        injected = validate_orders(delta.new_orders, work_centers.keys())
        existing = {o.id for o in orders}
        duplicated = [o.id for o in injected if o.id in existing]
        if duplicated:
            raise InvalidInput(duplicated[0], "id", "new order id already exists in baseline")
        return list(orders) + injected

    result = []
    for order in orders:
        extra = sum(w.duration_hours for w in delta.maintenance if w.affects(order))
        result.append(dataclasses.replace(order, processing_hours=order.processing_hours + extra) if extra else order)
    return result


# ═══════════════════════════════════════════════════════════════════════════════
# RESULT
# ═══════════════════════════════════════════════════════════════════════════════

def recommendations(metrics: ScheduleMetrics) -> List[Dict[str, str]]:
    """Recomendações por thresholds sobre as métricas simuladas."""
    result = []
    if metrics.on_time_rate < ON_TIME_ALERT_THRESHOLD:
        result.append({
            "type": "alert",
            "priority": "high",
            "message": "Taxa de pontualidade abaixo de 80%. Considere aumentar a capacidade ou rever prioridades.",
        })
    if metrics.avg_lateness_days > LATENESS_ACTION_THRESHOLD:
        result.append({
            "type": "action",
            "priority": "medium",
            "message": "Atraso médio elevado. Considere horas extra ou subcontratação.",
        })
    if metrics.utilization_rate < UTILIZATION_OPTIMIZATION_THRESHOLD:
        result.append({
            "type": "optimization",
            "priority": "low",
            "message": "Utilização baixa. Há espaço para aceitar mais encomendas ou consolidar produção.",
        })
    return result


def metric_differences(baseline: ScheduleMetrics, simulated: ScheduleMetrics) -> Dict[str, float]:
    """simulated - baseline para as métricas comparadas."""
    return {
        "on_time_rate": round(simulated.on_time_rate - baseline.on_time_rate, 4),
        "avg_lateness_days": round(simulated.avg_lateness_days - baseline.avg_lateness_days, 4),
        "utilization_rate": round(simulated.utilization_rate - baseline.utilization_rate, 4),
    }


@dataclass
class SimulationResult:
    """Resultado de uma simulação."""
    scenario: ScenarioType
    parameters: Dict[str, Any]
    simulated_orders: List[ProductionOrder]
    schedule: Schedule
    baseline_metrics: ScheduleMetrics

    @property
    def metrics(self) -> ScheduleMetrics:
        return self.schedule.metrics

    @property
    def differences(self) -> Dict[str, float]:
        return metric_differences(self.baseline_metrics, self.metrics)

    @property
    def recommendations(self) -> List[Dict[str, str]]:
        return recommendations(self.metrics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario.value,
            "parameters": self.parameters,
            "results": {
                "simulated_orders": [o.to_dict() for o in self.simulated_orders],
                "schedule": self.schedule.to_dict(),
                "metrics": self.metrics.to_dict(),
            },
            "comparison": {
                "baseline": self.baseline_metrics.to_dict(),
                "simulated": self.metrics.to_dict(),
                "differences": self.differences,
            },
            "recommendations": self.recommendations,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SIMULATE
# ═══════════════════════════════════════════════════════════════════════════════

def simulate(
    scenario: Union[str, ScenarioType],
    parameters: Optional[Mapping[str, Any]],
    baseline_orders: Iterable[Union[ProductionOrder, Mapping[str, Any]]],
    work_centers: Union[Mapping[str, WorkCenter], Iterable[Union[WorkCenter, Mapping[str, Any]]]],
    algorithm: Optional[str] = None,
    clock: Clock = system_clock,
    baseline_metrics: Optional[ScheduleMetrics] = None,
    run_parameters: Optional[Mapping[str, Any]] = None,
) -> SimulationResult:
    """
    Corre um cenário what-if.

    Args:
        scenario: capacity_increase / new_orders / maintenance_downtime
        parameters: parâmetros do cenário (percentual_aumento, new_orders, maintenance)
        baseline_orders: ordens atuais
        work_centers: centros de trabalho
        algorithm: heurística usada nos dois runs
        clock: relógio injetado
        baseline_metrics: métricas de referência; por defeito, run da mesma heurística
            sobre as ordens sem perturbação
        run_parameters: parâmetros do scheduler (start_date, horizon_days, ...)

    Raises:
        InvalidInput: cenário ou parâmetros inválidos
    """
    if isinstance(work_centers, Mapping):
        work_centers = list(work_centers.values())
    centers = validate_work_centers(work_centers)
    orders = validate_orders(baseline_orders, centers.keys())
    delta = ScenarioDelta.from_dict(scenario, parameters)

    if baseline_metrics is None:
        baseline_schedule = run(orders, centers, algorithm, run_parameters, clock)
        baseline_metrics = compute_metrics(baseline_schedule)

    simulated_orders = apply_scenario(delta, orders, centers)
    schedule = run(simulated_orders, centers, algorithm, run_parameters, clock)

    result = SimulationResult(
        scenario=delta.scenario,
        parameters=dict(parameters or {}),
        simulated_orders=simulated_orders,
        schedule=schedule,
        baseline_metrics=baseline_metrics,
    )
    logger.info(f"Simulation {delta.scenario.value}: differences {result.differences}")
    return result


def simulate_many(
    requests: Iterable[Mapping[str, Any]],
    max_workers: int = 4,
) -> List[SimulationResult]:
    """
    Corre várias simulações em paralelo (cada run tem o seu próprio ledger).

    Cada pedido é um dict com os argumentos de simulate().
    """
    requests = list(requests)
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="simulate") as executor:
        futures = [executor.submit(simulate, **request) for request in requests]
        return [f.result() for f in futures]

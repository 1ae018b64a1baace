"""
PRD Engine - Scheduling API
===========================

Endpoints REST para o motor de scheduling.

Endpoints:
- GET  /scheduling/status                         - Estado do módulo
- GET  /scheduling/algorithms                     - Heurísticas disponíveis
- PUT  /scheduling/orders                         - Sincroniza ordens (store)
- PUT  /scheduling/work-centers                   - Sincroniza centros de trabalho
- POST /scheduling/runs                           - Gera um Schedule (draft)
- GET  /scheduling/schedules/{id}                 - Obtém um Schedule
- POST /scheduling/schedules/{id}/validate        - Validação pré-apply
- POST /scheduling/schedules/{id}/apply           - Aplica (409 em conflito)
- POST /scheduling/orders/{id}/reschedule         - Reagenda uma ordem
- GET  /scheduling/orders/{id}/alternatives       - Alternativas de agendamento
- GET  /scheduling/work-centers/{id}/capacity     - Perfil de capacidade
- POST /scheduling/bottlenecks                    - Gargalos num período
- POST /scheduling/simulations                    - Cenário what-if
- POST /scheduling/views/{view_type}              - Gantt / calendário / quadro
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from prd_engine.dashboards.schedule_views import build_view
from prd_engine.evaluation.bottlenecks import identify_bottlenecks
from prd_engine.evaluation.metrics import (
    assignments_from_orders,
    current_schedule_metrics,
    metrics_summary,
    schedule_improvements,
)
from prd_engine.scheduling.alternatives import alternative_schedules
from prd_engine.scheduling.calendar import CapacityLedger, capacity_profile
from prd_engine.scheduling.engine import (
    ACTIVE_STATUSES,
    SCHEDULABLE_STATUSES,
    InMemoryOrderStore,
    apply_schedule,
    reschedule_order,
    run,
)
from prd_engine.scheduling.errors import InvalidInput, ScheduleConflict, SchedulingError
from prd_engine.scheduling.types import (
    Clock,
    Schedule,
    SchedulingAlgorithm,
    WorkCenter,
    fixed_clock,
    parse_timestamp,
    system_clock,
)
from prd_engine.scheduling.validation import validate_orders, validate_schedule, validate_work_centers
from prd_engine.simulation.scenarios import ScenarioType, simulate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduling", tags=["Scheduling"])


# ═══════════════════════════════════════════════════════════════════════════════
# STATE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class SchedulingState:
    """Estado do host: ordens persistidas, centros e schedules gerados."""
    store: InMemoryOrderStore = field(default_factory=InMemoryOrderStore)
    work_centers: Dict[str, WorkCenter] = field(default_factory=dict)
    schedules: Dict[str, Schedule] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


_state = SchedulingState()


def get_state() -> SchedulingState:
    return _state


def reset_state() -> None:
    """Limpa o estado em memória (testes)."""
    global _state
    _state = SchedulingState()


def _clock(now: Optional[str]) -> Clock:
    return fixed_clock(now) if now else system_clock


def _to_http(e: Exception) -> HTTPException:
    if isinstance(e, ScheduleConflict):
        return HTTPException(status_code=409, detail=e.to_dict())
    if isinstance(e, SchedulingError):
        return HTTPException(status_code=422, detail=e.to_dict())
    if isinstance(e, ValueError):
        return HTTPException(status_code=422, detail=str(e))
    logger.error(f"Scheduling request failed: {e}")
    return HTTPException(status_code=500, detail=str(e))


def _get_schedule(state: SchedulingState, schedule_id: str) -> Schedule:
    schedule = state.schedules.get(schedule_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail=f"Schedule {schedule_id} not found")
    return schedule


# ═══════════════════════════════════════════════════════════════════════════════
# REQUEST MODELS
# ═══════════════════════════════════════════════════════════════════════════════

class OrdersRequest(BaseModel):
    """Ordens a sincronizar no store."""
    orders: List[Dict[str, Any]] = Field(..., description="Registos de ordens")


class WorkCentersRequest(BaseModel):
    """Centros de trabalho a sincronizar."""
    work_centers: List[Dict[str, Any]] = Field(..., description="Registos de centros")


class RunRequest(BaseModel):
    """Request para gerar um Schedule."""
    orders: Optional[List[Dict[str, Any]]] = Field(None, description="Ordens (default: store)")
    work_centers: Optional[List[Dict[str, Any]]] = Field(None, description="Centros (default: registados)")
    algorithm: Optional[str] = Field(None, description="edd, spt, critical_ratio, capacity_constrained")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="start_date, horizon_days, allow_partial")
    now: Optional[str] = Field(None, description="Relógio fixo (ISO-8601)")


class ValidateRequest(BaseModel):
    """Opções de validação."""
    blocking: Optional[List[str]] = Field(None, description="Tipos bloqueantes")


class RescheduleRequest(BaseModel):
    """Nova janela para uma ordem."""
    start: str
    end: str
    work_center_id: Optional[str] = None


class BottleneckRequest(BaseModel):
    """Período a analisar."""
    period_start: str
    period_end: str
    work_center_ids: Optional[List[str]] = None
    schedule_id: Optional[str] = Field(None, description="Schedule a analisar (default: estado atual)")
    threshold: Optional[float] = None


class SimulationRequest(BaseModel):
    """Cenário what-if."""
    scenario: str = Field(..., description="capacity_increase, new_orders, maintenance_downtime")
    parameters: Dict[str, Any] = Field(default_factory=dict)
    algorithm: Optional[str] = None
    run_parameters: Dict[str, Any] = Field(default_factory=dict)
    now: Optional[str] = None


class ViewRequest(BaseModel):
    """Projeção de um Schedule."""
    schedule_id: str
    now: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/status")
async def get_scheduling_status(state: SchedulingState = Depends(get_state)):
    """Get scheduling module status."""
    return {
        "service": "PRD Scheduling Engine",
        "status": "operational",
        "algorithms": [a.value for a in SchedulingAlgorithm],
        "scenarios": [s.value for s in ScenarioType],
        "orders": len(state.store.orders()),
        "work_centers": len(state.work_centers),
        "schedules": len(state.schedules),
    }


@router.get("/algorithms")
async def get_algorithms():
    """Lista heurísticas disponíveis."""
    return {
        "algorithms": [
            {"id": "edd", "name": "Earliest Due Date", "description": "Prioriza por data de entrega"},
            {"id": "spt", "name": "Shortest Processing Time", "description": "Prioriza ordens mais curtas"},
            {"id": "critical_ratio", "name": "Critical Ratio", "description": "Tempo restante / trabalho restante"},
            {
                "id": "capacity_constrained",
                "name": "Capacity Constrained",
                "description": "Prioridade + data de entrega, respeitando a capacidade de cada centro",
            },
        ]
    }


@router.put("/orders")
async def put_orders(request: OrdersRequest, state: SchedulingState = Depends(get_state)):
    """Sincroniza ordens no store (upsert)."""
    try:
        orders = validate_orders(request.orders, state.work_centers.keys() if state.work_centers else None)
        return {"updated_order_ids": state.store.upsert(orders)}
    except Exception as e:
        raise _to_http(e) from e


@router.put("/work-centers")
async def put_work_centers(request: WorkCentersRequest, state: SchedulingState = Depends(get_state)):
    """Sincroniza centros de trabalho (substitui os registados)."""
    try:
        centers = validate_work_centers(request.work_centers)
        with state.lock:
            state.work_centers = centers
        return {"work_center_ids": sorted(centers)}
    except Exception as e:
        raise _to_http(e) from e


@router.post("/runs")
async def create_run(request: RunRequest, state: SchedulingState = Depends(get_state)):
    """
    Gera um Schedule em draft.

    Sem `orders`, usa as ordens planeadas e liberadas do store; sem `work_centers`,
    usa os registados. `improvements` compara com as métricas do estado atual.
    """
    try:
        centers = (
            validate_work_centers(request.work_centers)
            if request.work_centers is not None
            else state.work_centers
        )
        if request.orders is not None:
            orders = request.orders
        else:
            orders = state.store.orders(SCHEDULABLE_STATUSES)
        schedule = run(orders, centers, request.algorithm, request.parameters, _clock(request.now))
        with state.lock:
            state.schedules[schedule.id] = schedule
        baseline = current_schedule_metrics(state.store.orders(ACTIVE_STATUSES))
        result = schedule.to_dict()
        result["metrics_summary"] = metrics_summary(schedule)
        result["current_metrics"] = baseline.to_dict()
        result["improvements"] = schedule_improvements(baseline, schedule.metrics)
        return result
    except Exception as e:
        raise _to_http(e) from e


@router.get("/schedules/{schedule_id}")
async def get_schedule(schedule_id: str, state: SchedulingState = Depends(get_state)):
    """Obtém um Schedule gerado."""
    return _get_schedule(state, schedule_id).to_dict()


@router.post("/schedules/{schedule_id}/validate")
async def post_validate(
    schedule_id: str,
    request: Optional[ValidateRequest] = None,
    state: SchedulingState = Depends(get_state),
):
    """Validação pré-apply contra o estado comprometido."""
    schedule = _get_schedule(state, schedule_id)
    blocking = frozenset(request.blocking) if request and request.blocking is not None else None
    try:
        with state.store.transaction() as tx:
            committed = tx.committed_windows()
        return validate_schedule(schedule, committed, blocking=blocking).to_dict()
    except Exception as e:
        raise _to_http(e) from e


@router.post("/schedules/{schedule_id}/apply")
async def post_apply(schedule_id: str, state: SchedulingState = Depends(get_state)):
    """Aplica um Schedule (409 com as ordens em conflito)."""
    schedule = _get_schedule(state, schedule_id)
    try:
        result = apply_schedule(schedule, state.store)
        with state.lock:
            state.schedules[schedule_id] = result.schedule
        return result.to_dict()
    except Exception as e:
        raise _to_http(e) from e


@router.post("/orders/{order_id}/reschedule")
async def post_reschedule(order_id: str, request: RescheduleRequest, state: SchedulingState = Depends(get_state)):
    """Reagenda uma ordem (409 se colidir, 422 se o centro não estiver registado)."""
    try:
        if request.work_center_id is not None and request.work_center_id not in state.work_centers:
            raise InvalidInput(order_id, "work_center_id", f"unknown work center {request.work_center_id!r}")
        order = reschedule_order(
            state.store,
            order_id,
            parse_timestamp(request.start),
            parse_timestamp(request.end),
            request.work_center_id,
        )
        return order.to_dict()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except Exception as e:
        raise _to_http(e) from e


@router.get("/orders/{order_id}/alternatives")
async def get_alternatives(
    order_id: str,
    now: Optional[str] = Query(None, description="Relógio fixo (ISO-8601)"),
    state: SchedulingState = Depends(get_state),
):
    """Alternativas de tempo, recurso e divisão para uma ordem."""
    order = state.store.get(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    try:
        with state.store.transaction() as tx:
            committed = tx.committed_windows()
        return alternative_schedules(order, state.work_centers, committed, _clock(now))
    except Exception as e:
        raise _to_http(e) from e


@router.get("/work-centers/{work_center_id}/capacity")
async def get_capacity(
    work_center_id: str,
    start: str = Query(..., description="Primeiro dia (YYYY-MM-DD)"),
    end: str = Query(..., description="Último dia (YYYY-MM-DD)"),
    state: SchedulingState = Depends(get_state),
):
    """Perfil diário de capacidade (teórica, efetiva, reservada)."""
    center = state.work_centers.get(work_center_id)
    if center is None:
        raise HTTPException(status_code=404, detail=f"Work center {work_center_id} not found")
    try:
        with state.store.transaction() as tx:
            committed = tx.committed_windows()
        ledger = CapacityLedger.from_assignments(committed, state.work_centers)
        return {
            "work_center": center.to_dict(),
            "profile": capacity_profile(center, parse_timestamp(start).date(), parse_timestamp(end).date(), ledger),
        }
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except Exception as e:
        raise _to_http(e) from e


@router.post("/bottlenecks")
async def post_bottlenecks(request: BottleneckRequest, state: SchedulingState = Depends(get_state)):
    """Gargalos num período, para um Schedule ou para o estado atual."""
    if request.schedule_id:
        source = _get_schedule(state, request.schedule_id)
    else:
        source = assignments_from_orders(state.store.orders())
    try:
        report = identify_bottlenecks(
            source,
            state.work_centers,
            parse_timestamp(request.period_start),
            parse_timestamp(request.period_end),
            request.work_center_ids,
            request.threshold,
        )
        return report.to_dict()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except Exception as e:
        raise _to_http(e) from e


@router.post("/simulations")
async def post_simulation(request: SimulationRequest, state: SchedulingState = Depends(get_state)):
    """
    Cenário what-if sobre as ordens planeadas e liberadas do store.

    A baseline são as métricas do estado atual (ordens planeadas, liberadas e em produção).
    """
    try:
        result = simulate(
            request.scenario,
            request.parameters,
            state.store.orders(SCHEDULABLE_STATUSES),
            state.work_centers,
            algorithm=request.algorithm,
            clock=_clock(request.now),
            baseline_metrics=current_schedule_metrics(state.store.orders(ACTIVE_STATUSES)),
            run_parameters=request.run_parameters,
        )
        return result.to_dict()
    except Exception as e:
        raise _to_http(e) from e


@router.post("/views/{view_type}")
async def post_view(view_type: str, request: ViewRequest, state: SchedulingState = Depends(get_state)):
    """Projeção de um Schedule: gantt, calendar ou board."""
    schedule = _get_schedule(state, request.schedule_id)
    try:
        return build_view(view_type, schedule, state.store.orders(), state.work_centers, _clock(request.now))
    except Exception as e:
        raise _to_http(e) from e

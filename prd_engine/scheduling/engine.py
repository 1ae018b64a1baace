"""
PRD Engine - Scheduler
======================

Orquestração de um run de scheduling e aplicação do resultado.

Fluxo:
    run(orders, work_centers, algorithm, parameters, clock) -> Schedule (draft)
    apply_schedule(schedule, store) -> ApplyResult (draft -> applied)

O run é uma função pura dos inputs e do relógio injetado: o CapacityLedger é criado
no início da chamada e descartado no fim. O único efeito externo é o apply, feito
numa transação do OrderStore com a deteção de conflitos repetida contra o estado
comprometido mais recente.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
import threading
import warnings
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import (
    Any,
    ContextManager,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Set,
    Union,
)

from prd_engine.settings import Settings
from prd_engine.evaluation.metrics import compute_metrics
from prd_engine.scheduling.conflicts import conflicts
from prd_engine.scheduling.errors import InvalidInput, ScheduleConflict
from prd_engine.scheduling.heuristics import PlacementContext, get_heuristic, resolve_algorithm
from prd_engine.scheduling.types import (
    Assignment,
    Clock,
    OrderStatus,
    ProductionOrder,
    Schedule,
    SchedulingAlgorithm,
    SchedulingParameters,
    WorkCenter,
    freeze_parameters,
    lateness_days,
    system_clock,
)
from prd_engine.scheduling.validation import validate_orders, validate_work_centers

logger = logging.getLogger(__name__)

# Ordens que entram num novo run (as restantes mantêm a janela comprometida)
SCHEDULABLE_STATUSES = frozenset({OrderStatus.PLANNED, OrderStatus.RELEASED})

# Ordens que contam para as métricas do estado atual
ACTIVE_STATUSES = frozenset({OrderStatus.PLANNED, OrderStatus.RELEASED, OrderStatus.IN_PROGRESS})


# ═══════════════════════════════════════════════════════════════════════════════
# RUN
# ═══════════════════════════════════════════════════════════════════════════════

def _schedule_id(
    orders: List[ProductionOrder],
    work_centers: Mapping[str, WorkCenter],
    algorithm: SchedulingAlgorithm,
    parameters: Dict[str, Any],
    now: datetime,
) -> str:
    payload = json.dumps(
        {
            "orders": [o.to_dict() for o in orders],
            "work_centers": [work_centers[k].to_dict() for k in sorted(work_centers)],
            "algorithm": algorithm.value,
            "parameters": parameters,
            "now": now.isoformat(),
        },
        sort_keys=True,
        default=str,
    )
    return "sched-" + hashlib.sha1(payload.encode()).hexdigest()[:16]


def run(
    orders: Iterable[Union[ProductionOrder, Mapping[str, Any]]],
    work_centers: Union[Mapping[str, WorkCenter], Iterable[Union[WorkCenter, Mapping[str, Any]]]],
    algorithm: Union[str, SchedulingAlgorithm, None] = None,
    parameters: Union[SchedulingParameters, Mapping[str, Any], None] = None,
    clock: Clock = system_clock,
) -> Schedule:
    """
    Executa um run de scheduling.

    Args:
        orders: Ordens (dicts ou ProductionOrder)
        work_centers: Centros (dicts, WorkCenter ou mapping id -> WorkCenter)
        algorithm: edd / spt / critical_ratio / capacity_constrained (default: settings)
        parameters: start_date, horizon_days, allow_partial, extras
        clock: Relógio injetado (now usado pelo CR e como início por defeito)

    Returns:
        Schedule em draft

    Raises:
        InvalidInput: registos malformados (nada é processado)
        CapacityExceeded: ordem sem slot no horizonte (se allow_partial=False)
    """
    config = Settings.get_config()

    if isinstance(work_centers, Mapping):
        work_centers = list(work_centers.values())
    centers = validate_work_centers(work_centers)
    order_list = validate_orders(orders, centers.keys())

    resolved, warning = resolve_algorithm(algorithm if algorithm is not None else config.default_algorithm)
    schedule_warnings: List[str] = []
    if warning is not None:
        warnings.warn(warning, stacklevel=2)
        logger.warning(str(warning))
        schedule_warnings.append(str(warning))

    if not isinstance(parameters, SchedulingParameters):
        parameters = SchedulingParameters.from_dict(parameters)

    now = clock()
    start = parameters.start_date or now
    horizon = parameters.horizon_days or config.horizon_days
    resolved_parameters = SchedulingParameters(
        start_date=start,
        horizon_days=horizon,
        allow_partial=parameters.allow_partial,
        extra=dict(parameters.extra),
    ).to_dict()

    heuristic = get_heuristic(resolved)
    context = PlacementContext(
        work_centers=centers,
        start=start,
        now=now,
        horizon_days=horizon,
        allow_partial=parameters.allow_partial,
    )
    placed, unschedulable = heuristic.place(heuristic.order(order_list, now), context)

    assignments = tuple(
        Assignment(
            order_id=p.order.id,
            work_center_id=p.work_center_id,
            scheduled_start=p.start,
            scheduled_end=p.end,
            duration_hours=p.order.total_hours,
            due_date=p.order.due_date,
            lateness_days=lateness_days(p.end, p.order.due_date),
        )
        for p in placed
    )

    schedule = Schedule(
        id=_schedule_id(order_list, centers, resolved, resolved_parameters, now),
        algorithm=resolved,
        parameters=freeze_parameters(resolved_parameters),
        assignments=assignments,
        metrics=compute_metrics(assignments),
        created_at=now,
        warnings=tuple(schedule_warnings),
        unschedulable=tuple(unschedulable),
    )

    logger.info(
        f"Schedule {schedule.id}: {resolved.value}, {len(assignments)} assignments, "
        f"{len(unschedulable)} unschedulable, on-time {schedule.metrics.on_time_rate:.1f}%"
    )
    return schedule


# ═══════════════════════════════════════════════════════════════════════════════
# ORDER STORE (persistence collaborator)
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CommittedWindow:
    """Janela planeada comprometida de uma ordem."""
    order_id: str
    work_center_id: str
    scheduled_start: datetime
    scheduled_end: datetime


class OrderStoreTransaction(Protocol):
    def get_order(self, order_id: str) -> Optional[ProductionOrder]: ...

    def committed_windows(self) -> List[CommittedWindow]: ...

    def write_window(self, order_id: str, work_center_id: str, start: datetime, end: datetime) -> None: ...

    def is_applied(self, schedule_id: str) -> bool: ...

    def mark_applied(self, schedule_id: str) -> None: ...


class OrderStore(Protocol):
    """Colaborador de persistência: uma transação atómica por apply."""

    def transaction(self) -> ContextManager[OrderStoreTransaction]: ...


class _InMemoryTransaction:
    def __init__(self, orders: Dict[str, ProductionOrder], applied: Set[str]):
        self.orders = orders
        self.applied = applied

    def get_order(self, order_id):
        return self.orders.get(order_id)

    def committed_windows(self):
        return [
            CommittedWindow(o.id, o.work_center_id, o.planned_start, o.planned_end)
            for o in self.orders.values()
            if o.planned_start is not None
            and o.planned_end is not None
            and o.status != OrderStatus.CANCELLED
        ]

    def write_window(self, order_id, work_center_id, start, end):
        order = self.orders.get(order_id)
        if order is None:
            raise InvalidInput(order_id, "order_id", "order not found in store")
        self.orders[order_id] = dataclasses.replace(
            order, work_center_id=work_center_id, planned_start=start, planned_end=end
        )

    def is_applied(self, schedule_id):
        return schedule_id in self.applied

    def mark_applied(self, schedule_id):
        self.applied.add(schedule_id)


class InMemoryOrderStore:
    """
    OrderStore em memória.

    Cada transação trabalha numa cópia e só a publica se terminar sem exceção,
    pelo que um apply falhado não deixa escritas parciais.
    """

    def __init__(self, orders: Iterable[ProductionOrder] = ()):
        self._lock = threading.RLock()
        self._orders: Dict[str, ProductionOrder] = {o.id: o for o in orders}
        self._applied: Set[str] = set()

    def upsert(self, orders: Iterable[ProductionOrder]) -> List[str]:
        with self._lock:
            ids = []
            for order in orders:
                self._orders[order.id] = order
                ids.append(order.id)
            return ids

    def get(self, order_id: str) -> Optional[ProductionOrder]:
        with self._lock:
            return self._orders.get(order_id)

    def orders(self, statuses: Optional[Iterable[OrderStatus]] = None) -> List[ProductionOrder]:
        with self._lock:
            if statuses is None:
                return list(self._orders.values())
            wanted = frozenset(statuses)
            return [o for o in self._orders.values() if o.status in wanted]

    @contextmanager
    def transaction(self) -> Iterator[_InMemoryTransaction]:
        with self._lock:
            tx = _InMemoryTransaction(dict(self._orders), set(self._applied))
            yield tx
            self._orders = tx.orders
            self._applied = tx.applied


# ═══════════════════════════════════════════════════════════════════════════════
# APPLY / RESCHEDULE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ApplyResult:
    """Resultado de um apply."""
    schedule: Schedule
    updated_order_ids: List[str] = field(default_factory=list)
    already_applied: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedule_id": self.schedule.id,
            "status": self.schedule.status.value,
            "updated_order_ids": self.updated_order_ids,
            "already_applied": self.already_applied,
        }


def apply_schedule(schedule: Schedule, store: OrderStore) -> ApplyResult:
    """
    Aplica um Schedule ao store numa única transação.

    Reaplicar o mesmo Schedule é um no-op.

    Raises:
        ScheduleConflict: sobreposição com janelas comprometidas por outras ordens
    """
    with store.transaction() as tx:
        if tx.is_applied(schedule.id):
            logger.info(f"Schedule {schedule.id} already applied, nothing to do")
            return ApplyResult(schedule.mark_applied(), [], already_applied=True)

        own_ids = {a.order_id for a in schedule.assignments}
        committed = [w for w in tx.committed_windows() if w.order_id not in own_ids]

        colliding: List[str] = []
        for assignment in schedule.assignments:
            colliding.extend(conflicts(
                committed,
                assignment.work_center_id,
                assignment.scheduled_start,
                assignment.scheduled_end,
            ))
        if colliding:
            logger.warning(f"Apply of {schedule.id} rejected, conflicts with {sorted(set(colliding))}")
            raise ScheduleConflict(colliding)

        for assignment in schedule.assignments:
            tx.write_window(
                assignment.order_id,
                assignment.work_center_id,
                assignment.scheduled_start,
                assignment.scheduled_end,
            )
        tx.mark_applied(schedule.id)

    updated = [a.order_id for a in schedule.assignments]
    logger.info(f"Schedule {schedule.id} applied to {len(updated)} orders")
    return ApplyResult(schedule.mark_applied(), updated)


def reschedule_order(
    store: OrderStore,
    order_id: str,
    start: datetime,
    end: datetime,
    work_center_id: Optional[str] = None,
) -> ProductionOrder:
    """
    Reagenda uma ordem, rejeitando se colidir com outra no mesmo centro.

    Raises:
        InvalidInput: fim antes do início ou ordem inexistente
        ScheduleConflict: com a lista de ordens em colisão
    """
    if end <= start:
        raise InvalidInput(order_id, "scheduled_end", "end must be after start")

    with store.transaction() as tx:
        order = tx.get_order(order_id)
        if order is None:
            raise InvalidInput(order_id, "order_id", "order not found in store")
        target = work_center_id or order.work_center_id

        colliding = conflicts(tx.committed_windows(), target, start, end, exclude=[order_id])
        if colliding:
            raise ScheduleConflict(colliding)

        tx.write_window(order_id, target, start, end)
        updated = tx.get_order(order_id)

    logger.info(f"Order {order_id} rescheduled to {start.isoformat()} - {end.isoformat()} on {target}")
    return updated

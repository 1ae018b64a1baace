"""
PRD Engine - Sequencing Heuristics
==================================

Heurísticas de sequenciamento (ordenar, depois colocar):
- EDD: Earliest Due Date
- SPT: Shortest Processing Time
- CR: Critical Ratio
- CC: Capacity-Constrained (prioridade + data de entrega, colocação por centro)

Cada heurística é uma ordenação total (sort estável: empates mantêm a ordem de
entrada) seguida da colocação partilhada no Capacity Calendar. Passagem única, sem
backtracking.

EDD/SPT/CR usam um cursor serial único: cada ordem é colocada no calendário do seu
centro a partir do fim da ordem anterior. CC coloca cada ordem no primeiro slot livre
do seu centro, a partir do início do run (ou do planned_start da ordem).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Dict, List, Mapping, Optional, Tuple, Union

from prd_engine.scheduling.calendar import CapacityLedger, book, find_earliest_slot, slot_end
from prd_engine.scheduling.errors import CapacityExceeded, UnknownAlgorithm
from prd_engine.scheduling.types import (
    ProductionOrder,
    SchedulingAlgorithm,
    UnschedulableOrder,
    WorkCenter,
)

logger = logging.getLogger(__name__)


ALGORITHM_ALIASES: Dict[str, SchedulingAlgorithm] = {
    "earliest_due_date": SchedulingAlgorithm.EDD,
    "shortest_processing_time": SchedulingAlgorithm.SPT,
    "cr": SchedulingAlgorithm.CRITICAL_RATIO,
    "capacity": SchedulingAlgorithm.CAPACITY_CONSTRAINED,
}


def resolve_algorithm(
    name: Union[str, SchedulingAlgorithm, None],
) -> Tuple[SchedulingAlgorithm, Optional[UnknownAlgorithm]]:
    """
    Resolve o nome da heurística.

    Returns:
        (algoritmo, warning) - warning é UnknownAlgorithm quando houve fallback para EDD
    """
    if isinstance(name, SchedulingAlgorithm):
        return name, None
    key = (name or "").strip().lower()
    try:
        return SchedulingAlgorithm(key), None
    except ValueError:
        pass
    if key in ALGORITHM_ALIASES:
        return ALGORITHM_ALIASES[key], None
    return SchedulingAlgorithm.EDD, UnknownAlgorithm(str(name), SchedulingAlgorithm.EDD.value)


# ═══════════════════════════════════════════════════════════════════════════════
# ORDERING FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════════

def sequence_edd(orders: List[ProductionOrder]) -> List[ProductionOrder]:
    """
    EDD - Earliest Due Date.

    Minimiza lateness máximo.
    """
    return sorted(orders, key=lambda o: o.due_date)


def sequence_spt(orders: List[ProductionOrder]) -> List[ProductionOrder]:
    """
    SPT - Shortest Processing Time.

    Minimiza tempo médio de fluxo.
    """
    return sorted(orders, key=lambda o: o.processing_hours)


def critical_ratio(order: ProductionOrder, now: datetime) -> float:
    """
    CR = (due_date - now) [h] / (processing + setup) [h]

    CR < 1: atrasado ou vai atrasar
    CR = 1: on schedule
    CR > 1: à frente
    """
    time_remaining = (order.due_date - now).total_seconds() / 3600.0
    return time_remaining / order.total_hours


def sequence_critical_ratio(orders: List[ProductionOrder], now: datetime) -> List[ProductionOrder]:
    """CR - menor rácio primeiro (mais crítico)."""
    return sorted(orders, key=lambda o: critical_ratio(o, now))


def sequence_capacity_constrained(orders: List[ProductionOrder]) -> List[ProductionOrder]:
    """Prioridade descendente (urgent > high > normal > low), depois due_date."""
    return sorted(orders, key=lambda o: (-o.priority.rank, o.due_date))


# ═══════════════════════════════════════════════════════════════════════════════
# PLACEMENT
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class PlacementContext:
    """Estado de um run: ledger efémero + parâmetros de colocação."""
    work_centers: Mapping[str, WorkCenter]
    start: datetime
    now: datetime
    horizon_days: int
    allow_partial: bool = False
    ledger: CapacityLedger = field(default_factory=CapacityLedger)


@dataclass(frozen=True)
class PlacedOrder:
    """Ordem colocada (antes do cálculo de lateness)."""
    order: ProductionOrder
    work_center_id: str
    start: datetime
    end: datetime


class SequencingHeuristic:
    """Capacidade comum: order() e depois place()."""

    algorithm: ClassVar[SchedulingAlgorithm]
    serial: ClassVar[bool] = True

    def order(self, orders: List[ProductionOrder], now: datetime) -> List[ProductionOrder]:
        raise NotImplementedError

    def not_before(self, order: ProductionOrder, cursor: datetime, context: PlacementContext) -> datetime:
        return cursor

    def place(
        self,
        ordered: List[ProductionOrder],
        context: PlacementContext,
    ) -> Tuple[List[PlacedOrder], List[UnschedulableOrder]]:
        """
        Coloca as ordens em sequência no calendário de cada centro.

        Raises:
            CapacityExceeded: se uma ordem não couber no horizonte e allow_partial=False
        """
        placed: List[PlacedOrder] = []
        unschedulable: List[UnschedulableOrder] = []
        cursor = context.start

        for order in ordered:
            work_center = context.work_centers[order.work_center_id]
            earliest = self.not_before(order, cursor, context)
            try:
                start = find_earliest_slot(
                    context.ledger,
                    work_center,
                    order.total_hours,
                    earliest,
                    horizon_days=context.horizon_days,
                    order_id=order.id,
                )
                end = slot_end(work_center, start, order.total_hours, horizon_days=context.horizon_days)
            except CapacityExceeded as e:
                exc = CapacityExceeded(order.id, work_center.id, context.horizon_days)
                if not context.allow_partial:
                    raise exc from e
                logger.warning(f"Order {order.id} unschedulable: {exc}")
                unschedulable.append(UnschedulableOrder(order.id, work_center.id, str(exc)))
                continue

            book(context.ledger, work_center, start, end)
            placed.append(PlacedOrder(order, work_center.id, start, end))
            if self.serial:
                cursor = end

        return placed, unschedulable


class EarliestDueDate(SequencingHeuristic):
    algorithm = SchedulingAlgorithm.EDD

    def order(self, orders, now):
        return sequence_edd(orders)


class ShortestProcessingTime(SequencingHeuristic):
    algorithm = SchedulingAlgorithm.SPT

    def order(self, orders, now):
        return sequence_spt(orders)


class CriticalRatio(SequencingHeuristic):
    algorithm = SchedulingAlgorithm.CRITICAL_RATIO

    def order(self, orders, now):
        return sequence_critical_ratio(orders, now)


class CapacityConstrained(SequencingHeuristic):
    """Única heurística que coloca cada ordem de forma independente no seu centro."""

    algorithm = SchedulingAlgorithm.CAPACITY_CONSTRAINED
    serial = False

    def order(self, orders, now):
        return sequence_capacity_constrained(orders)

    def not_before(self, order, cursor, context):
        if order.planned_start is not None and order.planned_start > context.start:
            return order.planned_start
        return context.start


HEURISTICS: Dict[SchedulingAlgorithm, SequencingHeuristic] = {
    SchedulingAlgorithm.EDD: EarliestDueDate(),
    SchedulingAlgorithm.SPT: ShortestProcessingTime(),
    SchedulingAlgorithm.CRITICAL_RATIO: CriticalRatio(),
    SchedulingAlgorithm.CAPACITY_CONSTRAINED: CapacityConstrained(),
}


def get_heuristic(algorithm: SchedulingAlgorithm) -> SequencingHeuristic:
    return HEURISTICS[algorithm]

"""
PRD Engine - Scheduling Alternatives
====================================

Alternativas de agendamento para uma única ordem, contra o estado comprometido:
- tempo: primeiro slot livre no próprio centro e a janela atual deslocada ±1 dia
- recurso: primeiro slot livre em centros do mesmo tipo (kind)
- divisão: dois lotes (⌈q/2⌉ e ⌊q/2⌋) colocados em sequência no próprio centro
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from prd_engine.scheduling.calendar import CapacityLedger, book, find_earliest_slot, slot_end
from prd_engine.scheduling.conflicts import TimeWindow, conflicts
from prd_engine.scheduling.errors import CapacityExceeded, InvalidInput
from prd_engine.scheduling.types import Clock, ProductionOrder, WorkCenter, system_clock

logger = logging.getLogger(__name__)


def _window(work_center_id: str, start: datetime, end: datetime, **extra: Any) -> Dict[str, Any]:
    return {
        "work_center_id": work_center_id,
        "start": start.isoformat(),
        "end": end.isoformat(),
        **extra,
    }


def _earliest(
    ledger: CapacityLedger,
    work_center: WorkCenter,
    hours: float,
    not_before: datetime,
    horizon_days: Optional[int],
    order_id: str,
) -> Optional[Dict[str, Any]]:
    try:
        start = find_earliest_slot(ledger, work_center, hours, not_before, horizon_days, order_id)
        end = slot_end(work_center, start, hours, horizon_days)
    except CapacityExceeded as e:
        logger.info(f"No alternative slot on {work_center.id} for {order_id}: {e}")
        return None
    return {"start": start, "end": end}


def alternative_schedules(
    order: ProductionOrder,
    work_centers: Mapping[str, WorkCenter],
    committed: Iterable[TimeWindow] = (),
    clock: Clock = system_clock,
    horizon_days: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Alternativas de agendamento para uma ordem.

    Args:
        order: Ordem a reagendar
        work_centers: Centros conhecidos (id -> WorkCenter)
        committed: Janelas comprometidas (a própria ordem é ignorada)
        clock: Relógio injetado (nenhuma alternativa começa antes de now)
        horizon_days: Horizonte de pesquisa
    """
    own_center = work_centers.get(order.work_center_id)
    if own_center is None:
        raise InvalidInput(order.id, "work_center_id", f"unknown work center {order.work_center_id!r}")

    others = [w for w in committed if w.order_id != order.id]
    ledger = CapacityLedger.from_assignments(others, work_centers)
    now = clock()
    hours = order.total_hours

    # Tempo
    time_alternatives: List[Dict[str, Any]] = []
    slot = _earliest(ledger, own_center, hours, now, horizon_days, order.id)
    if slot:
        time_alternatives.append(_window(own_center.id, slot["start"], slot["end"], type="earliest_slot", feasible=True))

    if order.planned_start and order.planned_end:
        for shift_days in (-1, 1):
            start = order.planned_start + timedelta(days=shift_days)
            end = order.planned_end + timedelta(days=shift_days)
            colliding = conflicts(others, own_center.id, start, end)
            time_alternatives.append(_window(
                own_center.id, start, end,
                type="shift_earlier" if shift_days < 0 else "shift_later",
                feasible=not colliding and start >= now,
                conflicting_order_ids=colliding,
            ))

    # Recurso
    resource_alternatives: List[Dict[str, Any]] = []
    if own_center.kind:
        for center in sorted(work_centers.values(), key=lambda c: c.id):
            if center.id == own_center.id or center.kind != own_center.kind:
                continue
            slot = _earliest(ledger, center, hours, now, horizon_days, order.id)
            if slot:
                resource_alternatives.append(_window(
                    center.id, slot["start"], slot["end"],
                    type="alternative_work_center",
                    work_center_name=center.display_name,
                ))
        resource_alternatives.sort(key=lambda a: a["start"])

    # Divisão em dois lotes
    split_alternatives: List[Dict[str, Any]] = []
    if order.quantity > 1:
        first_qty = math.ceil(order.quantity / 2)
        second_qty = order.quantity - first_qty
        split_ledger = CapacityLedger.from_assignments(others, work_centers)
        lots = []
        cursor = now
        for index, qty in enumerate((first_qty, second_qty), start=1):
            lot_hours = order.processing_hours * qty / order.quantity + order.setup_hours
            slot = _earliest(split_ledger, own_center, lot_hours, cursor, horizon_days, order.id)
            if slot is None:
                lots = []
                break
            book(split_ledger, own_center, slot["start"], slot["end"])
            cursor = slot["end"]
            lots.append(_window(own_center.id, slot["start"], slot["end"], lot=index, quantity=qty, hours=round(lot_hours, 4)))
        if lots:
            split_alternatives.append({"type": "split_lots", "lots": lots})

    return {
        "order_id": order.id,
        "time_alternatives": time_alternatives,
        "resource_alternatives": resource_alternatives,
        "split_alternatives": split_alternatives,
    }

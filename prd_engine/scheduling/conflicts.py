"""
PRD Engine - Conflict Detector
==============================

Deteção de sobreposições de recursos.

Dois intervalos conflituam se forem do mesmo centro de trabalho e os intervalos
semiabertos [start, end) se intersetarem: uma ordem que termina exatamente quando
outra começa não é conflito.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Protocol, Tuple


class TimeWindow(Protocol):
    """Qualquer objeto com order_id, work_center_id, scheduled_start e scheduled_end."""
    order_id: str
    work_center_id: str
    scheduled_start: datetime
    scheduled_end: datetime


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Interseção de intervalos semiabertos."""
    return start_a < end_b and start_b < end_a


def conflicts(
    existing_assignments: Iterable[TimeWindow],
    work_center_id: str,
    start: datetime,
    end: datetime,
    exclude: Iterable[str] = (),
) -> List[str]:
    """
    Ordens que colidem com [start, end) no centro de trabalho.

    Args:
        existing_assignments: Janelas já comprometidas
        work_center_id: Centro de trabalho candidato
        start: Início candidato
        end: Fim candidato
        exclude: Ordens a ignorar (ex.: a própria ordem em reagendamento)

    Returns:
        Lista de order_id em conflito (ordem de entrada, sem duplicados)
    """
    skip = set(exclude)
    found: List[str] = []
    for window in existing_assignments:
        if window.work_center_id != work_center_id or window.order_id in skip:
            continue
        if overlaps(start, end, window.scheduled_start, window.scheduled_end) and window.order_id not in found:
            found.append(window.order_id)
    return found


def find_overlaps(assignments: Iterable[TimeWindow]) -> List[Tuple[str, str]]:
    """Todos os pares (order_a, order_b) sobrepostos no mesmo centro de trabalho."""
    by_center: Dict[str, List[TimeWindow]] = defaultdict(list)
    for window in assignments:
        by_center[window.work_center_id].append(window)

    pairs: List[Tuple[str, str]] = []
    for work_center_id in sorted(by_center):
        windows = sorted(by_center[work_center_id], key=lambda w: (w.scheduled_start, w.scheduled_end))
        active: List[TimeWindow] = []
        for window in windows:
            active = [a for a in active if a.scheduled_end > window.scheduled_start]
            for other in active:
                pairs.append((other.order_id, window.order_id))
            active.append(window)
    return pairs

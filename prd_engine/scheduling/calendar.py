"""
PRD Engine - Capacity Calendar
==============================

Modelo de capacidade por centro de trabalho e por dia.

Cada dia ativo tem uma janela de capacidade:

    [window_start, window_start + effective_daily_capacity)

    effective_daily_capacity = daily_capacity_hours
                               × availability_percent/100
                               × efficiency_percent/100

Regras de colocação (find_earliest_slot):
- ordens que cabem num dia nunca são partidas: ficam no primeiro dia cuja janela
  restante (depois do fill point e de not_before) tem a duração toda;
- ordens maiores do que a capacidade de um dia começam na cauda livre de um dia e
  continuam em dias ativos seguintes completamente livres (overflow para o dia seguinte).

O CapacityLedger guarda, por (centro, dia), as horas já reservadas e o fill point
(o fim mais tardio reservado nesse dia). Vive apenas durante uma chamada.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from prd_engine.settings import Settings
from prd_engine.scheduling.errors import CapacityExceeded
from prd_engine.scheduling.types import Assignment, WorkCenter

logger = logging.getLogger(__name__)

EPS = 1e-9
ONE_DAY = timedelta(days=1)


# ═══════════════════════════════════════════════════════════════════════════════
# CAPACITY LEDGER
# ═══════════════════════════════════════════════════════════════════════════════

class CapacityLedger:
    """Horas reservadas por (work_center_id, dia) durante um run."""

    def __init__(self):
        self._hours: Dict[Tuple[str, date], float] = {}
        self._fill: Dict[Tuple[str, date], datetime] = {}

    def booked_hours(self, work_center_id: str, day: date) -> float:
        return self._hours.get((work_center_id, day), 0.0)

    def fill_point(self, work_center_id: str, day: date) -> Optional[datetime]:
        return self._fill.get((work_center_id, day))

    def is_free(self, work_center_id: str, day: date) -> bool:
        return (work_center_id, day) not in self._fill

    def add(self, work_center_id: str, day: date, hours: float, until: datetime) -> None:
        key = (work_center_id, day)
        self._hours[key] = self._hours.get(key, 0.0) + hours
        current = self._fill.get(key)
        if current is None or until > current:
            self._fill[key] = until

    def items(self) -> Iterator[Tuple[Tuple[str, date], float]]:
        return iter(sorted(self._hours.items()))

    def __len__(self) -> int:
        return len(self._hours)

    @classmethod
    def from_assignments(
        cls,
        assignments: Iterable[Assignment],
        work_centers: Mapping[str, WorkCenter],
    ) -> "CapacityLedger":
        """Reconstrói um ledger a partir de janelas já comprometidas (Assignment ou equivalente)."""
        ledger = cls()
        for assignment in assignments:
            work_center = work_centers.get(assignment.work_center_id)
            if work_center is None:
                continue
            book(ledger, work_center, assignment.scheduled_start, assignment.scheduled_end)
        return ledger


# ═══════════════════════════════════════════════════════════════════════════════
# CALENDAR QUERIES
# ═══════════════════════════════════════════════════════════════════════════════

def effective_daily_capacity(work_center: WorkCenter) -> float:
    """Capacidade diária efetiva em horas."""
    return (
        work_center.daily_capacity_hours
        * (work_center.availability_percent / 100.0)
        * (work_center.efficiency_percent / 100.0)
    )


def is_active_day(work_center: WorkCenter, day: date) -> bool:
    """True se o dia da semana está no padrão de operação (0 = segunda)."""
    return day.weekday() in work_center.active_weekdays


def capacity_window(work_center: WorkCenter, day: date) -> Tuple[datetime, datetime]:
    """Janela de capacidade [início, fim) do dia."""
    start = datetime.combine(day, work_center.window_start)
    return start, start + timedelta(hours=effective_daily_capacity(work_center))


def _hours(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds() / 3600.0)


def _horizon(horizon_days: Optional[int]) -> int:
    return horizon_days if horizon_days else Settings.get_config().horizon_days


def _span_fits(
    ledger: CapacityLedger,
    work_center: WorkCenter,
    first_day: date,
    remaining: float,
    last_day: date,
    capacity: float,
) -> bool:
    """Verifica se os dias ativos após first_day estão livres para o overflow."""
    day = first_day + ONE_DAY
    while remaining > EPS:
        if day > last_day:
            return False
        if is_active_day(work_center, day):
            if not ledger.is_free(work_center.id, day):
                return False
            remaining -= capacity
        day += ONE_DAY
    return True


def find_earliest_slot(
    ledger: CapacityLedger,
    work_center: WorkCenter,
    duration_hours: float,
    not_before: datetime,
    horizon_days: Optional[int] = None,
    order_id: Optional[str] = None,
) -> datetime:
    """
    Primeiro instante >= not_before onde a ordem pode ser colocada.

    Pesquisa dia a dia, saltando dias inativos, até horizon_days depois de not_before.

    Raises:
        CapacityExceeded: se nenhum slot for encontrado no horizonte
    """
    horizon = _horizon(horizon_days)
    capacity = effective_daily_capacity(work_center)
    if capacity <= EPS or not work_center.active_weekdays:
        raise CapacityExceeded(order_id, work_center.id, horizon)

    split = duration_hours > capacity + EPS
    # A janela do dia anterior pode ainda estar aberta em not_before
    day = not_before.date() - ONE_DAY
    last_day = not_before.date() + timedelta(days=horizon)

    while day <= last_day:
        if is_active_day(work_center, day):
            window_start, window_end = capacity_window(work_center, day)
            start = max(window_start, not_before)
            fill = ledger.fill_point(work_center.id, day)
            if fill is not None and fill > start:
                start = fill
            free = _hours(start, window_end)

            if free > EPS:
                if not split and free + EPS >= duration_hours:
                    return start
                if split and _span_fits(ledger, work_center, day, duration_hours - free, last_day, capacity):
                    return start
        day += ONE_DAY

    raise CapacityExceeded(order_id, work_center.id, horizon)


def slot_end(
    work_center: WorkCenter,
    start: datetime,
    duration_hours: float,
    horizon_days: Optional[int] = None,
) -> datetime:
    """Fim de uma reserva de duration_hours que começa em start, percorrendo as janelas."""
    horizon = _horizon(horizon_days)
    if effective_daily_capacity(work_center) <= EPS or not work_center.active_weekdays:
        raise CapacityExceeded(None, work_center.id, horizon)

    remaining = duration_hours
    cursor = start
    day = start.date() - ONE_DAY
    last_day = start.date() + timedelta(days=horizon)

    while day <= last_day:
        if is_active_day(work_center, day):
            window_start, window_end = capacity_window(work_center, day)
            if window_end > cursor:
                segment_start = max(cursor, window_start)
                available = _hours(segment_start, window_end)
                if available + EPS >= remaining:
                    return segment_start + timedelta(hours=remaining)
                remaining -= available
                cursor = window_end
        day += ONE_DAY

    raise CapacityExceeded(None, work_center.id, horizon)


def daily_breakdown(work_center: WorkCenter, start: datetime, end: datetime) -> List[Tuple[date, float, datetime]]:
    """Horas de [start, end) dentro de cada janela ativa: (dia, horas, fim no dia)."""
    rows: List[Tuple[date, float, datetime]] = []
    day = start.date() - ONE_DAY
    while day <= end.date():
        if is_active_day(work_center, day):
            window_start, window_end = capacity_window(work_center, day)
            segment_start = max(start, window_start)
            segment_end = min(end, window_end)
            hours = _hours(segment_start, segment_end)
            if hours > EPS:
                rows.append((day, hours, segment_end))
        day += ONE_DAY
    return rows


def book(ledger: CapacityLedger, work_center: WorkCenter, start: datetime, end: datetime) -> float:
    """
    Reserva [start, end) no ledger, rateando as horas por cada dia tocado.

    Returns:
        Total de horas reservadas
    """
    total = 0.0
    for day, hours, until in daily_breakdown(work_center, start, end):
        ledger.add(work_center.id, day, hours, until)
        total += hours
    return total


# ═══════════════════════════════════════════════════════════════════════════════
# CAPACITY VIEWS
# ═══════════════════════════════════════════════════════════════════════════════

def capacity_profile(
    work_center: WorkCenter,
    start_date: date,
    end_date: date,
    ledger: Optional[CapacityLedger] = None,
) -> List[Dict]:
    """
    Perfil diário de capacidade: teórica vs efetiva vs reservada.

    Args:
        work_center: Centro de trabalho
        start_date: Primeiro dia (inclusive)
        end_date: Último dia (inclusive)
        ledger: Reservas existentes (opcional)
    """
    ledger = ledger or CapacityLedger()
    effective = effective_daily_capacity(work_center)
    profile = []
    day = start_date
    while day <= end_date:
        active = is_active_day(work_center, day)
        booked = ledger.booked_hours(work_center.id, day)
        effective_hours = effective if active else 0.0
        profile.append({
            "date": day.isoformat(),
            "weekday": day.weekday(),
            "active": active,
            "theoretical_hours": work_center.daily_capacity_hours if active else 0.0,
            "effective_hours": round(effective_hours, 4),
            "booked_hours": round(booked, 4),
            "free_hours": round(max(0.0, effective_hours - booked), 4),
            "utilization_percent": round(booked / effective_hours * 100, 2) if effective_hours > 0 else 0.0,
        })
        day += ONE_DAY
    return profile


def available_slots(
    ledger: CapacityLedger,
    work_center: WorkCenter,
    start_date: date,
    end_date: date,
    min_hours: float = 0.0,
) -> List[Dict]:
    """Janelas livres (depois do fill point) por dia ativo com pelo menos min_hours."""
    slots = []
    day = start_date
    while day <= end_date:
        if is_active_day(work_center, day):
            window_start, window_end = capacity_window(work_center, day)
            fill = ledger.fill_point(work_center.id, day)
            free_start = max(window_start, fill) if fill is not None else window_start
            free = _hours(free_start, window_end)
            if free > EPS and free + EPS >= min_hours:
                slots.append({
                    "date": day.isoformat(),
                    "start": free_start.isoformat(),
                    "end": window_end.isoformat(),
                    "free_hours": round(free, 4),
                })
        day += ONE_DAY
    return slots

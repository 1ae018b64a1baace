"""
PRD Engine - Scheduling Types
=============================

Tipos comuns do motor de scheduling.

Estrutura:
- ProductionOrder / WorkCenter: input (read-only para o motor)
- Assignment: uma ordem colocada num centro de trabalho
- Schedule: snapshot imutável de um run (draft -> applied)
- OrderRecord / WorkCenterRecord: schemas pydantic para registos em bruto
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from dateutil.parser import isoparse
from pydantic import BaseModel, Field, field_validator

from prd_engine.scheduling.errors import InvalidInput


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class SchedulingAlgorithm(str, Enum):
    """Heurísticas de sequenciamento disponíveis."""
    EDD = "edd"                                    # Earliest Due Date
    SPT = "spt"                                    # Shortest Processing Time
    CRITICAL_RATIO = "critical_ratio"              # Critical Ratio
    CAPACITY_CONSTRAINED = "capacity_constrained"  # Prioridade + calendário


class OrderPriority(str, Enum):
    """Prioridade de uma ordem de produção."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    OrderPriority.LOW: 1,
    OrderPriority.NORMAL: 2,
    OrderPriority.HIGH: 3,
    OrderPriority.URGENT: 4,
}

PRIORITY_ALIASES = {
    "baixa": OrderPriority.LOW,
    "media": OrderPriority.NORMAL,
    "média": OrderPriority.NORMAL,
    "alta": OrderPriority.HIGH,
    "urgente": OrderPriority.URGENT,
}


class OrderStatus(str, Enum):
    """Estado de uma ordem de produção."""
    PLANNED = "planned"
    RELEASED = "released"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


STATUS_ALIASES = {
    "planejada": OrderStatus.PLANNED,
    "liberada": OrderStatus.RELEASED,
    "em_producao": OrderStatus.IN_PROGRESS,
    "finalizada": OrderStatus.COMPLETED,
    "cancelada": OrderStatus.CANCELLED,
}


class ScheduleStatus(str, Enum):
    """Estado de um Schedule. Única transição: draft -> applied."""
    DRAFT = "draft"
    APPLIED = "applied"


# ═══════════════════════════════════════════════════════════════════════════════
# TIME HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

Clock = Callable[[], datetime]


def parse_timestamp(value: Any) -> datetime:
    """
    Converte ISO-8601 / date / datetime num datetime naive.

    Datas sem hora representam 00:00; valores com timezone são convertidos para UTC.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        moment = isoparse(value.strip())
    else:
        raise ValueError(f"invalid timestamp: {value!r}")

    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def system_clock() -> datetime:
    """Relógio do sistema (resolução ao segundo)."""
    return datetime.now().replace(microsecond=0)


def fixed_clock(moment: Any) -> Clock:
    """Relógio fixo, para runs reprodutíveis."""
    frozen = parse_timestamp(moment)
    return lambda: frozen


_TRUE_STRINGS = frozenset({"true", "1", "yes", "sim"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "nao", "não", ""})


def parse_flag(value: Any, field_name: str) -> bool:
    """Booleano a partir de bool, None ou string ("true"/"false", "sim"/"não")."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if key in _TRUE_STRINGS:
            return True
        if key in _FALSE_STRINGS:
            return False
    raise InvalidInput(None, field_name, f"not a boolean: {value!r}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ═══════════════════════════════════════════════════════════════════════════════
# INPUT TYPES
# ═══════════════════════════════════════════════════════════════════════════════

DEFAULT_WEEKDAYS: FrozenSet[int] = frozenset({0, 1, 2, 3, 4})


@dataclass(frozen=True)
class ProductionOrder:
    """Ordem de produção com durações já resolvidas (por unidade × quantidade)."""
    id: str
    product_id: str
    quantity: float
    processing_hours: float
    setup_hours: float
    due_date: datetime
    work_center_id: str
    priority: OrderPriority = OrderPriority.NORMAL
    status: OrderStatus = OrderStatus.PLANNED
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    number: Optional[str] = None
    product_name: Optional[str] = None
    actual_start: Optional[datetime] = None

    @property
    def total_hours(self) -> float:
        return self.processing_hours + self.setup_hours

    @property
    def label(self) -> str:
        return f"{self.number or self.id} - {self.product_name or self.product_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "processing_hours": self.processing_hours,
            "setup_hours": self.setup_hours,
            "due_date": self.due_date.isoformat(),
            "priority": self.priority.value,
            "status": self.status.value,
            "work_center_id": self.work_center_id,
            "planned_start": _iso(self.planned_start),
            "planned_end": _iso(self.planned_end),
            "number": self.number,
            "product_name": self.product_name,
            "actual_start": _iso(self.actual_start),
        }


@dataclass(frozen=True)
class WorkCenter:
    """Centro de trabalho com padrão semanal de operação."""
    id: str
    daily_capacity_hours: float
    efficiency_percent: float = 100.0
    availability_percent: float = 100.0
    active_weekdays: FrozenSet[int] = DEFAULT_WEEKDAYS
    window_start: time = time(8, 0)
    name: Optional[str] = None
    kind: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "daily_capacity_hours": self.daily_capacity_hours,
            "efficiency_percent": self.efficiency_percent,
            "availability_percent": self.availability_percent,
            "active_weekdays": sorted(self.active_weekdays),
            "window_start": self.window_start.isoformat(timespec="minutes"),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# OUTPUT TYPES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Assignment:
    """Uma ordem colocada num centro de trabalho."""
    order_id: str
    work_center_id: str
    scheduled_start: datetime
    scheduled_end: datetime
    duration_hours: float
    due_date: datetime
    lateness_days: float = 0.0

    @property
    def on_time(self) -> bool:
        return self.lateness_days <= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "work_center_id": self.work_center_id,
            "scheduled_start": self.scheduled_start.isoformat(),
            "scheduled_end": self.scheduled_end.isoformat(),
            "duration_hours": round(self.duration_hours, 4),
            "due_date": self.due_date.isoformat(),
            "lateness_days": round(self.lateness_days, 4),
        }


def lateness_days(scheduled_end: datetime, due_date: datetime) -> float:
    """max(0, scheduled_end - due_date) em dias."""
    return max(0.0, (scheduled_end - due_date).total_seconds() / 86400.0)


@dataclass(frozen=True)
class ScheduleMetrics:
    """KPIs de um Schedule."""
    total_orders: int = 0
    on_time_count: int = 0
    on_time_rate: float = 0.0          # percentagem 0-100
    avg_lateness_days: float = 0.0
    max_lateness_days: float = 0.0
    total_duration_hours: float = 0.0
    schedule_span_days: float = 0.0
    utilization_rate: float = 0.0      # razão 0-1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_orders": self.total_orders,
            "on_time_count": self.on_time_count,
            "on_time_rate": round(self.on_time_rate, 2),
            "avg_lateness_days": round(self.avg_lateness_days, 4),
            "max_lateness_days": round(self.max_lateness_days, 4),
            "total_duration_hours": round(self.total_duration_hours, 4),
            "schedule_span_days": round(self.schedule_span_days, 4),
            "utilization_rate": round(self.utilization_rate, 4),
        }


@dataclass(frozen=True)
class UnschedulableOrder:
    """Ordem sem slot dentro do horizonte."""
    order_id: str
    work_center_id: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"order_id": self.order_id, "work_center_id": self.work_center_id, "reason": self.reason}


@dataclass(frozen=True)
class Schedule:
    """
    Snapshot imutável produzido por um run do scheduler.

    O id é um hash do conteúdo dos inputs e do relógio injetado, pelo que inputs
    idênticos produzem Schedules idênticos.
    """
    id: str
    algorithm: SchedulingAlgorithm
    parameters: Mapping[str, Any]
    assignments: Tuple[Assignment, ...]
    metrics: ScheduleMetrics
    created_at: datetime
    status: ScheduleStatus = ScheduleStatus.DRAFT
    warnings: Tuple[str, ...] = ()
    unschedulable: Tuple[UnschedulableOrder, ...] = ()

    @property
    def is_applied(self) -> bool:
        return self.status == ScheduleStatus.APPLIED

    def mark_applied(self) -> "Schedule":
        """Devolve a versão applied deste Schedule (o original não muda)."""
        if self.is_applied:
            return self
        return dataclasses.replace(self, status=ScheduleStatus.APPLIED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "algorithm": self.algorithm.value,
            "parameters": dict(self.parameters),
            "assignments": [a.to_dict() for a in self.assignments],
            "metrics": self.metrics.to_dict(),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "warnings": list(self.warnings),
            "unschedulable": [u.to_dict() for u in self.unschedulable],
        }


def freeze_parameters(parameters: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(parameters))


@dataclass
class SchedulingParameters:
    """Parâmetros de um run."""
    start_date: Optional[datetime] = None
    horizon_days: Optional[int] = None
    allow_partial: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SchedulingParameters":
        data = dict(data or {})
        start = data.pop("start_date", None) or data.pop("data_inicio", None)
        data.pop("data_inicio", None)
        horizon = data.pop("horizon_days", None)

        try:
            start_date = parse_timestamp(start) if start else None
        except ValueError as e:
            raise InvalidInput(None, "start_date", str(e)) from None

        horizon_days = None
        if horizon is not None:
            try:
                horizon_days = int(horizon)
            except (TypeError, ValueError):
                raise InvalidInput(None, "horizon_days", f"not an integer: {horizon!r}") from None
            if isinstance(horizon, bool) or horizon_days <= 0:
                raise InvalidInput(None, "horizon_days", "must be a positive integer")

        return cls(
            start_date=start_date,
            horizon_days=horizon_days,
            allow_partial=parse_flag(data.pop("allow_partial", False), "allow_partial"),
            extra=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {key: self.extra[key] for key in sorted(self.extra)}
        result["start_date"] = _iso(self.start_date)
        result["horizon_days"] = self.horizon_days
        result["allow_partial"] = self.allow_partial
        return result


# ═══════════════════════════════════════════════════════════════════════════════
# RECORD SCHEMAS (pydantic)
# ═══════════════════════════════════════════════════════════════════════════════

class OrderRecord(BaseModel):
    """Schema de um registo de ordem em bruto."""

    id: str = Field(..., min_length=1, description="Identificador da ordem")
    product_id: str = Field(..., min_length=1, description="Referência do produto")
    quantity: float = Field(1.0, gt=0, description="Quantidade planeada")
    processing_hours: float = Field(..., gt=0, description="Horas de processamento")
    setup_hours: float = Field(0.0, ge=0, description="Horas de setup")
    due_date: datetime = Field(..., description="Data de entrega (ISO-8601)")
    priority: OrderPriority = Field(OrderPriority.NORMAL, description="Prioridade")
    status: OrderStatus = Field(OrderStatus.PLANNED, description="Estado")
    work_center_id: str = Field(..., min_length=1, description="Centro de trabalho")
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    number: Optional[str] = None
    product_name: Optional[str] = None
    actual_start: Optional[datetime] = None

    @field_validator("id", "product_id", "work_center_id", "number", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        """Aceita identificadores numéricos."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("due_date", "planned_start", "planned_end", "actual_start", mode="before")
    @classmethod
    def parse_dates(cls, v):
        """Parse ISO-8601 com dateutil."""
        if v is None or v == "":
            return None
        return parse_timestamp(v)

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, v):
        """Aceita aliases em português (baixa/media/alta/urgente)."""
        if isinstance(v, str):
            key = v.strip().lower()
            return PRIORITY_ALIASES.get(key, key)
        return v

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        """Aceita os nomes de estado em português (planejada, liberada, ...)."""
        if isinstance(v, str):
            key = v.strip().lower()
            return STATUS_ALIASES.get(key, key)
        return v

    def to_domain(self) -> ProductionOrder:
        return ProductionOrder(
            id=self.id,
            product_id=self.product_id,
            quantity=self.quantity,
            processing_hours=self.processing_hours,
            setup_hours=self.setup_hours,
            due_date=self.due_date,
            work_center_id=self.work_center_id,
            priority=OrderPriority(self.priority),
            status=OrderStatus(self.status),
            planned_start=self.planned_start,
            planned_end=self.planned_end,
            number=self.number,
            product_name=self.product_name,
            actual_start=self.actual_start,
        )


class WorkCenterRecord(BaseModel):
    """Schema de um registo de centro de trabalho em bruto."""

    id: str = Field(..., min_length=1, description="Identificador do centro")
    daily_capacity_hours: float = Field(..., ge=0, le=24, description="Capacidade diária (horas)")
    efficiency_percent: float = Field(100.0, ge=0, le=100, description="Eficiência (%)")
    availability_percent: float = Field(100.0, ge=0, le=100, description="Disponibilidade (%)")
    active_weekdays: Optional[List[int]] = Field(None, description="Dias ativos (0=segunda)")
    window_start: Optional[time] = Field(None, description="Início do turno")
    name: Optional[str] = None
    kind: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        """Aceita identificadores numéricos."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("active_weekdays")
    @classmethod
    def check_weekdays(cls, v):
        """Dias da semana em 0..6."""
        if v is None:
            return None
        for day in v:
            if day < 0 or day > 6:
                raise ValueError(f"weekday {day} outside 0..6")
        return sorted(set(v))

    def to_domain(
        self,
        default_weekdays: FrozenSet[int] = DEFAULT_WEEKDAYS,
        default_window_start: time = time(8, 0),
    ) -> WorkCenter:
        weekdays = frozenset(self.active_weekdays) if self.active_weekdays is not None else frozenset(default_weekdays)
        return WorkCenter(
            id=self.id,
            daily_capacity_hours=self.daily_capacity_hours,
            efficiency_percent=self.efficiency_percent,
            availability_percent=self.availability_percent,
            active_weekdays=weekdays,
            window_start=self.window_start or default_window_start,
            name=self.name,
            kind=self.kind,
        )

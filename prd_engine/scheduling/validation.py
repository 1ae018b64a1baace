"""
PRD Engine - Validation
=======================

Validação de inputs (antes de qualquer run) e validação pré-apply de um Schedule.

Inputs:
- validate_orders / validate_work_centers: registos em bruto -> dataclasses,
  InvalidInput no primeiro registo malformado (nada é processado parcialmente)

Schedule:
- resource_conflict  (error)   sobreposição no schedule ou contra o estado comprometido
- material_unavailable (warning) via material_checker externo
- prerequisite_unmet (warning) via prerequisite_checker externo
- deadline_exceeded  (alert)   lateness > 0

Tipos listados em `blocking` levantam exceção em vez de serem reportados.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from prd_engine.settings import Settings
from prd_engine.scheduling.conflicts import TimeWindow, conflicts, find_overlaps
from prd_engine.scheduling.errors import (
    InvalidInput,
    MaterialUnavailable,
    PrerequisiteUnmet,
    ScheduleConflict,
)
from prd_engine.scheduling.types import (
    OrderRecord,
    ProductionOrder,
    Schedule,
    WorkCenter,
    WorkCenterRecord,
)

logger = logging.getLogger(__name__)

Checker = Callable[[str], Iterable[str]]


# ═══════════════════════════════════════════════════════════════════════════════
# INPUT VALIDATION
# ═══════════════════════════════════════════════════════════════════════════════

def _record_id(record: Any) -> Optional[str]:
    if isinstance(record, Mapping):
        value = record.get("id")
        return str(value) if value is not None else None
    return getattr(record, "id", None)


def _from_validation_error(record_id: Optional[str], error: ValidationError) -> InvalidInput:
    first = error.errors()[0]
    loc = first.get("loc") or ()
    field_name = str(loc[0]) if loc else None
    return InvalidInput(record_id, field_name, first.get("msg", "invalid value"))


def _check_order(order: ProductionOrder) -> None:
    if order.processing_hours <= 0:
        raise InvalidInput(order.id, "processing_hours", "must be greater than 0")
    if order.setup_hours < 0:
        raise InvalidInput(order.id, "setup_hours", "must not be negative")
    if order.planned_start and order.planned_end and order.planned_end <= order.planned_start:
        raise InvalidInput(order.id, "planned_end", "end must be after start")


def validate_orders(
    records: Iterable[Union[ProductionOrder, Mapping[str, Any]]],
    work_center_ids: Optional[Iterable[str]] = None,
) -> List[ProductionOrder]:
    """
    Valida e converte registos de ordens.

    Args:
        records: dicts em bruto ou ProductionOrder
        work_center_ids: centros conhecidos (para validar referências)

    Raises:
        InvalidInput: no primeiro registo inválido
    """
    known = set(work_center_ids) if work_center_ids is not None else None
    orders: List[ProductionOrder] = []
    seen = set()

    for record in records:
        if isinstance(record, ProductionOrder):
            order = record
        else:
            if not isinstance(record, Mapping):
                raise InvalidInput(None, None, f"expected a mapping, got {type(record).__name__}")
            try:
                order = OrderRecord(**record).to_domain()
            except ValidationError as e:
                raise _from_validation_error(_record_id(record), e) from e

        _check_order(order)
        if order.id in seen:
            raise InvalidInput(order.id, "id", "duplicate order id")
        if known is not None and order.work_center_id not in known:
            raise InvalidInput(order.id, "work_center_id", f"unknown work center {order.work_center_id!r}")
        seen.add(order.id)
        orders.append(order)

    return orders


def validate_work_centers(
    records: Iterable[Union[WorkCenter, Mapping[str, Any]]],
) -> Dict[str, WorkCenter]:
    """
    Valida e converte registos de centros de trabalho.

    Raises:
        InvalidInput: no primeiro registo inválido
    """
    config = Settings.get_config()
    centers: Dict[str, WorkCenter] = {}

    for record in records:
        if isinstance(record, WorkCenter):
            center = record
        else:
            if not isinstance(record, Mapping):
                raise InvalidInput(None, None, f"expected a mapping, got {type(record).__name__}")
            try:
                center = WorkCenterRecord(**record).to_domain(
                    default_weekdays=frozenset(config.default_weekdays),
                    default_window_start=config.window_start,
                )
            except ValidationError as e:
                raise _from_validation_error(_record_id(record), e) from e

        if center.daily_capacity_hours < 0 or center.daily_capacity_hours > 24:
            raise InvalidInput(center.id, "daily_capacity_hours", "must be within 0..24")
        if center.id in centers:
            raise InvalidInput(center.id, "id", "duplicate work center id")
        centers[center.id] = center

    return centers


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEDULE VALIDATION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ValidationIssue:
    """Problema encontrado na validação."""
    order_id: str
    kind: str
    severity: str          # error / warning / alert
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "kind": self.kind,
            "severity": self.severity,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class ValidationReport:
    """Resultado da validação de um Schedule."""
    schedule_id: str
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not any(issue.severity == "error" for issue in self.issues)

    @property
    def critical_issues(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "valid": self.valid,
            "total_issues": len(self.issues),
            "critical_issues": self.critical_issues,
            "issues": [issue.to_dict() for issue in self.issues],
        }


def validate_schedule(
    schedule: Schedule,
    committed: Iterable[TimeWindow] = (),
    material_checker: Optional[Checker] = None,
    prerequisite_checker: Optional[Checker] = None,
    blocking: Optional[FrozenSet[str]] = None,
) -> ValidationReport:
    """
    Validação pré-apply.

    Args:
        schedule: Schedule a validar
        committed: janelas já comprometidas (ordens fora do schedule)
        material_checker: order_id -> faltas de material (lista vazia = OK)
        prerequisite_checker: order_id -> pré-requisitos em falta
        blocking: tipos que levantam exceção (default: settings)

    Raises:
        ScheduleConflict / MaterialUnavailable / PrerequisiteUnmet quando o tipo é bloqueante
    """
    if blocking is None:
        blocking = Settings.get_config().blocking_validation
    report = ValidationReport(schedule_id=schedule.id)
    own_ids = {a.order_id for a in schedule.assignments}
    committed = [w for w in committed if w.order_id not in own_ids]

    for order_a, order_b in find_overlaps(schedule.assignments):
        if "resource_conflict" in blocking:
            raise ScheduleConflict([order_a, order_b])
        report.issues.append(ValidationIssue(
            order_id=order_b,
            kind="resource_conflict",
            severity="error",
            message=f"Overlaps order {order_a} on the same work center",
            details={"conflicting_order_ids": [order_a]},
        ))

    for assignment in schedule.assignments:
        colliding = conflicts(
            committed,
            assignment.work_center_id,
            assignment.scheduled_start,
            assignment.scheduled_end,
        )
        if colliding:
            if "resource_conflict" in blocking:
                raise ScheduleConflict(colliding)
            report.issues.append(ValidationIssue(
                order_id=assignment.order_id,
                kind="resource_conflict",
                severity="error",
                message=f"Work center {assignment.work_center_id} busy in the scheduled window",
                details={"conflicting_order_ids": colliding},
            ))

        if material_checker is not None:
            shortages = list(material_checker(assignment.order_id))
            if shortages:
                if "material_unavailable" in blocking:
                    raise MaterialUnavailable(assignment.order_id, shortages)
                report.issues.append(ValidationIssue(
                    order_id=assignment.order_id,
                    kind="material_unavailable",
                    severity="warning",
                    message="Insufficient material",
                    details={"shortages": shortages},
                ))

        if prerequisite_checker is not None:
            missing = list(prerequisite_checker(assignment.order_id))
            if missing:
                if "prerequisite_unmet" in blocking:
                    raise PrerequisiteUnmet(assignment.order_id, missing)
                report.issues.append(ValidationIssue(
                    order_id=assignment.order_id,
                    kind="prerequisite_unmet",
                    severity="warning",
                    message="Prerequisites not met",
                    details={"missing": missing},
                ))

        if assignment.lateness_days > 0:
            report.issues.append(ValidationIssue(
                order_id=assignment.order_id,
                kind="deadline_exceeded",
                severity="alert",
                message=f"Scheduled end exceeds due date by {assignment.lateness_days:.2f} days",
                details={
                    "scheduled_end": assignment.scheduled_end.isoformat(),
                    "due_date": assignment.due_date.isoformat(),
                },
            ))

    if report.issues:
        logger.info(
            f"Schedule {schedule.id} validation: {len(report.issues)} issues "
            f"({report.critical_issues} critical)"
        )
    return report

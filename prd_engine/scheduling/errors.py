"""
PRD Engine - Scheduling Errors
==============================

Taxonomia de erros do motor de scheduling.

- InvalidInput: registo de ordem/centro malformado (rejeitado antes do run)
- UnknownAlgorithm: heurística desconhecida (warning, fallback para EDD)
- ScheduleConflict: sobreposição detetada no apply/reschedule
- CapacityExceeded: sem slot dentro do horizonte
- MaterialUnavailable / PrerequisiteUnmet: validação pré-apply
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class SchedulingError(Exception):
    """Base de todos os erros do motor."""

    code = "scheduling_error"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": str(self)}


class InvalidInput(SchedulingError):
    """Registo de entrada inválido (campo em falta, duração não positiva, fim antes do início)."""

    code = "invalid_input"

    def __init__(self, record_id: Optional[str], field: Optional[str], message: str):
        self.record_id = record_id
        self.field = field
        self.message = message
        where = f"record {record_id!r}" if record_id is not None else "record"
        if field:
            where += f", field {field!r}"
        super().__init__(f"{where}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "record_id": self.record_id,
            "field": self.field,
            "message": self.message,
        }


class UnknownAlgorithm(SchedulingError, UserWarning):
    """Nome de heurística desconhecido. Emitido como warning; o run continua com EDD."""

    code = "unknown_algorithm"

    def __init__(self, name: str, fallback: str = "edd"):
        self.name = name
        self.fallback = fallback
        super().__init__(f"Unknown scheduling algorithm {name!r}, falling back to {fallback!r}")


class ScheduleConflict(SchedulingError):
    """Conflito de recurso detetado contra o estado atual."""

    code = "schedule_conflict"

    def __init__(self, conflicting_order_ids: Iterable[str], message: Optional[str] = None):
        self.conflicting_order_ids: List[str] = sorted(set(conflicting_order_ids))
        super().__init__(
            message
            or f"Schedule conflicts with committed orders: {', '.join(self.conflicting_order_ids)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": str(self),
            "conflicting_order_ids": self.conflicting_order_ids,
        }


class CapacityExceeded(SchedulingError):
    """Nenhum slot encontrado no horizonte de pesquisa."""

    code = "capacity_exceeded"

    def __init__(self, order_id: Optional[str], work_center_id: str, horizon_days: int):
        self.order_id = order_id
        self.work_center_id = work_center_id
        self.horizon_days = horizon_days
        super().__init__(
            f"No capacity for order {order_id!r} on work center {work_center_id!r} "
            f"within {horizon_days} days"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "order_id": self.order_id,
            "work_center_id": self.work_center_id,
            "horizon_days": self.horizon_days,
            "message": str(self),
        }


class MaterialUnavailable(SchedulingError):
    """Material insuficiente para uma ordem (validação bloqueante)."""

    code = "material_unavailable"

    def __init__(self, order_id: str, shortages: Iterable[str]):
        self.order_id = order_id
        self.shortages = list(shortages)
        super().__init__(f"Material unavailable for order {order_id!r}: {'; '.join(self.shortages)}")

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "order_id": self.order_id, "shortages": self.shortages}


class PrerequisiteUnmet(SchedulingError):
    """Pré-requisito de uma ordem não cumprido (validação bloqueante)."""

    code = "prerequisite_unmet"

    def __init__(self, order_id: str, missing: Iterable[str]):
        self.order_id = order_id
        self.missing = list(missing)
        super().__init__(f"Prerequisites unmet for order {order_id!r}: {'; '.join(self.missing)}")

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "order_id": self.order_id, "missing": self.missing}

"""
PRD Engine - Scheduling Module
==============================

Motor de scheduling de ordens de produção:
- Capacity Calendar (capacidade diária por centro de trabalho)
- Conflict Detector (sobreposições [start, end))
- Heurísticas (EDD, SPT, CR, Capacity-Constrained)
- Validação de inputs e pré-apply

API de alto nível (em prd_engine.scheduling.engine):
- run(orders, work_centers, algorithm, parameters, clock) -> Schedule
- apply_schedule(schedule, store) -> ApplyResult
- reschedule_order(store, order_id, start, end)
"""

# Types
from prd_engine.scheduling.types import (
    SchedulingAlgorithm,
    OrderPriority,
    OrderStatus,
    ScheduleStatus,
    ProductionOrder,
    WorkCenter,
    Assignment,
    Schedule,
    ScheduleMetrics,
    SchedulingParameters,
    UnschedulableOrder,
    OrderRecord,
    WorkCenterRecord,
    Clock,
    fixed_clock,
    system_clock,
    parse_timestamp,
)

# Errors
from prd_engine.scheduling.errors import (
    SchedulingError,
    InvalidInput,
    UnknownAlgorithm,
    ScheduleConflict,
    CapacityExceeded,
    MaterialUnavailable,
    PrerequisiteUnmet,
)

# Calendar / conflicts
from prd_engine.scheduling.calendar import (
    CapacityLedger,
    effective_daily_capacity,
    is_active_day,
    find_earliest_slot,
    slot_end,
    book,
    capacity_profile,
    available_slots,
)
from prd_engine.scheduling.conflicts import conflicts, find_overlaps

# Heuristics
from prd_engine.scheduling.heuristics import (
    SequencingHeuristic,
    HEURISTICS,
    resolve_algorithm,
    critical_ratio,
)

# Validation
from prd_engine.scheduling.validation import (
    validate_orders,
    validate_work_centers,
    validate_schedule,
    ValidationReport,
)

__all__ = [
    # Types
    "SchedulingAlgorithm",
    "OrderPriority",
    "OrderStatus",
    "ScheduleStatus",
    "ProductionOrder",
    "WorkCenter",
    "Assignment",
    "Schedule",
    "ScheduleMetrics",
    "SchedulingParameters",
    "UnschedulableOrder",
    "OrderRecord",
    "WorkCenterRecord",
    "Clock",
    "fixed_clock",
    "system_clock",
    "parse_timestamp",
    # Errors
    "SchedulingError",
    "InvalidInput",
    "UnknownAlgorithm",
    "ScheduleConflict",
    "CapacityExceeded",
    "MaterialUnavailable",
    "PrerequisiteUnmet",
    # Calendar / conflicts
    "CapacityLedger",
    "effective_daily_capacity",
    "is_active_day",
    "find_earliest_slot",
    "slot_end",
    "book",
    "capacity_profile",
    "available_slots",
    "conflicts",
    "find_overlaps",
    # Heuristics
    "SequencingHeuristic",
    "HEURISTICS",
    "resolve_algorithm",
    "critical_ratio",
    # Validation
    "validate_orders",
    "validate_work_centers",
    "validate_schedule",
    "ValidationReport",
]

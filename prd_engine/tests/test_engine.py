"""
Testes para apply / reschedule sobre o OrderStore.
"""
import pytest
from datetime import datetime

from prd_engine.scheduling.engine import InMemoryOrderStore, apply_schedule, reschedule_order, run
from prd_engine.scheduling.errors import InvalidInput, ScheduleConflict
from prd_engine.scheduling.types import OrderStatus, ScheduleStatus
from prd_engine.scheduling.validation import validate_orders
from prd_engine.tests.conftest import make_order


@pytest.fixture
def store(sample_orders):
    return InMemoryOrderStore(validate_orders(sample_orders))


@pytest.fixture
def schedule(sample_orders, work_center, clock):
    return run(sample_orders, [work_center], "edd", clock=clock)


class TestApply:
    """Aplicação de um Schedule."""

    def test_apply_writes_planned_windows(self, store, schedule):
        result = apply_schedule(schedule, store)

        assert result.schedule.status == ScheduleStatus.APPLIED
        assert sorted(result.updated_order_ids) == ["OP001", "OP002", "OP003"]
        op3 = store.get("OP003")
        assert op3.planned_start == datetime(2026, 10, 19, 12)
        assert op3.planned_end == datetime(2026, 10, 19, 16)

    def test_original_schedule_unchanged(self, store, schedule):
        apply_schedule(schedule, store)
        assert schedule.status == ScheduleStatus.DRAFT

    def test_apply_is_idempotent(self, store, schedule):
        first = apply_schedule(schedule, store)
        before = store.orders()
        second = apply_schedule(schedule, store)

        assert first.already_applied is False
        assert second.already_applied is True
        assert second.updated_order_ids == []
        assert store.orders() == before

    def test_conflict_with_other_committed_order(self, store, schedule):
        blocker = validate_orders([make_order(
            "BLOCK", 5,
            planned_start="2026-10-19T09:00:00",
            planned_end="2026-10-19T10:00:00",
        )])
        store.upsert(blocker)

        with pytest.raises(ScheduleConflict) as exc:
            apply_schedule(schedule, store)

        assert exc.value.conflicting_order_ids == ["BLOCK"]
        assert exc.value.to_dict()["conflicting_order_ids"] == ["BLOCK"]
        # nenhuma escrita parcial
        assert store.get("OP001").planned_start is None

    def test_cancelled_orders_do_not_block(self, store, schedule):
        cancelled = validate_orders([make_order(
            "OLD", 5,
            status="cancelada",
            planned_start="2026-10-19T09:00:00",
            planned_end="2026-10-19T10:00:00",
        )])
        store.upsert(cancelled)
        assert cancelled[0].status == OrderStatus.CANCELLED

        result = apply_schedule(schedule, store)
        assert len(result.updated_order_ids) == 3

    def test_reapplying_new_run_over_own_windows(self, store, sample_orders, work_center, clock):
        apply_schedule(run(sample_orders, [work_center], "edd", clock=clock), store)
        rerun = run(sample_orders, [work_center], "spt", clock=clock)
        result = apply_schedule(rerun, store)
        assert result.already_applied is False


class TestReschedule:
    """Reagendamento manual."""

    def test_reschedule_free_window(self, store, schedule):
        apply_schedule(schedule, store)
        order = reschedule_order(store, "OP002", datetime(2026, 10, 21, 8), datetime(2026, 10, 21, 12))
        assert order.planned_start == datetime(2026, 10, 21, 8)
        assert store.get("OP002").planned_end == datetime(2026, 10, 21, 12)

    def test_reschedule_conflict(self, store, schedule):
        apply_schedule(schedule, store)
        with pytest.raises(ScheduleConflict) as exc:
            reschedule_order(store, "OP002", datetime(2026, 10, 19, 10), datetime(2026, 10, 19, 13))
        assert exc.value.conflicting_order_ids == ["OP001", "OP003"]

    def test_reschedule_to_other_center(self, store, schedule):
        apply_schedule(schedule, store)
        order = reschedule_order(store, "OP002", datetime(2026, 10, 19, 8), datetime(2026, 10, 19, 12), "WC2")
        assert order.work_center_id == "WC2"

    def test_reschedule_end_before_start(self, store):
        with pytest.raises(InvalidInput):
            reschedule_order(store, "OP001", datetime(2026, 10, 19, 12), datetime(2026, 10, 19, 8))

    def test_reschedule_unknown_order(self, store):
        with pytest.raises(InvalidInput):
            reschedule_order(store, "NOPE", datetime(2026, 10, 19, 8), datetime(2026, 10, 19, 9))

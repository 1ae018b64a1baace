"""
Testes para as heurísticas de sequenciamento e para run().
"""
import pytest
from datetime import datetime, timedelta

from prd_engine.scheduling.calendar import effective_daily_capacity
from prd_engine.scheduling.conflicts import find_overlaps
from prd_engine.scheduling.engine import run
from prd_engine.scheduling.errors import CapacityExceeded, InvalidInput, UnknownAlgorithm
from prd_engine.scheduling.heuristics import (
    critical_ratio,
    resolve_algorithm,
    sequence_capacity_constrained,
    sequence_edd,
    sequence_spt,
)
from prd_engine.scheduling.types import SchedulingAlgorithm, WorkCenter
from prd_engine.scheduling.validation import validate_orders
from prd_engine.tests.conftest import NOW, make_order


class TestScenarios:
    """Cenários de referência."""

    def test_edd_three_orders_single_center(self, sample_orders, work_center, clock):
        """Cenário 1: EDD ordena D+1, D+2, D+3 em 1,5 dias, sem atraso."""
        schedule = run(sample_orders, [work_center], "edd", clock=clock)

        assert [a.order_id for a in schedule.assignments] == ["OP001", "OP003", "OP002"]
        windows = [(a.scheduled_start, a.scheduled_end) for a in schedule.assignments]
        assert windows == [
            (datetime(2026, 10, 19, 8), datetime(2026, 10, 19, 12)),
            (datetime(2026, 10, 19, 12), datetime(2026, 10, 19, 16)),
            (datetime(2026, 10, 20, 8), datetime(2026, 10, 20, 12)),
        ]
        assert all(a.lateness_days == 0 for a in schedule.assignments)
        assert schedule.metrics.on_time_rate == 100.0

    def test_second_order_pushed_when_effective_capacity_is_full(self, clock):
        """Cenário 2: 4h efetivas por dia, duas ordens de 3h."""
        center = {"id": "WC1", "daily_capacity_hours": 8, "availability_percent": 50}
        orders = [make_order("A", 5, hours=3), make_order("B", 6, hours=3)]

        schedule = run(orders, [center], "edd", clock=clock)

        first, second = schedule.assignments
        assert first.scheduled_start.date() == NOW.date()
        assert second.scheduled_start == datetime(2026, 10, 20, 8)


class TestOrdering:
    """Ordenação de cada heurística."""

    def test_edd_sorts_by_due_date(self, sample_orders):
        orders = validate_orders(sample_orders)
        assert [o.id for o in sequence_edd(orders)] == ["OP001", "OP003", "OP002"]

    def test_spt_sorts_by_processing_hours(self):
        orders = validate_orders([make_order("L", 1, hours=6), make_order("S", 9, hours=1), make_order("M", 5, hours=3)])
        assert [o.id for o in sequence_spt(orders)] == ["S", "M", "L"]

    def test_sort_is_stable_on_ties(self):
        orders = validate_orders([make_order("X", 2), make_order("Y", 2), make_order("Z", 2)])
        assert [o.id for o in sequence_edd(orders)] == ["X", "Y", "Z"]

    def test_critical_ratio_value(self):
        order = validate_orders([make_order("A", 2, hours=8)])[0]
        assert critical_ratio(order, NOW) == pytest.approx(48 / 8)

    def test_critical_ratio_run_order(self, work_center, clock):
        orders = [
            make_order("RELAXED", 10, hours=2),   # CR 120
            make_order("TIGHT", 2, hours=6),      # CR 8
            make_order("LATE", -1, hours=4),      # CR negativo
        ]
        schedule = run(orders, [work_center], "critical_ratio", clock=clock)
        assert [a.order_id for a in schedule.assignments] == ["LATE", "TIGHT", "RELAXED"]

    def test_capacity_constrained_priority_first(self):
        orders = validate_orders([
            make_order("N", 1, priority="normal"),
            make_order("U", 5, priority="urgente"),
            make_order("H", 3, priority="high"),
        ])
        assert [o.id for o in sequence_capacity_constrained(orders)] == ["U", "H", "N"]

    def test_capacity_constrained_places_centers_independently(self, work_centers, clock):
        orders = [make_order("A", 3, work_center_id="WC1"), make_order("B", 3, work_center_id="WC2")]
        schedule = run(orders, work_centers, "capacity_constrained", clock=clock)
        assert {a.scheduled_start for a in schedule.assignments} == {NOW}

    def test_serial_heuristics_chain_across_centers(self, work_centers, clock):
        orders = [make_order("A", 1, work_center_id="WC1"), make_order("B", 2, work_center_id="WC2")]
        schedule = run(orders, work_centers, "edd", clock=clock)
        a, b = schedule.assignments
        assert b.scheduled_start == a.scheduled_end


class TestInvariants:
    """Sem sobreposições, capacidade respeitada, determinismo."""

    @pytest.fixture
    def many_orders(self):
        return [
            make_order(f"OP{i:03d}", (i * 7) % 11 + 1, hours=1 + (i * 3) % 7, work_center_id="WC1" if i % 2 else "WC2")
            for i in range(24)
        ]

    @pytest.mark.parametrize("algorithm", [a.value for a in SchedulingAlgorithm])
    def test_no_overlap_and_capacity(self, algorithm, many_orders, work_centers, clock):
        schedule = run(many_orders, work_centers, algorithm, clock=clock)

        assert len(schedule.assignments) == len(many_orders)
        assert find_overlaps(schedule.assignments) == []

        center = WorkCenter(id="WC1", daily_capacity_hours=8)
        for a in schedule.assignments:
            assert a.scheduled_start >= NOW
            assert a.scheduled_end > a.scheduled_start
            assert a.scheduled_start.weekday() < 5
        per_day = {}
        for a in schedule.assignments:
            if a.scheduled_start.date() == a.scheduled_end.date():
                key = (a.work_center_id, a.scheduled_start.date())
                per_day[key] = per_day.get(key, 0.0) + a.duration_hours
        assert all(h <= effective_daily_capacity(center) + 1e-9 for h in per_day.values())

    def test_deterministic(self, many_orders, work_centers, clock):
        first = run(many_orders, work_centers, "spt", clock=clock)
        second = run(many_orders, work_centers, "spt", clock=clock)
        assert first == second
        assert first.id == second.id

    def test_different_clock_different_id(self, sample_orders, work_center):
        first = run(sample_orders, [work_center], "edd", clock=lambda: NOW)
        second = run(sample_orders, [work_center], "edd", clock=lambda: NOW + timedelta(hours=1))
        assert first.id != second.id


class TestAlgorithmResolution:
    """Nomes de heurística e fallback."""

    def test_aliases(self):
        assert resolve_algorithm("CR") == (SchedulingAlgorithm.CRITICAL_RATIO, None)
        assert resolve_algorithm(" SPT ")[0] == SchedulingAlgorithm.SPT

    def test_unknown_algorithm_falls_back_to_edd(self, sample_orders, work_center, clock):
        with pytest.warns(UnknownAlgorithm):
            schedule = run(sample_orders, [work_center], "genetic", clock=clock)
        assert schedule.algorithm == SchedulingAlgorithm.EDD
        assert len(schedule.warnings) == 1
        assert "genetic" in schedule.warnings[0]

    def test_default_algorithm_from_settings(self, sample_orders, work_center, clock, monkeypatch):
        from prd_engine.settings import Settings

        monkeypatch.setenv("PRD_DEFAULT_ALGORITHM", "spt")
        Settings.reset()
        schedule = run(sample_orders, [work_center], clock=clock)
        assert schedule.algorithm == SchedulingAlgorithm.SPT


class TestRunErrors:
    """Erros de input e de capacidade."""

    def test_invalid_order_rejected(self, work_center, clock):
        orders = [make_order("A", 1), make_order("B", 1, hours=0)]
        with pytest.raises(InvalidInput) as exc:
            run(orders, [work_center], "edd", clock=clock)
        assert exc.value.record_id == "B"
        assert exc.value.field == "processing_hours"

    def test_unknown_work_center_rejected(self, work_center, clock):
        with pytest.raises(InvalidInput):
            run([make_order("A", 1, work_center_id="NOPE")], [work_center], "edd", clock=clock)

    def test_capacity_exceeded_within_horizon(self, clock):
        monday_only = {"id": "WC1", "daily_capacity_hours": 8, "active_weekdays": [0]}
        orders = [make_order("A", 1, hours=8), make_order("B", 1, hours=8)]
        with pytest.raises(CapacityExceeded) as exc:
            run(orders, [monday_only], "edd", {"horizon_days": 3}, clock=clock)
        assert exc.value.order_id == "B"

    def test_allow_partial_collects_unschedulable(self, clock):
        monday_only = {"id": "WC1", "daily_capacity_hours": 8, "active_weekdays": [0]}
        orders = [make_order("A", 1, hours=8), make_order("B", 1, hours=8)]
        schedule = run(orders, [monday_only], "edd", {"horizon_days": 3, "allow_partial": True}, clock=clock)
        assert [a.order_id for a in schedule.assignments] == ["A"]
        assert [u.order_id for u in schedule.unschedulable] == ["B"]

    def test_empty_orders(self, work_center, clock):
        schedule = run([], [work_center], "edd", clock=clock)
        assert schedule.assignments == ()
        assert schedule.metrics.total_orders == 0


class TestRunParameters:
    """Parâmetros malformados são rejeitados com o campo identificado."""

    @pytest.mark.parametrize("parameters, field", [
        ({"start_date": "not-a-date"}, "start_date"),
        ({"horizon_days": "abc"}, "horizon_days"),
        ({"horizon_days": 0}, "horizon_days"),
        ({"horizon_days": -5}, "horizon_days"),
        ({"allow_partial": "talvez"}, "allow_partial"),
    ])
    def test_malformed_parameters(self, sample_orders, work_center, clock, parameters, field):
        with pytest.raises(InvalidInput) as exc:
            run(sample_orders, [work_center], "edd", parameters, clock=clock)
        assert exc.value.field == field

    def test_allow_partial_string_false(self, clock):
        monday_only = {"id": "WC1", "daily_capacity_hours": 8, "active_weekdays": [0]}
        orders = [make_order("A", 1, hours=8), make_order("B", 1, hours=8)]
        with pytest.raises(CapacityExceeded):
            run(orders, [monday_only], "edd", {"horizon_days": 3, "allow_partial": "false"}, clock=clock)

    def test_allow_partial_string_true(self, clock):
        monday_only = {"id": "WC1", "daily_capacity_hours": 8, "active_weekdays": [0]}
        orders = [make_order("A", 1, hours=8), make_order("B", 1, hours=8)]
        schedule = run(orders, [monday_only], "edd", {"horizon_days": 3, "allow_partial": "true"}, clock=clock)
        assert schedule.parameters["allow_partial"] is True
        assert [u.order_id for u in schedule.unschedulable] == ["B"]

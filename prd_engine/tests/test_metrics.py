"""
Testes para as métricas de schedule.
"""
import pytest
from datetime import timedelta

from prd_engine.evaluation.metrics import (
    assignments_frame,
    assignments_from_orders,
    compute_metrics,
    current_schedule_metrics,
    metrics,
    metrics_summary,
    resource_flexibility,
    schedule_density,
    schedule_improvements,
)
from prd_engine.scheduling.engine import run
from prd_engine.scheduling.types import Assignment, ScheduleMetrics
from prd_engine.scheduling.validation import validate_orders
from prd_engine.tests.conftest import NOW, make_order


def assignment(order_id, start_hours, duration, due_hours, work_center_id="WC1"):
    start = NOW + timedelta(hours=start_hours)
    end = start + timedelta(hours=duration)
    due = NOW + timedelta(hours=due_hours)
    return Assignment(
        order_id=order_id,
        work_center_id=work_center_id,
        scheduled_start=start,
        scheduled_end=end,
        duration_hours=duration,
        due_date=due,
        lateness_days=max(0.0, (end - due).total_seconds() / 86400.0),
    )


class TestComputeMetrics:
    """KPIs base."""

    def test_empty_is_all_zero(self):
        assert compute_metrics([]) == ScheduleMetrics()

    def test_values(self):
        assignments = [
            assignment("A", 0, 6, 24),
            assignment("B", 6, 6, 0),       # termina 12h depois do due -> 0,5 dias
        ]
        result = compute_metrics(assignments)

        assert result.total_orders == 2
        assert result.on_time_rate == pytest.approx(50.0)
        assert result.avg_lateness_days == pytest.approx(0.25)
        assert result.max_lateness_days == pytest.approx(0.5)
        assert result.total_duration_hours == pytest.approx(12.0)
        assert result.schedule_span_days == pytest.approx(0.5)
        assert result.utilization_rate == pytest.approx(1.0)

    def test_schedule_metrics_match_run(self, sample_orders, work_center, clock):
        schedule = run(sample_orders, [work_center], "edd", clock=clock)
        assert compute_metrics(schedule) == schedule.metrics
        # 12h em 28h de calendário
        assert schedule.metrics.utilization_rate == pytest.approx(12 / 28)


class TestDerivedMetrics:
    """Densidade, flexibilidade e melhorias."""

    def test_frame_columns(self):
        df = assignments_frame([assignment("A", 0, 2, 10)])
        assert list(df.columns)[:2] == ["order_id", "work_center_id"]
        assert len(df) == 1

    def test_balanced_centers_full_flexibility(self):
        assignments = [assignment("A", 0, 2, 10, "WC1"), assignment("B", 0, 2, 10, "WC2")]
        assert resource_flexibility(assignments) == pytest.approx(1.0)

    def test_unbalanced_centers(self):
        assignments = [
            assignment("A", 0, 1, 10, "WC1"),
            assignment("B", 1, 1, 10, "WC1"),
            assignment("C", 2, 1, 10, "WC1"),
            assignment("D", 0, 1, 10, "WC2"),
        ]
        # contagens [3, 1]: mu = 2, sigma = 1
        assert resource_flexibility(assignments) == pytest.approx(0.5)

    def test_density(self):
        assignments = [assignment("A", 0, 4, 10), assignment("B", 24, 4, 40)]
        # span 28h -> 2 dias
        assert schedule_density(assignments) == pytest.approx(1.0)

    def test_improvements_sign(self):
        baseline = ScheduleMetrics(on_time_rate=50, avg_lateness_days=2, utilization_rate=0.4, schedule_span_days=5)
        optimized = ScheduleMetrics(on_time_rate=75, avg_lateness_days=1, utilization_rate=0.5, schedule_span_days=4)
        gains = schedule_improvements(baseline, optimized)
        assert gains == {
            "on_time_rate": 25.0,
            "avg_lateness_days": 1.0,
            "utilization_rate": 0.1,
            "schedule_span_days": 1.0,
        }

    def test_assignments_from_orders_skips_unplanned(self):
        orders = validate_orders([
            make_order("A", 1, planned_start="2026-10-19T08:00:00", planned_end="2026-10-19T12:00:00"),
            make_order("B", 1),
        ])
        assert [a.order_id for a in assignments_from_orders(orders)] == ["A"]

    def test_summary_keys(self, sample_orders, work_center, clock):
        summary = metrics_summary(run(sample_orders, [work_center], "edd", clock=clock))
        assert {"on_time_rate", "utilization_rate", "schedule_density", "resource_flexibility"} <= set(summary)

    def test_current_state_metrics(self):
        orders = validate_orders([
            make_order("A", 1, planned_start="2026-10-19T08:00:00", planned_end="2026-10-19T12:00:00"),
            make_order("B", 0, planned_start="2026-10-19T12:00:00", planned_end="2026-10-19T16:00:00"),
        ])
        result = current_schedule_metrics(orders)
        assert result.total_orders == 2
        assert result.on_time_rate == pytest.approx(50.0)
        assert metrics(assignments_from_orders(orders)) == result

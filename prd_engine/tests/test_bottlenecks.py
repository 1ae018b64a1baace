"""
Testes para a análise de capacidade e gargalos.
"""
import pytest
from datetime import datetime

from prd_engine.evaluation.bottlenecks import (
    bottleneck_severity,
    capacity_analysis,
    identify_bottlenecks,
    impact_description,
    utilization_status,
)
from prd_engine.scheduling.errors import InvalidInput
from prd_engine.scheduling.types import Assignment, WorkCenter

PERIOD_START = datetime(2026, 10, 19, 0, 0)
PERIOD_END = datetime(2026, 10, 20, 0, 0)


def load(order_id, hours, work_center_id="WC1"):
    start = datetime(2026, 10, 19, 8, 0)
    return Assignment(
        order_id=order_id,
        work_center_id=work_center_id,
        scheduled_start=start,
        scheduled_end=start,
        duration_hours=hours,
        due_date=PERIOD_END,
    )


@pytest.fixture
def centers():
    return {
        "WC1": WorkCenter(id="WC1", daily_capacity_hours=8, name="Prensa"),
        "WC2": WorkCenter(id="WC2", daily_capacity_hours=8),
        "WC3": WorkCenter(id="WC3", daily_capacity_hours=8),
    }


class TestCapacityAnalysis:
    """Carga por centro no período."""

    def test_utilization_per_center(self, centers):
        analysis = capacity_analysis([load("A", 6), load("B", 2, "WC2")], centers, PERIOD_START, PERIOD_END)
        by_id = {w.work_center_id: w for w in analysis.work_centers}

        assert analysis.days_in_period == 1
        assert by_id["WC1"].utilization_percent == pytest.approx(75.0)
        assert by_id["WC1"].status == "normal"
        assert by_id["WC2"].status == "baixa_utilizacao"
        assert by_id["WC3"].scheduled_hours == 0.0

    def test_partial_day_rounds_up(self, centers):
        analysis = capacity_analysis([], centers, PERIOD_START, datetime(2026, 10, 20, 6, 0))
        assert analysis.days_in_period == 2

    def test_work_center_filter(self, centers):
        analysis = capacity_analysis([], centers, PERIOD_START, PERIOD_END, ["WC2"])
        assert [w.work_center_id for w in analysis.work_centers] == ["WC2"]

    def test_invalid_period(self, centers):
        with pytest.raises(InvalidInput):
            capacity_analysis([], centers, PERIOD_END, PERIOD_START)

    def test_status_bands(self):
        assert utilization_status(101) == "sobrecarga"
        assert utilization_status(91) == "alta_utilizacao"
        assert utilization_status(90) == "normal"
        assert utilization_status(70) == "baixa_utilizacao"


class TestBottlenecks:
    """Identificação de gargalos."""

    def test_overloaded_center_is_critical(self, centers):
        """Cenário 3: 110% de utilização -> critical com sugestões."""
        report = identify_bottlenecks([load("A", 8.8)], centers, PERIOD_START, PERIOD_END)

        assert len(report.bottlenecks) == 1
        bottleneck = report.bottlenecks[0]
        assert bottleneck.work_center_id == "WC1"
        assert bottleneck.utilization_percent == pytest.approx(110.0)
        assert bottleneck.severity == "critical"
        assert bottleneck.suggestions
        assert report.to_dict()["summary"]["critical_count"] == 1

    def test_sorted_by_utilization(self, centers):
        assignments = [load("A", 7.4), load("B", 7.8, "WC2")]
        report = identify_bottlenecks(assignments, centers, PERIOD_START, PERIOD_END)
        assert [b.work_center_id for b in report.bottlenecks] == ["WC2", "WC1"]
        assert [b.severity for b in report.bottlenecks] == ["high", "medium"]

    def test_threshold_is_exclusive(self, centers):
        report = identify_bottlenecks([load("A", 6)], centers, PERIOD_START, PERIOD_END, threshold=75)
        assert report.bottlenecks == []

    def test_threshold_from_settings(self, centers, monkeypatch):
        from prd_engine.settings import Settings

        monkeypatch.setenv("PRD_BOTTLENECK_THRESHOLD", "50")
        Settings.reset()
        report = identify_bottlenecks([load("A", 6)], centers, PERIOD_START, PERIOD_END)
        assert [b.severity for b in report.bottlenecks] == ["medium"]

    def test_severity_and_impact_labels(self):
        assert bottleneck_severity(100.5) == "critical"
        assert bottleneck_severity(96) == "high"
        assert bottleneck_severity(92) == "medium"
        assert impact_description(1.6) == "Alto"
        assert impact_description(1.2) == "Médio"
        assert impact_description(0.2) == "Baixo"

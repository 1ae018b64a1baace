"""
Fixtures comuns para os testes do motor de scheduling.
"""
import pytest
from datetime import datetime, timedelta
from fastapi.testclient import TestClient

from prd_engine.api import app
from prd_engine.scheduling import api as scheduling_api
from prd_engine.scheduling.types import fixed_clock
from prd_engine.settings import Settings

# Segunda-feira
NOW = datetime(2026, 10, 19, 8, 0)


def make_order(order_id, due_days, hours=4.0, work_center_id="WC1", **extra):
    """Registo de ordem em bruto, com due date relativa a NOW."""
    record = {
        "id": order_id,
        "product_id": extra.pop("product_id", f"PROD-{order_id}"),
        "quantity": extra.pop("quantity", 10),
        "processing_hours": hours,
        "setup_hours": extra.pop("setup_hours", 0.0),
        "due_date": (NOW + timedelta(days=due_days)).isoformat(),
        "work_center_id": work_center_id,
    }
    record.update(extra)
    return record


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isola os testes de variáveis PRD_* do ambiente."""
    for name in (
        "PRD_DEFAULT_ALGORITHM",
        "PRD_HORIZON_DAYS",
        "PRD_BOTTLENECK_THRESHOLD",
        "PRD_BLOCKING_VALIDATION",
        "PRD_DEFAULT_WEEKDAYS",
        "PRD_WINDOW_START",
        "PRD_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    Settings.reset()
    yield
    Settings.reset()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Relógio fixo: segunda-feira 2026-10-19 08:00."""
    return fixed_clock(NOW)


@pytest.fixture
def work_center():
    """Centro de trabalho de 8h/dia, segunda a sexta."""
    return {
        "id": "WC1",
        "name": "Torno CNC 1",
        "kind": "cnc",
        "daily_capacity_hours": 8,
        "efficiency_percent": 100,
        "availability_percent": 100,
        "active_weekdays": [0, 1, 2, 3, 4],
    }


@pytest.fixture
def work_centers(work_center):
    """Dois centros do mesmo tipo."""
    return [
        work_center,
        {
            "id": "WC2",
            "name": "Torno CNC 2",
            "kind": "cnc",
            "daily_capacity_hours": 8,
            "active_weekdays": [0, 1, 2, 3, 4],
        },
    ]


@pytest.fixture
def sample_orders():
    """Três ordens de 4h com due dates D+1, D+3, D+2."""
    return [
        make_order("OP001", 1),
        make_order("OP002", 3),
        make_order("OP003", 2),
    ]


@pytest.fixture
def test_client():
    """Cliente de teste FastAPI com estado limpo."""
    scheduling_api.reset_state()
    yield TestClient(app)
    scheduling_api.reset_state()

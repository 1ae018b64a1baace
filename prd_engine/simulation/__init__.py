"""
════════════════════════════════════════════════════════════════════════════════
SIMULATION MODULE - Cenários What-If
════════════════════════════════════════════════════════════════════════════════

Simulação determinística de perturbações ao conjunto de ordens:
- aumento de capacidade
- novas encomendas
- manutenção programada
"""

from prd_engine.simulation.scenarios import (
    ScenarioType,
    ScenarioDelta,
    MaintenanceWindow,
    SimulationResult,
    apply_scenario,
    recommendations,
    simulate,
    simulate_many,
)

__all__ = [
    "ScenarioType",
    "ScenarioDelta",
    "MaintenanceWindow",
    "SimulationResult",
    "apply_scenario",
    "recommendations",
    "simulate",
    "simulate_many",
]

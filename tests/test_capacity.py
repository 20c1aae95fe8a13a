"""Tests for capacity forecasting and cost planning."""
import threading
import pytest

from intelligence.capacity import CapacityPlanner
from models.enums import Severity, Trend
from utils.errors import InvalidInputError

HISTORY = {
    "cpu": [50.0 + i for i in range(20)],
    "memory": [10.0] * 20,
    "storage": [60.0] * 20,
    "network": [50.0] * 20,
}


@pytest.mark.parametrize("horizon", [0, -1, 366, True, "30", None])
def test_invalid_horizon(horizon):
    with pytest.raises(InvalidInputError):
        CapacityPlanner().create_plan("api", horizon, history=HISTORY)


def test_service_required():
    with pytest.raises(InvalidInputError):
        CapacityPlanner().create_plan("", 30, history=HISTORY)


def test_projections():
    plan = CapacityPlanner().create_plan("api", 30, history=HISTORY)
    forecasts = {f.resource: f for f in plan.forecasts}
    assert list(forecasts) == ["cpu", "memory", "storage", "network"]

    cpu = forecasts["cpu"]
    assert cpu.current == 69.0
    assert cpu.projected == pytest.approx(189.0)
    assert cpu.trend == Trend.INCREASING
    assert cpu.confidence == pytest.approx(1.0)
    assert len(cpu.timeline) == 121

    assert forecasts["memory"].trend == Trend.STABLE
    assert forecasts["memory"].projected == 10.0


def test_recommendations_sorted_by_urgency():
    plan = CapacityPlanner().create_plan("api", 30, history=HISTORY)
    recs = plan.recommendations
    assert [(r.type, r.component) for r in recs] == [("scale_up", "cpu"), ("scale_down", "memory")]
    assert recs[0].urgency == Severity.CRITICAL
    assert recs[0].change_pct == pytest.approx(162.5)
    assert recs[1].change_pct == 50.0
    assert recs[1].cost_impact == pytest.approx(-20.0)


def test_cost_analysis():
    cost = CapacityPlanner().create_plan("api", 30, history=HISTORY).cost_analysis
    assert cost.current_cost == 150.0
    assert cost.projected_cost > cost.current_cost
    assert cost.savings == pytest.approx(cost.projected_cost - cost.optimized_cost, abs=0.02)
    assert set(cost.breakdown) == {"cpu", "memory", "storage", "network"}
    assert cost.breakdown["memory"]["optimized"] == 20.0


def test_savings_never_negative():
    flat = {r: [55.0] * 10 for r in ("cpu", "memory", "storage", "network")}
    cost = CapacityPlanner(planned_discount=0).create_plan("api", 10, history=flat).cost_analysis
    assert cost.savings == 0.0


def test_simulated_history_is_stable_per_service():
    planner = CapacityPlanner()
    a = planner.create_plan("checkout", 30)
    b = planner.create_plan("checkout", 30)
    assert [f.projected for f in a.forecasts] == [f.projected for f in b.forecasts]
    assert all(f.samples == 28 for f in a.forecasts)


def test_cancel_returns_partial_plan():
    cancel = threading.Event()
    cancel.set()
    plan = CapacityPlanner().create_plan("api", 30, history=HISTORY, cancel=cancel)
    assert plan.forecasts == []
    assert plan.recommendations == []


@pytest.mark.parametrize("history", [
    {"cpu": ["x", "y"]},
    {"cpu": 55.0},
    {"cpu": [50.0, float("nan")]},
    [50.0, 60.0],
])
def test_malformed_history_rejected(history):
    with pytest.raises(InvalidInputError):
        CapacityPlanner().create_plan("api", 30, history=history)

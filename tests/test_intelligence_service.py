"""Tests for the intelligence service facade."""
import pytest

from monitor.sources import SimulatedMetricSource
from utils.cancel import CancelToken, cancel_token
from utils.errors import UnknownIncidentError

SPIKE = [10.0] * 30 + [50.0] + [10.0] * 5


def test_detection_updates_metrics(intelligence):
    scores = intelligence.detect_anomalies("cpu_usage", SPIKE, SimulatedMetricSource.timestamps(len(SPIKE)))
    metrics = intelligence.get_metrics()
    assert metrics.samples_scored == len(scores)
    assert metrics.anomalies_detected == 1
    assert metrics.avg_detection_ms >= 0
    runs = intelligence.get_anomaly_runs()
    assert runs[0]["metric_name"] == "cpu_usage"
    assert len(runs[0]["anomalies"]) == 1


def test_expired_timeout_returns_partial(intelligence):
    scores = intelligence.detect_anomalies("cpu_usage", SPIKE, SimulatedMetricSource.timestamps(len(SPIKE)),
                                           timeout=0)
    assert scores == []


def test_high_probability_prediction_fires_rule(intelligence, manager):
    alerts = intelligence.generate_predictive_alerts({"cpu_usage": [70.0 + 4 * i for i in range(10)]})
    assert alerts[0].probability >= 0.9
    active = manager.get_active_alert("high-cpu-usage")
    assert active is not None
    assert active.labels["source"] == "predictive"
    metrics = intelligence.get_metrics()
    assert metrics.predictions_generated == 1
    assert metrics.predictions_promoted == 1
    assert metrics.recommendations_created == 1


def test_promotion_can_be_skipped(intelligence, manager):
    intelligence.generate_predictive_alerts({"cpu_usage": [70.0 + 4 * i for i in range(10)]}, promote=False)
    assert manager.get_active_alerts() == []
    assert len(intelligence.get_predictive_alerts("active")) == 1
    assert intelligence.get_predictive_alerts("dismissed") == []


def test_root_cause_cached(intelligence, manager):
    manager.fire_alert("high-error-rate")
    incident = manager.list_incidents()[0]
    analysis = intelligence.analyze_root_cause(incident.id)
    assert intelligence.get_root_cause_analyses() == [analysis]
    assert intelligence.get_metrics().analyses_completed == 1
    with pytest.raises(UnknownIncidentError):
        intelligence.analyze_root_cause("missing")


def test_capacity_plan_uses_default_horizon(intelligence):
    plan = intelligence.create_capacity_plan("api_service")
    assert plan.horizon_days == 30
    assert intelligence.get_capacity_plans() == [plan]


def test_insights_feed_recommendations(intelligence):
    intelligence.performance.update_current("api_service", latency_ms=90, throughput_rps=700)
    insights = intelligence.generate_performance_insights()
    assert len(insights) == 1
    assert len(intelligence.get_recommendations()) == 2


def test_dashboard_summary(intelligence):
    intelligence.create_capacity_plan("api_service", 14)
    summary = intelligence.dashboard()
    assert summary["latest_capacity_plan"].horizon_days == 14
    assert len(summary["models"]) == 3
    assert summary["avg_analysis_confidence"] is None
    assert summary["metrics"].capacity_plans_created == 1


def test_cancel_token_combines_event_and_deadline():
    assert cancel_token() is None
    clock_now = [0.0]
    token = CancelToken(timeout=5, clock=lambda: clock_now[0])
    assert not token.is_set()
    clock_now[0] = 5.0
    assert token.is_set()

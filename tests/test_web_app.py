"""Tests for the Flask JSON API."""
import pytest
from datetime import datetime, timedelta, timezone

from monitor.sources import SimulatedMetricSource
from web.app import create_app


@pytest.fixture
def app(config, manager, intelligence):
    app = create_app(config, {
        "alert_manager": manager,
        "intelligence": intelligence,
        "source": SimulatedMetricSource(seed=1),
    })
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _incident(client, **body):
    payload = {"title": "Database down", "severity": "high"}
    payload.update(body)
    return client.post("/api/incidents", json=payload).get_json()["incident"]


# ─── Health / rules ──────────────────────────────────


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["status"] == "healthy"
    assert data["rules"] == 4
    assert "timestamp" in data


def test_rules_listing(client):
    data = client.get("/api/rules").get_json()
    assert data["total_rules"] == 4
    assert data["rules"][0]["threshold"] == {"operator": ">", "value": 80.0}


def test_rule_toggle_and_silence(client):
    assert client.post("/api/rules/high-cpu-usage/disable").get_json()["rule"]["enabled"] is False
    assert client.post("/api/rules/high-cpu-usage/enable").get_json()["rule"]["enabled"] is True
    resp = client.post("/api/rules/high-cpu-usage/silence?duration=60")
    assert resp.status_code == 200
    assert resp.get_json()["silenced_until"]


def test_unknown_rule_is_404(client):
    resp = client.post("/api/rules/nope/enable")
    assert resp.status_code == 404
    data = resp.get_json()
    assert data["error"] == "unknown_rule"
    assert "timestamp" in data


# ─── Alerts ──────────────────────────────────────────


def test_fire_default_alert_opens_incident(client):
    resp = client.post("/api/alerts/fire")
    assert resp.status_code == 200
    alert = resp.get_json()["alert"]
    assert alert["rule_id"] == "high-cpu-usage"
    assert alert["severity"] == "critical"
    incidents = client.get("/api/incidents").get_json()
    assert incidents["count"] == 1
    assert incidents["statistics"]["open"] == 1


def test_fire_with_body(client):
    resp = client.post("/api/alerts/fire", json={"rule": "low-throughput", "severity": "high",
                                                 "value": 3, "labels": {"region": "eu"}})
    alert = resp.get_json()["alert"]
    assert alert["severity"] == "high"
    assert alert["value"] == 3.0
    assert alert["labels"]["region"] == "eu"


def test_fire_bad_severity_is_400(client):
    resp = client.post("/api/alerts/fire", json={"severity": "meh"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid_input"


def test_alert_listing_and_history(client):
    client.post("/api/alerts/fire", json={"rule": "low-throughput", "severity": "low"})
    client.post("/api/alerts/fire", json={"rule": "high-cpu-usage", "severity": "medium"})
    client.post("/api/alerts/low-throughput/resolve")

    data = client.get("/api/alerts").get_json()
    assert data["active_count"] == 1
    assert data["history_count"] == 1
    assert data["recent_history"][0]["status"] == "resolved"

    history = client.get("/api/alerts/history?limit=5").get_json()
    assert history["count"] == 1
    assert client.get("/api/alerts/history?limit=-1").status_code == 400
    assert client.get("/api/alerts/history?limit=abc").status_code == 400


def test_resolve_without_active(client):
    data = client.post("/api/alerts/high-cpu-usage/resolve").get_json()
    assert data["resolved"] is False
    assert data["alert"] is None


# ─── Incidents ───────────────────────────────────────


def test_create_incident(client):
    resp = client.post("/api/incidents", json={"title": "Checkout errors", "tags": ["payments"]})
    assert resp.status_code == 201
    incident = resp.get_json()["incident"]
    assert incident["status"] == "open"
    assert incident["tags"] == ["payments"]
    assert len(incident["timeline"]) == 1


def test_create_incident_requires_title(client):
    assert client.post("/api/incidents", json={}).status_code == 400


def test_incident_workflow(client):
    incident = _incident(client)
    iid = incident["id"]

    resp = client.post(f"/api/incidents/{iid}/status", json={"status": "investigating", "author": "alice"})
    assert resp.get_json()["incident"]["metrics"]["time_to_acknowledgment"] is not None

    assert client.post(f"/api/incidents/{iid}/comments",
                       json={"author": "alice", "message": "Failing over"}).status_code == 201
    assigned = client.post(f"/api/incidents/{iid}/assign", json={"assignee": "bob"}).get_json()
    assert assigned["incident"]["assignee"] == "bob"

    client.post(f"/api/incidents/{iid}/status", json={"status": "resolved"})
    final = client.get(f"/api/incidents/{iid}").get_json()["incident"]
    assert final["status"] == "resolved"
    assert [u["type"] for u in final["timeline"]] == [
        "creation", "status_change", "comment", "assignment", "status_change",
    ]


def test_invalid_transition_is_409(client):
    iid = _incident(client)["id"]
    client.post(f"/api/incidents/{iid}/status", json={"status": "closed"})
    resp = client.post(f"/api/incidents/{iid}/status", json={"status": "open"})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "invalid_transition"


def test_status_required(client):
    iid = _incident(client)["id"]
    assert client.post(f"/api/incidents/{iid}/status", json={}).status_code == 400


def test_unknown_incident_is_404(client):
    assert client.get("/api/incidents/nope").status_code == 404
    assert client.post("/api/intelligence/root-cause/nope").status_code == 404


def test_filter_incidents_by_status(client):
    _incident(client)
    assert client.get("/api/incidents?status=open").get_json()["count"] == 1
    assert client.get("/api/incidents?status=closed").get_json()["count"] == 0
    assert client.get("/api/incidents?status=weird").status_code == 400


# ─── Channels ────────────────────────────────────────


def test_channels(client):
    assert client.get("/api/channels").get_json()["count"] == 3
    data = client.post("/api/channels/test?timeout=2").get_json()
    assert data["tested"] == 3
    assert data["successful"] == 3
    assert data["cancelled"] == 0


# ─── Intelligence ────────────────────────────────────


def test_anomaly_detection_with_values(client):
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    values = [10.0] * 30 + [50.0]
    timestamps = [(start + timedelta(minutes=i)).isoformat() for i in range(len(values))]
    data = client.post("/api/intelligence/anomalies", json={
        "metric_name": "latency", "values": values, "timestamps": timestamps, "include_scores": True,
    }).get_json()
    assert data["data_points"] == 31
    assert data["anomalies_found"] == 1
    assert len(data["scores"]) == 31
    assert client.get("/api/intelligence/anomalies").get_json()["count"] == 1


def test_anomaly_detection_simulated(client):
    data = client.post("/api/intelligence/anomalies", json={}).get_json()
    assert data["data_points"] == 100
    assert len(data["scores"]) == 10


def test_anomaly_detection_rejects_bad_series(client):
    resp = client.post("/api/intelligence/anomalies", json={"values": [1, 2], "timestamps": ["2024-01-01"]})
    assert resp.status_code == 400


def test_models(client):
    assert client.get("/api/intelligence/models").get_json()["count"] == 3


def test_predictive_alerts(client):
    resp = client.post("/api/intelligence/predictive-alerts", json={
        "metrics": {"cpu_usage": [70 + 4 * i for i in range(10)]}, "promote": False,
    })
    data = resp.get_json()
    assert data["metrics_analyzed"] == 1
    assert data["alerts_generated"] == 1
    assert data["alerts"][0]["rule_id"] == "predictive_cpu_usage"
    assert client.get("/api/intelligence/predictive-alerts").get_json()["count"] == 1
    assert client.get("/api/intelligence/recommendations").get_json()["count"] == 1


def test_predictive_alerts_simulated(client):
    data = client.post("/api/intelligence/predictive-alerts", json={"promote": False}).get_json()
    assert data["metrics_analyzed"] == 5


def test_predictive_alerts_reject_nan(client, manager):
    body = '{"metrics": {"cpu_usage": [NaN, NaN, NaN]}, "promote": true}'
    resp = client.post("/api/intelligence/predictive-alerts", data=body, content_type="application/json")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid_input"
    assert manager.get_active_alerts() == []


@pytest.mark.parametrize("metrics", [{"cpu_usage": 5}, {"cpu_usage": ["x", "y"]}, [80, 90]])
def test_predictive_alerts_reject_malformed_metrics(client, metrics):
    resp = client.post("/api/intelligence/predictive-alerts", json={"metrics": metrics})
    assert resp.status_code == 400


def test_root_cause(client):
    client.post("/api/alerts/fire", json={"rule": "high-error-rate"})
    iid = client.get("/api/incidents").get_json()["incidents"][0]["id"]
    data = client.post(f"/api/intelligence/root-cause/{iid}").get_json()
    assert data["root_causes"] == 1
    assert data["analysis"]["status"] == "completed"
    assert client.get("/api/intelligence/root-cause").get_json()["count"] == 1


def test_performance_insights(client):
    data = client.post("/api/intelligence/performance-insights", json={
        "services": {"api_service": {"current_latency_ms": 95}},
    }).get_json()
    assert data["services_analyzed"] == 3
    assert data["insights_generated"] == 1
    assert data["insights"][0]["severity"] == "high"
    assert client.get("/api/intelligence/performance-insights").get_json()["count"] == 1


def test_capacity_plan(client):
    resp = client.post("/api/intelligence/capacity?service=search&horizon=14")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["service"] == "search"
    assert data["horizon_days"] == 14
    assert len(data["plan"]["forecasts"]) == 4
    assert data["potential_savings"] >= 0
    assert client.get("/api/intelligence/capacity-plans").get_json()["count"] == 1


def test_capacity_plan_bad_horizon(client):
    assert client.post("/api/intelligence/capacity", json={"horizon": 500}).status_code == 400
    assert client.post("/api/intelligence/capacity?horizon=soon").status_code == 400


@pytest.mark.parametrize("history", [{"cpu": ["x", "y"]}, {"cpu": 55}, ["cpu"]])
def test_capacity_plan_rejects_malformed_history(client, history):
    resp = client.post("/api/intelligence/capacity", json={"history": history})
    assert resp.status_code == 400


def test_performance_insights_reject_bad_measurements(client):
    resp = client.post("/api/intelligence/performance-insights", json={
        "services": {"api_service": {"current_latency_ms": "slow"}},
    })
    assert resp.status_code == 400
    resp = client.post("/api/intelligence/performance-insights", json={"services": ["api_service"]})
    assert resp.status_code == 400


def test_anomaly_detection_rejects_scalar_input(client):
    assert client.post("/api/intelligence/anomalies", json={"values": 5}).status_code == 400
    resp = client.post("/api/intelligence/anomalies", json={"values": [1, 2], "timestamps": 7})
    assert resp.status_code == 400


def test_metrics_and_dashboard(client):
    client.post("/api/intelligence/capacity")
    metrics = client.get("/api/intelligence/metrics").get_json()["metrics"]
    assert metrics["capacity_plans_created"] == 1
    dashboard = client.get("/api/intelligence/dashboard").get_json()
    assert dashboard["latest_capacity_plan"]["service"] == "api_service"
    assert "timestamp" in dashboard


def test_unknown_route_is_json(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"

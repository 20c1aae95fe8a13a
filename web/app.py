"""
Flask JSON API for the alert and incident engine.

Every response body carries a ``timestamp``. Engine errors map to their
HTTP status (404 not found, 400 invalid input, 409 policy violation) with an
``error``/``message`` pair.

Started via: python main.py web [--port 5000] [--host 0.0.0.0]
"""
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from models.base import to_jsonable
from monitor.sources import SimulatedMetricSource
from utils.errors import EngineError, InvalidInputError

logger = logging.getLogger("alertengine.web.app")

RECENT_HISTORY = 10


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


def _respond(payload, status=200):
    body = to_jsonable(payload)
    body["timestamp"] = _now_iso()
    return jsonify(body), status


def _body():
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _param(name, default=None):
    """Look a parameter up in the query string, then the JSON body."""
    value = request.args.get(name)
    if value is None:
        value = _body().get(name, default)
    return value


def _number(name, default=None, cast=float):
    value = _param(name)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Parameter '{name}' must be a number", **{name: value})


def _parse_timestamp(value):
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise InvalidInputError(f"Invalid timestamp: {value}")
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def create_app(config: dict, engines: dict) -> Flask:
    """
    Factory function. Receives initialized engines from main.py / wsgi.py.

    Args:
        config: Application config dict
        engines: dict with ``alert_manager`` and ``intelligence``; optionally
                 ``source`` (metric source for sample data) and ``evaluator``.
    """
    app = Flask(__name__)
    app.json.sort_keys = False

    manager = engines["alert_manager"]
    intelligence = engines["intelligence"]
    source = engines.get("source") or SimulatedMetricSource()
    notif_cfg = config.get("notifications", {})
    service_cfg = config.get("service", {})

    # ─── Error Handlers ──────────────────────────────────

    @app.errorhandler(EngineError)
    def handle_engine_error(e):
        if e.http_status >= 500:
            logger.error(f"{request.method} {request.path}: {e.message}")
        else:
            logger.info(f"{request.method} {request.path} -> {e.http_status}: {e.message}")
        return _respond(e.to_dict(), e.http_status)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return _respond({"error": e.name.lower().replace(" ", "_"), "message": e.description}, e.code)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception(f"Unhandled error on {request.method} {request.path}: {e}")
        return _respond({"error": "internal_error", "message": "Internal server error"}, 500)

    # ─── Health ──────────────────────────────────────────

    @app.route("/health")
    def health():
        rules = manager.list_rules()
        return _respond({
            "status": "healthy",
            "service": service_cfg.get("name", "alert-engine"),
            "environment": service_cfg.get("environment", "development"),
            "rules": rules["total_rules"],
            "active_alerts": rules["active_alerts"],
        })

    # ─── Rules ───────────────────────────────────────────

    @app.route("/api/rules")
    def list_rules():
        return _respond(manager.list_rules())

    @app.route("/api/rules/<rule>/enable", methods=["POST"])
    def enable_rule(rule):
        return _respond({"rule": manager.set_rule_enabled(rule, True)})

    @app.route("/api/rules/<rule>/disable", methods=["POST"])
    def disable_rule(rule):
        return _respond({"rule": manager.set_rule_enabled(rule, False)})

    @app.route("/api/rules/<rule>/silence", methods=["POST"])
    def silence_rule(rule):
        duration = _number("duration", 3600)
        until = manager.silence_rule(rule, duration)
        return _respond({"rule": rule, "silenced_until": until})

    # ─── Alerts ──────────────────────────────────────────

    @app.route("/api/alerts/fire", methods=["POST"])
    def fire_alert():
        body = _body()
        alert = manager.fire_alert(
            _param("rule", "high-cpu-usage") or "high-cpu-usage",
            severity=_param("severity", "critical") or "critical",
            message=_param("message"),
            value=_number("value"),
            labels=body.get("labels"),
            annotations=body.get("annotations"),
        )
        return _respond({"success": True, "message": "Alert fired", "alert": alert})

    @app.route("/api/alerts/<rule>/resolve", methods=["POST"])
    def resolve_alert(rule):
        alert = manager.resolve_alert(rule)
        return _respond({
            "success": True,
            "resolved": alert is not None,
            "alert": alert,
        })

    @app.route("/api/alerts")
    def list_alerts():
        active = manager.get_active_alerts()
        history = manager.get_alert_history(RECENT_HISTORY)
        return _respond({
            "active_alerts": active,
            "active_count": len(active),
            "recent_history": history,
            "history_count": len(history),
        })

    @app.route("/api/alerts/history")
    def alert_history():
        limit = _number("limit", 100, cast=int)
        history = manager.get_alert_history(limit)
        return _respond({"history": history, "count": len(history)})

    # ─── Incidents ───────────────────────────────────────

    @app.route("/api/incidents", methods=["GET"])
    def list_incidents():
        incidents = manager.list_incidents(request.args.get("status"))
        return _respond({
            "incidents": incidents,
            "count": len(incidents),
            "statistics": manager.get_incident_statistics(),
        })

    @app.route("/api/incidents", methods=["POST"])
    def create_incident():
        body = _body()
        incident = manager.create_incident(
            title=body.get("title", ""),
            description=body.get("description", ""),
            severity=body.get("severity", "medium"),
            priority=body.get("priority"),
            affected_service=body.get("affected_service", ""),
            related_alert_ids=body.get("related_alerts") or [],
            tags=body.get("tags") or [],
            author=body.get("author", "api"),
        )
        return _respond({"success": True, "incident": incident}, 201)

    @app.route("/api/incidents/<incident_id>")
    def get_incident(incident_id):
        return _respond({"incident": manager.get_incident(incident_id)})

    @app.route("/api/incidents/<incident_id>/status", methods=["POST"])
    def update_incident_status(incident_id):
        body = _body()
        if not body.get("status"):
            raise InvalidInputError("Field 'status' is required")
        incident = manager.update_incident_status(
            incident_id,
            body["status"],
            author=body.get("author", "api"),
            message=body.get("message", ""),
            reopen=bool(body.get("reopen", False)),
        )
        return _respond({"success": True, "incident": incident})

    @app.route("/api/incidents/<incident_id>/comments", methods=["POST"])
    def comment_incident(incident_id):
        body = _body()
        incident = manager.add_incident_comment(incident_id, body.get("author", "api"), body.get("message", ""))
        return _respond({"success": True, "incident": incident}, 201)

    @app.route("/api/incidents/<incident_id>/assign", methods=["POST"])
    def assign_incident(incident_id):
        body = _body()
        incident = manager.assign_incident(incident_id, body.get("assignee", ""), body.get("author", "api"))
        return _respond({"success": True, "incident": incident})

    # ─── Channels ────────────────────────────────────────

    @app.route("/api/channels")
    def list_channels():
        channels = manager.list_channels()
        return _respond({"channels": channels, "count": len(channels)})

    @app.route("/api/channels/test", methods=["POST"])
    def test_channels():
        timeout = _number("timeout", notif_cfg.get("test_timeout", 5))
        results = manager.test_notification_channels(timeout=timeout)
        return _respond({
            "results": results,
            "tested": len(results),
            "successful": sum(1 for r in results if r.success),
            "failed": sum(1 for r in results if r.status == "failed"),
            "cancelled": sum(1 for r in results if r.status == "cancelled"),
        })

    # ─── Intelligence ────────────────────────────────────

    @app.route("/api/intelligence/anomalies", methods=["POST"])
    def run_anomaly_detection():
        body = _body()
        metric = body.get("metric_name", "cpu_usage")
        values = body.get("values")
        if values is None:
            values = source.series(metric, count=100)
        raw_timestamps = body.get("timestamps")
        if raw_timestamps is not None:
            if not isinstance(raw_timestamps, list):
                raise InvalidInputError("Field 'timestamps' must be a list")
            timestamps = [_parse_timestamp(t) for t in raw_timestamps]
        else:
            timestamps = source.timestamps(len(values) if isinstance(values, list) else 0)
        scores = intelligence.detect_anomalies(metric, values, timestamps, method=body.get("method"))
        anomalies = [s for s in scores if s.is_anomaly]
        return _respond({
            "success": True,
            "metric_name": metric,
            "data_points": len(values),
            "scored": len(scores),
            "anomalies_found": len(anomalies),
            "anomalies": anomalies,
            "scores": scores if body.get("include_scores") else scores[:10],
        })

    @app.route("/api/intelligence/anomalies", methods=["GET"])
    def get_anomalies():
        runs = intelligence.get_anomaly_runs()
        return _respond({"runs": runs, "count": len(runs)})

    @app.route("/api/intelligence/models")
    def get_models():
        models = intelligence.get_models()
        return _respond({"models": models, "count": len(models)})

    @app.route("/api/intelligence/predictive-alerts", methods=["POST"])
    def run_predictive_alerts():
        body = _body()
        metric_data = body.get("metrics") or source.metric_trends()
        alerts = intelligence.generate_predictive_alerts(metric_data, promote=body.get("promote", True))
        return _respond({
            "success": True,
            "metrics_analyzed": len(metric_data),
            "alerts_generated": len(alerts),
            "alerts": alerts,
        })

    @app.route("/api/intelligence/predictive-alerts", methods=["GET"])
    def get_predictive_alerts():
        alerts = intelligence.get_predictive_alerts(request.args.get("status"))
        return _respond({"alerts": alerts, "count": len(alerts)})

    @app.route("/api/intelligence/root-cause/<incident_id>", methods=["POST"])
    def run_root_cause(incident_id):
        analysis = intelligence.analyze_root_cause(incident_id)
        return _respond({
            "success": True,
            "incident_id": incident_id,
            "confidence": analysis.confidence,
            "root_causes": len(analysis.root_causes),
            "correlations": len(analysis.correlations),
            "timeline_events": len(analysis.timeline),
            "analysis": analysis,
        })

    @app.route("/api/intelligence/root-cause")
    def get_root_cause():
        analyses = intelligence.get_root_cause_analyses()
        return _respond({"analyses": analyses, "count": len(analyses)})

    @app.route("/api/intelligence/performance-insights", methods=["POST"])
    def run_performance_insights():
        services = _body().get("services") or {}
        if not isinstance(services, dict) or not all(isinstance(c, dict) for c in services.values()):
            raise InvalidInputError("Field 'services' must map service names to objects")
        for name, current in services.items():
            intelligence.performance.update_current(
                name,
                latency_ms=current.get("current_latency_ms"),
                throughput_rps=current.get("current_throughput_rps"),
            )
        insights = intelligence.generate_performance_insights()
        return _respond({
            "success": True,
            "services_analyzed": len(intelligence.performance.baselines),
            "insights_generated": len(insights),
            "insights": insights,
        })

    @app.route("/api/intelligence/performance-insights", methods=["GET"])
    def get_performance_insights():
        insights = intelligence.get_performance_insights()
        return _respond({"insights": insights, "count": len(insights)})

    @app.route("/api/intelligence/capacity", methods=["POST"])
    def run_capacity_plan():
        service = _param("service", "api_service") or "api_service"
        horizon = _number("horizon", intelligence.default_horizon_days)
        plan = intelligence.create_capacity_plan(service, horizon, history=_body().get("history"))
        return _respond({
            "success": True,
            "service": service,
            "horizon_days": plan.horizon_days,
            "recommendations": len(plan.recommendations),
            "potential_savings": plan.cost_analysis.savings,
            "projected_cost": plan.cost_analysis.projected_cost,
            "plan": plan,
        })

    @app.route("/api/intelligence/capacity-plans")
    def get_capacity_plans():
        plans = intelligence.get_capacity_plans()
        return _respond({"plans": plans, "count": len(plans)})

    @app.route("/api/intelligence/recommendations")
    def get_recommendations():
        recommendations = intelligence.get_recommendations()
        return _respond({"recommendations": recommendations, "count": len(recommendations)})

    @app.route("/api/intelligence/metrics")
    def get_intelligence_metrics():
        return _respond({"metrics": intelligence.get_metrics()})

    @app.route("/api/intelligence/dashboard")
    def get_intelligence_dashboard():
        return _respond(intelligence.dashboard())

    return app

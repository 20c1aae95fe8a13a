"""Intelligence service: runs the analyzers, caches their output and keeps counters."""
import logging
import threading
import time
from collections import deque
from datetime import datetime, timezone

from intelligence.anomaly import AnomalyDetector
from intelligence.capacity import CapacityPlanner
from intelligence.performance import PerformanceInsightAnalyzer
from intelligence.predictive import PredictiveAlertGenerator
from intelligence.root_cause import RootCauseAnalyzer
from models.intelligence import IntelligenceMetrics
from utils.cancel import cancel_token

logger = logging.getLogger("alertengine.intelligence.service")


class IntelligenceService:
    def __init__(self, manager, config=None):
        cfg = (config or {}).get("intelligence", {})
        anomaly_cfg = cfg.get("anomaly", {})
        predictive_cfg = cfg.get("predictive", {})
        capacity_cfg = cfg.get("capacity", {})
        performance_cfg = cfg.get("performance", {})
        cache_size = cfg.get("cache_size", 100)

        self.manager = manager
        self.detector = AnomalyDetector(
            window=anomaly_cfg.get("window", 30),
            threshold=anomaly_cfg.get("threshold", 0.5),
            method=anomaly_cfg.get("method", "statistical"),
        )
        self.predictor = PredictiveAlertGenerator(
            thresholds=predictive_cfg.get("thresholds"),
            default_threshold=predictive_cfg.get("default_threshold", 100.0),
            horizon_samples=predictive_cfg.get("horizon_samples", 6),
            sample_interval_seconds=predictive_cfg.get("sample_interval_seconds", 300),
            min_probability=predictive_cfg.get("min_probability", 0.3),
        )
        self.promote_probability = predictive_cfg.get("promote_probability", 0.9)
        self.root_cause = RootCauseAnalyzer(manager)
        self.capacity = CapacityPlanner(
            limits=capacity_cfg.get("limits"),
            unit_costs=capacity_cfg.get("unit_costs"),
            scale_down_below=capacity_cfg.get("scale_down_below", 30.0),
            planned_discount=capacity_cfg.get("planned_discount", 0.15),
        )
        self.default_horizon_days = capacity_cfg.get("default_horizon_days", 30)
        self.performance = PerformanceInsightAnalyzer(performance_cfg.get("baselines"))

        self._lock = threading.Lock()
        self._metrics = IntelligenceMetrics()
        self._detection_runs = 0
        self._anomaly_runs = deque(maxlen=cache_size)
        self._predictive_alerts = deque(maxlen=cache_size)
        self._analyses = deque(maxlen=cache_size)
        self._insights = deque(maxlen=cache_size)
        self._capacity_plans = deque(maxlen=cache_size)
        self._recommendations = deque(maxlen=cache_size)

    # ─── Runs ────────────────────────────────────────────

    def detect_anomalies(self, metric_name, values, timestamps, method=None, cancel=None, timeout=None):
        logger.info(f"Running anomaly detection on {metric_name} ({len(values or [])} samples)")
        started = time.perf_counter()
        scores = self.detector.detect(metric_name, values, timestamps, method=method,
                                      cancel=cancel_token(cancel, timeout))
        elapsed_ms = (time.perf_counter() - started) * 1000
        anomalies = [s for s in scores if s.is_anomaly]

        with self._lock:
            self._detection_runs += 1
            m = self._metrics
            m.samples_scored += len(scores)
            m.anomalies_detected += len(anomalies)
            m.avg_detection_ms = round(
                m.avg_detection_ms + (elapsed_ms - m.avg_detection_ms) / self._detection_runs, 3)
            self._anomaly_runs.append({
                "metric_name": metric_name,
                "method": method or self.detector.method,
                "samples": len(scores),
                "anomalies": anomalies,
                "run_at": datetime.now(timezone.utc),
            })
        return scores

    def generate_predictive_alerts(self, metric_data, promote=True, cancel=None, timeout=None):
        alerts = self.predictor.generate(metric_data, cancel=cancel_token(cancel, timeout))
        promoted = self._promote(alerts) if promote else 0
        with self._lock:
            self._metrics.predictions_generated += len(alerts)
            self._metrics.predictions_promoted += promoted
            self._predictive_alerts.extend(alerts)
            for alert in alerts:
                self._remember_recommendations(alert.recommendations)
        return alerts

    def _promote(self, alerts):
        """Fire the rule watching each high-probability metric."""
        candidates = [a for a in alerts if a.probability >= self.promote_probability]
        if not candidates:
            return 0
        rules = self.manager.list_rules()["rules"]
        promoted = 0
        for alert in candidates:
            metric = alert.prediction.metric
            for rule in rules:
                if rule.metric != metric or not rule.enabled or self.manager.is_silenced(rule.id):
                    continue
                self.manager.fire_alert(
                    rule.id,
                    message=f"Predicted: {alert.prediction.description}",
                    value=alert.prediction.current_value,
                    labels={"source": "predictive"},
                    annotations={
                        "predicted_value": f"{alert.prediction.predicted_value:g}",
                        "probability": f"{alert.probability:.2f}",
                    },
                )
                promoted += 1
                logger.info(f"Promoted predictive alert on {metric} to rule {rule.name}")
        return promoted

    def analyze_root_cause(self, incident_id, cancel=None, timeout=None):
        analysis = self.root_cause.analyze(incident_id, cancel=cancel_token(cancel, timeout))
        with self._lock:
            self._metrics.analyses_completed += 1
            self._analyses.append(analysis)
        return analysis

    def generate_performance_insights(self, services=None, cancel=None, timeout=None):
        insights = self.performance.generate(services, cancel=cancel_token(cancel, timeout))
        with self._lock:
            self._metrics.insights_generated += len(insights)
            self._insights.extend(insights)
            for insight in insights:
                self._remember_recommendations(insight.suggestions)
        return insights

    def create_capacity_plan(self, service, horizon_days=None, history=None, cancel=None, timeout=None):
        horizon = self.default_horizon_days if horizon_days is None else horizon_days
        plan = self.capacity.create_plan(service, horizon, history=history,
                                         cancel=cancel_token(cancel, timeout))
        with self._lock:
            self._metrics.capacity_plans_created += 1
            self._capacity_plans.append(plan)
        return plan

    def _remember_recommendations(self, recommendations):
        # Caller holds self._lock
        self._recommendations.extend(recommendations)
        self._metrics.recommendations_created += len(recommendations)

    # ─── Cached reads ────────────────────────────────────

    def get_models(self):
        return self.detector.models()

    def get_anomaly_runs(self):
        with self._lock:
            return list(self._anomaly_runs)

    def get_predictive_alerts(self, status=None):
        with self._lock:
            alerts = list(self._predictive_alerts)
        return [a for a in alerts if status is None or a.status == status]

    def get_root_cause_analyses(self):
        with self._lock:
            return list(self._analyses)

    def get_performance_insights(self):
        with self._lock:
            return list(self._insights)

    def get_capacity_plans(self):
        with self._lock:
            return list(self._capacity_plans)

    def get_recommendations(self):
        with self._lock:
            return list(self._recommendations)

    def get_metrics(self):
        with self._lock:
            return IntelligenceMetrics(**vars(self._metrics))

    def dashboard(self):
        """One-call summary for the dashboard endpoint and the CLI."""
        with self._lock:
            metrics = IntelligenceMetrics(**vars(self._metrics))
            latest_plan = self._capacity_plans[-1] if self._capacity_plans else None
            active_predictions = [a for a in self._predictive_alerts if a.status == "active"]
            recent_anomalies = sum(len(r["anomalies"]) for r in self._anomaly_runs)
            analyses = list(self._analyses)
            insights = list(self._insights)
            recommendations = len(self._recommendations)

        return {
            "metrics": metrics,
            "models": self.get_models(),
            "active_predictions": len(active_predictions),
            "high_risk_predictions": sum(1 for a in active_predictions if a.probability > 0.8),
            "recent_anomalies": recent_anomalies,
            "root_cause_analyses": len(analyses),
            "avg_analysis_confidence": (
                round(sum(a.confidence for a in analyses) / len(analyses), 4) if analyses else None
            ),
            "performance_insights": len(insights),
            "recommendations": recommendations,
            "latest_capacity_plan": latest_plan,
        }

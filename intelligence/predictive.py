"""Trend-based predictive alerts."""
import logging
import uuid

from intelligence.stats import clamp, finite_series, linear_fit
from models.enums import Severity
from models.intelligence import Prediction, PredictiveAlert, Recommendation, RecommendedAction
from utils.errors import InvalidInputError

logger = logging.getLogger("alertengine.intelligence.predictive")

DEFAULT_THRESHOLDS = {
    "cpu_usage": 80.0,
    "memory_usage": 85.0,
    "disk_usage": 90.0,
    "error_rate": 5.0,
    "response_time": 1000.0,
}
DEFAULT_THRESHOLD = 100.0


def probability_severity(probability):
    """Same banding as anomaly scores: high > 0.8, medium > 0.5, else low."""
    if probability > 0.8:
        return Severity.HIGH
    if probability > 0.5:
        return Severity.MEDIUM
    return Severity.LOW


class PredictiveAlertGenerator:
    def __init__(self, thresholds=None, default_threshold=DEFAULT_THRESHOLD, horizon_samples=6,
                 sample_interval_seconds=300, min_probability=0.3):
        if horizon_samples < 1:
            raise ValueError("horizon_samples must be >= 1")
        self.thresholds = {**DEFAULT_THRESHOLDS, **(thresholds or {})}
        self.default_threshold = default_threshold
        self.horizon = horizon_samples
        self.sample_interval = sample_interval_seconds
        self.min_probability = min_probability

    def threshold_for(self, metric):
        return float(self.thresholds.get(metric, self.default_threshold))

    def generate(self, metric_data, cancel=None):
        """Fit a line per metric and alert on series heading over their danger threshold.

        Series shorter than two samples are skipped. Non-numeric or non-finite
        samples raise InvalidInputError. Cancelling returns the alerts built so far.
        """
        if not isinstance(metric_data, dict):
            raise InvalidInputError("Metric data must map metric names to sample lists")
        alerts = []
        for metric, values in metric_data.items():
            if cancel is not None and cancel.is_set():
                logger.info(f"Predictive generation cancelled after {len(alerts)} alert(s)")
                break
            if values is None:
                continue
            series = finite_series(values, f"Samples for {metric}")
            if len(series) < 2:
                logger.debug(f"Skipping {metric}: not enough samples to trend")
                continue
            alert = self._evaluate(metric, series)
            if alert is not None:
                alerts.append(alert)
        logger.info(f"Predictive run over {len(metric_data)} metric(s): {len(alerts)} alert(s)")
        return alerts

    def _evaluate(self, metric, values):
        slope, _, r2 = linear_fit(values)
        if slope <= 0:
            return None

        threshold = self.threshold_for(metric)
        current = values[-1]
        steps = max(0.0, (threshold - current) / slope)
        if steps > self.horizon:
            return None

        proximity = 1 - steps / self.horizon
        steepness = min(1.0, slope * self.horizon / (0.25 * abs(threshold) or 1.0))
        probability = round(clamp(0.5 * proximity + 0.3 * r2 + 0.2 * steepness), 4)
        if probability < self.min_probability:
            return None

        predicted = current + slope * self.horizon
        factors = ["trending_upward"]
        if r2 >= 0.8:
            factors.append("consistent_trend")
        if current >= threshold:
            factors.append("threshold_already_breached")
        elif steps <= self.horizon / 2:
            factors.append("imminent_breach")

        return PredictiveAlert(
            id=str(uuid.uuid4()),
            rule_id=f"predictive_{metric}",
            prediction=Prediction(
                type="threshold_breach",
                description=f"{metric} is predicted to exceed {threshold:g}",
                metric=metric,
                current_value=current,
                predicted_value=round(predicted, 4),
                threshold=threshold,
                slope=round(slope, 6),
                confidence=round(r2, 4),
                factors=factors,
            ),
            probability=probability,
            severity=probability_severity(probability),
            steps_to_breach=round(steps, 4),
            time_to_event_seconds=round(steps * self.sample_interval, 1),
            recommendations=[self._recommend(metric, threshold)],
        )

    @staticmethod
    def _recommend(metric, threshold):
        return Recommendation(
            id=str(uuid.uuid4()),
            type="scaling",
            priority=Severity.HIGH,
            title=f"Scale {metric} resources before threshold breach",
            description=f"Proactively scale resources to prevent {metric} from reaching {threshold:g}",
            impact="Prevent service degradation",
            effort="low",
            actions=[RecommendedAction(
                type="scale_up",
                description="Increase resource allocation by 20%",
                parameters={"metric": metric, "scaling_factor": 1.2},
                automated=True,
            )],
        )

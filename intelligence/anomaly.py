"""Anomaly scoring over a single metric series.

Three interchangeable methods:

- ``statistical``: rolling z-score against a trailing window of prior samples.
  The deviation is mapped to [0, 1) with ``1 - 2 ** (-z / 3)``, so a 3-sigma
  deviation scores exactly 0.5.
- ``isolation``: global z-score over the whole series through a sigmoid.
- ``sequence``: relative error of each sample against the mean of the
  preceding samples.

Every method is deterministic for the same input.
"""
import logging
import math

from models.intelligence import AnomalyModel, AnomalyScore
from intelligence.stats import clamp, finite_series, mean, stddev
from utils.errors import InvalidInputError

logger = logging.getLogger("alertengine.intelligence.anomaly")

METHODS = ("statistical", "isolation", "sequence")

DEFAULT_MODELS = [
    AnomalyModel(
        id="statistical-zscore",
        name="Statistical Anomaly Detector",
        method="statistical",
        parameters={"window": 30, "threshold": 0.5, "z_at_threshold": 3.0},
    ),
    AnomalyModel(
        id="isolation-sigmoid",
        name="Isolation Score Detector",
        method="isolation",
        parameters={"contamination": 0.1, "threshold": 0.53},
    ),
    AnomalyModel(
        id="sequence-error",
        name="Sequence Prediction-Error Detector",
        method="sequence",
        parameters={"sequence_length": 10, "threshold": 0.15},
    ),
]


def _bucket(score, is_anomaly):
    if not is_anomaly:
        return "none"
    if score > 0.8:
        return "high"
    if score > 0.5:
        return "medium"
    return "low"


def validate_series(values, timestamps):
    """Raise InvalidInputError unless values/timestamps are non-empty, aligned and increasing."""
    numeric = finite_series(values, "values")
    if not isinstance(timestamps, (list, tuple)):
        raise InvalidInputError("timestamps must be a list")
    if not numeric or not timestamps:
        raise InvalidInputError("values and timestamps must be non-empty")
    if len(numeric) != len(timestamps):
        raise InvalidInputError(
            "values and timestamps must have the same length",
            values=len(numeric), timestamps=len(timestamps),
        )
    for i in range(1, len(timestamps)):
        if timestamps[i] <= timestamps[i - 1]:
            raise InvalidInputError("timestamps must be strictly increasing", index=i)
    return numeric


class AnomalyDetector:
    def __init__(self, window=30, threshold=0.5, method="statistical", sequence_length=10):
        if window < 1:
            raise ValueError("window must be >= 1")
        if not 0 < threshold < 1:
            raise ValueError("threshold must be between 0 and 1")
        if method not in METHODS:
            raise ValueError(f"Unknown anomaly method: {method}")
        self.window = window
        self.threshold = threshold
        self.method = method
        self.sequence_length = sequence_length

    def models(self):
        """The model catalog, with the configured parameters filled in."""
        catalog = []
        for m in DEFAULT_MODELS:
            params = dict(m.parameters)
            if m.method == "statistical":
                params.update(window=self.window, threshold=self.threshold)
            elif m.method == "sequence":
                params.update(sequence_length=self.sequence_length)
            catalog.append(AnomalyModel(
                id=m.id, name=m.name, method=m.method,
                status="active" if m.method == self.method else "standby",
                parameters=params,
            ))
        return catalog

    def detect(self, metric_name, values, timestamps, method=None, cancel=None):
        """Score every sample. Returns one AnomalyScore per sample processed.

        When ``cancel`` is set mid-run the scores computed so far are returned.
        """
        numeric = validate_series(values, timestamps)
        method = method or self.method
        if method not in METHODS:
            raise InvalidInputError(f"Unknown anomaly method: {method}", method=method)

        scorer = {
            "statistical": self._score_statistical,
            "isolation": self._score_isolation,
            "sequence": self._score_sequence,
        }[method]
        model_id = next(m.id for m in DEFAULT_MODELS if m.method == method)

        scores = []
        for result in scorer(numeric):
            if cancel is not None and cancel.is_set():
                logger.info(f"Anomaly detection for {metric_name} cancelled after {len(scores)} samples")
                break
            i, score, threshold, confidence, context = result
            is_anomaly = score > threshold
            context["method"] = method
            scores.append(AnomalyScore(
                timestamp=timestamps[i],
                metric_name=metric_name,
                value=numeric[i],
                score=round(score, 6),
                threshold=threshold,
                is_anomaly=is_anomaly,
                severity=_bucket(score, is_anomaly),
                confidence=round(confidence, 6),
                context=context,
                model_id=model_id,
            ))
        return scores

    def _score_statistical(self, values):
        for i, value in enumerate(values):
            history = values[max(0, i - self.window):i]
            if not history:
                yield i, 0.0, self.threshold, 0.0, {"mean": value, "std_dev": 0.0, "z": 0.0, "history": 0}
                continue
            avg = mean(history)
            sd = stddev(history, avg)
            spread = max(sd, 0.01 * abs(avg), 1e-9)
            z = abs(value - avg) / spread
            score = 1 - 2 ** (-z / 3)
            confidence = min(1.0, len(history) / self.window)
            yield i, score, self.threshold, confidence, {
                "mean": round(avg, 6), "std_dev": round(sd, 6), "z": round(z, 4), "history": len(history),
            }

    def _score_isolation(self, values):
        threshold = 0.5 + 0.1 * 0.3
        avg = mean(values)
        sd = stddev(values, avg)
        for i, value in enumerate(values):
            z = abs(value - avg) / (sd + 1e-9)
            score = 2 / (1 + math.exp(-z)) - 1
            yield i, score, threshold, clamp(score), {"mean": round(avg, 6), "std_dev": round(sd, 6)}

    def _score_sequence(self, values):
        threshold = 0.15
        for i, value in enumerate(values):
            history = values[max(0, i - self.sequence_length):i]
            if not history:
                yield i, 0.0, threshold, 0.0, {"predicted": value, "prediction_error": 0.0}
                continue
            predicted = mean(history)
            error = abs(value - predicted)
            score = clamp(error / (abs(value) + 1e-9))
            confidence = min(1.0, len(history) / self.sequence_length) * min(score * 2, 1.0)
            yield i, score, threshold, confidence, {
                "predicted": round(predicted, 6), "prediction_error": round(error, 6),
            }

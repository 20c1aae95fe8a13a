"""Metric sources the rule evaluator and the intelligence layer read from."""
import random
from datetime import datetime, timedelta, timezone
from typing import Protocol

GIB = 1024 ** 3

# Value ranges used when no real metric feed is wired in.
SIMULATED_RANGES = {
    "cpu_usage": (0, 100),
    "memory_usage_bytes": (0, 4 * GIB),
    "memory_usage": (0, 100),
    "disk_usage": (0, 100),
    "error_rate": (0, 20),
    "requests_per_second": (0, 50),
    "response_time": (100, 2100),
}

# Resource utilisation baselines (percent) for capacity history.
RESOURCE_BASELINES = {
    "cpu": (45.0, 10.0),
    "memory": (60.0, 15.0),
    "storage": (70.0, 8.0),
    "network": (30.0, 12.0),
}


class MetricSource(Protocol):
    def current_value(self, metric: str): ...


class SimulatedMetricSource:
    """Random values per metric, plus synthetic series for the analyzers."""

    def __init__(self, seed=None):
        self.rng = random.Random(seed)

    def current_value(self, metric):
        low, high = SIMULATED_RANGES.get(metric, (0, 100))
        if metric == "memory_usage_bytes":
            return float(self.rng.randrange(0, 4) * GIB)
        return float(self.rng.randint(int(low), int(high) - 1))

    def series(self, metric, count=60, base=None, noise=None):
        """A noisy flat series with an occasional spike."""
        low, high = SIMULATED_RANGES.get(metric, (0, 100))
        base = base if base is not None else low + (high - low) * 0.4
        noise = noise if noise is not None else (high - low) * 0.05
        values = []
        for _ in range(count):
            v = base + self.rng.gauss(0, noise)
            if self.rng.random() < 0.03:
                v += noise * self.rng.uniform(4, 8)
            values.append(round(v, 3))
        return values

    def trending_series(self, start, slope, count=12, noise=1.0):
        return [round(start + slope * i + self.rng.uniform(-noise, noise), 3) for i in range(count)]

    def metric_trends(self, count=50):
        """Synthetic recent history for the predictive generator's demo runs."""
        return {
            "cpu_usage": self.trending_series(45.0, 0.8, count, noise=2.5),
            "memory_usage": self.trending_series(70.0, 0.3, count, noise=2.5),
            "disk_usage": self.trending_series(85.0, 0.05, count, noise=0.5),
            "error_rate": self.trending_series(2.0, 0.06, count, noise=0.2),
            "response_time": self.trending_series(120.0, 8.0, count, noise=2.5),
        }

    def resource_history(self, resource, count=28, growth=0.3):
        """Utilisation history with steady growth over the window, every 6 h."""
        base, noise = RESOURCE_BASELINES.get(resource, (50.0, 10.0))
        values = []
        for i in range(count):
            factor = 1.0 + (i / max(count - 1, 1)) * growth
            values.append(round(base * factor + self.rng.random() * noise - noise / 2, 3))
        return values

    @staticmethod
    def timestamps(count, interval_seconds=60, end=None):
        end = end or datetime.now(timezone.utc)
        return [end - timedelta(seconds=interval_seconds * (count - 1 - i)) for i in range(count)]


class StaticMetricSource:
    """Serves fixed values. Metrics it does not know read as None."""

    def __init__(self, values=None):
        self.values = dict(values or {})

    def set(self, metric, value):
        self.values[metric] = value

    def current_value(self, metric):
        return self.values.get(metric)

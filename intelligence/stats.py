"""Small numeric helpers shared by the analyzers."""
import math

from utils.errors import InvalidInputError


def mean(values):
    if not values:
        return 0.0
    return sum(values) / len(values)


def stddev(values, avg=None):
    """Sample standard deviation; 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    avg = mean(values) if avg is None else avg
    return math.sqrt(sum((v - avg) ** 2 for v in values) / (len(values) - 1))


def clamp(value, low=0.0, high=1.0):
    return max(low, min(high, value))


def linear_fit(values):
    """Least-squares line over evenly spaced samples.

    Returns (slope per sample, intercept, r_squared). A flat series has
    r_squared 1.0 when perfectly constant, 0.0 for fewer than two points.
    """
    n = len(values)
    if n < 2:
        return 0.0, (values[0] if values else 0.0), 0.0
    x_mean = (n - 1) / 2
    y_mean = mean(values)
    sxx = sum((i - x_mean) ** 2 for i in range(n))
    sxy = sum((i - x_mean) * (v - y_mean) for i, v in enumerate(values))
    slope = sxy / sxx
    intercept = y_mean - slope * x_mean

    ss_tot = sum((v - y_mean) ** 2 for v in values)
    if ss_tot == 0:
        return slope, intercept, 1.0
    ss_res = sum((v - (intercept + slope * i)) ** 2 for i, v in enumerate(values))
    return slope, intercept, clamp(1 - ss_res / ss_tot)


def finite_series(values, name="values"):
    """Floats from a list of samples. Scalars, non-numbers, NaN and infinity are rejected."""
    if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple)):
        raise InvalidInputError(f"{name} must be a list of numbers", series=name)
    try:
        numeric = [float(v) for v in values]
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be numeric", series=name)
    if any(math.isnan(v) or math.isinf(v) for v in numeric):
        raise InvalidInputError(f"{name} must be finite", series=name)
    return numeric

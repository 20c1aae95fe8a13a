"""Formatting utilities for display."""
from datetime import datetime, timezone

SEVERITY_COLORS = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "cyan",
    "none": "dim",
}

STATUS_COLORS = {
    "firing": "red",
    "resolved": "green",
    "open": "red",
    "investigating": "yellow",
    "closed": "dim",
    "ok": "green",
    "failed": "red",
    "cancelled": "yellow",
}


def format_pct(value, decimals=1, signed=False):
    """Format a percentage. Signed mode adds a leading + for non-negative values."""
    if value is None:
        return "N/A"
    value = float(value)
    sign = "+" if signed and value >= 0 else ""
    return f"{sign}{value:.{decimals}f}%"


def format_duration(seconds):
    """Compact duration: 45s, 12m, 3h 5m, 2d 4h."""
    if seconds is None:
        return "N/A"
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        h, m = divmod(seconds // 60, 60)
        return f"{h}h {m}m" if m else f"{h}h"
    d, h = divmod(seconds // 3600, 24)
    return f"{d}d {h}h" if h else f"{d}d"


def format_usd(value):
    if value is None:
        return "N/A"
    return f"${float(value):,.2f}"


def colorize(text, color_map=SEVERITY_COLORS):
    """Wrap a severity/status value in rich markup."""
    value = getattr(text, "value", text)
    color = color_map.get(str(value))
    return f"[{color}]{value}[/{color}]" if color else str(value)


def time_ago(dt):
    """Return human-readable time since dt. E.g., '3h ago', '2d ago'."""
    if dt is None:
        return "N/A"
    now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = max(0, int((now - dt).total_seconds()))
    return f"{format_duration(seconds).split(' ')[0]} ago"

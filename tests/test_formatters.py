"""Tests for display formatters and error payloads."""
from datetime import datetime, timedelta, timezone

from models.enums import Severity
from utils.errors import InvalidTransitionError, UnknownRuleError
from utils.formatters import colorize, format_duration, format_pct, format_usd, time_ago


def test_format_pct():
    assert format_pct(12.345) == "12.3%"
    assert format_pct(5, signed=True) == "+5.0%"
    assert format_pct(None) == "N/A"


def test_format_duration():
    assert format_duration(45) == "45s"
    assert format_duration(300) == "5m"
    assert format_duration(3600) == "1h"
    assert format_duration(3900) == "1h 5m"
    assert format_duration(86400 * 2 + 3600 * 4) == "2d 4h"


def test_format_usd():
    assert format_usd(1234.5) == "$1,234.50"


def test_colorize_accepts_enums():
    assert colorize(Severity.CRITICAL) == "[bold red]critical[/bold red]"
    assert colorize("unknown") == "unknown"


def test_time_ago():
    assert time_ago(datetime.now(timezone.utc) - timedelta(hours=3)) == "3h ago"
    assert time_ago(None) == "N/A"


def test_error_payloads():
    assert UnknownRuleError("x").to_dict() == {
        "error": "unknown_rule", "message": "Unknown alert rule: x", "details": {"rule": "x"},
    }
    err = InvalidTransitionError("i1", "closed", "open", "incident is closed")
    assert err.http_status == 409
    assert "cannot move from closed to open" in err.message

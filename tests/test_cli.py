"""Tests for CLI commands."""
import json
import pytest
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from click.testing import CliRunner
from main import cli


@pytest.fixture
def runner():
    return CliRunner()


def test_cli_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Alert & Incident Engine" in result.output


def test_cli_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "1.0.0" in result.output


@pytest.mark.parametrize("group,commands", [
    ("alerts", ["fire", "resolve", "list", "history"]),
    ("incidents", ["list", "create", "status"]),
    ("channels", ["list", "test"]),
    ("analyze", ["anomalies", "predict", "capacity", "insights"]),
])
def test_group_help(runner, group, commands):
    result = runner.invoke(cli, [group, "--help"])
    assert result.exit_code == 0
    for command in commands:
        assert command in result.output


def test_rules(runner):
    result = runner.invoke(cli, ["rules"])
    assert result.exit_code == 0
    assert "Alert Rules" in result.output
    assert "4/4 enabled" in result.output


def test_alerts_fire_critical(runner):
    result = runner.invoke(cli, ["alerts", "fire", "high-error-rate"])
    assert result.exit_code == 0
    assert "Alert firing" in result.output
    assert "Incident opened" in result.output


def test_alerts_fire_unknown_rule(runner):
    result = runner.invoke(cli, ["alerts", "fire", "nope"])
    assert result.exit_code == 1
    assert "Unknown alert rule" in result.output


def test_alerts_list_empty(runner):
    result = runner.invoke(cli, ["alerts", "list"])
    assert result.exit_code == 0
    assert "All clear" in result.output


def test_incidents_create(runner):
    result = runner.invoke(cli, ["incidents", "create", "--title", "DB failover", "--severity", "high"])
    assert result.exit_code == 0
    assert "DB failover" in result.output


def test_incidents_status_unknown(runner):
    result = runner.invoke(cli, ["incidents", "status", "missing", "resolved"])
    assert result.exit_code == 1
    assert "Unknown incident" in result.output


def test_channels(runner):
    result = runner.invoke(cli, ["channels", "list"])
    assert result.exit_code == 0
    assert "Notification Channels" in result.output
    result = runner.invoke(cli, ["channels", "test", "--timeout", "2"])
    assert result.exit_code == 0
    assert "Channel Test" in result.output


def test_analyze_anomalies_from_file(runner, tmp_path):
    path = tmp_path / "values.json"
    path.write_text(json.dumps([10.0] * 30 + [50.0]))
    result = runner.invoke(cli, ["analyze", "anomalies", "--values", str(path)])
    assert result.exit_code == 0
    assert "31 samples, 1 anomalies" in result.output


def test_analyze_predict_from_file(runner, tmp_path):
    path = tmp_path / "metrics.json"
    path.write_text(json.dumps({"cpu_usage": [70 + 4 * i for i in range(10)]}))
    result = runner.invoke(cli, ["analyze", "predict", "--metrics", str(path)])
    assert result.exit_code == 0
    assert "Predictive Alerts" in result.output


def test_analyze_capacity(runner):
    result = runner.invoke(cli, ["analyze", "capacity", "--service", "search", "--horizon", "7"])
    assert result.exit_code == 0
    assert "Capacity Plan" in result.output
    assert "savings" in result.output


def test_analyze_capacity_bad_horizon(runner):
    result = runner.invoke(cli, ["analyze", "capacity", "--horizon", "400"])
    assert result.exit_code == 1


def test_analyze_insights_healthy(runner):
    result = runner.invoke(cli, ["analyze", "insights"])
    assert result.exit_code == 0
    assert "within baseline" in result.output


def test_run_once(runner):
    result = runner.invoke(cli, ["run", "--once"])
    assert result.exit_code == 0

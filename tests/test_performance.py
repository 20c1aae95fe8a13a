"""Tests for service performance insights."""
from intelligence.performance import PerformanceInsightAnalyzer
from models.enums import Severity
from models.intelligence import ServiceBaseline


def test_default_baselines_are_healthy():
    assert PerformanceInsightAnalyzer().generate() == []


def test_latency_regression():
    analyzer = PerformanceInsightAnalyzer()
    analyzer.update_current("api_service", latency_ms=80)
    insights = analyzer.generate()
    assert len(insights) == 1
    insight = insights[0]
    assert insight.component == "api_service"
    assert insight.severity == Severity.HIGH
    assert insight.impact.latency_ms == 30.0
    assert [s.title for s in insight.suggestions] == ["Increase Connection Pool"]


def test_throughput_drop():
    analyzer = PerformanceInsightAnalyzer()
    analyzer.update_current("database_service", throughput_rps=2350)
    insight = analyzer.generate()[0]
    assert insight.severity == Severity.MEDIUM
    assert insight.impact.throughput_reduction_pct == 6.0
    assert [s.title for s in insight.suggestions] == ["Add Read Replicas"]


def test_custom_baselines_and_filter():
    analyzer = PerformanceInsightAnalyzer({
        "search": {"baseline_latency_ms": 100, "current_latency_ms": 108,
                   "baseline_throughput_rps": 300, "current_throughput_rps": 300},
    })
    assert [i.component for i in analyzer.generate(["search"])] == ["search"]
    assert analyzer.generate(["unknown"]) == []
    assert analyzer.generate(["search"])[0].severity == Severity.LOW


def test_instances_do_not_share_baselines():
    first = PerformanceInsightAnalyzer()
    first.update_current("api_service", latency_ms=500)
    assert PerformanceInsightAnalyzer().baselines["api_service"].current_latency_ms == 52.3


def test_baseline_trend():
    assert ServiceBaseline(50, 60, 1000, 900).trend == "degrading"
    assert ServiceBaseline(50, 40, 1000, 1100).trend == "improving"
    assert ServiceBaseline(50, 60, 1000, 1100).trend == "stable"

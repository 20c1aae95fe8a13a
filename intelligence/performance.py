"""Per-service latency/throughput degradation insights."""
import logging
import uuid

from intelligence.stats import finite_series
from models.enums import Severity
from models.intelligence import (
    PerformanceImpact, PerformanceInsight, Recommendation, RecommendedAction, ServiceBaseline,
)

logger = logging.getLogger("alertengine.intelligence.performance")

DEFAULT_BASELINES = {
    "api_service": ServiceBaseline(50.0, 52.3, 1000.0, 985.2),
    "database_service": ServiceBaseline(15.0, 14.8, 2500.0, 2510.1),
    "cache_service": ServiceBaseline(2.0, 2.1, 5000.0, 4950.0),
}

MIN_LATENCY_INCREASE_MS = 5.0
MIN_THROUGHPUT_DROP_RPS = 50.0


def _severity(latency_increase, throughput_drop):
    if latency_increase > 20.0 or throughput_drop > 200.0:
        return Severity.HIGH
    if latency_increase > 10.0 or throughput_drop > 100.0:
        return Severity.MEDIUM
    return Severity.LOW


class PerformanceInsightAnalyzer:
    def __init__(self, baselines=None):
        self.baselines = {k: ServiceBaseline(**vars(v)) for k, v in DEFAULT_BASELINES.items()}
        for name, values in (baselines or {}).items():
            self.baselines[name] = values if isinstance(values, ServiceBaseline) else ServiceBaseline(**values)

    def update_current(self, service, latency_ms=None, throughput_rps=None):
        if latency_ms is not None:
            latency_ms = finite_series([latency_ms], f"Latency for {service}")[0]
        if throughput_rps is not None:
            throughput_rps = finite_series([throughput_rps], f"Throughput for {service}")[0]
        baseline = self.baselines.setdefault(service, ServiceBaseline())
        if latency_ms is not None:
            baseline.current_latency_ms = latency_ms
        if throughput_rps is not None:
            baseline.current_throughput_rps = throughput_rps
        return baseline

    def generate(self, services=None, cancel=None):
        insights = []
        for name in sorted(services or self.baselines):
            if cancel is not None and cancel.is_set():
                break
            baseline = self.baselines.get(name)
            if baseline is None:
                continue
            insight = self.analyze(name, baseline)
            if insight is not None:
                insights.append(insight)
        logger.info(f"Performance insights over {len(self.baselines)} service(s): {len(insights)} found")
        return insights

    def analyze(self, service, baseline):
        latency_increase = baseline.current_latency_ms - baseline.baseline_latency_ms
        throughput_drop = baseline.baseline_throughput_rps - baseline.current_throughput_rps
        if latency_increase < MIN_LATENCY_INCREASE_MS and throughput_drop < MIN_THROUGHPUT_DROP_RPS:
            return None

        drop_pct = (throughput_drop / baseline.baseline_throughput_rps * 100
                    if baseline.baseline_throughput_rps else 0.0)
        return PerformanceInsight(
            id=str(uuid.uuid4()),
            type="bottleneck",
            component=service,
            title=f"{service} Performance Degradation",
            description=(f"Service showing {latency_increase:.1f}ms latency increase and "
                         f"{throughput_drop:.1f} RPS throughput decrease"),
            severity=_severity(latency_increase, throughput_drop),
            impact=PerformanceImpact(latency_ms=round(latency_increase, 3),
                                     throughput_reduction_pct=round(drop_pct, 3)),
            suggestions=self._suggest(service, latency_increase, throughput_drop),
            metrics=ServiceBaseline(**vars(baseline)),
        )

    @staticmethod
    def _suggest(service, latency_increase, throughput_drop):
        suggestions = []
        if latency_increase >= MIN_LATENCY_INCREASE_MS:
            suggestions.append(Recommendation(
                id=str(uuid.uuid4()),
                type="optimization",
                priority=Severity.HIGH,
                title="Increase Connection Pool",
                description="Connection pool appears to be a bottleneck. Increase pool size to handle peak load.",
                impact=f"Recover up to {latency_increase:.0f}ms of added latency",
                effort="low",
                actions=[RecommendedAction(
                    type="scale_up",
                    description="Double the connection pool size",
                    parameters={"service": service, "scaling_factor": 2},
                    automated=True,
                )],
            ))
        if throughput_drop >= MIN_THROUGHPUT_DROP_RPS:
            suggestions.append(Recommendation(
                id=str(uuid.uuid4()),
                type="scaling",
                priority=Severity.MEDIUM,
                title="Add Read Replicas",
                description="Distribute read traffic across replicas to restore throughput.",
                impact=f"Recover up to {throughput_drop:.0f} RPS",
                effort="medium",
                actions=[RecommendedAction(
                    type="configuration",
                    description="Route read-only traffic to replicas",
                    parameters={"service": service, "replica_count": 2, "read_ratio": 0.7},
                )],
            ))
        return suggestions

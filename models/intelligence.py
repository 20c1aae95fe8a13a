"""Dataclasses produced by the intelligence analyzers."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.alerts import utcnow
from models.base import Serializable
from models.enums import Severity, Trend


@dataclass
class AnomalyModel(Serializable):
    id: str = ""
    name: str = ""
    method: str = "statistical"
    status: str = "active"
    parameters: dict = field(default_factory=dict)


@dataclass
class AnomalyScore(Serializable):
    timestamp: datetime = field(default_factory=utcnow)
    metric_name: str = ""
    value: float = 0.0
    score: float = 0.0
    threshold: float = 0.5
    is_anomaly: bool = False
    severity: str = "none"
    confidence: float = 0.0
    context: dict = field(default_factory=dict)
    model_id: str = ""


@dataclass
class RecommendedAction(Serializable):
    type: str = ""
    description: str = ""
    parameters: dict = field(default_factory=dict)
    automated: bool = False


@dataclass
class Recommendation(Serializable):
    id: str = ""
    type: str = ""  # scaling, optimization, configuration
    priority: Severity = Severity.MEDIUM
    title: str = ""
    description: str = ""
    impact: str = ""
    effort: str = "low"
    actions: list = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Prediction(Serializable):
    type: str = "threshold_breach"
    description: str = ""
    metric: str = ""
    current_value: float = 0.0
    predicted_value: float = 0.0
    threshold: float = 0.0
    slope: float = 0.0
    confidence: float = 0.0
    factors: list = field(default_factory=list)


@dataclass
class PredictiveAlert(Serializable):
    id: str = ""
    rule_id: str = ""
    prediction: Prediction = field(default_factory=Prediction)
    probability: float = 0.0
    severity: Severity = Severity.LOW
    steps_to_breach: float = 0.0
    time_to_event_seconds: float = 0.0
    status: str = "active"
    recommendations: list = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Evidence(Serializable):
    type: str = "alert"
    source: str = ""
    description: str = ""
    data: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    relevance: float = 0.0


@dataclass
class RootCause(Serializable):
    id: str = ""
    type: str = "unknown"  # resource, application, performance, dependency
    component: str = ""
    description: str = ""
    evidence: list = field(default_factory=list)
    probability: float = 0.0
    impact: Severity = Severity.LOW


@dataclass
class TimelineEvent(Serializable):
    timestamp: datetime = field(default_factory=utcnow)
    type: str = ""
    component: str = ""
    description: str = ""
    severity: str = ""
    data: dict = field(default_factory=dict)


@dataclass
class Correlation(Serializable):
    metric_a: str = ""
    metric_b: str = ""
    coefficient: float = 0.0
    strength: str = "weak"
    type: str = "positive"
    timelag_seconds: float = 0.0
    shared_labels: dict = field(default_factory=dict)


@dataclass
class RootCauseAnalysis(Serializable):
    id: str = ""
    incident_id: str = ""
    status: str = "completed"
    confidence: float = 0.0
    root_causes: list = field(default_factory=list)
    correlations: list = field(default_factory=list)
    timeline: list = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


@dataclass
class PerformanceImpact(Serializable):
    latency_ms: float = 0.0
    throughput_reduction_pct: float = 0.0


@dataclass
class ServiceBaseline(Serializable):
    baseline_latency_ms: float = 0.0
    current_latency_ms: float = 0.0
    baseline_throughput_rps: float = 0.0
    current_throughput_rps: float = 0.0

    @property
    def trend(self):
        latency_delta = self.current_latency_ms - self.baseline_latency_ms
        throughput_delta = self.current_throughput_rps - self.baseline_throughput_rps
        if latency_delta > 0 and throughput_delta <= 0:
            return "degrading"
        if latency_delta < 0 and throughput_delta >= 0:
            return "improving"
        return "stable"


@dataclass
class PerformanceInsight(Serializable):
    id: str = ""
    type: str = "bottleneck"
    component: str = ""
    title: str = ""
    description: str = ""
    severity: Severity = Severity.LOW
    impact: PerformanceImpact = field(default_factory=PerformanceImpact)
    suggestions: list = field(default_factory=list)
    metrics: ServiceBaseline = field(default_factory=ServiceBaseline)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class DataPoint(Serializable):
    timestamp: datetime = field(default_factory=utcnow)
    value: float = 0.0


@dataclass
class ResourceProjection(Serializable):
    resource: str = ""
    current: float = 0.0
    projected: float = 0.0
    peak: float = 0.0
    average: float = 0.0
    limit: float = 100.0
    trend: Trend = Trend.STABLE
    confidence: float = 0.0
    samples: int = 0
    timeline: list = field(default_factory=list)


@dataclass
class CapacityRecommendation(Serializable):
    type: str = ""  # scale_up, scale_down
    component: str = ""
    action: str = ""
    change_pct: float = 0.0
    urgency: Severity = Severity.LOW
    cost_impact: float = 0.0
    rationale: str = ""


@dataclass
class CostAnalysis(Serializable):
    current_cost: float = 0.0
    projected_cost: float = 0.0
    optimized_cost: float = 0.0
    savings: float = 0.0
    breakdown: dict = field(default_factory=dict)


@dataclass
class CapacityPlan(Serializable):
    id: str = ""
    service: str = ""
    horizon_days: float = 30.0
    forecasts: list = field(default_factory=list)
    recommendations: list = field(default_factory=list)
    cost_analysis: CostAnalysis = field(default_factory=CostAnalysis)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class IntelligenceMetrics(Serializable):
    anomalies_detected: int = 0
    samples_scored: int = 0
    predictions_generated: int = 0
    predictions_promoted: int = 0
    analyses_completed: int = 0
    insights_generated: int = 0
    capacity_plans_created: int = 0
    recommendations_created: int = 0
    avg_detection_ms: float = 0.0

"""Predictive intelligence: anomaly detection, forecasting, root cause and capacity planning."""
from intelligence.anomaly import AnomalyDetector
from intelligence.predictive import PredictiveAlertGenerator
from intelligence.root_cause import RootCauseAnalyzer
from intelligence.capacity import CapacityPlanner
from intelligence.performance import PerformanceInsightAnalyzer
from intelligence.service import IntelligenceService

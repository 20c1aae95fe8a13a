"""Root cause analysis for incidents, built from the alerts the manager has seen."""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from itertools import combinations

from intelligence.stats import clamp, mean
from models.intelligence import (
    Correlation, Evidence, RootCause, RootCauseAnalysis, TimelineEvent,
)

logger = logging.getLogger("alertengine.intelligence.root_cause")

CAUSE_TYPES = [
    (("cpu", "memory", "disk", "storage", "saturation"), "resource"),
    (("error", "exception", "crash"), "application"),
    (("latency", "response", "throughput", "slow"), "performance"),
    (("connection", "database", "db", "network", "dns", "upstream"), "dependency"),
]

MAX_CAUSES = 5


def _cause_type(text):
    text = text.lower()
    for keywords, kind in CAUSE_TYPES:
        if any(k in text for k in keywords):
            return kind
    return "unknown"


def _component(alert):
    return alert.labels.get("service") or alert.labels.get("component") or alert.rule_name


def _strength(coefficient):
    if coefficient >= 0.7:
        return "strong"
    if coefficient >= 0.4:
        return "moderate"
    return "weak"


class RootCauseAnalyzer:
    def __init__(self, manager, window_minutes=15):
        self.manager = manager
        self.window = timedelta(minutes=window_minutes)

    def analyze(self, incident_id, cancel=None):
        """Analyze an incident. Raises IncidentNotFoundError for unknown ids."""
        incident = self.manager.get_incident(incident_id)
        analysis = RootCauseAnalysis(
            id=str(uuid.uuid4()),
            incident_id=incident_id,
            status="in_progress",
        )

        alerts = self._gather_alerts(incident)
        logger.info(f"Root cause analysis for {incident_id}: {len(alerts)} alert(s) in scope")

        analysis.timeline = self._build_timeline(incident, alerts)
        analysis.correlations = self._correlate(alerts, cancel)
        cancelled = cancel is not None and cancel.is_set()
        if not cancelled:
            analysis.root_causes = self._rank_causes(incident, alerts, analysis.correlations)
        analysis.confidence = self._confidence(alerts, analysis.root_causes, analysis.correlations)
        analysis.status = "partial" if cancelled else "completed"
        analysis.completed_at = datetime.now(timezone.utc)
        return analysis

    def _gather_alerts(self, incident):
        """Alerts linked to the incident plus any that overlap its window."""
        by_id = {a.id: a for a in self.manager.find_alerts(incident.related_alerts)}
        end = incident.resolved_at or datetime.now(timezone.utc)
        for alert in self.manager.alerts_between(incident.created_at - self.window, end):
            by_id.setdefault(alert.id, alert)
        return sorted(by_id.values(), key=lambda a: a.starts_at)

    def _build_timeline(self, incident, alerts):
        events = []
        for alert in alerts:
            events.append(TimelineEvent(
                timestamp=alert.starts_at,
                type="alert_fired",
                component=_component(alert),
                description=alert.message,
                severity=alert.severity.value,
                data={"alert_id": alert.id, "rule": alert.rule_name, "value": alert.value},
            ))
            if alert.ends_at is not None:
                events.append(TimelineEvent(
                    timestamp=alert.ends_at,
                    type="alert_resolved",
                    component=_component(alert),
                    description=f"{alert.rule_name} resolved",
                    severity=alert.severity.value,
                    data={"alert_id": alert.id, "rule": alert.rule_name},
                ))
        for update in incident.timeline:
            events.append(TimelineEvent(
                timestamp=update.timestamp,
                type=f"incident_{update.type.value}",
                component="incident_management",
                description=update.message,
                severity=incident.severity.value,
                data={"incident_id": incident.id, "author": update.author,
                      "old_value": update.old_value, "new_value": update.new_value},
            ))
        return sorted(events, key=lambda e: e.timestamp)

    def _correlate(self, alerts, cancel=None):
        """Pairwise label overlap and time proximity between alerts."""
        window_seconds = self.window.total_seconds()
        correlations = []
        for a, b in combinations(alerts, 2):
            if cancel is not None and cancel.is_set():
                logger.info("Root cause correlation cancelled")
                break
            shared = {k: v for k, v in a.labels.items() if b.labels.get(k) == v}
            keys = set(a.labels) | set(b.labels)
            jaccard = len(shared) / len(keys) if keys else 0.0
            lag = abs((b.starts_at - a.starts_at).total_seconds())
            proximity = max(0.0, 1 - lag / window_seconds)
            if not shared and proximity == 0:
                continue
            coefficient = round(0.5 * jaccard + 0.5 * proximity, 4)
            correlations.append(Correlation(
                metric_a=a.rule_name,
                metric_b=b.rule_name,
                coefficient=coefficient,
                strength=_strength(coefficient),
                type="positive",
                timelag_seconds=lag,
                shared_labels=shared,
            ))
        return sorted(correlations, key=lambda c: c.coefficient, reverse=True)

    def _rank_causes(self, incident, alerts, correlations):
        if not alerts:
            return []
        n = len(alerts)
        related = set(incident.related_alerts)
        causes = []
        seen_rules = set()
        for rank, alert in enumerate(alerts):
            if alert.rule_id in seen_rules:
                continue
            seen_rules.add(alert.rule_id)

            earliness = 1 - rank / n
            involved = [c.coefficient for c in correlations if alert.rule_name in (c.metric_a, c.metric_b)]
            corr_share = sum(involved) / (n - 1) if n > 1 else 0.0
            linked = 1.0 if related & {alert.id, alert.rule_id, alert.rule_name} else 0.0
            probability = round(clamp(0.5 * earliness + 0.4 * corr_share + 0.1 * linked), 4)

            component = _component(alert)
            causes.append(RootCause(
                id=str(uuid.uuid4()),
                type=_cause_type(f"{alert.rule_name} {component}"),
                component=component,
                description=f"{alert.rule_name} fired {'first' if rank == 0 else f'#{rank + 1}'} "
                            f"with value {alert.value:g} ({alert.threshold})",
                evidence=[Evidence(
                    type="alert",
                    source=alert.rule_name,
                    description=alert.message,
                    data={"alert_id": alert.id, "value": alert.value,
                          "threshold": alert.threshold.value, "fire_count": alert.fire_count},
                    timestamp=alert.starts_at,
                    relevance=probability,
                )],
                probability=probability,
                impact=alert.severity,
            ))
        causes.sort(key=lambda c: c.probability, reverse=True)
        return causes[:MAX_CAUSES]

    @staticmethod
    def _confidence(alerts, causes, correlations):
        """Higher with corroborating, clustered signals; lower when services disagree."""
        if not causes:
            return 0.0
        top = causes[0].probability
        corroboration = min(1.0, (len(alerts) - 1) / 3) if len(alerts) > 1 else 0.0
        clustering = mean([c.coefficient for c in correlations]) if correlations else 0.0
        components = {_component(a) for a in alerts}
        conflict = (len(components) - 1) / len(alerts) if len(components) > 1 else 0.0
        return round(clamp(0.5 * top + 0.25 * corroboration + 0.25 * clustering - 0.2 * conflict), 4)

"""Alert manager: the single owner of rule, alert, incident and channel state.

Every read takes the shared side of a reader/writer lock and returns copies;
every mutation takes the exclusive side. Notification dispatch and logging
happen after the lock is released, by default on the dispatcher pool.
"""
import copy
import logging
import math
import threading
import uuid
from collections import deque
from concurrent.futures import wait
from datetime import datetime, timedelta, timezone

from alerts.channels import ChannelDispatcher
from models.alerts import Alert
from models.enums import AlertStatus, IncidentStatus, Severity, UpdateType
from models.incidents import Incident, IncidentUpdate
from utils.errors import (
    InvalidInputError, InvalidTransitionError, UnknownIncidentError, UnknownRuleError,
)
from utils.rwlock import ReadWriteLock

logger = logging.getLogger("alertengine.alerts.manager")

DEFAULT_HISTORY_LIMIT = 1000


def _now():
    return datetime.now(timezone.utc)


def _default_message(rule):
    if rule.description:
        return f"Alert: {rule.name} - {rule.description}"
    return f"Alert: {rule.name}"


def _parse_severity(value):
    try:
        return Severity.parse(value)
    except ValueError:
        raise InvalidInputError(f"Unknown severity: {value}", severity=str(value))


def _parse_value(value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Alert value must be numeric: {value!r}", value=str(value))
    if math.isnan(number) or math.isinf(number):
        raise InvalidInputError("Alert value must be finite", value=str(value))
    return number


def _parse_status(value):
    try:
        return value if isinstance(value, IncidentStatus) else IncidentStatus(str(value).lower())
    except ValueError:
        raise InvalidInputError(f"Unknown incident status: {value}", status=str(value))


class AlertManager:
    def __init__(self, rules=None, channels=None, dispatcher=None, config=None):
        cfg = (config or {}).get("alerts", {})
        service_cfg = (config or {}).get("service", {})

        self.history_limit = int(cfg.get("history_limit", DEFAULT_HISTORY_LIMIT))
        if self.history_limit < 1:
            raise ValueError("history_limit must be >= 1")
        self.auto_incident_on_critical = cfg.get("auto_incident_on_critical", True)
        self.async_notifications = cfg.get("async_notifications", True)
        self.service_name = service_cfg.get("name", "alert-engine")
        self.base_url = service_cfg.get("base_url", "http://localhost:5000").rstrip("/")

        self.dispatcher = dispatcher or ChannelDispatcher()
        self._lock = ReadWriteLock()
        self._rules = {r.id: copy.deepcopy(r) for r in (rules or [])}
        self._active = {}
        self._history = deque(maxlen=self.history_limit)
        self._incidents = {}
        self._channels = [copy.deepcopy(c) for c in (channels or [])]
        self._silenced = {}
        self._pending_sends = set()
        self._pending_lock = threading.Lock()

    @classmethod
    def from_rules_manager(cls, rules_manager, dispatcher=None, config=None):
        return cls(rules_manager.get_all_rules(), rules_manager.get_channels(),
                   dispatcher=dispatcher, config=config)

    # ─── Rules ───────────────────────────────────────────

    def _find_rule(self, rule_ref):
        """Resolve a rule by id, falling back to its name. Caller holds the lock."""
        rule = self._rules.get(rule_ref)
        if rule is not None:
            return rule
        for r in self._rules.values():
            if r.name == rule_ref:
                return r
        raise UnknownRuleError(rule_ref)

    def list_rules(self):
        """Snapshot of all rules with enabled/active counts."""
        with self._lock.read_locked():
            rules = [copy.deepcopy(r) for r in self._rules.values()]
            active = len(self._active)
            silenced = [rid for rid, until in self._silenced.items() if until > _now()]
        return {
            "rules": rules,
            "total_rules": len(rules),
            "enabled_rules": sum(1 for r in rules if r.enabled),
            "active_alerts": active,
            "silenced_rules": silenced,
        }

    def get_rule(self, rule_ref):
        with self._lock.read_locked():
            return copy.deepcopy(self._find_rule(rule_ref))

    def set_rule_enabled(self, rule_ref, enabled):
        with self._lock.write_locked():
            rule = self._find_rule(rule_ref)
            rule.enabled = bool(enabled)
            rule.updated_at = _now()
            result = copy.deepcopy(rule)
        logger.info(f"Rule {result.name} {'enabled' if enabled else 'disabled'}")
        return result

    def silence_rule(self, rule_ref, duration_seconds):
        if duration_seconds <= 0:
            raise InvalidInputError("Silence duration must be positive", duration=duration_seconds)
        with self._lock.write_locked():
            rule = self._find_rule(rule_ref)
            until = _now() + timedelta(seconds=duration_seconds)
            self._silenced[rule.id] = until
        logger.info(f"Rule {rule.name} silenced until {until.isoformat()}")
        return until

    def unsilence_rule(self, rule_ref):
        with self._lock.write_locked():
            rule = self._find_rule(rule_ref)
            removed = self._silenced.pop(rule.id, None)
        return removed is not None

    def is_silenced(self, rule_ref):
        with self._lock.read_locked():
            rule = self._find_rule(rule_ref)
            until = self._silenced.get(rule.id)
        return until is not None and until > _now()

    # ─── Alerts ──────────────────────────────────────────

    def fire_alert(self, rule_ref, severity=None, message=None, value=None,
                   labels=None, annotations=None):
        """Fire a rule. At most one firing alert exists per rule; re-firing updates it in place."""
        sev = _parse_severity(severity) if severity is not None else None
        value = _parse_value(value) if value is not None else None
        now = _now()
        created = False

        with self._lock.write_locked():
            rule = self._find_rule(rule_ref)
            alert = self._active.get(rule.id)
            if alert is not None:
                if value is not None:
                    alert.value = value
                if labels:
                    alert.labels.update(labels)
                if annotations:
                    alert.annotations.update(annotations)
                if sev is not None:
                    alert.severity = sev
                if message:
                    alert.message = message
                alert.updated_at = now
                alert.fire_count += 1
            else:
                alert = Alert(
                    id=str(uuid.uuid4()),
                    rule_id=rule.id,
                    rule_name=rule.name,
                    status=AlertStatus.FIRING,
                    severity=sev or rule.severity,
                    message=message or _default_message(rule),
                    starts_at=now,
                    updated_at=now,
                    labels={**rule.labels, **(labels or {})},
                    annotations={**rule.annotations, **(annotations or {})},
                    value=value if value is not None else 0.0,
                    threshold=copy.deepcopy(rule.threshold),
                    generator_url=f"{self.base_url}/api/alerts/{rule.id}",
                )
                self._active[rule.id] = alert
                created = True
            snapshot = copy.deepcopy(alert)
            channels = [copy.deepcopy(c) for c in self._channels] if created else []

        if created:
            logger.info(f"Alert fired: {snapshot.rule_name} [{snapshot.severity.value}] value={snapshot.value:g}")
            self._send(snapshot, channels)
            if self.auto_incident_on_critical and snapshot.severity == Severity.CRITICAL:
                self._open_incident_for(snapshot)
        else:
            logger.info(f"Alert updated: {snapshot.rule_name} (count={snapshot.fire_count})")
        return snapshot

    def resolve_alert(self, rule_ref):
        """Resolve the firing alert for a rule. Returns it, or None when nothing was firing."""
        with self._lock.write_locked():
            rule = self._find_rule(rule_ref)
            alert = self._active.pop(rule.id, None)
            if alert is None:
                return None
            now = _now()
            alert.status = AlertStatus.RESOLVED
            alert.ends_at = now
            alert.updated_at = now
            self._history.append(alert)
            snapshot = copy.deepcopy(alert)
        logger.info(f"Alert resolved: {snapshot.rule_name}")
        return snapshot

    def get_active_alerts(self):
        with self._lock.read_locked():
            return [copy.deepcopy(a) for a in self._active.values()]

    def get_active_alert(self, rule_ref):
        with self._lock.read_locked():
            rule = self._find_rule(rule_ref)
            alert = self._active.get(rule.id)
            return copy.deepcopy(alert) if alert else None

    def get_alert_history(self, limit=None):
        """Resolved alerts, oldest first, capped to the most recent ``limit``."""
        if limit is not None and limit < 0:
            raise InvalidInputError("limit must be >= 0", limit=limit)
        with self._lock.read_locked():
            items = list(self._history)
        if limit is not None:
            items = items[len(items) - limit:] if limit else []
        return [copy.deepcopy(a) for a in items]

    def find_alerts(self, refs):
        """Look up active or historical alerts by alert id, rule id or rule name."""
        wanted = set(refs or [])
        if not wanted:
            return []
        with self._lock.read_locked():
            candidates = list(self._active.values()) + list(self._history)
            found = [a for a in candidates
                     if a.id in wanted or a.rule_id in wanted or a.rule_name in wanted]
            return [copy.deepcopy(a) for a in found]

    def alerts_between(self, start, end):
        """Active and historical alerts whose firing window overlaps [start, end]."""
        with self._lock.read_locked():
            candidates = list(self._active.values()) + list(self._history)
            found = [a for a in candidates
                     if a.starts_at <= end and (a.ends_at is None or a.ends_at >= start)]
            return [copy.deepcopy(a) for a in found]

    def _send(self, alert, channels):
        if not self.async_notifications:
            self._notify(alert, channels)
            return
        future = self.dispatcher.submit(self._notify, alert, channels)
        with self._pending_lock:
            self._pending_sends.add(future)
        future.add_done_callback(self._send_done)

    def _send_done(self, future):
        with self._pending_lock:
            self._pending_sends.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error(f"Notification send failed: {future.exception()}")

    def wait_for_notifications(self, timeout=None):
        """Block until queued notifications finish. Returns False if any are still running."""
        with self._pending_lock:
            pending = list(self._pending_sends)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def _notify(self, alert, channels):
        outcomes = self.dispatcher.dispatch(alert, channels)
        if not outcomes:
            return
        with self._lock.write_locked():
            for channel in self._channels:
                if channel.id in outcomes:
                    if outcomes[channel.id]:
                        channel.sent_count += 1
                    else:
                        channel.failed_count += 1

    def _open_incident_for(self, alert):
        incident = self.create_incident(
            title=f"Critical Alert: {alert.rule_name}",
            description=f"Incident created from critical alert: {alert.message}",
            severity=alert.severity,
            priority=Severity.HIGH,
            affected_service=alert.labels.get("service", self.service_name),
            related_alert_ids=[alert.id],
            tags=["auto-generated", "critical"],
            author="system",
            message="Incident automatically created from critical alert",
            detected_at=alert.starts_at,
        )
        return incident

    # ─── Incidents ───────────────────────────────────────

    def create_incident(self, title, description="", severity=Severity.MEDIUM,
                        priority=None, affected_service="", related_alert_ids=None,
                        tags=None, author="system", message="Incident created",
                        detected_at=None):
        """Open a new incident. Related alert ids are stored as given, without validation."""
        if not title:
            raise InvalidInputError("Incident title is required")
        sev = _parse_severity(severity)
        prio = _parse_severity(priority) if priority is not None else sev
        now = _now()
        incident = Incident(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            status=IncidentStatus.OPEN,
            severity=sev,
            priority=prio,
            affected_service=affected_service or self.service_name,
            related_alerts=list(related_alert_ids or []),
            tags=list(tags or []),
            created_at=now,
            updated_at=now,
            timeline=[IncidentUpdate(
                id=str(uuid.uuid4()),
                timestamp=now,
                author=author,
                type=UpdateType.CREATION,
                message=message,
                new_value=IncidentStatus.OPEN.value,
            )],
        )
        if detected_at is not None:
            incident.metrics.time_to_detection = max(0.0, (now - detected_at).total_seconds())

        with self._lock.write_locked():
            self._incidents[incident.id] = incident
            snapshot = copy.deepcopy(incident)
        logger.info(f"Incident created: {snapshot.id} '{snapshot.title}' [{snapshot.severity.value}]")
        return snapshot

    def _get_incident(self, incident_id):
        incident = self._incidents.get(incident_id)
        if incident is None:
            raise UnknownIncidentError(incident_id)
        return incident

    def get_incident(self, incident_id):
        with self._lock.read_locked():
            return copy.deepcopy(self._get_incident(incident_id))

    def list_incidents(self, status=None):
        wanted = _parse_status(status) if status is not None else None
        with self._lock.read_locked():
            items = [i for i in self._incidents.values() if wanted is None or i.status == wanted]
            return [copy.deepcopy(i) for i in sorted(items, key=lambda i: i.created_at)]

    @staticmethod
    def _append_update(incident, update):
        # Timelines are append-only with non-decreasing timestamps.
        if incident.timeline and update.timestamp < incident.timeline[-1].timestamp:
            update.timestamp = incident.timeline[-1].timestamp
        incident.timeline.append(update)
        incident.updated_at = update.timestamp

    def update_incident_status(self, incident_id, new_status, author="system", message="",
                               reopen=False):
        """Advance an incident's status, appending one timeline entry.

        Transitions only move forward (open → investigating → resolved → closed).
        A resolved incident can go back to investigating when ``reopen`` is set;
        closed incidents never change.
        """
        target = _parse_status(new_status)
        try:
            snapshot, old = self._transition(incident_id, target, author, message, reopen)
        except InvalidTransitionError as e:
            logger.warning(f"Rejected status change by {author}: {e.message}")
            raise
        logger.info(f"Incident {incident_id}: {old.value} -> {target.value} by {author}")
        return snapshot

    def _transition(self, incident_id, target, author, message, reopen):
        with self._lock.write_locked():
            incident = self._get_incident(incident_id)
            old = incident.status
            update_type = UpdateType.STATUS_CHANGE

            if target == old:
                raise InvalidTransitionError(incident_id, old.value, target.value, "already in that status")
            if old == IncidentStatus.CLOSED:
                raise InvalidTransitionError(incident_id, old.value, target.value, "incident is closed")
            if target.order < old.order:
                if not (reopen and old == IncidentStatus.RESOLVED and target == IncidentStatus.INVESTIGATING):
                    reason = "reopen only allowed from resolved to investigating" if reopen \
                        else "backward transition requires reopen"
                    raise InvalidTransitionError(incident_id, old.value, target.value, reason)
                update_type = UpdateType.REOPEN

            now = _now()
            self._append_update(incident, IncidentUpdate(
                id=str(uuid.uuid4()),
                timestamp=now,
                author=author,
                type=update_type,
                message=message or f"Status changed from {old.value} to {target.value}",
                old_value=old.value,
                new_value=target.value,
            ))
            incident.status = target
            elapsed = (incident.updated_at - incident.created_at).total_seconds()
            if target == IncidentStatus.INVESTIGATING and incident.metrics.time_to_acknowledgment is None:
                incident.metrics.time_to_acknowledgment = elapsed
            if target in (IncidentStatus.RESOLVED, IncidentStatus.CLOSED) and incident.resolved_at is None:
                incident.resolved_at = incident.updated_at
                incident.metrics.time_to_resolution = elapsed
            if update_type == UpdateType.REOPEN:
                incident.resolved_at = None
                incident.metrics.time_to_resolution = None
            return copy.deepcopy(incident), old

    def add_incident_comment(self, incident_id, author, message):
        if not message:
            raise InvalidInputError("Comment message is required")
        with self._lock.write_locked():
            incident = self._get_incident(incident_id)
            self._append_update(incident, IncidentUpdate(
                id=str(uuid.uuid4()),
                timestamp=_now(),
                author=author,
                type=UpdateType.COMMENT,
                message=message,
            ))
            return copy.deepcopy(incident)

    def assign_incident(self, incident_id, assignee, author="system"):
        if not assignee:
            raise InvalidInputError("Assignee is required")
        with self._lock.write_locked():
            incident = self._get_incident(incident_id)
            if incident.status == IncidentStatus.CLOSED:
                raise InvalidTransitionError(incident_id, incident.status.value,
                                             incident.status.value, "incident is closed")
            old = incident.assignee
            incident.assignee = assignee
            self._append_update(incident, IncidentUpdate(
                id=str(uuid.uuid4()),
                timestamp=_now(),
                author=author,
                type=UpdateType.ASSIGNMENT,
                message=f"Assigned to {assignee}",
                old_value=old,
                new_value=assignee,
            ))
            snapshot = copy.deepcopy(incident)
        logger.info(f"Incident {incident_id} assigned to {assignee}")
        return snapshot

    def get_incident_statistics(self):
        """Counts by status and severity, computed fresh from the incident table."""
        stats = {"total": 0, "active": 0, "inactive": 0}
        stats.update({s.value: 0 for s in IncidentStatus})
        by_severity = {s.value: 0 for s in Severity}
        resolution_times = []

        with self._lock.read_locked():
            for incident in self._incidents.values():
                stats["total"] += 1
                stats[incident.status.value] += 1
                stats["active" if incident.is_active else "inactive"] += 1
                by_severity[incident.severity.value] += 1
                if incident.metrics.time_to_resolution is not None:
                    resolution_times.append(incident.metrics.time_to_resolution)

        stats["by_severity"] = by_severity
        stats["mttr_minutes"] = (
            round(sum(resolution_times) / len(resolution_times) / 60, 2) if resolution_times else None
        )
        return stats

    # ─── Channels ────────────────────────────────────────

    def list_channels(self):
        with self._lock.read_locked():
            return [copy.deepcopy(c) for c in self._channels]

    def test_notification_channels(self, cancel=None, timeout=None):
        """Simulate a send on every enabled channel. Does not touch engine state."""
        channels = self.list_channels()
        results = self.dispatcher.test_channels(channels, cancel=cancel, timeout=timeout)
        ok = sum(1 for r in results if r.success)
        logger.info(f"Tested {len(results)} notification channel(s): {ok} succeeded")
        return results

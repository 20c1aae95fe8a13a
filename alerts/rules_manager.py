"""Alert rule and notification channel loading."""
import logging
import uuid
from pathlib import Path

import yaml

from models.alerts import AlertRule, AlertThreshold, NotificationChannel, RateLimit
from models.enums import ChannelType, Severity

logger = logging.getLogger("alertengine.alerts.rules")

VALID_OPERATORS = {"<", ">", "<=", ">=", "==", "!="}
DEFAULT_RULES_PATH = Path(__file__).resolve().parent.parent / "config" / "alert_rules.yaml"


class RulesManager:
    def __init__(self, rules_path=DEFAULT_RULES_PATH, data=None):
        self.rules_path = Path(rules_path) if rules_path else None
        self.rules = []
        self.channels = []
        if data is not None:
            self.load_data(data)
        else:
            self.load()

    def load(self):
        if self.rules_path is None or not self.rules_path.exists():
            logger.warning(f"Alert rules file not found: {self.rules_path}")
            return
        with open(self.rules_path) as f:
            data = yaml.safe_load(f) or {}
        self.load_data(data)

    def load_data(self, data):
        self.rules = self._parse_rules(data.get("rules", []))
        self.channels = self._parse_channels(data.get("channels", []))
        logger.info(f"Loaded {len(self.rules)} rules, {len(self.channels)} notification channels")

    def _parse_rules(self, raw_rules):
        rules = []
        seen = set()
        for r in raw_rules:
            threshold = r.get("threshold") or {}
            operator = threshold.get("operator", r.get("operator"))
            if operator not in VALID_OPERATORS:
                logger.warning(f"Invalid operator in rule {r.get('name')}: {operator}")
                continue
            try:
                severity = Severity.parse(r.get("severity", "medium"))
                value = float(threshold.get("value", r.get("value", 0)))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping rule {r.get('name')}: {e}")
                continue
            name = r.get("name") or r.get("id")
            if not name or not r.get("metric"):
                logger.warning(f"Skipping rule without name or metric: {r}")
                continue
            rule_id = r.get("id") or name
            if rule_id in seen:
                logger.warning(f"Duplicate rule id {rule_id}, keeping the first definition")
                continue
            seen.add(rule_id)
            rules.append(AlertRule(
                id=rule_id,
                name=name,
                description=r.get("description", ""),
                metric=r["metric"],
                threshold=AlertThreshold(operator=operator, value=value),
                severity=severity,
                duration_seconds=int(r.get("duration_seconds", 0)),
                labels=dict(r.get("labels") or {}),
                annotations=dict(r.get("annotations") or {}),
                enabled=bool(r.get("enabled", True)),
            ))
        return rules

    def _parse_channels(self, raw_channels):
        channels = []
        for c in raw_channels:
            try:
                channel_type = ChannelType(str(c.get("type", "webhook")).lower())
                severities = [Severity.parse(s) for s in c.get("severities", [])]
            except ValueError as e:
                logger.warning(f"Skipping channel {c.get('name')}: {e}")
                continue
            limit = c.get("rate_limit") or {}
            channels.append(NotificationChannel(
                id=c.get("id") or str(uuid.uuid4()),
                name=c.get("name", c.get("id", "")),
                type=channel_type,
                enabled=bool(c.get("enabled", True)),
                severities=severities,
                rate_limit=RateLimit(
                    max_alerts=int(limit.get("max_alerts", 10)),
                    window_seconds=int(limit.get("window_seconds", 3600)),
                ),
                transport=c.get("transport", "simulated"),
                config=dict(c.get("config") or {}),
            ))
        return channels

    def get_enabled_rules(self):
        return [r for r in self.rules if r.enabled]

    def get_rule(self, rule_ref):
        for r in self.rules:
            if r.id == rule_ref or r.name == rule_ref:
                return r
        return None

    def get_all_rules(self):
        return self.rules

    def get_channels(self):
        return self.channels

"""Dataclasses for alert rules, alerts and notification channels."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from models.base import Serializable
from models.enums import AlertStatus, ChannelType, Severity


def utcnow():
    return datetime.now(timezone.utc)


@dataclass
class AlertThreshold(Serializable):
    operator: str = ">"
    value: float = 0.0

    def __str__(self):
        return f"{self.operator} {self.value:g}"


@dataclass
class AlertRule(Serializable):
    id: str = ""
    name: str = ""
    description: str = ""
    metric: str = ""
    threshold: AlertThreshold = field(default_factory=AlertThreshold)
    severity: Severity = Severity.MEDIUM
    duration_seconds: int = 0
    labels: dict = field(default_factory=dict)
    annotations: dict = field(default_factory=dict)
    enabled: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class Alert(Serializable):
    id: str = ""
    rule_id: str = ""
    rule_name: str = ""
    status: AlertStatus = AlertStatus.FIRING
    severity: Severity = Severity.MEDIUM
    message: str = ""
    starts_at: datetime = field(default_factory=utcnow)
    ends_at: Optional[datetime] = None
    updated_at: datetime = field(default_factory=utcnow)
    labels: dict = field(default_factory=dict)
    annotations: dict = field(default_factory=dict)
    value: float = 0.0
    threshold: AlertThreshold = field(default_factory=AlertThreshold)
    fire_count: int = 1
    generator_url: str = ""


@dataclass
class RateLimit(Serializable):
    max_alerts: int = 10
    window_seconds: int = 3600


@dataclass
class NotificationChannel(Serializable):
    id: str = ""
    name: str = ""
    type: ChannelType = ChannelType.WEBHOOK
    enabled: bool = True
    severities: list = field(default_factory=list)
    rate_limit: RateLimit = field(default_factory=RateLimit)
    transport: str = "simulated"
    config: dict = field(default_factory=dict)
    sent_count: int = 0
    failed_count: int = 0

    def accepts(self, severity):
        """Channels with no severity condition take every alert."""
        if not self.severities:
            return True
        return Severity.parse(severity) in {Severity.parse(s) for s in self.severities}


@dataclass
class ChannelTestResult(Serializable):
    channel_id: str = ""
    channel_name: str = ""
    channel_type: str = ""
    success: bool = False
    latency_ms: int = 0
    status: str = "ok"  # ok, failed, cancelled
    error: str = ""

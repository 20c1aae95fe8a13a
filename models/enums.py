"""Enums for alert, incident, channel and resource vocabularies."""
from enum import Enum


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value):
        """Accept enum members, canonical names and legacy aliases."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        text = SEVERITY_ALIASES.get(text, text)
        return cls(text)

    @property
    def rank(self):
        return SEVERITY_RANK[self]


# Older rule files use the info/warning/error vocabulary.
SEVERITY_ALIASES = {
    "info": "low",
    "warning": "medium",
    "warn": "medium",
    "error": "high",
}

SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class AlertStatus(str, Enum):
    FIRING = "firing"
    RESOLVED = "resolved"


class IncidentStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    CLOSED = "closed"

    @property
    def order(self):
        return INCIDENT_STATUS_ORDER[self]

    @property
    def is_active(self):
        return self in (IncidentStatus.OPEN, IncidentStatus.INVESTIGATING)


INCIDENT_STATUS_ORDER = {
    IncidentStatus.OPEN: 0,
    IncidentStatus.INVESTIGATING: 1,
    IncidentStatus.RESOLVED: 2,
    IncidentStatus.CLOSED: 3,
}


class UpdateType(str, Enum):
    CREATION = "creation"
    STATUS_CHANGE = "status_change"
    REOPEN = "reopen"
    COMMENT = "comment"
    ASSIGNMENT = "assignment"


class ChannelType(str, Enum):
    SLACK = "slack"
    EMAIL = "email"
    WEBHOOK = "webhook"
    PAGERDUTY = "pagerduty"
    CHAT = "chat"


class ResourceType(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"
    STORAGE = "storage"
    NETWORK = "network"


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"

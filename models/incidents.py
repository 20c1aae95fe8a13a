"""Dataclasses for incidents and their timeline."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.alerts import utcnow
from models.base import Serializable
from models.enums import IncidentStatus, Severity, UpdateType


@dataclass
class IncidentUpdate(Serializable):
    id: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    author: str = "system"
    type: UpdateType = UpdateType.COMMENT
    message: str = ""
    old_value: Optional[str] = None
    new_value: Optional[str] = None


@dataclass
class IncidentMetrics(Serializable):
    """Durations in seconds; None until the milestone is reached."""
    time_to_detection: Optional[float] = None
    time_to_acknowledgment: Optional[float] = None
    time_to_resolution: Optional[float] = None


@dataclass
class Incident(Serializable):
    id: str = ""
    title: str = ""
    description: str = ""
    status: IncidentStatus = IncidentStatus.OPEN
    severity: Severity = Severity.MEDIUM
    priority: Severity = Severity.MEDIUM
    assignee: Optional[str] = None
    affected_service: str = ""
    related_alerts: list = field(default_factory=list)
    tags: list = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    timeline: list = field(default_factory=list)
    metrics: IncidentMetrics = field(default_factory=IncidentMetrics)

    @property
    def is_active(self):
        return self.status.is_active

"""Data models for the alert and incident engine."""
from models.enums import Severity, AlertStatus, IncidentStatus, UpdateType, ChannelType, ResourceType, Trend
from models.alerts import AlertRule, AlertThreshold, Alert, NotificationChannel, RateLimit, ChannelTestResult
from models.incidents import Incident, IncidentUpdate, IncidentMetrics

"""Utility modules for the alert engine."""
from utils.logger import setup_logging
from utils.formatters import format_pct, format_duration, format_usd, colorize, time_ago
from utils.errors import (
    EngineError, NotFoundError, UnknownRuleError, UnknownIncidentError, IncidentNotFoundError,
    InvalidInputError, PolicyViolationError, InvalidTransitionError,
)
from utils.rwlock import ReadWriteLock

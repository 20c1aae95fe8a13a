"""JSON conversion for engine dataclasses, used only at the HTTP/CLI boundary."""
from dataclasses import fields, is_dataclass
from datetime import date, datetime, timedelta
from enum import Enum


def to_jsonable(obj):
    """Recursively convert dataclasses, enums, datetimes and containers to JSON types."""
    if isinstance(obj, Enum):
        return obj.value
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {str(to_jsonable(k)): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in obj]
    return str(obj)


class Serializable:
    """Mixin giving dataclasses a to_dict() for JSON responses."""

    def to_dict(self):
        return to_jsonable(self)

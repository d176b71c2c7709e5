import dataclasses
import json
from datetime import date, datetime
from enum import Enum
from typing import Any


def make_json_safe(value: Any) -> Any:
    """
    Convert import state (progress snapshots, skipped records, results)
    into JSON-serialisable structures.
    """
    if isinstance(value, Enum):
        return make_json_safe(value.value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        to_dict = getattr(value, "to_dict", None)
        if callable(to_dict):
            return make_json_safe(to_dict())
        return make_json_safe(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {str(key): make_json_safe(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [make_json_safe(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode(errors="ignore")
    if isinstance(value, (int, float, str, bool)) or value is None:
        return value
    # Fallback to string representation for unsupported types
    return str(value)


def dumps(value: Any) -> str:
    return json.dumps(make_json_safe(value))


def loads(payload: str) -> Any:
    return json.loads(payload)

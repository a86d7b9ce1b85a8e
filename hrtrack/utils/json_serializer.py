"""
Conversion of notification metadata and live payloads into JSON-safe values
"""
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from hrtrack.utils.datetime_utils import iso_local


def sanitize_for_json(value: Any) -> Any:
    """
    Recursively convert `value` into something json.dumps accepts.

    Enums become their value, datetimes are rendered in the business timezone (same as API
    responses), dates and times use isoformat, Decimals become floats. Dict keys are coerced to
    str. Unknown objects fall back to str().

    Used for Notification.meta_json and for payloads pushed over the real-time channel.
    """
    if value is None or isinstance(value, bool):
        return value
    # Enum before str/int: LeaveStatus and friends are str-mixin enums
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float)):
        return value
    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime):
        return iso_local(value)
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, BaseModel):
        return sanitize_for_json(value.model_dump())
    if isinstance(value, dict):
        return {str(k): sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [sanitize_for_json(item) for item in value]
    return str(value)

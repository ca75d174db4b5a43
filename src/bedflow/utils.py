"""Helpers for instants, rounding and payload serialisation."""

import dataclasses
import math
import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from bedflow.errors import InvalidArgument

Instant = Union[str, datetime]

# calendar date first; rejects keywords such as "now" or "today"
_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as a timezone-aware UTC datetime.

    Naive datetimes are taken to be in UTC already.
    """
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(value: Instant, name: str = "date") -> datetime:
    """Parse an ISO-8601 string (or pass through a datetime) as a UTC instant.

    Parameters
    ----------
    value : str or datetime
        The instant to parse
    name : str, default "date"
        Parameter name used in the error message

    Returns
    -------
    datetime
        Timezone-aware UTC datetime

    Raises
    ------
    InvalidArgument
        If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    message = (
        f"Invalid {name} {value!r}. Use ISO 8601 format "
        "(e.g., 2025-11-05T00:00:00Z)"
    )
    if not isinstance(value, str) or not _ISO_DATE_PREFIX.match(value.strip()):
        raise InvalidArgument(message)
    try:
        stamp = pd.Timestamp(value.strip())
    except (ValueError, TypeError) as exc:
        raise InvalidArgument(message) from exc
    if pd.isna(stamp):
        raise InvalidArgument(message)
    if stamp.tzinfo is None:
        stamp = stamp.tz_localize("UTC")
    else:
        stamp = stamp.tz_convert("UTC")
    return ensure_utc(stamp.to_pydatetime())


def parse_optional_instant(value: Optional[Instant], name: str) -> Optional[datetime]:
    if value is None:
        return None
    return parse_instant(value, name)


def round_half_up(value: float, ndigits: int = 0):
    """Round with halves going up, e.g. 12.5 -> 13 and 0.25 -> 0.3.

    Returns an ``int`` when ``ndigits`` is 0.
    """
    factor = 10**ndigits
    rounded = math.floor(value * factor + 0.5) / factor
    if ndigits == 0:
        return int(rounded)
    return rounded


def percentage(part: float, whole: float) -> int:
    """Whole-number percentage of ``part`` in ``whole``; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def to_payload(obj: Any) -> Any:
    """Convert results into JSON-ready builtins.

    Dataclasses become dicts (snake_case keys), enums their values, instants
    ISO-8601 strings and numpy scalars/arrays plain Python numbers/lists.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            field.name: to_payload(getattr(obj, field.name))
            for field in dataclasses.fields(obj)
        }
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return ensure_utc(obj).isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(key): to_payload(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_payload(item) for item in obj]
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    return obj

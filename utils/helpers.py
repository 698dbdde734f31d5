"""
Utility functions for the matching engine
"""

import json
from datetime import datetime, timezone
from typing import Any, FrozenSet, Iterable, List, Optional


def to_string_set(values: Optional[Iterable[Any]]) -> FrozenSet[str]:
    """
    Normalize a list of tags into a set of trimmed, non-empty strings

    Args:
        values: List/set of tags, a single string, or None

    Returns:
        Frozen set of tags (case preserved)
    """
    if not values:
        return frozenset()

    if isinstance(values, str):
        values = [values]

    return frozenset(str(v).strip() for v in values if v is not None and str(v).strip())


def parse_bool(value: Any, default: bool = False) -> bool:
    """
    Parse a boolean from query-string style values

    Args:
        value: True/False, 'true'/'false', '1'/'0', 'yes'/'no' or None

    Returns:
        Parsed boolean

    Raises:
        ValueError: if the value is not recognizable as a boolean
    """
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0

    text = str(value).strip().lower()
    if text in ('true', '1', 'yes', 'on'):
        return True
    if text in ('false', '0', 'no', 'off'):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def parse_int(value: Any) -> int:
    """
    Parse an integer from int or numeric string ('20', ' 20 ')

    Raises:
        ValueError: for floats with a fractional part, booleans and other junk
    """
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError(f"not an integer: {value!r}")
    return int(str(value).strip())


def clamp_score(score: float, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp a score into [low, high]"""
    return max(low, min(high, score))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a database timestamp into an aware UTC datetime

    Args:
        value: ISO-8601 string ('2024-05-01T10:00:00Z', '...+00:00'),
               datetime, or None

    Returns:
        Aware datetime or None when value is empty
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_vector(value: Any) -> List[float]:
    """
    Convert a stored embedding into a list of floats

    Args:
        value: List of numbers, or JSON/pgvector text like '[0.1,0.2]'

    Returns:
        List of floats, empty when the value is missing or unparseable
    """
    if value is None:
        return []
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    try:
        return [float(x) for x in value]
    except (TypeError, ValueError):
        return []


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

"""
Matching Engine Utilities
"""

from .helpers import (
    to_string_set,
    parse_bool,
    parse_int,
    clamp_score,
    parse_timestamp,
    parse_vector,
    utc_now
)

__all__ = [
    'to_string_set',
    'parse_bool',
    'parse_int',
    'clamp_score',
    'parse_timestamp',
    'parse_vector',
    'utc_now'
]

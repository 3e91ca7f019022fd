"""
Utility functions for bob-sync.
"""

from .date import (
    parse_date, format_date, dates_equal, coerce_datetime,
    has_time_of_day, to_epoch_millis, resolve_timezone
)
from .text import clean_text, clean_field, or_placeholder

__all__ = [
    # Date utilities
    'parse_date',
    'format_date',
    'dates_equal',
    'coerce_datetime',
    'has_time_of_day',
    'to_epoch_millis',
    'resolve_timezone',
    # Text utilities
    'clean_text',
    'clean_field',
    'or_placeholder',
]

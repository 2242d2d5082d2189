"""
Core validators for canonical series rows.
Pure functions - no IO, network, or side effects.
"""

import math
import numbers
from datetime import date, datetime
from typing import Any, Dict, List, Sequence, Tuple


VALUE_KINDS = ('price', 'return')


class ValidationError(ValueError):
    """Raised when data validation fails."""
    pass


class MalformedRow(ValidationError):
    """Raised for a row with a bad date or a non-numeric value."""

    def __init__(self, message: str, row: Any = None):
        super().__init__(message)
        self.row = row


def parse_row_date(value: Any) -> date:
    """
    Resolve a row date to a calendar date.

    Accepts date, datetime (including pandas Timestamp) and ISO strings.

    Raises:
        ValidationError: If the value is not a recognizable date
    """
    # pandas NaT is a datetime instance but never equal to itself
    if value is None or value != value:
        raise ValidationError(f"date is missing, got {value!r}")

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise ValidationError(f"date must be ISO formatted, got {value!r}")

    raise ValidationError(f"date must be date or ISO string, got {type(value)}")


def parse_row_value(value: Any) -> float:
    """
    Resolve a row value to a finite float.

    Raises:
        ValidationError: If the value is not a finite real number
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(f"value must be numeric, got {type(value)}")

    value = float(value)
    if not math.isfinite(value):
        raise ValidationError(f"value must be finite, got {value}")

    return value


def _split_row(row: Any) -> Tuple[Any, Any]:
    if isinstance(row, dict):
        if 'date' not in row:
            raise ValidationError(f"Missing required keys: {{'date'}}")
        for key in ('value', 'price', 'return'):
            if key in row:
                return row['date'], row[key]
        raise ValidationError("Missing required keys: {'value'}")

    if isinstance(row, (tuple, list)) and len(row) == 2:
        return row[0], row[1]

    raise ValidationError(f"row must be (date, value) pair or mapping, got {type(row)}")


def validate_series_row(row: Any, value_kind: str = 'price') -> Tuple[date, float]:
    """
    Validate one input row and return its canonical (date, value).

    Args:
        row: (date, value) pair or mapping with 'date' and 'value'
            ('price' and 'return' are accepted as value keys)
        value_kind: 'price' or 'return'

    Returns:
        Tuple of (date, float value)

    Raises:
        MalformedRow: If the date or value is unusable
    """
    if value_kind not in VALUE_KINDS:
        raise ValueError(f"value_kind must be one of {VALUE_KINDS}, got {value_kind!r}")

    try:
        raw_date, raw_value = _split_row(row)
        row_date = parse_row_date(raw_date)
        value = parse_row_value(raw_value)
    except ValidationError as e:
        raise MalformedRow(str(e), row=row)

    # A simple return below -100% has no price path
    if value_kind == 'return' and value < -1:
        raise MalformedRow(f"return must be >= -1, got {value}", row=row)

    return row_date, value


def check_series_date_monotonicity(dates: Sequence[date], series_id: str = '') -> None:
    """
    Check that dates are strictly increasing.

    Raises:
        ValidationError: If dates are not monotonic or have duplicates
    """
    if len(dates) != len(set(dates)):
        raise ValidationError(f"Duplicate date found for series {series_id}")

    for i in range(1, len(dates)):
        if dates[i] <= dates[i - 1]:
            raise ValidationError(
                f"Non-monotonic dates for series {series_id}: {dates[i - 1]} followed by {dates[i]}"
            )

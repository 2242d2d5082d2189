"""
Drawdown and recovery calculation utilities.
Pure functions for drawdown paths, maximum drawdown and the Ulcer Index.
"""

import math
from datetime import date
from typing import Dict, List, Optional, Sequence, Union

import numpy as np


class DrawdownError(Exception):
    """Raised when drawdown calculation fails."""
    pass


EMPTY_DRAWDOWN_STATS = {
    'max_drawdown_pct': None,
    'peak_date': None,
    'trough_date': None,
    'recovery_date': None,
    'drawdown_periods': None,
    'recovery_periods': None
}


def drawdown_series(equity: Sequence[Optional[float]]) -> List[Optional[float]]:
    """
    Drawdown at each point relative to the running peak.

    Formula: DD_t = E_t / max(E_0..E_t) - 1, always <= 0

    Args:
        equity: Equity values, None where undefined

    Returns:
        Drawdown per point, None where equity is None
    """
    result: List[Optional[float]] = []
    peak: Optional[float] = None

    for value in equity:
        if value is None:
            result.append(None)
            continue
        if peak is None or value > peak:
            peak = value
        result.append(min(0.0, value / peak - 1))

    return result


def max_drawdown(drawdowns: Sequence[Optional[float]]) -> Optional[float]:
    """Deepest drawdown (most negative), or None without data."""
    defined = [d for d in drawdowns if d is not None]
    if not defined:
        return None
    return float(min(defined))


def ulcer_index(drawdowns: Sequence[Optional[float]]) -> Optional[float]:
    """
    Root mean square of drawdown depth.

    Formula: UI = √(mean(DD_t²))
    """
    defined = np.array([d for d in drawdowns if d is not None], dtype=float)
    if defined.size == 0:
        return None
    return float(math.sqrt(np.mean(defined ** 2)))


def drawdown_stats(
    equity: Sequence[Optional[float]],
    dates: Sequence[date]
) -> Dict[str, Union[float, date, int, None]]:
    """
    Calculate maximum drawdown statistics for an equity curve.

    Finds the largest peak-to-trough decline and recovery information.
    Undefined points are ignored.

    Args:
        equity: Equity values in chronological order, None where undefined
        dates: Corresponding dates

    Returns:
        Dictionary with drawdown statistics:
        - max_drawdown_pct: Largest decline as decimal (negative)
        - peak_date: Date of peak before max drawdown
        - trough_date: Date of lowest point
        - recovery_date: Date when equity exceeded peak (None if no recovery)
        - drawdown_periods: Observations from peak to trough
        - recovery_periods: Observations from trough to recovery (None if no recovery)

    Raises:
        DrawdownError: If insufficient data or invalid inputs
    """
    if len(equity) != len(dates):
        raise DrawdownError("Equity and dates must have same length")

    points = [(d, v) for d, v in zip(dates, equity) if v is not None]
    if len(points) < 2:
        raise DrawdownError("Insufficient data: need at least 2 equity values")

    if any(v <= 0 for _, v in points):
        raise DrawdownError("Zero or negative equity not allowed")

    values = np.array([v for _, v in points])
    point_dates = [d for d, _ in points]

    running_max = np.maximum.accumulate(values)
    drawdowns = (values / running_max) - 1

    trough_idx = int(np.argmin(drawdowns))
    max_drawdown_pct = float(drawdowns[trough_idx])

    # First occurrence of the peak that preceded the trough
    peak_value = running_max[trough_idx]
    peak_idx = int(np.argmax(values[:trough_idx + 1] >= peak_value))

    recovery_idx = None
    if abs(max_drawdown_pct) < 1e-10:
        recovery_idx = peak_idx
    else:
        for i in range(trough_idx + 1, len(values)):
            if values[i] > peak_value:
                recovery_idx = i
                break

    return {
        'max_drawdown_pct': max_drawdown_pct,
        'peak_date': point_dates[peak_idx],
        'trough_date': point_dates[trough_idx],
        'recovery_date': point_dates[recovery_idx] if recovery_idx is not None else None,
        'drawdown_periods': trough_idx - peak_idx,
        'recovery_periods': (recovery_idx - trough_idx) if recovery_idx is not None else None
    }


def calculate_drawdown_metrics(
    equity: Sequence[Optional[float]],
    dates: Sequence[date]
) -> Dict[str, Union[float, date, int, None]]:
    """
    Drawdown statistics, or the all-None record when they cannot be computed.
    """
    try:
        return drawdown_stats(equity, dates)
    except DrawdownError:
        return dict(EMPTY_DRAWDOWN_STATS)

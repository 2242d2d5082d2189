"""
Periodicity detection.
Infers the sampling frequency of a date axis for annualization.
"""

import logging
from datetime import date
from typing import Sequence

import numpy as np


logger = logging.getLogger(__name__)

DAILY = 252
WEEKLY = 52
MONTHLY = 12
QUARTERLY = 4
ANNUAL = 1

# (max median gap in days, periods per year)
GAP_THRESHOLDS = [
    (4, DAILY),
    (10, WEEKLY),
    (45, MONTHLY),
    (135, QUARTERLY),
]

FREQUENCY_LABELS = {
    DAILY: 'daily',
    WEEKLY: 'weekly',
    MONTHLY: 'monthly',
    QUARTERLY: 'quarterly',
    ANNUAL: 'annual',
}


def median_gap_days(dates: Sequence[date]) -> float:
    """Median number of calendar days between consecutive dates."""
    if len(dates) < 2:
        raise ValueError("Need at least 2 dates to measure a gap")

    gaps = np.array([(dates[i] - dates[i - 1]).days for i in range(1, len(dates))])
    return float(np.median(gaps))


def infer_periods_per_year(dates: Sequence[date]) -> int:
    """
    Bucket the median date gap into a standard calendar frequency.

    Args:
        dates: Sorted date axis

    Returns:
        Periods per year: 252, 52, 12, 4 or 1
    """
    if len(dates) < 2:
        logger.debug(f"Only {len(dates)} date(s); defaulting to {DAILY} periods per year")
        return DAILY

    gap = median_gap_days(dates)
    for max_gap, periods in GAP_THRESHOLDS:
        if gap <= max_gap:
            return periods
    return ANNUAL


def frequency_label(periods_per_year: int) -> str:
    return FREQUENCY_LABELS.get(periods_per_year, f'{periods_per_year}/yr')

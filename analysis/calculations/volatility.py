"""
Volatility calculation utilities.
Pure functions for sample and downside dispersion of return observations.
"""

import math
from typing import Optional, Sequence

import numpy as np


def sample_stdev(values: Sequence[float]) -> Optional[float]:
    """
    Sample standard deviation (ddof=1).

    Returns:
        Standard deviation, or None with fewer than 2 observations
    """
    if len(values) < 2:
        return None

    std_dev = float(np.std(np.asarray(values, dtype=float), ddof=1))
    if not math.isfinite(std_dev):
        return None
    return std_dev


def annualized_volatility(returns: Sequence[float], periods_per_year: int) -> Optional[float]:
    """
    Annualized volatility of simple returns.

    Formula: σ = std(returns) × √periods_per_year

    Args:
        returns: Defined simple returns
        periods_per_year: Annualization factor

    Returns:
        Annualized volatility as decimal (0.25 = 25%), or None with fewer
        than 2 returns
    """
    std_dev = sample_stdev(returns)
    if std_dev is None:
        return None
    return std_dev * math.sqrt(periods_per_year)


def downside_deviation(returns: Sequence[float]) -> Optional[float]:
    """Sample standard deviation of the negative returns only."""
    negatives = [r for r in returns if r < 0]
    return sample_stdev(negatives)

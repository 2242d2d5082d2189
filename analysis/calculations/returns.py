"""
Returns calculation utilities.
Pure functions for simple/log returns and equity curves on an aligned axis.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple


logger = logging.getLogger(__name__)


class ReturnsError(Exception):
    """Raised when returns calculation fails."""
    pass


class NonPositivePriceError(ReturnsError):
    """Raised when a price <= 0 makes the log return undefined."""
    pass


@dataclass(frozen=True)
class ReturnSeries:
    """
    Simple and log returns for one series on a shared date axis.

    `dates` and `observed` cover the full axis (length N). `simple` and
    `log` have length N - 1 and line up with dates[1:]. None marks an
    undefined return.
    """
    id: str
    dates: Tuple[date, ...]
    observed: Tuple[bool, ...]
    simple: Tuple[Optional[float], ...]
    log: Tuple[Optional[float], ...]

    @property
    def return_dates(self) -> Tuple[date, ...]:
        return self.dates[1:]

    def defined_simple(self) -> List[float]:
        return [r for r in self.simple if r is not None]

    def simple_by_date(self) -> Dict[date, float]:
        return {d: r for d, r in zip(self.return_dates, self.simple) if r is not None}

    def simple_at(self, d: date) -> Optional[float]:
        return self.simple_by_date().get(d)

    @property
    def observation_count(self) -> int:
        return sum(1 for r in self.simple if r is not None)


def compute_returns(
    series_id: str,
    dates: Sequence[date],
    prices: Sequence[Optional[float]],
    strict: bool = False
) -> ReturnSeries:
    """
    Calculate simple and log returns between consecutive axis dates.

    Formula: R_t = P_t / P_{t-1} - 1,  r_t = ln(P_t / P_{t-1})

    A return is defined only when both endpoints are present. A gap is
    skipped, never replaced by a flat or zero return.

    Args:
        series_id: Id of the series
        dates: Date axis in chronological order
        prices: Price per axis date, None where missing
        strict: Raise on the first non-positive price instead of skipping it

    Returns:
        ReturnSeries aligned to the axis

    Raises:
        ReturnsError: If dates and prices differ in length
        NonPositivePriceError: If strict and a price is <= 0, or if no
            positive price remains
    """
    if len(dates) != len(prices):
        raise ReturnsError("Prices and dates must have same length")

    present = [p for p in prices if p is not None]
    bad = [(d, p) for d, p in zip(dates, prices) if p is not None and p <= 0]

    if bad:
        if strict:
            d, p = bad[0]
            raise NonPositivePriceError(f"{series_id}: non-positive price {p} on {d}")
        if len(bad) == len(present):
            raise NonPositivePriceError(
                f"{series_id}: all {len(bad)} prices are non-positive"
            )
        logger.warning(
            f"{series_id}: {len(bad)} non-positive price(s) skipped, "
            f"first on {bad[0][0]}"
        )

    observed = tuple(p is not None and p > 0 for p in prices)

    simple: List[Optional[float]] = []
    log: List[Optional[float]] = []
    for i in range(1, len(prices)):
        if observed[i - 1] and observed[i]:
            ratio = prices[i] / prices[i - 1]
            simple.append(ratio - 1)
            log.append(math.log(ratio))
        else:
            simple.append(None)
            log.append(None)

    return ReturnSeries(
        id=series_id,
        dates=tuple(dates),
        observed=observed,
        simple=tuple(simple),
        log=tuple(log),
    )


def equity_curve(returns: ReturnSeries, base: float = 1.0) -> Tuple[Optional[float], ...]:
    """
    Compound simple returns into an equity curve over the full axis.

    Starts at `base` on the first observed date. Across a skipped
    transition the level holds; dates without an observation are None.

    Args:
        returns: Return series to compound
        base: Starting equity value

    Returns:
        Equity value per axis date (None before the first observation and
        on unobserved dates)
    """
    curve: List[Optional[float]] = []
    level: Optional[float] = None

    for i, is_observed in enumerate(returns.observed):
        if level is None:
            if is_observed:
                level = base
                curve.append(level)
            else:
                curve.append(None)
            continue

        r = returns.simple[i - 1]
        if r is not None:
            level = level * (1 + r)
        curve.append(level if is_observed else None)

    return tuple(curve)


def log_equity_curve(returns: ReturnSeries, base: float = 1.0) -> Tuple[Optional[float], ...]:
    """Same curve built as base * exp(cumulative sum of log returns)."""
    curve: List[Optional[float]] = []
    cumulative: Optional[float] = None

    for i, is_observed in enumerate(returns.observed):
        if cumulative is None:
            if is_observed:
                cumulative = 0.0
                curve.append(base)
            else:
                curve.append(None)
            continue

        r = returns.log[i - 1]
        if r is not None:
            cumulative += r
        curve.append(base * math.exp(cumulative) if is_observed else None)

    return tuple(curve)

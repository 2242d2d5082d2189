"""
Performance and risk statistics.
Composes returns, volatility and drawdown utilities into one StatsRecord per series.

Undefined metrics are None. Profit factor with gains and no losses is inf.
"""

import math
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, Optional, Sequence

import numpy as np

from analysis.calculations.drawdown import (
    calculate_drawdown_metrics,
    drawdown_series,
    max_drawdown,
    ulcer_index,
)
from analysis.calculations.returns import ReturnSeries, equity_curve
from analysis.calculations.volatility import (
    annualized_volatility,
    downside_deviation,
    sample_stdev,
)


# Dispersion below this is treated as zero
ZERO_TOLERANCE = 1e-12

METRIC_FIELDS = [
    'total_return',
    'cagr',
    'volatility',
    'sharpe',
    'sortino',
    'ulcer_index',
    'calmar',
    'profit_factor',
    'max_drawdown',
    'win_rate',
    'best_period',
    'worst_period',
]


@dataclass(frozen=True)
class StatsRecord:
    """Named scalar metrics for one series over one date window."""
    series_id: str
    periods_per_year: int
    observations: int
    start_date: Optional[date]
    end_date: Optional[date]
    total_return: Optional[float]
    cagr: Optional[float]
    volatility: Optional[float]
    sharpe: Optional[float]
    sortino: Optional[float]
    ulcer_index: Optional[float]
    calmar: Optional[float]
    profit_factor: Optional[float]
    max_drawdown: Optional[float]
    win_rate: Optional[float]
    best_period: Optional[float]
    worst_period: Optional[float]
    peak_date: Optional[date] = None
    trough_date: Optional[date] = None
    recovery_date: Optional[date] = None

    def metrics(self) -> Dict[str, Optional[float]]:
        return {name: getattr(self, name) for name in METRIC_FIELDS}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def cagr(
    equity_first: float,
    equity_last: float,
    period_count: int,
    periods_per_year: int
) -> Optional[float]:
    """
    Compound annual growth rate.

    Formula: (E_last / E_first) ^ (periods_per_year / period_count) - 1
    """
    if period_count <= 0 or equity_first <= 0:
        return None

    growth = equity_last / equity_first
    if growth < 0:
        return None
    return growth ** (periods_per_year / period_count) - 1


def sharpe_ratio(
    returns: Sequence[float],
    periods_per_year: int,
    risk_free_rate: float = 0.0
) -> Optional[float]:
    """
    Annualized Sharpe ratio.

    Formula: (mean(R) - rf) / std(R) × √periods_per_year, with rf the
    annual risk-free rate spread evenly over the periods of a year.
    """
    std_dev = sample_stdev(returns)
    if std_dev is None or std_dev < ZERO_TOLERANCE:
        return None

    excess = float(np.mean(returns)) - risk_free_rate / periods_per_year
    return excess / std_dev * math.sqrt(periods_per_year)


def sortino_ratio(
    returns: Sequence[float],
    periods_per_year: int,
    risk_free_rate: float = 0.0
) -> Optional[float]:
    """
    Annualized Sortino ratio: Sharpe numerator over downside deviation.

    None when there are no negative returns (no downside) or the downside
    deviation is zero or cannot be measured.
    """
    downside = downside_deviation(returns)
    if downside is None or downside < ZERO_TOLERANCE:
        return None

    excess = float(np.mean(returns)) - risk_free_rate / periods_per_year
    return excess / downside * math.sqrt(periods_per_year)


def calmar_ratio(growth_rate: Optional[float], max_dd: Optional[float]) -> Optional[float]:
    """CAGR over the magnitude of the maximum drawdown."""
    if growth_rate is None or max_dd is None or abs(max_dd) < ZERO_TOLERANCE:
        return None
    return growth_rate / abs(max_dd)


def profit_factor(returns: Sequence[float]) -> Optional[float]:
    """
    Gross gains over gross losses.

    Returns:
        Profit factor; inf with gains and no losses; None without any
        non-zero return
    """
    gains = sum(r for r in returns if r > 0)
    losses = abs(sum(r for r in returns if r < 0))

    if losses == 0:
        return math.inf if gains > 0 else None
    return gains / losses


def win_rate(returns: Sequence[float]) -> Optional[float]:
    if not returns:
        return None
    return sum(1 for r in returns if r > 0) / len(returns)


def compute_stats(
    returns: ReturnSeries,
    periods_per_year: int,
    risk_free_rate: float = 0.0
) -> StatsRecord:
    """
    Calculate the full StatsRecord for one return series.

    Args:
        returns: Instrument or combo return series
        periods_per_year: Annualization factor for the window
        risk_free_rate: Annual risk-free rate as decimal

    Returns:
        StatsRecord with None for every metric that is undefined
    """
    equity = equity_curve(returns)
    observed_points = [(d, v) for d, v in zip(returns.dates, equity) if v is not None]
    values = returns.defined_simple()
    n = len(values)

    if observed_points and n > 0:
        first = observed_points[0][1]
        last = observed_points[-1][1]
        total = last / first - 1
        growth_rate = cagr(first, last, n, periods_per_year)
    else:
        total = None
        growth_rate = None

    # A lone equity point has no drawdown history
    drawdowns = drawdown_series(equity) if n > 0 else []
    max_dd = max_drawdown(drawdowns)
    dd_details = calculate_drawdown_metrics(equity, returns.dates)

    return StatsRecord(
        series_id=returns.id,
        periods_per_year=periods_per_year,
        observations=n,
        start_date=observed_points[0][0] if observed_points else None,
        end_date=observed_points[-1][0] if observed_points else None,
        total_return=total,
        cagr=growth_rate,
        volatility=annualized_volatility(values, periods_per_year),
        sharpe=sharpe_ratio(values, periods_per_year, risk_free_rate),
        sortino=sortino_ratio(values, periods_per_year, risk_free_rate),
        ulcer_index=ulcer_index(drawdowns),
        calmar=calmar_ratio(growth_rate, max_dd),
        profit_factor=profit_factor(values),
        max_drawdown=max_dd,
        win_rate=win_rate(values),
        best_period=max(values) if values else None,
        worst_period=min(values) if values else None,
        peak_date=dd_details['peak_date'],
        trough_date=dd_details['trough_date'],
        recovery_date=dd_details['recovery_date'],
    )

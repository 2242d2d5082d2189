"""
Correlation utilities.
Pairwise Pearson correlation of return series over pairwise-complete dates.
"""

import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from analysis.calculations.returns import ReturnSeries
from analysis.calculations.volatility import sample_stdev
from analysis.calculations.statistics import ZERO_TOLERANCE


@dataclass(frozen=True)
class CorrelationMatrix:
    """
    Symmetric correlation table keyed by series id.

    Values are stored once per unordered pair; the diagonal is 1.0.
    None marks a pair without enough overlapping returns.
    """
    ids: Tuple[str, ...]
    pair_values: Mapping[FrozenSet[str], Optional[float]]
    overlaps: Mapping[FrozenSet[str], int]

    def get(self, a: str, b: str) -> Optional[float]:
        if a not in self.ids or b not in self.ids:
            raise KeyError(f"{a}/{b}")
        if a == b:
            return 1.0
        return self.pair_values[frozenset((a, b))]

    def overlap(self, a: str, b: str) -> int:
        return self.overlaps[frozenset((a, b))]

    def pairs(self) -> List[Tuple[str, str, Optional[float]]]:
        """Each unordered pair once, in id order."""
        result = []
        for i, a in enumerate(self.ids):
            for b in self.ids[i + 1:]:
                result.append((a, b, self.get(a, b)))
        return result

    def negative_pairs(self) -> List[Tuple[str, str, float]]:
        """Pairs with correlation below zero, most negative first."""
        negatives = [(a, b, v) for a, b, v in self.pairs() if v is not None and v < 0]
        return sorted(negatives, key=lambda x: x[2])

    def to_frame(self) -> pd.DataFrame:
        """Square DataFrame, NaN for undefined pairs."""
        rows = []
        for a in self.ids:
            row = []
            for b in self.ids:
                v = self.get(a, b)
                row.append(math.nan if v is None else v)
            rows.append(row)
        return pd.DataFrame(rows, index=list(self.ids), columns=list(self.ids))


def pearson(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    """
    Pearson correlation of two equally long samples.

    Returns:
        Correlation in [-1, 1], or None with fewer than 2 points or a
        constant sample
    """
    if len(x) != len(y):
        raise ValueError("Samples must have same length")

    sx = sample_stdev(x)
    sy = sample_stdev(y)
    if sx is None or sy is None or sx < ZERO_TOLERANCE or sy < ZERO_TOLERANCE:
        return None

    xa = np.asarray(x, dtype=float)
    ya = np.asarray(y, dtype=float)
    cov = float(np.sum((xa - xa.mean()) * (ya - ya.mean()))) / (len(xa) - 1)
    value = cov / (sx * sy)
    return max(-1.0, min(1.0, value))


def correlation_matrix(
    returns: Sequence[ReturnSeries],
    min_overlap: int = 2
) -> CorrelationMatrix:
    """
    Correlation of every pair of series over dates where both have a return.

    Args:
        returns: Return series (constituents and/or combo)
        min_overlap: Fewest shared return dates for a defined correlation

    Returns:
        CorrelationMatrix over the series ids, in input order
    """
    ids = tuple(r.id for r in returns)
    if len(ids) != len(set(ids)):
        raise ValueError(f"Duplicate series ids: {ids}")

    by_date = [r.simple_by_date() for r in returns]
    pair_values: Dict[FrozenSet[str], Optional[float]] = {}
    overlaps: Dict[FrozenSet[str], int] = {}

    for i in range(len(returns)):
        for j in range(i + 1, len(returns)):
            shared = sorted(set(by_date[i]) & set(by_date[j]))
            key = frozenset((ids[i], ids[j]))
            overlaps[key] = len(shared)

            if len(shared) < max(2, min_overlap):
                pair_values[key] = None
                continue

            pair_values[key] = pearson(
                [by_date[i][d] for d in shared],
                [by_date[j][d] for d in shared],
            )

    return CorrelationMatrix(ids=ids, pair_values=pair_values, overlaps=overlaps)

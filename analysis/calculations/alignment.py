"""
Alignment utilities.
Merges instrument series onto one sorted date axis with explicit gaps.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from analysis.calculations.series import InstrumentSeries


logger = logging.getLogger(__name__)


class AlignmentError(Exception):
    """Raised when series cannot be merged."""
    pass


class EmptyIntersectionError(Exception):
    """Raised when no date carries data for at least two instruments."""
    pass


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive date window. A missing bound is open on that side;
    both bounds missing is the "all" range.
    """
    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self):
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("start must be <= end")

    @property
    def is_all(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, d: date) -> bool:
        if self.start is not None and d < self.start:
            return False
        if self.end is not None and d > self.end:
            return False
        return True


ALL = DateRange()


@dataclass(frozen=True)
class MergedDataset:
    """
    Union date axis with one price column per instrument.

    Each column has one entry per axis date: the recorded price, or None
    where the instrument has no observation.
    """
    dates: Tuple[date, ...]
    columns: Mapping[str, Tuple[Optional[float], ...]]

    @property
    def instrument_ids(self) -> List[str]:
        return list(self.columns.keys())

    def price_column(self, instrument_id: str) -> Tuple[Optional[float], ...]:
        return self.columns[instrument_id]

    def __len__(self) -> int:
        return len(self.dates)

    def slice(self, date_range: DateRange) -> 'MergedDataset':
        """Restrict the axis to dates inside the range."""
        if date_range.is_all:
            return self

        keep = [i for i, d in enumerate(self.dates) if date_range.contains(d)]
        return MergedDataset(
            dates=tuple(self.dates[i] for i in keep),
            columns={
                k: tuple(col[i] for i in keep)
                for k, col in self.columns.items()
            },
        )

    def to_frame(self) -> pd.DataFrame:
        """Wide DataFrame indexed by date, NaN where missing."""
        frame = pd.DataFrame(
            {k: [math.nan if v is None else v for v in col] for k, col in self.columns.items()},
            index=pd.Index(self.dates, name='date'),
        )
        return frame


def align_series(series: Iterable[InstrumentSeries]) -> MergedDataset:
    """
    Merge instrument series onto the sorted union of their dates.

    No forward fill and no interpolation: a date an instrument did not
    report is None in that instrument's column.

    Args:
        series: Instrument series to merge

    Returns:
        MergedDataset covering every date of every instrument

    Raises:
        AlignmentError: If two series share an id
    """
    series = list(series)
    ids = [s.id for s in series]
    if len(ids) != len(set(ids)):
        raise AlignmentError(f"Duplicate instrument ids: {sorted(i for i in set(ids) if ids.count(i) > 1)}")

    if not series:
        return MergedDataset(dates=(), columns={})

    columns = [
        pd.Series(s.prices, index=pd.Index(s.dates), name=s.id, dtype='float64')
        for s in series
    ]
    frame = pd.concat(columns, axis=1, join='outer').sort_index()

    merged: Dict[str, Tuple[Optional[float], ...]] = {}
    for s in series:
        lookup = s.as_dict()
        # Read values back from the source series so floats are untouched
        merged[s.id] = tuple(lookup.get(d) for d in frame.index)

    dates = tuple(frame.index)
    logger.debug(f"Aligned {len(series)} series onto {len(dates)} dates")
    return MergedDataset(dates=dates, columns=merged)


def overlap_count(dataset: MergedDataset, ids: Optional[Sequence[str]] = None) -> int:
    """Number of axis dates where at least two of the instruments have a price."""
    ids = list(ids) if ids is not None else dataset.instrument_ids
    count = 0
    for i in range(len(dataset.dates)):
        present = sum(1 for k in ids if dataset.columns[k][i] is not None)
        if present >= 2:
            count += 1
    return count


def require_overlap(dataset: MergedDataset, ids: Optional[Sequence[str]] = None) -> None:
    """
    Check that the instruments share at least one date.

    Raises:
        EmptyIntersectionError: If no date has data for two or more instruments
    """
    ids = list(ids) if ids is not None else dataset.instrument_ids
    if len(ids) < 2:
        return

    if overlap_count(dataset, ids) == 0:
        raise EmptyIntersectionError(
            f"No date has data for at least two of {ids}"
        )

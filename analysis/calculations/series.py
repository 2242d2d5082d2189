"""
Canonical per-instrument time series and the immutable store that holds them.
Series are replaced wholesale, never patched.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, Iterator, List, Mapping, Tuple


class SeriesError(ValueError):
    """Raised when a series violates its date/price invariants."""
    pass


@dataclass(frozen=True)
class InstrumentSeries:
    """
    Ordered (date, price) observations for one instrument.

    Dates are strictly increasing with no duplicates. Prices are stored
    exactly as ingested.
    """
    id: str
    dates: Tuple[date, ...]
    prices: Tuple[float, ...]

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise SeriesError("series id must be non-empty string")

        # Accept lists from callers but store tuples
        object.__setattr__(self, 'dates', tuple(self.dates))
        object.__setattr__(self, 'prices', tuple(float(p) for p in self.prices))

        if len(self.dates) != len(self.prices):
            raise SeriesError(
                f"{self.id}: dates and prices must have same length "
                f"({len(self.dates)} != {len(self.prices)})"
            )

        for i in range(1, len(self.dates)):
            if self.dates[i] <= self.dates[i - 1]:
                raise SeriesError(
                    f"{self.id}: dates must be strictly increasing, "
                    f"{self.dates[i]} follows {self.dates[i - 1]}"
                )

    @classmethod
    def from_pairs(cls, series_id: str, pairs: Iterable[Tuple[date, float]]) -> 'InstrumentSeries':
        """Build a series from already ordered (date, price) pairs."""
        pairs = list(pairs)
        return cls(
            id=series_id,
            dates=tuple(d for d, _ in pairs),
            prices=tuple(p for _, p in pairs),
        )

    def __len__(self) -> int:
        return len(self.dates)

    @property
    def start_date(self):
        return self.dates[0] if self.dates else None

    @property
    def end_date(self):
        return self.dates[-1] if self.dates else None

    def as_dict(self) -> Dict[date, float]:
        return dict(zip(self.dates, self.prices))


@dataclass(frozen=True)
class SeriesStore:
    """Immutable id -> InstrumentSeries mapping. Mutators return a new store."""
    _series: Mapping[str, InstrumentSeries] = field(default_factory=dict)

    @classmethod
    def from_series(cls, series: Iterable[InstrumentSeries]) -> 'SeriesStore':
        store = cls()
        for s in series:
            store = store.replace(s)
        return store

    def replace(self, series: InstrumentSeries) -> 'SeriesStore':
        """Add a series, or replace the one with the same id."""
        updated = dict(self._series)
        updated[series.id] = series
        return SeriesStore(updated)

    def remove(self, series_id: str) -> 'SeriesStore':
        if series_id not in self._series:
            raise KeyError(series_id)
        updated = {k: v for k, v in self._series.items() if k != series_id}
        return SeriesStore(updated)

    def get(self, series_id: str) -> InstrumentSeries:
        return self._series[series_id]

    @property
    def ids(self) -> List[str]:
        return list(self._series.keys())

    def __contains__(self, series_id: object) -> bool:
        return series_id in self._series

    def __iter__(self) -> Iterator[InstrumentSeries]:
        return iter(self._series.values())

    def __len__(self) -> int:
        return len(self._series)

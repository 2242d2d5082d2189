"""
Normalizers for transforming input rows to canonical instrument series.
Pure functions - no IO, network, or side effects.
Minimal normalization - only when necessary.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from analysis.calculations.series import InstrumentSeries, SeriesStore
from ingestion.transforms.validators import (
    MalformedRow,
    check_series_date_monotonicity,
    validate_series_row,
)


logger = logging.getLogger(__name__)


@dataclass
class NormalizationResult:
    """Series built from raw rows, plus what was dropped along the way."""
    series: InstrumentSeries
    dropped_rows: List[MalformedRow] = field(default_factory=list)
    duplicate_dates: int = 0

    @property
    def rows_kept(self) -> int:
        return len(self.series)


def returns_to_prices(values: Iterable[float], base: float = 1.0) -> List[float]:
    """
    Compound simple returns into a price index.

    Formula: P_t = base × Π(1 + r_i), i <= t
    """
    prices = []
    level = base
    for r in values:
        level = level * (1 + r)
        prices.append(level)
    return prices


def normalize_series_rows(
    raw_rows: Iterable[Any],
    *,
    instrument_id: str,
    value_kind: str = 'price'
) -> NormalizationResult:
    """
    Transform raw (date, value) rows to a canonical InstrumentSeries.

    Minimal normalization:
    - Date values to date objects
    - Malformed rows dropped (bad date or non-numeric value)
    - Deduplication by date (keep last to handle corrections)
    - Sort by date
    - Return rows compounded to a price index when value_kind='return'

    Args:
        raw_rows: (date, value) pairs or mappings with date/value keys
        instrument_id: Instrument id for the series
        value_kind: 'price' or 'return'

    Returns:
        NormalizationResult with the series and dropped rows
    """
    by_date: Dict[date, float] = {}
    dropped: List[MalformedRow] = []
    duplicates = 0

    for raw in raw_rows:
        try:
            row_date, value = validate_series_row(raw, value_kind)
        except MalformedRow as e:
            dropped.append(e)
            continue

        if row_date in by_date:
            duplicates += 1
        by_date[row_date] = value

    if dropped:
        logger.warning(
            f"{instrument_id}: dropped {len(dropped)} malformed row(s), first: {dropped[0]}"
        )
    if duplicates:
        logger.info(f"{instrument_id}: {duplicates} duplicate date(s), kept last value")

    dates = sorted(by_date)
    check_series_date_monotonicity(dates, instrument_id)
    values = [by_date[d] for d in dates]

    if value_kind == 'return':
        values = returns_to_prices(values)

    return NormalizationResult(
        series=InstrumentSeries(id=instrument_id, dates=tuple(dates), prices=tuple(values)),
        dropped_rows=dropped,
        duplicate_dates=duplicates,
    )


def normalize_inputs(
    raw_inputs: Mapping[str, Iterable[Any]],
    value_kinds: Optional[Mapping[str, str]] = None
) -> Tuple[SeriesStore, Dict[str, NormalizationResult]]:
    """
    Normalize every instrument in an input mapping.

    Instruments left with no usable rows are reported but not stored.

    Args:
        raw_inputs: Instrument id -> raw rows
        value_kinds: Optional instrument id -> 'price' | 'return' (default 'price')

    Returns:
        Tuple of (SeriesStore, per-instrument NormalizationResult)
    """
    value_kinds = value_kinds or {}
    store = SeriesStore()
    results: Dict[str, NormalizationResult] = {}

    for instrument_id, rows in raw_inputs.items():
        result = normalize_series_rows(
            rows,
            instrument_id=instrument_id,
            value_kind=value_kinds.get(instrument_id, 'price'),
        )
        results[instrument_id] = result

        if result.rows_kept == 0:
            logger.warning(f"{instrument_id}: no usable rows, series not loaded")
            continue

        store = store.replace(result.series)

    logger.info(f"Normalized {len(store)} of {len(raw_inputs)} input series")
    return store, results

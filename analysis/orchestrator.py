"""
Recompute orchestrator - series store to stats and correlation pipeline.
Holds the date range and combo definition; every change runs the full
pipeline and yields a new immutable snapshot.

Pipeline order (fixed):
1. Align series and slice to the date range
2. Detect periodicity of the sliced axis
3. Constituent returns
4. Combo returns (when a combo is enabled)
5. StatsRecord per series
6. Correlation matrix
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from analysis.calculations.alignment import (
    ALL,
    DateRange,
    EmptyIntersectionError,
    MergedDataset,
    align_series,
    require_overlap,
)
from analysis.calculations.combo import ComboDefinition, ComboError, synthesize_combo
from analysis.calculations.correlation import CorrelationMatrix, correlation_matrix
from analysis.calculations.periodicity import frequency_label, infer_periods_per_year
from analysis.calculations.returns import (
    NonPositivePriceError,
    ReturnSeries,
    compute_returns,
    equity_curve,
)
from analysis.calculations.series import InstrumentSeries, SeriesStore
from analysis.calculations.statistics import StatsRecord, compute_stats
from analysis.settings import AnalysisConfig, EngineSettings


logger = logging.getLogger(__name__)

COMBO_ERROR_KEY = 'combo'
CORRELATION_ERROR_KEY = 'correlation'
SERIES_ERROR_PREFIX = 'series:'


class InvalidTransitionError(Exception):
    """Raised when a transition is not allowed from the current state."""
    pass


class EngineState(Enum):
    """Orchestrator states."""
    EMPTY = "empty"
    LOADED = "loaded"
    FILTERED = "filtered"


@dataclass(frozen=True)
class AnalysisSnapshot:
    """Result of one full recompute. Never modified after creation."""
    state: EngineState
    store: SeriesStore
    config: AnalysisConfig
    settings: EngineSettings
    dataset: MergedDataset
    periods_per_year: int
    returns: Mapping[str, ReturnSeries] = field(default_factory=dict)
    combo: Optional[ReturnSeries] = None
    stats: Mapping[str, StatsRecord] = field(default_factory=dict)
    correlation: Optional[CorrelationMatrix] = None
    errors: Mapping[str, str] = field(default_factory=dict)
    computed_at: Optional[datetime] = None

    def all_returns(self) -> List[ReturnSeries]:
        """Constituent return series followed by the combo, if any."""
        series = list(self.returns.values())
        if self.combo is not None:
            series.append(self.combo)
        return series

    def equity(self, series_id: str):
        for r in self.all_returns():
            if r.id == series_id:
                return equity_curve(r)
        raise KeyError(series_id)

    def summary(self) -> Dict[str, Any]:
        """Compact description of the snapshot for logs and callers."""
        return {
            'state': self.state.value,
            'series': len(self.store),
            'dates': len(self.dataset),
            'start_date': self.dataset.dates[0].isoformat() if self.dataset.dates else None,
            'end_date': self.dataset.dates[-1].isoformat() if self.dataset.dates else None,
            'periods_per_year': self.periods_per_year,
            'frequency': frequency_label(self.periods_per_year),
            'combo': self.combo.id if self.combo is not None else None,
            'metrics_calculated': _count_calculated_metrics(self.stats),
            'errors': dict(self.errors),
        }


def _count_calculated_metrics(stats: Mapping[str, StatsRecord]) -> int:
    """Count metrics that are defined (not None) across all records."""
    return sum(
        1
        for record in stats.values()
        for value in record.metrics().values()
        if value is not None
    )


def _state_for(store: SeriesStore, config: AnalysisConfig) -> EngineState:
    if len(store) == 0:
        return EngineState.EMPTY
    if not config.date_range.is_all:
        return EngineState.FILTERED
    return EngineState.LOADED


def recompute(
    store: SeriesStore,
    config: AnalysisConfig,
    settings: Optional[EngineSettings] = None
) -> AnalysisSnapshot:
    """
    Run the full pipeline for a store and config.

    Dataset-level failures (no overlap, no active combo weight, a series
    with no positive price) abort only the affected computation and are
    recorded in `errors`.

    Args:
        store: Raw instrument series
        config: Date range, combo definition and risk-free rate
        settings: Engine defaults

    Returns:
        New AnalysisSnapshot
    """
    if settings is None:
        settings = EngineSettings.from_env()

    state = _state_for(store, config)
    errors: Dict[str, str] = {}

    # 1. Align and slice
    dataset = align_series(store).slice(config.date_range)

    # 2. Periodicity of the window
    periods_per_year = infer_periods_per_year(dataset.dates)

    # 3. Constituent returns
    returns: Dict[str, ReturnSeries] = {}
    for instrument_id in dataset.instrument_ids:
        try:
            returns[instrument_id] = compute_returns(
                instrument_id, dataset.dates, dataset.price_column(instrument_id)
            )
        except NonPositivePriceError as e:
            logger.warning(f"Returns skipped for {instrument_id}: {e}")
            errors[f'{SERIES_ERROR_PREFIX}{instrument_id}'] = f"NonPositivePriceError: {e}"

    # 4. Combo
    combo = None
    if config.combo.enabled:
        try:
            if config.combo.combo_id in store:
                raise ComboError(f"Combo id {config.combo.combo_id} clashes with an instrument id")
            members = [k for k in config.combo.active_weights() if k in returns]
            require_overlap(dataset, members)
            combo = synthesize_combo(config.combo, returns)
        except (ComboError, EmptyIntersectionError) as e:
            logger.warning(f"Combo {config.combo.combo_id} not synthesized: {e}")
            errors[COMBO_ERROR_KEY] = f"{type(e).__name__}: {e}"

    # 5. Stats
    all_returns = list(returns.values()) + ([combo] if combo is not None else [])
    stats = {
        r.id: compute_stats(r, periods_per_year, config.risk_free_rate)
        for r in all_returns
    }

    # 6. Correlation
    correlation = None
    if len(all_returns) >= 2:
        try:
            require_overlap(dataset, list(returns.keys()))
            correlation = correlation_matrix(
                all_returns, min_overlap=settings.min_correlation_overlap
            )
        except EmptyIntersectionError as e:
            logger.warning(f"Correlation not computed: {e}")
            errors[CORRELATION_ERROR_KEY] = f"EmptyIntersectionError: {e}"

    snapshot = AnalysisSnapshot(
        state=state,
        store=store,
        config=config,
        settings=settings,
        dataset=dataset,
        periods_per_year=periods_per_year,
        returns=returns,
        combo=combo,
        stats=stats,
        correlation=correlation,
        errors=errors,
        computed_at=datetime.now(),
    )

    logger.info(
        f"Recomputed {len(stats)} series over {len(dataset)} dates "
        f"({frequency_label(periods_per_year)}), state={state.value}, errors={len(errors)}"
    )
    return snapshot


def empty_snapshot(settings: Optional[EngineSettings] = None) -> AnalysisSnapshot:
    """Snapshot with no series loaded."""
    if settings is None:
        settings = EngineSettings.from_env()
    config = AnalysisConfig(risk_free_rate=settings.risk_free_rate)
    return recompute(SeriesStore(), config, settings)


def _rerun(snapshot: AnalysisSnapshot, store: SeriesStore, config: AnalysisConfig) -> AnalysisSnapshot:
    return recompute(store, config, snapshot.settings)


def load_series(snapshot: AnalysisSnapshot, series: Iterable[InstrumentSeries]) -> AnalysisSnapshot:
    """Add or replace series wholesale. Resets the date range to all."""
    store = snapshot.store
    for s in series:
        store = store.replace(s)
    config = replace(snapshot.config, date_range=ALL)
    return _rerun(snapshot, store, config)


def replace_series(snapshot: AnalysisSnapshot, series: InstrumentSeries) -> AnalysisSnapshot:
    return load_series(snapshot, [series])


def remove_series(snapshot: AnalysisSnapshot, series_id: str) -> AnalysisSnapshot:
    """Drop one series. Resets the date range to all."""
    store = snapshot.store.remove(series_id)
    config = replace(snapshot.config, date_range=ALL)
    return _rerun(snapshot, store, config)


def set_date_range(snapshot: AnalysisSnapshot, date_range: DateRange) -> AnalysisSnapshot:
    """Restrict every computation to a window."""
    if snapshot.state == EngineState.EMPTY:
        raise InvalidTransitionError("Cannot set a date range with no series loaded")
    config = replace(snapshot.config, date_range=date_range)
    return _rerun(snapshot, snapshot.store, config)


def clear_date_range(snapshot: AnalysisSnapshot) -> AnalysisSnapshot:
    config = replace(snapshot.config, date_range=ALL)
    return _rerun(snapshot, snapshot.store, config)


def set_combo(snapshot: AnalysisSnapshot, combo: ComboDefinition) -> AnalysisSnapshot:
    config = replace(snapshot.config, combo=combo)
    return _rerun(snapshot, snapshot.store, config)


def set_combo_weight(snapshot: AnalysisSnapshot, instrument_id: str, weight: float) -> AnalysisSnapshot:
    return set_combo(snapshot, snapshot.config.combo.with_weight(instrument_id, weight))


def toggle_constituent(snapshot: AnalysisSnapshot, instrument_id: str) -> AnalysisSnapshot:
    return set_combo(snapshot, snapshot.config.combo.toggled(instrument_id))


def set_risk_free_rate(snapshot: AnalysisSnapshot, risk_free_rate: float) -> AnalysisSnapshot:
    config = replace(snapshot.config, risk_free_rate=float(risk_free_rate))
    return _rerun(snapshot, snapshot.store, config)


def apply_config(snapshot: AnalysisSnapshot, config: AnalysisConfig) -> AnalysisSnapshot:
    """Replace the whole analysis config at once."""
    if snapshot.state == EngineState.EMPTY and not config.date_range.is_all:
        raise InvalidTransitionError("Cannot set a date range with no series loaded")
    return _rerun(snapshot, snapshot.store, config)


class Orchestrator:
    """
    Owner of the current snapshot for an interactive caller.

    Each method performs one transition and returns the new snapshot.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self._snapshot = empty_snapshot(settings)

    @property
    def snapshot(self) -> AnalysisSnapshot:
        return self._snapshot

    @property
    def state(self) -> EngineState:
        return self._snapshot.state

    def _advance(self, snapshot: AnalysisSnapshot) -> AnalysisSnapshot:
        self._snapshot = snapshot
        return snapshot

    def load(self, series: Iterable[InstrumentSeries]) -> AnalysisSnapshot:
        return self._advance(load_series(self._snapshot, series))

    def replace(self, series: InstrumentSeries) -> AnalysisSnapshot:
        return self._advance(replace_series(self._snapshot, series))

    def remove(self, series_id: str) -> AnalysisSnapshot:
        return self._advance(remove_series(self._snapshot, series_id))

    def set_date_range(self, date_range: DateRange) -> AnalysisSnapshot:
        return self._advance(set_date_range(self._snapshot, date_range))

    def clear_date_range(self) -> AnalysisSnapshot:
        return self._advance(clear_date_range(self._snapshot))

    def set_combo(self, combo: ComboDefinition) -> AnalysisSnapshot:
        return self._advance(set_combo(self._snapshot, combo))

    def set_combo_weight(self, instrument_id: str, weight: float) -> AnalysisSnapshot:
        return self._advance(set_combo_weight(self._snapshot, instrument_id, weight))

    def toggle_constituent(self, instrument_id: str) -> AnalysisSnapshot:
        return self._advance(toggle_constituent(self._snapshot, instrument_id))

    def set_risk_free_rate(self, risk_free_rate: float) -> AnalysisSnapshot:
        return self._advance(set_risk_free_rate(self._snapshot, risk_free_rate))

    def apply_config(self, config: AnalysisConfig) -> AnalysisSnapshot:
        return self._advance(apply_config(self._snapshot, config))

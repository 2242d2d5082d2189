"""
Export tables - returns/equity, stats and correlation as DataFrames and CSV.
Missing values serialize as empty fields; numbers in plain decimal notation.
CSV files are written temp-write → fsync → rename so readers never see a partial file.
"""

import logging
import math
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from analysis.calculations.returns import equity_curve
from analysis.calculations.statistics import METRIC_FIELDS
from analysis.orchestrator import AnalysisSnapshot


logger = logging.getLogger(__name__)


class ExportError(Exception):
    """Raised when a table cannot be built or written."""
    pass


def _nan_if_none(values) -> List[float]:
    return [math.nan if v is None else v for v in values]


def returns_table(snapshot: AnalysisSnapshot) -> pd.DataFrame:
    """
    One row per date: simple return, log return and equity per series.

    Columns: date, then <id>_simple, <id>_log, <id>_equity for each
    instrument and the combo. The first date carries no returns.
    """
    table = pd.DataFrame({'date': list(snapshot.dataset.dates)})
    lead = [math.nan] if len(table) else []

    for r in snapshot.all_returns():
        table[f'{r.id}_simple'] = lead + _nan_if_none(r.simple)
        table[f'{r.id}_log'] = lead + _nan_if_none(r.log)
        table[f'{r.id}_equity'] = _nan_if_none(equity_curve(r))

    return table


def stats_table(snapshot: AnalysisSnapshot) -> pd.DataFrame:
    """One row per series with every metric; NaN where undefined."""
    rows = []
    for series_id, record in snapshot.stats.items():
        row: Dict[str, Any] = {
            'series': series_id,
            'start_date': record.start_date,
            'end_date': record.end_date,
            'observations': record.observations,
            'periods_per_year': record.periods_per_year,
        }
        for name, value in record.metrics().items():
            row[name] = math.nan if value is None else value
        rows.append(row)

    columns = ['series', 'start_date', 'end_date', 'observations', 'periods_per_year'] + METRIC_FIELDS
    return pd.DataFrame(rows, columns=columns)


def correlation_table(snapshot: AnalysisSnapshot, negative_only: bool = False) -> pd.DataFrame:
    """
    Correlation matrix as a square table, or with `negative_only` the list
    of pairs whose correlation is below zero.
    """
    if snapshot.correlation is None:
        if negative_only:
            return pd.DataFrame(columns=['series_a', 'series_b', 'correlation'])
        return pd.DataFrame()

    if negative_only:
        return pd.DataFrame(
            snapshot.correlation.negative_pairs(),
            columns=['series_a', 'series_b', 'correlation']
        )
    return snapshot.correlation.to_frame()


def table_to_csv(
    table: pd.DataFrame,
    float_format: str = '%.12f',
    index: bool = False
) -> str:
    """Render a table as CSV text with one header row."""
    return table.to_csv(
        index=index,
        float_format=float_format,
        na_rep='',
        lineterminator='\n'
    )


def write_table_csv(
    table: pd.DataFrame,
    output_path: Path,
    float_format: Optional[str] = None,
    index: bool = False
) -> Dict[str, Any]:
    """
    Write a table to CSV atomically.

    Args:
        table: DataFrame to write
        output_path: Final path of the CSV file
        float_format: printf-style decimal format (default '%.12f')
        index: Write the DataFrame index as the first column

    Returns:
        Dictionary with write results
    """
    start_time = time.time()
    output_path = Path(output_path)
    content = table_to_csv(table, float_format or '%.12f', index=index)

    temp_path = None
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)

        temp_fd, temp_path_str = tempfile.mkstemp(
            suffix='.tmp',
            prefix=f'{output_path.stem}_',
            dir=output_path.parent
        )
        temp_path = Path(temp_path_str)

        with os.fdopen(temp_fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.replace(temp_path, output_path)
        temp_path = None

    except OSError as e:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink()
        logger.error(f"Failed to write {output_path}: {e}")
        return {
            'status': 'failed',
            'output_path': None,
            'error_message': str(e),
            'duration_seconds': time.time() - start_time
        }

    logger.info(f"Wrote {len(table)} rows to {output_path}")
    return {
        'status': 'completed',
        'output_path': str(output_path),
        'rows_written': len(table),
        'bytes_written': len(content.encode('utf-8')),
        'duration_seconds': time.time() - start_time
    }


def export_snapshot(snapshot: AnalysisSnapshot, output_dir: Path) -> Dict[str, Any]:
    """
    Write returns, stats and correlation CSVs for a snapshot.

    Returns:
        Per-table write results plus an overall status

    Raises:
        ExportError: If the snapshot has no series
    """
    if not snapshot.stats:
        raise ExportError("Nothing to export: no series in snapshot")

    output_dir = Path(output_dir)
    float_format = snapshot.settings.export_float_format

    results = {
        'returns': write_table_csv(returns_table(snapshot), output_dir / 'returns.csv', float_format),
        'stats': write_table_csv(stats_table(snapshot), output_dir / 'stats.csv', float_format),
    }
    if snapshot.correlation is not None:
        results['correlation'] = write_table_csv(
            correlation_table(snapshot), output_dir / 'correlation.csv', float_format, index=True
        )

    failed = [name for name, r in results.items() if r['status'] != 'completed']
    return {
        'status': 'failed' if failed else 'completed',
        'failed_tables': failed,
        'results': results
    }

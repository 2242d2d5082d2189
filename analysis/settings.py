"""
Engine settings and analysis configuration.
Environment defaults via .env, per-analysis config via dict or YAML.
"""

import logging
import math
import os
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from analysis.calculations.alignment import ALL, DateRange
from analysis.calculations.combo import DEFAULT_COMBO_ID, ComboDefinition, ComboError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class SettingsError(Exception):
    """Raised when settings or analysis config are invalid."""
    pass


@dataclass(frozen=True)
class EngineSettings:
    """Process-wide defaults for the analysis engine."""
    risk_free_rate: float = 0.0
    combo_id: str = DEFAULT_COMBO_ID
    min_correlation_overlap: int = 2
    export_float_format: str = '%.12f'

    def __post_init__(self):
        """Validate settings."""
        if not math.isfinite(self.risk_free_rate):
            raise SettingsError(f"risk_free_rate must be finite, got {self.risk_free_rate}")

        if not self.combo_id or not isinstance(self.combo_id, str):
            raise SettingsError("combo_id must be non-empty string")

        if self.min_correlation_overlap < 2:
            raise SettingsError("min_correlation_overlap must be >= 2")

        if not self.export_float_format.startswith('%') or 'f' not in self.export_float_format:
            raise SettingsError(
                f"export_float_format must be a decimal %-format, got {self.export_float_format!r}"
            )

    @classmethod
    def from_env(cls) -> 'EngineSettings':
        """Read settings from ANALYSIS_* environment variables."""
        try:
            return cls(
                risk_free_rate=float(os.getenv('ANALYSIS_RISK_FREE_RATE', '0.0')),
                combo_id=os.getenv('ANALYSIS_COMBO_ID', DEFAULT_COMBO_ID),
                min_correlation_overlap=int(os.getenv('ANALYSIS_MIN_CORRELATION_OVERLAP', '2')),
                export_float_format=os.getenv('ANALYSIS_EXPORT_FLOAT_FORMAT', '%.12f'),
            )
        except ValueError as e:
            raise SettingsError(f"Invalid analysis environment settings: {e}")


def _coerce_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise SettingsError(f"Invalid date: {value!r}")
    raise SettingsError(f"Invalid date type: {type(value)}")


def parse_date_range(value: Any) -> DateRange:
    """Accept "all", None, or a mapping with optional start/end."""
    if value is None or (isinstance(value, str) and value.strip().lower() == 'all'):
        return ALL

    if not isinstance(value, dict):
        raise SettingsError(f"dateRange must be 'all' or a start/end mapping, got {value!r}")

    try:
        return DateRange(start=_coerce_date(value.get('start')), end=_coerce_date(value.get('end')))
    except ValueError as e:
        raise SettingsError(f"Invalid dateRange: {e}")


@dataclass(frozen=True)
class AnalysisConfig:
    """Caller-owned analysis inputs: window, combo and risk-free rate."""
    date_range: DateRange = ALL
    combo: ComboDefinition = field(default_factory=ComboDefinition)
    risk_free_rate: float = 0.0

    @classmethod
    def from_dict(
        cls,
        config: Dict[str, Any],
        settings: Optional[EngineSettings] = None
    ) -> 'AnalysisConfig':
        """
        Build config from the external mapping:
        {dateRange, comboWeights, comboEnabled, riskFreeRate}.

        Missing keys fall back to `settings` (or the environment).
        """
        if settings is None:
            settings = EngineSettings.from_env()

        weights = config.get('comboWeights') or {}
        if not isinstance(weights, dict):
            raise SettingsError("comboWeights must be a mapping of id to weight")

        enabled = config.get('comboEnabled')
        if enabled is None:
            enabled = []
        if isinstance(enabled, str) or not hasattr(enabled, '__iter__'):
            raise SettingsError("comboEnabled must be a list of ids")

        try:
            combo = ComboDefinition(
                weights={str(k): float(v) for k, v in weights.items()},
                enabled=frozenset(str(k) for k in enabled),
                combo_id=config.get('comboId', settings.combo_id),
            )
            risk_free_rate = float(config.get('riskFreeRate', settings.risk_free_rate))
        except (TypeError, ValueError, ComboError) as e:
            raise SettingsError(f"Invalid analysis config: {e}")

        if not math.isfinite(risk_free_rate):
            raise SettingsError(f"riskFreeRate must be finite, got {risk_free_rate}")

        return cls(
            date_range=parse_date_range(config.get('dateRange', 'all')),
            combo=combo,
            risk_free_rate=risk_free_rate,
        )


def load_analysis_config(
    config_path: Optional[str] = None,
    settings: Optional[EngineSettings] = None
) -> AnalysisConfig:
    """
    Load analysis configuration from a YAML file.

    Args:
        config_path: Path to the YAML file (defaults to ANALYSIS_CONFIG_PATH)
        settings: Fallback defaults

    Returns:
        AnalysisConfig

    Raises:
        SettingsError: If the file is missing or invalid
    """
    if config_path is None:
        config_path = os.getenv('ANALYSIS_CONFIG_PATH', './config/analysis.yml')

    config_file = Path(config_path)
    if not config_file.exists():
        raise SettingsError(f"Analysis config file not found: {config_path}")

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise SettingsError(f"Failed to load analysis config: {e}")

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise SettingsError("Analysis config must be a mapping")

    logger.info(f"Loaded analysis config from {config_path}")
    return AnalysisConfig.from_dict(raw, settings=settings)

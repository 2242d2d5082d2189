"""
Tests for engine settings and analysis config loading.
"""

import pytest
import os
import math
from datetime import date
from unittest.mock import patch

import yaml

from analysis.calculations.alignment import ALL
from analysis.settings import (
    EngineSettings,
    AnalysisConfig,
    SettingsError,
    parse_date_range,
    load_analysis_config
)


class TestEngineSettings:
    """Test EngineSettings defaults, validation and environment loading."""

    def test_defaults(self):
        settings = EngineSettings()

        assert settings.risk_free_rate == 0.0
        assert settings.combo_id == 'COMBO'
        assert settings.min_correlation_overlap == 2
        assert settings.export_float_format == '%.12f'

    def test_settings_are_read_only(self):
        settings = EngineSettings()

        with pytest.raises(AttributeError):
            settings.risk_free_rate = 0.05

    @patch.dict(os.environ, {
        'ANALYSIS_RISK_FREE_RATE': '0.03',
        'ANALYSIS_COMBO_ID': 'PORTFOLIO',
        'ANALYSIS_MIN_CORRELATION_OVERLAP': '5',
        'ANALYSIS_EXPORT_FLOAT_FORMAT': '%.8f'
    })
    def test_from_env(self):
        settings = EngineSettings.from_env()

        assert settings.risk_free_rate == 0.03
        assert settings.combo_id == 'PORTFOLIO'
        assert settings.min_correlation_overlap == 5
        assert settings.export_float_format == '%.8f'

    @patch.dict(os.environ, {'ANALYSIS_RISK_FREE_RATE': 'abc'})
    def test_from_env_invalid_number(self):
        with pytest.raises(SettingsError, match="Invalid analysis environment"):
            EngineSettings.from_env()

    def test_validation(self):
        with pytest.raises(SettingsError):
            EngineSettings(risk_free_rate=math.inf)
        with pytest.raises(SettingsError):
            EngineSettings(combo_id='')
        with pytest.raises(SettingsError):
            EngineSettings(min_correlation_overlap=1)
        with pytest.raises(SettingsError):
            EngineSettings(export_float_format='%.3e')


class TestAnalysisConfig:
    """Test AnalysisConfig.from_dict parsing."""

    def test_full_mapping(self):
        config = AnalysisConfig.from_dict({
            'dateRange': {'start': '2024-01-01', 'end': '2024-06-30'},
            'comboWeights': {'SPY': 0.6, 'AGG': 0.4},
            'comboEnabled': ['SPY', 'AGG'],
            'riskFreeRate': 0.02,
        }, settings=EngineSettings())

        assert config.date_range.start == date(2024, 1, 1)
        assert config.date_range.end == date(2024, 6, 30)
        assert config.combo.weights == {'SPY': 0.6, 'AGG': 0.4}
        assert config.combo.enabled == frozenset({'SPY', 'AGG'})
        assert config.risk_free_rate == 0.02

    def test_defaults_from_settings(self):
        settings = EngineSettings(risk_free_rate=0.01, combo_id='MIX')

        config = AnalysisConfig.from_dict({}, settings=settings)

        assert config.date_range == ALL
        assert config.combo.combo_id == 'MIX'
        assert config.combo.enabled == frozenset()
        assert config.risk_free_rate == 0.01

    def test_invalid_weights(self):
        with pytest.raises(SettingsError):
            AnalysisConfig.from_dict({'comboWeights': ['SPY']}, settings=EngineSettings())
        with pytest.raises(SettingsError):
            AnalysisConfig.from_dict({'comboWeights': {'SPY': 'heavy'}}, settings=EngineSettings())
        with pytest.raises(SettingsError):
            AnalysisConfig.from_dict({'comboWeights': {'SPY': float('nan')}}, settings=EngineSettings())

    def test_enabled_must_be_list(self):
        with pytest.raises(SettingsError, match="comboEnabled"):
            AnalysisConfig.from_dict({'comboEnabled': 'SPY'}, settings=EngineSettings())

    def test_non_finite_risk_free_rate(self):
        with pytest.raises(SettingsError, match="riskFreeRate"):
            AnalysisConfig.from_dict({'riskFreeRate': 'inf'}, settings=EngineSettings())


class TestParseDateRange:
    """Test parse_date_range function."""

    def test_all_variants(self):
        assert parse_date_range(None) == ALL
        assert parse_date_range('all') == ALL
        assert parse_date_range(' ALL ') == ALL

    def test_open_ended(self):
        date_range = parse_date_range({'start': date(2024, 3, 1)})

        assert date_range.start == date(2024, 3, 1)
        assert date_range.end is None

    def test_inverted_bounds(self):
        with pytest.raises(SettingsError, match="Invalid dateRange"):
            parse_date_range({'start': '2024-06-01', 'end': '2024-01-01'})

    def test_bad_values(self):
        with pytest.raises(SettingsError):
            parse_date_range({'start': 'yesterday'})
        with pytest.raises(SettingsError):
            parse_date_range('last-month')


class TestLoadAnalysisConfig:
    """Test YAML config loading."""

    def test_load_valid_config(self, tmp_path):
        config_path = tmp_path / 'analysis.yml'
        config_path.write_text(yaml.dump({
            'dateRange': {'start': '2024-01-01'},
            'comboWeights': {'A': 1, 'B': 2},
            'comboEnabled': ['A'],
        }))

        config = load_analysis_config(str(config_path), settings=EngineSettings())

        assert config.date_range.start == date(2024, 1, 1)
        assert config.combo.active_weights() == {'A': 1.0}

    def test_yaml_dates_accepted(self, tmp_path):
        """Unquoted YAML dates load as date objects."""
        config_path = tmp_path / 'analysis.yml'
        config_path.write_text("dateRange:\n  start: 2024-01-01\n  end: 2024-02-01\n")

        config = load_analysis_config(str(config_path), settings=EngineSettings())

        assert config.date_range.end == date(2024, 2, 1)

    def test_empty_file(self, tmp_path):
        config_path = tmp_path / 'analysis.yml'
        config_path.write_text('')

        config = load_analysis_config(str(config_path), settings=EngineSettings())

        assert config.date_range == ALL

    def test_load_missing_file(self):
        with pytest.raises(SettingsError) as exc_info:
            load_analysis_config('/nonexistent/path.yml', settings=EngineSettings())

        assert "not found" in str(exc_info.value)

    def test_load_invalid_yaml(self, tmp_path):
        config_path = tmp_path / 'analysis.yml'
        config_path.write_text("invalid: yaml: content: [unclosed")

        with pytest.raises(SettingsError, match="Failed to load"):
            load_analysis_config(str(config_path), settings=EngineSettings())

    def test_non_mapping(self, tmp_path):
        config_path = tmp_path / 'analysis.yml'
        config_path.write_text("- a\n- b\n")

        with pytest.raises(SettingsError, match="mapping"):
            load_analysis_config(str(config_path), settings=EngineSettings())

    def test_path_from_env(self, tmp_path):
        config_path = tmp_path / 'env.yml'
        config_path.write_text("riskFreeRate: 0.04\n")

        with patch.dict(os.environ, {'ANALYSIS_CONFIG_PATH': str(config_path)}):
            config = load_analysis_config(settings=EngineSettings())

        assert config.risk_free_rate == 0.04

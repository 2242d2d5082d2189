"""
Tests for core validators - pure functions for row validation.
"""

import pytest
import math
import numpy as np
import pandas as pd
from datetime import date, datetime

from ingestion.transforms.validators import (
    validate_series_row,
    parse_row_date,
    parse_row_value,
    check_series_date_monotonicity,
    MalformedRow,
    ValidationError
)


class TestParseRowDate:
    """Tests for parse_row_date function."""

    def test_date_passthrough(self):
        assert parse_row_date(date(2024, 1, 31)) == date(2024, 1, 31)

    def test_datetime_truncated_to_date(self):
        assert parse_row_date(datetime(2024, 1, 31, 16, 0)) == date(2024, 1, 31)

    def test_pandas_timestamp(self):
        assert parse_row_date(pd.Timestamp('2024-02-29')) == date(2024, 2, 29)

    def test_iso_string(self):
        assert parse_row_date('2024-03-15') == date(2024, 3, 15)
        assert parse_row_date(' 2024-03-15T00:00:00 ') == date(2024, 3, 15)

    def test_bad_string(self):
        with pytest.raises(ValidationError, match="ISO"):
            parse_row_date('15/03/2024')

    def test_bad_type(self):
        with pytest.raises(ValidationError):
            parse_row_date(20240315)

    def test_missing_dates_rejected(self):
        """NaT and None are missing dates, not dates."""
        with pytest.raises(ValidationError, match="missing"):
            parse_row_date(pd.NaT)
        with pytest.raises(ValidationError, match="missing"):
            parse_row_date(None)



class TestParseRowValue:
    """Tests for parse_row_value function."""

    def test_numeric_types(self):
        assert parse_row_value(100) == 100.0
        assert parse_row_value(99.5) == 99.5
        assert parse_row_value(np.float64(1.25)) == 1.25

    def test_non_numeric(self):
        with pytest.raises(ValidationError, match="numeric"):
            parse_row_value('100.0')

        with pytest.raises(ValidationError, match="numeric"):
            parse_row_value(None)

    def test_bool_rejected(self):
        with pytest.raises(ValidationError):
            parse_row_value(True)

    def test_non_finite(self):
        with pytest.raises(ValidationError, match="finite"):
            parse_row_value(math.nan)

        with pytest.raises(ValidationError, match="finite"):
            parse_row_value(math.inf)


class TestValidateSeriesRow:
    """Tests for validate_series_row function."""

    def test_pair_row(self):
        assert validate_series_row((date(2024, 1, 31), 100.0)) == (date(2024, 1, 31), 100.0)

    def test_mapping_row(self):
        row = {'date': '2024-01-31', 'value': 101.5}
        assert validate_series_row(row) == (date(2024, 1, 31), 101.5)

    def test_mapping_row_price_key(self):
        row = {'date': date(2024, 1, 31), 'price': 50}
        assert validate_series_row(row) == (date(2024, 1, 31), 50.0)

    def test_non_positive_price_is_not_malformed(self):
        """Non-positive prices are handled by the returns calculator, not here."""
        assert validate_series_row((date(2024, 1, 31), 0.0)) == (date(2024, 1, 31), 0.0)

    def test_malformed_date(self):
        row = ('not-a-date', 100.0)
        with pytest.raises(MalformedRow) as exc_info:
            validate_series_row(row)
        assert exc_info.value.row == row

    def test_malformed_value(self):
        with pytest.raises(MalformedRow, match="numeric"):
            validate_series_row((date(2024, 1, 31), 'n/a'))

    def test_nat_date_is_malformed(self):
        row = (pd.NaT, 101.0)
        with pytest.raises(MalformedRow) as exc_info:
            validate_series_row(row)
        assert exc_info.value.row is row


    def test_malformed_is_validation_error(self):
        with pytest.raises(ValidationError):
            validate_series_row({'value': 1.0})

    def test_wrong_shape(self):
        with pytest.raises(MalformedRow):
            validate_series_row((date(2024, 1, 31), 1.0, 'extra'))

    def test_return_below_minus_one(self):
        with pytest.raises(MalformedRow, match="-1"):
            validate_series_row((date(2024, 1, 31), -1.5), value_kind='return')

    def test_unknown_value_kind(self):
        with pytest.raises(ValueError, match="value_kind"):
            validate_series_row((date(2024, 1, 31), 1.0), value_kind='volume')


class TestDateMonotonicity:
    """Tests for check_series_date_monotonicity."""

    def test_increasing_dates_pass(self):
        check_series_date_monotonicity([date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 5)])

    def test_duplicate_dates(self):
        with pytest.raises(ValidationError, match="Duplicate"):
            check_series_date_monotonicity([date(2024, 1, 1), date(2024, 1, 1)], 'AAA')

    def test_decreasing_dates(self):
        with pytest.raises(ValidationError, match="Non-monotonic"):
            check_series_date_monotonicity([date(2024, 1, 2), date(2024, 1, 1)], 'AAA')

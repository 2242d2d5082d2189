"""
Tests for returns calculation utilities.
Pure functions with deterministic synthetic data for hand verification.
"""

import pytest
import math
from datetime import date

from analysis.calculations.returns import (
    compute_returns,
    equity_curve,
    log_equity_curve,
    ReturnSeries,
    ReturnsError,
    NonPositivePriceError
)


JAN, FEB, MAR, APR = date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)


class TestComputeReturns:
    """Tests for compute_returns function."""

    def test_monthly_scenario(self):
        """Jan=100, Feb=110, Mar=99 gives +10% then -10%."""
        result = compute_returns('AAA', [JAN, FEB, MAR], [100.0, 110.0, 99.0])

        assert isinstance(result, ReturnSeries)
        assert result.return_dates == (FEB, MAR)
        assert result.simple[0] == pytest.approx(0.10)
        assert result.simple[1] == pytest.approx(-0.10)
        assert result.log[0] == pytest.approx(math.log(1.10))
        assert result.log[1] == pytest.approx(math.log(0.90))

    def test_length_is_prices_minus_one(self):
        result = compute_returns('AAA', [JAN, FEB, MAR, APR], [1.0, 2.0, 3.0, 4.0])

        assert len(result.simple) == 3
        assert len(result.log) == 3
        assert len(result.observed) == 4

    def test_missing_price_skips_transition(self):
        """A missing Mar price leaves Feb->Mar and Mar->Apr undefined, never zero."""
        result = compute_returns('BBB', [JAN, FEB, MAR, APR], [100.0, 110.0, None, 121.0])

        assert result.simple[0] == pytest.approx(0.10)
        assert result.simple[1] is None
        assert result.simple[2] is None
        assert result.log[1] is None
        assert result.observed == (True, True, False, True)
        assert result.defined_simple() == [pytest.approx(0.10)]

    def test_length_mismatch(self):
        with pytest.raises(ReturnsError, match="same length"):
            compute_returns('AAA', [JAN, FEB], [100.0])

    def test_non_positive_price_skipped(self):
        """A zero price makes its neighbouring returns undefined."""
        result = compute_returns('AAA', [JAN, FEB, MAR, APR], [100.0, 0.0, 110.0, 121.0])

        assert result.simple[0] is None
        assert result.simple[1] is None
        assert result.simple[2] == pytest.approx(0.10)
        assert result.observed[1] is False

    def test_non_positive_price_strict(self):
        with pytest.raises(NonPositivePriceError, match="non-positive price"):
            compute_returns('AAA', [JAN, FEB], [100.0, -5.0], strict=True)

    def test_all_non_positive_prices_fatal(self):
        with pytest.raises(NonPositivePriceError, match="all 2 prices"):
            compute_returns('AAA', [JAN, FEB, MAR], [0.0, None, -1.0])

    def test_all_missing_is_not_an_error(self):
        result = compute_returns('AAA', [JAN, FEB], [None, None])

        assert result.simple == (None,)
        assert result.observed == (False, False)

    def test_simple_by_date(self):
        result = compute_returns('AAA', [JAN, FEB, MAR], [100.0, 110.0, 99.0])

        by_date = result.simple_by_date()
        assert set(by_date) == {FEB, MAR}
        assert result.simple_at(FEB) == pytest.approx(0.10)
        assert result.simple_at(JAN) is None


class TestEquityCurve:
    """Tests for equity curve construction."""

    def test_monthly_scenario(self):
        returns = compute_returns('AAA', [JAN, FEB, MAR], [100.0, 110.0, 99.0])

        curve = equity_curve(returns)

        assert curve == pytest.approx((1.0, 1.10, 0.99))

    def test_log_curve_matches_compounded_curve(self):
        prices = [100.0, 104.0, 98.0, 101.0, 120.0]
        dates = [date(2024, 1, d) for d in range(1, 6)]
        returns = compute_returns('AAA', dates, prices)

        assert log_equity_curve(returns) == pytest.approx(equity_curve(returns))

    def test_curve_tracks_price_ratio(self):
        prices = [50.0, 55.0, 45.0, 60.0]
        dates = [date(2024, 1, d) for d in range(1, 5)]

        curve = equity_curve(compute_returns('AAA', dates, prices))

        assert curve == pytest.approx(tuple(p / 50.0 for p in prices))

    def test_starts_at_first_observation(self):
        returns = compute_returns('AAA', [JAN, FEB, MAR], [None, 100.0, 110.0])

        curve = equity_curve(returns)

        assert curve[0] is None
        assert curve[1] == 1.0
        assert curve[2] == pytest.approx(1.10)

    def test_gap_does_not_advance(self):
        """Across a gap the level holds; the missing date stays empty."""
        dates = [JAN, FEB, MAR, APR, date(2024, 5, 31)]
        returns = compute_returns('BBB', dates, [100.0, 110.0, None, 120.0, 132.0])

        curve = equity_curve(returns)

        assert curve[0] == 1.0
        assert curve[1] == pytest.approx(1.10)
        assert curve[2] is None
        assert curve[3] == pytest.approx(1.10)
        assert curve[4] == pytest.approx(1.21)

    def test_custom_base(self):
        returns = compute_returns('AAA', [JAN, FEB], [100.0, 110.0])

        assert equity_curve(returns, base=1000.0) == pytest.approx((1000.0, 1100.0))

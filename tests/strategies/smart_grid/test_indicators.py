"""Tests for the indicator helpers feeding the grid engine."""

from decimal import Decimal

import numpy as np
import pandas as pd
import pytest

from gridbot.strategies.smart_grid.grid_config import MAType
from gridbot.strategies.smart_grid.indicators import (
    IndicatorValues,
    average_true_range,
    moving_average,
)


@pytest.fixture
def bars() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "high": [2.0, 3.0, 4.0, 5.0],
            "low": [1.0, 1.0, 2.0, 3.0],
            "close": [1.5, 2.0, 3.0, 4.0],
        }
    )


# =========================================================================
# ATR
# =========================================================================


class TestAverageTrueRange:
    def test_true_range_uses_previous_close(self, bars):
        atr = average_true_range(bars, period=1)
        # bar 1: max(3-1, |3-1.5|, |1-1.5|) = 2
        # bar 2: max(4-2, |4-2|, |2-2|) = 2
        # bar 3: max(5-3, |5-3|, |3-3|) = 2
        assert list(atr) == [1.0, 2.0, 2.0, 2.0]

    def test_rolling_mean(self, bars):
        atr = average_true_range(bars, period=2)
        assert np.isnan(atr.iloc[0])
        assert atr.iloc[1] == pytest.approx(1.5)
        assert atr.iloc[-1] == pytest.approx(2.0)

    def test_gap_counts_in_true_range(self):
        df = pd.DataFrame({"high": [1.0, 3.5], "low": [0.5, 3.0], "close": [1.0, 3.2]})
        atr = average_true_range(df, period=1)
        assert atr.iloc[-1] == pytest.approx(2.5)


# =========================================================================
# Moving averages
# =========================================================================


class TestMovingAverage:
    def test_simple(self, bars):
        ma = moving_average(bars["close"], period=2, ma_type=MAType.SIMPLE)
        assert ma.iloc[-1] == pytest.approx(3.5)

    def test_weighted_favors_recent(self, bars):
        ma = moving_average(bars["close"], period=2, ma_type=MAType.WEIGHTED)
        # (3 * 1 + 4 * 2) / 3
        assert ma.iloc[-1] == pytest.approx(11 / 3)

    def test_exponential(self, bars):
        close = pd.Series([1.0, 2.0, 3.0, 4.0])
        ma = moving_average(close, period=3, ma_type=MAType.EXPONENTIAL)
        # alpha = 2 / (3 + 1) = 0.5
        assert list(ma) == pytest.approx([1.0, 1.5, 2.25, 3.125])

    def test_simple_is_nan_until_period(self, bars):
        ma = moving_average(bars["close"], period=10)
        assert ma.isna().all()


# =========================================================================
# IndicatorValues
# =========================================================================


class TestIndicatorValues:
    def test_from_bars(self, bars):
        values = IndicatorValues.from_bars(bars, atr_period=2, ma_period=2)
        assert values.last_close == Decimal("4.0")
        assert values.prev_close == Decimal("3.0")
        assert values.atr == Decimal("2.0")
        assert values.ma_value == Decimal("3.5")

    def test_short_frame_yields_none(self, bars):
        values = IndicatorValues.from_bars(bars)
        assert values.atr is None
        assert values.ma_value is None
        assert values.last_close > values.prev_close

    def test_exponential_ma_always_available(self, bars):
        values = IndicatorValues.from_bars(bars, ma_type=MAType.EXPONENTIAL)
        assert values.ma_value is not None

    def test_missing_columns(self):
        df = pd.DataFrame({"close": [1.0, 2.0]})
        with pytest.raises(ValueError, match="Missing required columns"):
            IndicatorValues.from_bars(df)

    def test_insufficient_data(self, bars):
        with pytest.raises(ValueError, match="Insufficient data"):
            IndicatorValues.from_bars(bars.iloc[:1])

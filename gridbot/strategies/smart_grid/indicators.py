"""
Indicator inputs for the grid engine.

Calculates from an OHLC frame of completed bars:
- ATR (simple average of true range), for the dynamic pip step
- Moving average (simple / exponential / weighted), for the trend filter
- The last two closes, for the initial-entry momentum check
"""

from dataclasses import dataclass
from decimal import Decimal

import numpy as np
import pandas as pd

from gridbot.utils.logger import get_logger

from .grid_config import MAType

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("high", "low", "close")


def average_true_range(df: pd.DataFrame, period: int) -> pd.Series:
    """
    Calculate Average True Range

    ATR = simple mean of True Range over period
    True Range = max(high - low, abs(high - prev_close), abs(low - prev_close))
    """
    high = df["high"]
    low = df["low"]
    prev_close = df["close"].shift(1)

    true_range = pd.concat(
        [high - low, (high - prev_close).abs(), (low - prev_close).abs()],
        axis=1,
    ).max(axis=1)
    return true_range.rolling(window=period).mean()


def moving_average(close: pd.Series, period: int, ma_type: MAType = MAType.SIMPLE) -> pd.Series:
    """Moving average of closes."""
    if ma_type is MAType.EXPONENTIAL:
        return close.ewm(span=period, adjust=False).mean()
    if ma_type is MAType.WEIGHTED:
        weights = np.arange(1, period + 1, dtype=float)
        return close.rolling(window=period).apply(
            lambda window: float(np.dot(window, weights) / weights.sum()), raw=True
        )
    return close.rolling(window=period).mean()


def _to_decimal(value: float) -> Decimal | None:
    if value is None or pd.isna(value):
        return None
    return Decimal(str(value))


@dataclass(frozen=True)
class IndicatorValues:
    """Latest indicator readings feeding a MarketSnapshot."""

    last_close: Decimal
    prev_close: Decimal
    atr: Decimal | None
    ma_value: Decimal | None

    @classmethod
    def from_bars(
        cls,
        df: pd.DataFrame,
        atr_period: int = 14,
        ma_period: int = 100,
        ma_type: MAType = MAType.SIMPLE,
    ) -> "IndicatorValues":
        """
        Read indicators off a frame of completed bars.

        ATR and the simple/weighted MA are None while the frame is shorter
        than their period.

        Raises:
            ValueError: If columns are missing or fewer than two bars exist
        """
        missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")
        if len(df) < 2:
            raise ValueError(f"Insufficient data: need 2 bars, got {len(df)}")

        atr = _to_decimal(average_true_range(df, atr_period).iloc[-1])
        ma_value = _to_decimal(moving_average(df["close"], ma_period, ma_type).iloc[-1])

        values = cls(
            last_close=Decimal(str(df["close"].iloc[-1])),
            prev_close=Decimal(str(df["close"].iloc[-2])),
            atr=atr,
            ma_value=ma_value,
        )
        logger.debug(
            "Indicators calculated",
            bars=len(df),
            atr=str(atr) if atr is not None else None,
            ma_value=str(ma_value) if ma_value is not None else None,
        )
        return values

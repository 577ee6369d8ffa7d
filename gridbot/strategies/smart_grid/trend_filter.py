"""TrendFilter: moving-average gate for grid entries and additions."""

from decimal import Decimal
from enum import Enum

from .models import MarketSnapshot, Side


class TrendState(str, Enum):
    """Trend classification of the current quote against the MA."""

    UP = "uptrend"
    DOWN = "downtrend"
    RANGING = "ranging"


class TrendFilter:
    """
    Classifies the market as up, down or ranging from bid/ask vs an MA value.

    A disabled filter permits both directions; it does not force RANGING.
    """

    def __init__(self, enabled: bool = False) -> None:
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    @staticmethod
    def classify(ask: Decimal, bid: Decimal, ma_value: Decimal) -> TrendState:
        if ask > ma_value:
            return TrendState.UP
        if bid < ma_value:
            return TrendState.DOWN
        return TrendState.RANGING

    def state(self, snapshot: MarketSnapshot) -> TrendState | None:
        """Classification for the snapshot, or None when disabled or no MA."""
        if not self._enabled or snapshot.ma_value is None:
            return None
        return self.classify(snapshot.ask, snapshot.bid, snapshot.ma_value)

    def permits(self, side: Side, snapshot: MarketSnapshot) -> bool:
        if not self._enabled:
            return True
        trend = self.state(snapshot)
        if trend is None:
            return False
        if side is Side.BUY:
            return trend is TrendState.UP
        return trend is TrendState.DOWN

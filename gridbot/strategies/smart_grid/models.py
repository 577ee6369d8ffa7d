"""
SmartGrid data model.

Positions are owned by the broker; everything here is either a read-only view
of broker state or a value derived from it on demand.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any


class Side(str, Enum):
    """Trade direction of a position or grid."""

    BUY = "buy"
    SELL = "sell"

    @property
    def sign(self) -> int:
        """+1 for Buy, -1 for Sell (direction of a favorable move)."""
        return 1 if self is Side.BUY else -1


@dataclass(frozen=True)
class GridOwnership:
    """
    Ownership token scoping positions to one grid instance.

    Every ledger query carries this token; ``owns`` is the single place where
    a position is matched against label, symbol and instance.
    """

    label: str
    symbol: str
    instance_id: str

    def owns(self, position: "Position") -> bool:
        return (
            position.label == self.label
            and position.symbol == self.symbol
            and position.instance_id == self.instance_id
        )

    @property
    def checkpoint_key(self) -> str:
        return f"LastBalance_{self.symbol}_{self.instance_id}"


@dataclass(frozen=True)
class Position:
    """Snapshot of one open broker position."""

    id: int
    side: Side
    entry_price: Decimal
    volume: int
    label: str
    symbol: str
    instance_id: str
    take_profit: Decimal | None = None
    stop_loss: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "side": self.side.value,
            "entry_price": str(self.entry_price),
            "volume": self.volume,
            "take_profit": str(self.take_profit) if self.take_profit is not None else None,
            "stop_loss": str(self.stop_loss) if self.stop_loss is not None else None,
        }


@dataclass(frozen=True)
class SymbolInfo:
    """Broker trading constraints for the grid's symbol."""

    pip_size: Decimal
    digits: int
    volume_min: int
    volume_max: int
    volume_step: int

    def validate(self) -> None:
        if self.pip_size <= 0:
            raise ValueError("pip_size must be positive")
        if self.digits < 0:
            raise ValueError("digits must be >= 0")
        if self.volume_step <= 0:
            raise ValueError("volume_step must be positive")
        if self.volume_min > self.volume_max:
            raise ValueError("volume_min must not exceed volume_max")

    def round_price(self, price: Decimal) -> Decimal:
        """Round a price to the symbol's digits of precision."""
        return price.quantize(Decimal(1).scaleb(-self.digits), rounding=ROUND_HALF_UP)

    def to_pips(self, price_delta: Decimal) -> Decimal:
        return price_delta / self.pip_size


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Market inputs for one engine tick.

    ``last_close``/``prev_close`` are the closes of the last two completed
    bars; ``bar_time`` is the open time of the bar currently forming.
    """

    bid: Decimal
    ask: Decimal
    time: datetime
    bar_time: datetime
    last_close: Decimal
    prev_close: Decimal
    atr: Decimal | None = None
    ma_value: Decimal | None = None

    @property
    def spread(self) -> Decimal:
        return self.ask - self.bid


@dataclass(frozen=True)
class GridSideState:
    """Per-side aggregate of all open grid positions."""

    side: Side
    count: int = 0
    average_price: Decimal = Decimal("0")
    extreme_price: Decimal = Decimal("0")
    oldest_price: Decimal = Decimal("0")
    oldest_volume: int = 0
    extremity_count: int = 0
    total_volume: int = 0

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "side": self.side.value,
            "count": self.count,
            "average_price": str(self.average_price),
            "extreme_price": str(self.extreme_price),
            "oldest_price": str(self.oldest_price),
            "oldest_volume": self.oldest_volume,
            "extremity_count": self.extremity_count,
            "total_volume": self.total_volume,
        }

"""IGridBroker: Protocol for SmartGrid broker adapters.

Defines the interface that both live broker clients and the in-memory
PaperBroker must implement to drive the grid engine. All calls are
synchronous: they succeed or raise before the tick continues.
"""

from decimal import Decimal
from typing import Protocol, runtime_checkable

from .models import GridOwnership, Position, Side


@runtime_checkable
class IGridBroker(Protocol):
    """Abstraction for the position and order operations used by the grid engine."""

    def get_positions(self, ownership: GridOwnership) -> list[Position]:
        ...

    def place_market_order(
        self,
        ownership: GridOwnership,
        side: Side,
        volume: int,
    ) -> Position:
        ...

    def modify_take_profit(
        self,
        position_id: int,
        take_profit: Decimal | None,
    ) -> Position:
        ...

    def close_position(self, position_id: int) -> Decimal:
        ...

    def get_balance(self) -> Decimal:
        ...

"""
Paper broker: in-memory implementation of ``IGridBroker``.

Simulates a netting-free (hedging) account for one symbol: market orders fill
at the current quote, take-profits fill when a quote update crosses them, and
free margin bounds how much can be opened.

Failure hooks let callers script broker behavior:
- ``reject_next_order(reason)``: next placement raises OrderRejectedError
- ``fail_close(position_id)``: closing that position raises BrokerAPIError
- ``positions_available = False``: position queries raise BrokerNotAvailableError
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from gridbot.api.exceptions import (
    BrokerAPIError,
    BrokerNotAvailableError,
    InsufficientFundsError,
    OrderRejectedError,
    PositionNotFoundError,
)
from gridbot.strategies.smart_grid.models import GridOwnership, Position, Side
from gridbot.utils.logger import get_logger

logger = get_logger(__name__)


class PaperBroker:
    """
    In-memory broker for one symbol.

    Margin model: an open position reserves ``volume * entry_price *
    margin_rate`` of the balance; an order whose reservation does not fit the
    remaining free margin is refused with InsufficientFundsError.
    """

    def __init__(
        self,
        symbol: str,
        bid: Decimal,
        ask: Decimal,
        initial_balance: Decimal = Decimal("10000"),
        margin_rate: Decimal = Decimal("0.01"),
    ) -> None:
        if ask < bid:
            raise ValueError("ask must be >= bid")
        self._symbol = symbol
        self._bid = bid
        self._ask = ask
        self._balance = initial_balance
        self._margin_rate = margin_rate

        self._positions: dict[int, Position] = {}
        self._next_id = 1
        self._pending_rejections: list[str] = []
        self._failing_closes: set[int] = set()
        self.positions_available = True

        # Call accounting
        self.place_calls = 0
        self.modify_calls = 0
        self.close_calls = 0
        self.closed_history: list[tuple[Position, Decimal, str]] = []

    # =====================================================================
    # Market
    # =====================================================================

    @property
    def bid(self) -> Decimal:
        return self._bid

    @property
    def ask(self) -> Decimal:
        return self._ask

    def set_quote(self, bid: Decimal, ask: Decimal) -> list[int]:
        """
        Update the quote and fill any take-profit it crosses.

        Returns:
            Ids of positions closed by take-profit.
        """
        if ask < bid:
            raise ValueError("ask must be >= bid")
        self._bid = bid
        self._ask = ask

        hit = [
            p.id
            for p in self._positions.values()
            if p.take_profit is not None
            and (
                (p.side is Side.BUY and bid >= p.take_profit)
                or (p.side is Side.SELL and ask <= p.take_profit)
            )
        ]
        for position_id in hit:
            self._close(position_id, reason="take_profit")
        return hit

    # =====================================================================
    # Failure hooks
    # =====================================================================

    def reject_next_order(self, reason: str = "rejected") -> None:
        self._pending_rejections.append(reason)

    def fail_close(self, position_id: int) -> None:
        self._failing_closes.add(position_id)

    # =====================================================================
    # Account
    # =====================================================================

    def get_balance(self) -> Decimal:
        return self._balance

    @property
    def used_margin(self) -> Decimal:
        return sum(
            (p.entry_price * p.volume * self._margin_rate for p in self._positions.values()),
            Decimal("0"),
        )

    @property
    def free_margin(self) -> Decimal:
        return self._balance - self.used_margin

    # =====================================================================
    # IGridBroker
    # =====================================================================

    def get_positions(self, ownership: GridOwnership) -> list[Position]:
        if not self.positions_available:
            raise BrokerNotAvailableError("position query unavailable")
        return [
            p
            for p in self._positions.values()
            if p.label == ownership.label and p.symbol == ownership.symbol
        ]

    def place_market_order(
        self,
        ownership: GridOwnership,
        side: Side,
        volume: int,
    ) -> Position:
        self.place_calls += 1

        if self._pending_rejections:
            raise OrderRejectedError(self._pending_rejections.pop(0))
        if volume <= 0:
            raise OrderRejectedError(f"invalid volume {volume}")
        if ownership.symbol != self._symbol:
            raise OrderRejectedError(f"unknown symbol {ownership.symbol}")

        price = self._ask if side is Side.BUY else self._bid
        required = price * volume * self._margin_rate
        if required > self.free_margin:
            raise InsufficientFundsError(
                f"required margin {required} exceeds free margin {self.free_margin}"
            )

        return self.add_position(
            side=side,
            entry_price=price,
            volume=volume,
            label=ownership.label,
            instance_id=ownership.instance_id,
        )

    def modify_take_profit(self, position_id: int, take_profit: Decimal | None) -> Position:
        self.modify_calls += 1
        position = self._get(position_id)
        updated = replace(position, take_profit=take_profit)
        self._positions[position_id] = updated
        return updated

    def close_position(self, position_id: int) -> Decimal:
        self.close_calls += 1
        if position_id in self._failing_closes:
            raise BrokerAPIError(f"close of position {position_id} failed")
        return self._close(position_id, reason="closed")

    # =====================================================================
    # Direct manipulation
    # =====================================================================

    def add_position(
        self,
        side: Side,
        entry_price: Decimal,
        volume: int,
        label: str,
        instance_id: str,
        symbol: str | None = None,
        take_profit: Decimal | None = None,
    ) -> Position:
        """Open a position at a given price without margin checks."""
        position = Position(
            id=self._next_id,
            side=side,
            entry_price=entry_price,
            volume=volume,
            label=label,
            symbol=symbol or self._symbol,
            instance_id=instance_id,
            take_profit=take_profit,
        )
        self._next_id += 1
        self._positions[position.id] = position
        logger.debug(
            "Paper position opened",
            position_id=position.id,
            side=side.value,
            price=str(entry_price),
            volume=volume,
        )
        return position

    def remove_position(self, position_id: int, reason: str = "stop_loss") -> Decimal:
        """Close a position broker-side, as a stop-loss or manual close would."""
        return self._close(position_id, reason=reason)

    def open_positions(self) -> list[Position]:
        return sorted(self._positions.values(), key=lambda p: p.id)

    # =====================================================================
    # Internal
    # =====================================================================

    def _get(self, position_id: int) -> Position:
        if position_id not in self._positions:
            raise PositionNotFoundError(f"position {position_id} not found")
        return self._positions[position_id]

    def _close(self, position_id: int, reason: str) -> Decimal:
        position = self._get(position_id)
        if position.side is Side.BUY:
            pnl = (self._bid - position.entry_price) * position.volume
        else:
            pnl = (position.entry_price - self._ask) * position.volume
        del self._positions[position_id]
        self._balance += pnl
        self.closed_history.append((position, pnl, reason))
        logger.debug("Paper position closed", position_id=position_id, reason=reason, pnl=str(pnl))
        return pnl

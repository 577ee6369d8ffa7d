"""
GridMetrics: per-side aggregates of the open grid.

Consolidates every position scan the engine needs (count, weighted average
entry, most adverse entry, oldest entry, extremity count) into one snapshot
so all consumers within a decision read the same numbers.
"""

from decimal import Decimal

from .models import GridSideState, Position, Side, SymbolInfo
from .position_ledger import PositionLedger


class GridMetrics:
    """
    Derives GridSideState from the live position set.

    The extremity count (positions at-or-beyond the oldest entry in the
    adverse direction) drives martingale sizing instead of the raw count, so
    positions closing out of order do not corrupt the volume progression.
    """

    def __init__(self, ledger: PositionLedger, symbol_info: SymbolInfo) -> None:
        self._ledger = ledger
        self._symbol_info = symbol_info

    def compute_side_state(self, side: Side) -> GridSideState:
        """Aggregate the side's open positions from a fresh ledger read."""
        return self.aggregate(side, self._ledger.positions(side))

    def compute_all(self) -> dict[Side, GridSideState]:
        """Both sides from a single ledger read."""
        positions = self._ledger.positions()
        return {
            side: self.aggregate(side, [p for p in positions if p.side == side])
            for side in Side
        }

    def aggregate(self, side: Side, positions: list[Position]) -> GridSideState:
        same_side = [p for p in positions if p.side == side]
        if not same_side:
            return GridSideState(side=side)

        info = self._symbol_info
        total_volume = sum(p.volume for p in same_side)
        weighted = sum((p.entry_price * p.volume for p in same_side), Decimal("0"))
        average = info.round_price(weighted / total_volume) if total_volume > 0 else Decimal("0")

        entries = [p.entry_price for p in same_side]
        extreme = min(entries) if side is Side.BUY else max(entries)

        oldest = min(same_side, key=lambda p: p.id)
        oldest_price = info.round_price(oldest.entry_price)
        if side is Side.BUY:
            extremity = sum(1 for p in same_side if info.round_price(p.entry_price) <= oldest_price)
        else:
            extremity = sum(1 for p in same_side if info.round_price(p.entry_price) >= oldest_price)

        return GridSideState(
            side=side,
            count=len(same_side),
            average_price=average,
            extreme_price=extreme,
            oldest_price=oldest.entry_price,
            oldest_volume=oldest.volume,
            extremity_count=extremity,
            total_volume=total_volume,
        )

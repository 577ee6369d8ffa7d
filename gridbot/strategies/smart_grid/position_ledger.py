"""
PositionLedger: read-only view over the grid's open positions.

Every call re-queries the broker; nothing is cached between calls, so a
stop-loss fill processed by the broker mid-tick is visible to the next read.
"""

from .broker_protocol import IGridBroker
from .models import GridOwnership, Position, Side


class PositionLedger:
    """Query layer over broker positions owned by one grid instance."""

    def __init__(self, broker: IGridBroker, ownership: GridOwnership) -> None:
        self._broker = broker
        self._ownership = ownership

    @property
    def ownership(self) -> GridOwnership:
        return self._ownership

    def positions(self, side: Side | None = None) -> list[Position]:
        """
        Current open positions of this grid, oldest first.

        Args:
            side: Restrict to one side; None returns both sides.
        """
        owned = [
            p
            for p in self._broker.get_positions(self._ownership)
            if self._ownership.owns(p) and (side is None or p.side == side)
        ]
        owned.sort(key=lambda p: p.id)
        return owned

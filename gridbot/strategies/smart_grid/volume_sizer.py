"""
VolumeSizer: martingale volume for the next grid level.

    next = normalize(oldest_volume * exponent ** extremity_count)

normalize() clamps to the broker's [volume_min, volume_max] and floors to a
multiple of volume_step. Exponent >= 1 gives a non-decreasing sequence,
exponent in (0, 1) a shrinking one; both are valid.
"""

from decimal import Decimal

from .models import GridSideState, SymbolInfo


class SizingError(ValueError):
    """Normalized volume is not a placeable order size."""

    def __init__(self, volume: Decimal | int, message: str = "") -> None:
        self.volume = volume
        super().__init__(message or f"Calculated volume is not placeable: {volume}")


class VolumeSizer:
    """Computes broker-normalized order volumes for the grid."""

    def __init__(
        self,
        symbol_info: SymbolInfo,
        first_volume: int,
        exponent: Decimal,
    ) -> None:
        if exponent <= 0:
            raise ValueError("exponent must be positive")
        self._symbol_info = symbol_info
        self._first_volume = first_volume
        self._exponent = exponent

    @property
    def exponent(self) -> Decimal:
        return self._exponent

    def normalize(self, volume: Decimal | int) -> int:
        """
        Clamp to broker limits and floor to the volume step.

        Raises:
            SizingError: If the result is zero or negative.
        """
        info = self._symbol_info
        clamped = Decimal(volume)
        if clamped < info.volume_min:
            clamped = Decimal(info.volume_min)
        if clamped > info.volume_max:
            clamped = Decimal(info.volume_max)

        stepped = int(clamped // info.volume_step) * info.volume_step
        if stepped <= 0:
            raise SizingError(stepped)
        return stepped

    def initial_volume(self) -> int:
        return self.normalize(self._first_volume)

    def raw_next_volume(self, state: GridSideState) -> Decimal:
        """Martingale volume before normalization."""
        if state.is_empty:
            raise ValueError(f"No open {state.side.value} grid to size from")
        return Decimal(state.oldest_volume) * self._exponent**state.extremity_count

    def next_volume(self, state: GridSideState) -> int:
        return self.normalize(self.raw_next_volume(state))

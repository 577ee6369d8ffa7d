"""PipStepPolicy: adverse-move threshold between grid levels."""

from decimal import Decimal

from gridbot.utils.logger import get_logger

from .models import SymbolInfo

logger = get_logger(__name__)

MIN_DYNAMIC_STEP = Decimal("1")


class PipStepPolicy:
    """
    Yields the pip distance price must move against the grid before a new
    level is added.

    Fixed mode returns the configured step. Dynamic mode scales ATR (in pips)
    by a multiplier, floored at one pip.
    """

    def __init__(
        self,
        symbol_info: SymbolInfo,
        fixed_step: Decimal,
        dynamic: bool = False,
        atr_multiplier: Decimal = Decimal("1.0"),
    ) -> None:
        if fixed_step <= 0:
            raise ValueError("fixed_step must be positive")
        if atr_multiplier <= 0:
            raise ValueError("atr_multiplier must be positive")
        self._symbol_info = symbol_info
        self._fixed_step = fixed_step
        self._dynamic = dynamic
        self._atr_multiplier = atr_multiplier

    @property
    def dynamic(self) -> bool:
        return self._dynamic

    def current_step(self, atr: Decimal | None = None) -> Decimal:
        """
        Current step in pips.

        Args:
            atr: ATR value in price units (dynamic mode only).
        """
        if not self._dynamic:
            return self._fixed_step
        if atr is None:
            logger.debug("ATR unavailable, using fixed pip step", step=str(self._fixed_step))
            return self._fixed_step
        step = self._symbol_info.to_pips(atr) * self._atr_multiplier
        return max(MIN_DYNAMIC_STEP, step)

    def price_delta(self, atr: Decimal | None = None) -> Decimal:
        """Current step converted to price units."""
        return self.current_step(atr) * self._symbol_info.pip_size

"""
SmartGrid Engine.

Runs once per price tick:
- Re-anchors every position's take-profit to the side's current weighted average
- Opens the first position of an empty side on bar momentum
- Adds a martingale-sized grid level when price moves a pip step against the
  side's most adverse entry
- Liquidates all positions once per UTC day at the configured time
- Latches a permanent halt on capital exhaustion

All decisions are recomputed from broker state on every call, so a skipped or
failed action is simply retried when its condition next holds.

Usage:
    engine = GridEngine.from_config(config, broker, symbol_info)
    engine.start(now)
    # On each price update:
    report = engine.on_tick(snapshot)
    # On each completed bar:
    engine.on_bar(bar_time)
    # On shutdown:
    engine.stop(now)
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from gridbot.api.exceptions import BrokerAPIError, InsufficientFundsError
from gridbot.utils.logger import get_logger, log_context

from .broker_protocol import IGridBroker
from .daily_profit import BalanceCheckpoint, DailyProfitRecorder
from .grid_config import SmartGridConfig
from .grid_metrics import GridMetrics
from .models import GridSideState, MarketSnapshot, Position, Side, SymbolInfo
from .pip_step import PipStepPolicy
from .position_ledger import PositionLedger
from .trend_filter import TrendFilter
from .volume_sizer import SizingError, VolumeSizer

logger = get_logger(__name__)


# =============================================================================
# Data Structures
# =============================================================================


class PlacementKind(str, Enum):
    """Why an order was placed."""

    INITIAL = "initial"
    GRID = "grid"


@dataclass
class GridEngineState:
    """
    Mutable engine state for one grid instance.

    Lives for the process only; a fresh start clears the capital halt.
    """

    capital_halted: bool = False
    last_daily_close: date | None = None
    last_placement_bar: dict[Side, datetime | None] = field(
        default_factory=lambda: {Side.BUY: None, Side.SELL: None}
    )


@dataclass
class Placement:
    kind: PlacementKind
    side: Side
    volume: int
    position: Position


@dataclass
class ClosureFailure:
    position_id: int
    error: str


@dataclass
class ClosureReport:
    """Outcome of a bulk closure pass."""

    reason: str
    started: bool = True
    closed: list[int] = field(default_factory=list)
    failures: list[ClosureFailure] = field(default_factory=list)
    realized_pnl: Decimal = Decimal("0")

    @property
    def complete(self) -> bool:
        return self.started and not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "started": self.started,
            "closed": self.closed,
            "failures": [{"position_id": f.position_id, "error": f.error} for f in self.failures],
            "realized_pnl": str(self.realized_pnl),
        }


@dataclass
class TickReport:
    """What a single tick evaluation did."""

    time: datetime
    spread_pips: Decimal
    entries_gated: bool = False
    tp_modifications: int = 0
    placements: list[Placement] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    closure: ClosureReport | None = None


# =============================================================================
# Grid Engine
# =============================================================================


class GridEngine:
    """
    Averaging grid engine for one symbol and instance.

    Each side moves through ``Empty -> Grid(1) -> ... -> Grid(n) -> Empty``;
    the return to Empty happens through explicit closure, or is simply
    observed on the next read when take-profit/stop-loss fills remove
    positions broker-side.
    """

    def __init__(
        self,
        config: SmartGridConfig,
        broker: IGridBroker,
        symbol_info: SymbolInfo,
        profit_recorder: DailyProfitRecorder | None = None,
        state: GridEngineState | None = None,
    ) -> None:
        symbol_info.validate()
        self._config = config
        self._broker = broker
        self._symbol_info = symbol_info
        self._profit_recorder = profit_recorder
        self._state = state or GridEngineState()
        self._started = False

        self._ownership = config.ownership()
        self._ledger = PositionLedger(broker, self._ownership)
        self._metrics = GridMetrics(self._ledger, symbol_info)
        self._pip_step = PipStepPolicy(
            symbol_info,
            fixed_step=Decimal(config.grid.pip_step),
            dynamic=config.dynamic_step.enabled,
            atr_multiplier=config.dynamic_step.atr_multiplier,
        )
        self._trend_filter = TrendFilter(enabled=config.trend_filter.enabled)
        self._sizer = VolumeSizer(
            symbol_info,
            first_volume=config.grid.first_volume,
            exponent=config.grid.volume_exponent,
        )
        # Bound on the engine's own logger, and as context around host
        # callbacks so component and broker events carry it too
        self._log_fields = {
            "symbol": config.symbol,
            "label": config.label,
            "instance_id": config.instance_id,
        }
        self._log = logger.bind(**self._log_fields)

        self._log.info(
            "GridEngine initialized",
            pip_step=config.grid.pip_step,
            dynamic_step=config.dynamic_step.enabled,
            exponent=str(config.grid.volume_exponent),
            trend_filter=config.trend_filter.enabled,
        )

    @classmethod
    def from_config(
        cls,
        config: SmartGridConfig,
        broker: IGridBroker,
        symbol_info: SymbolInfo,
    ) -> "GridEngine":
        """Build an engine, with a daily profit recorder if the config enables one."""
        recorder = None
        if config.profit_log.enabled:
            checkpoint = BalanceCheckpoint(
                Path(config.profit_log.checkpoint_path),
                config.ownership().checkpoint_key,
            )
            recorder = DailyProfitRecorder(
                Path(config.profit_log.csv_path),
                checkpoint,
                broker.get_balance,
            )
        return cls(config, broker, symbol_info, profit_recorder=recorder)

    # -----------------------------------------------------------------
    # Properties
    # -----------------------------------------------------------------

    @property
    def state(self) -> GridEngineState:
        return self._state

    @property
    def metrics(self) -> GridMetrics:
        return self._metrics

    @property
    def ledger(self) -> PositionLedger:
        return self._ledger

    @property
    def sizer(self) -> VolumeSizer:
        return self._sizer

    @property
    def pip_step(self) -> PipStepPolicy:
        return self._pip_step

    @property
    def trend_filter(self) -> TrendFilter:
        return self._trend_filter

    # -----------------------------------------------------------------
    # Host callbacks
    # -----------------------------------------------------------------

    def start(self, now: datetime) -> None:
        """Initialize per-run state. Called implicitly by the first tick."""
        if self._started:
            return
        if self._state.last_daily_close is None:
            self._state.last_daily_close = now.date() - timedelta(days=1)
        if self._profit_recorder is not None:
            self._profit_recorder.start(now)
        self._started = True

    def on_tick(self, snapshot: MarketSnapshot) -> TickReport:
        """Evaluate one price update."""
        with log_context(**self._log_fields):
            return self._evaluate_tick(snapshot)

    def _evaluate_tick(self, snapshot: MarketSnapshot) -> TickReport:
        self.start(snapshot.time)

        spread_pips = self._symbol_info.to_pips(snapshot.spread)
        report = TickReport(time=snapshot.time, spread_pips=spread_pips)

        for side in Side:
            try:
                report.tp_modifications += self.refresh_take_profit(side)
            except BrokerAPIError as e:
                self._log.warning("Take-profit refresh failed", side=side.value, error=str(e))
                report.errors.append(f"tp_refresh[{side.value}]: {e}")

        report.entries_gated = (
            spread_pips > self._config.grid.max_spread_pips or self._state.capital_halted
        )
        if report.entries_gated:
            self._log.debug(
                "Entries gated",
                spread_pips=str(spread_pips),
                capital_halted=self._state.capital_halted,
            )
        else:
            for side in Side:
                try:
                    placement = self._evaluate_side(side, snapshot, report)
                except BrokerAPIError as e:
                    self._log.warning("Side evaluation failed", side=side.value, error=str(e))
                    report.errors.append(f"evaluate[{side.value}]: {e}")
                    continue
                if placement is not None:
                    report.placements.append(placement)

        report.closure = self._check_end_of_day(snapshot.time)
        return report

    def on_bar(self, now: datetime) -> None:
        """Completed-bar hook."""
        with log_context(**self._log_fields):
            self.start(now)
            if self._profit_recorder is not None:
                self._profit_recorder.on_bar(now)

    def on_error(self, error: Exception) -> None:
        """Asynchronous broker error channel."""
        if isinstance(error, InsufficientFundsError):
            self._latch_capital_halt(str(error))
        else:
            self._log.warning("Broker error reported", error=str(error))

    def stop(self, now: datetime) -> ClosureReport:
        """Close every grid position and flush the profit log."""
        with log_context(**self._log_fields):
            self._log.info("Grid stopping, closing all active positions")
            closure = self.close_all(reason="shutdown")
            if self._profit_recorder is not None:
                self._profit_recorder.on_stop(now)
        return closure

    # -----------------------------------------------------------------
    # Take profit
    # -----------------------------------------------------------------

    def take_profit_target(self, state: GridSideState) -> Decimal:
        """Shared take-profit price for a non-empty side."""
        offset = Decimal(self._config.grid.average_tp_pips) * self._symbol_info.pip_size
        return self._symbol_info.round_price(state.average_price + state.side.sign * offset)

    def refresh_take_profit(self, side: Side) -> int:
        """
        Point every position on the side at the shared target.

        Returns:
            Number of modify calls issued.
        """
        positions = self._ledger.positions(side)
        state = self._metrics.aggregate(side, positions)
        if state.is_empty:
            return 0

        target = self.take_profit_target(state)
        modified = 0
        for position in positions:
            if position.take_profit == target:
                continue
            try:
                self._broker.modify_take_profit(position.id, target)
                modified += 1
            except BrokerAPIError as e:
                self._log.warning(
                    "Take-profit modify failed",
                    position_id=position.id,
                    target=str(target),
                    error=str(e),
                )
        if modified:
            self._log.debug(
                "Take-profit re-anchored",
                side=side.value,
                target=str(target),
                average=str(state.average_price),
                modified=modified,
            )
        return modified

    # -----------------------------------------------------------------
    # Entries
    # -----------------------------------------------------------------

    def _side_enabled(self, side: Side) -> bool:
        if side is Side.BUY:
            return self._config.buy_enabled
        return self._config.sell_enabled

    @staticmethod
    def _momentum_agrees(side: Side, snapshot: MarketSnapshot) -> bool:
        if side is Side.BUY:
            return snapshot.last_close > snapshot.prev_close
        return snapshot.prev_close > snapshot.last_close

    def _adverse_move(self, state: GridSideState, snapshot: MarketSnapshot) -> bool:
        info = self._symbol_info
        delta = self._pip_step.price_delta(snapshot.atr)
        if state.side is Side.BUY:
            return info.round_price(snapshot.ask) < info.round_price(state.extreme_price - delta)
        return info.round_price(snapshot.bid) > info.round_price(state.extreme_price + delta)

    def _placed_this_bar(self, side: Side, snapshot: MarketSnapshot) -> bool:
        if side is Side.SELL and not self._config.guard_sell_same_bar:
            return False
        return self._state.last_placement_bar[side] == snapshot.bar_time

    def _evaluate_side(
        self, side: Side, snapshot: MarketSnapshot, report: TickReport
    ) -> Placement | None:
        state = self._metrics.compute_side_state(side)

        if state.is_empty:
            if not self._side_enabled(side):
                return None
            if not self._momentum_agrees(side, snapshot):
                return None
            if not self._trend_filter.permits(side, snapshot):
                return None
            return self._place(
                side,
                PlacementKind.INITIAL,
                self._sizer.initial_volume,
                snapshot,
                report,
            )

        if not self._trend_filter.permits(side, snapshot):
            return None
        if not self._adverse_move(state, snapshot):
            return None
        if self._placed_this_bar(side, snapshot):
            return None
        return self._place(
            side,
            PlacementKind.GRID,
            lambda: self._sizer.next_volume(state),
            snapshot,
            report,
        )

    def _place(
        self,
        side: Side,
        kind: PlacementKind,
        volume_fn: Callable[[], int],
        snapshot: MarketSnapshot,
        report: TickReport,
    ) -> Placement | None:
        if self._state.capital_halted:
            return None

        try:
            volume = volume_fn()
        except SizingError as e:
            self._log.error(
                "Volume calculation error",
                side=side.value,
                kind=kind.value,
                volume=str(e.volume),
            )
            report.errors.append(f"sizing[{side.value}]: {e}")
            return None

        try:
            position = self._broker.place_market_order(self._ownership, side, volume)
        except InsufficientFundsError as e:
            self._latch_capital_halt(str(e))
            report.errors.append(f"funds[{side.value}]: {e}")
            return None
        except BrokerAPIError as e:
            price = snapshot.ask if side is Side.BUY else snapshot.bid
            self._log.warning(
                "Order opening error",
                side=side.value,
                kind=kind.value,
                price=str(price),
                error=str(e),
            )
            report.errors.append(f"placement[{side.value}]: {e}")
            return None

        self._state.last_placement_bar[side] = snapshot.bar_time
        self._log.info(
            "Position opened",
            side=side.value,
            kind=kind.value,
            position_id=position.id,
            entry_price=str(position.entry_price),
            volume=position.volume,
        )
        return Placement(kind=kind, side=side, volume=volume, position=position)

    def _latch_capital_halt(self, reason: str) -> None:
        if not self._state.capital_halted:
            self._log.error("Opening stopped: not enough money", reason=reason)
        self._state.capital_halted = True

    # -----------------------------------------------------------------
    # Closure
    # -----------------------------------------------------------------

    def _check_end_of_day(self, now: datetime) -> ClosureReport | None:
        eod = self._config.end_of_day
        if not eod.enabled:
            return None

        close_at = now.replace(hour=eod.hour, minute=eod.minute, second=0, microsecond=0)
        last_close = self._state.last_daily_close
        if now < close_at or (last_close is not None and last_close >= now.date()):
            return None

        closure = self.close_all(reason="end_of_day")
        if closure.started:
            self._state.last_daily_close = now.date()
        return closure

    def close_all(self, reason: str) -> ClosureReport:
        """
        Best-effort close of every grid position on both sides.

        Individual failures are collected; the pass always visits every
        position. ``started`` is False only if the positions could not be read.
        """
        report = ClosureReport(reason=reason)
        try:
            positions = self._ledger.positions()
        except BrokerAPIError as e:
            self._log.error("Closure could not start", reason=reason, error=str(e))
            report.started = False
            return report

        self._log.info("Closing all grid positions", reason=reason, count=len(positions))
        for position in positions:
            try:
                pnl = self._broker.close_position(position.id)
            except BrokerAPIError as e:
                self._log.error("Error closing position", position_id=position.id, error=str(e))
                report.failures.append(ClosureFailure(position_id=position.id, error=str(e)))
                continue
            report.closed.append(position.id)
            report.realized_pnl += pnl
            self._log.info(
                "Closed position",
                position_id=position.id,
                side=position.side.value,
                volume=position.volume,
            )

        self._log.info(
            "Finished closing grid positions",
            reason=reason,
            closed=len(report.closed),
            failed=len(report.failures),
        )
        return report

    # -----------------------------------------------------------------
    # Status
    # -----------------------------------------------------------------

    def status_report(self, snapshot: MarketSnapshot) -> dict[str, Any]:
        """Human-oriented summary of the grid against the current quote."""
        info = self._symbol_info
        spread_pips = info.to_pips(snapshot.spread)
        sides = self._metrics.compute_all()

        status: dict[str, Any] = {
            "symbol": self._config.symbol,
            "spread_pips": str(spread_pips.quantize(Decimal("0.1"))),
            "max_spread_exceeded": spread_pips > self._config.grid.max_spread_pips,
            "capital_halted": self._state.capital_halted,
            "trend": None,
        }
        trend = self._trend_filter.state(snapshot)
        if trend is not None:
            status["trend"] = trend.value

        buy, sell = sides[Side.BUY], sides[Side.SELL]
        status["buy_positions"] = buy.count
        status["sell_positions"] = sell.count
        if not buy.is_empty:
            away = info.to_pips(buy.average_price - snapshot.bid)
            status["buy_target_away_pips"] = str(away.quantize(Decimal("0.1")))
        if not sell.is_empty:
            away = info.to_pips(snapshot.ask - sell.average_price)
            status["sell_target_away_pips"] = str(away.quantize(Decimal("0.1")))
        return status

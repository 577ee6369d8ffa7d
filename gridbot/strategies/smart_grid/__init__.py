"""SmartGrid Strategy Package: averaging grid engine, metrics, sizing, filters and config."""

from .broker_protocol import IGridBroker
from .daily_profit import BalanceCheckpoint, DailyProfitRecorder
from .grid_config import (
    DynamicStepSchema,
    EndOfDaySchema,
    GridSchema,
    MAType,
    ProfitLogSchema,
    SmartGridConfig,
    TrendFilterSchema,
)
from .grid_engine import (
    ClosureFailure,
    ClosureReport,
    GridEngine,
    GridEngineState,
    Placement,
    PlacementKind,
    TickReport,
)
from .grid_metrics import GridMetrics
from .indicators import IndicatorValues, average_true_range, moving_average
from .models import (
    GridOwnership,
    GridSideState,
    MarketSnapshot,
    Position,
    Side,
    SymbolInfo,
)
from .pip_step import PipStepPolicy
from .position_ledger import PositionLedger
from .trend_filter import TrendFilter, TrendState
from .volume_sizer import SizingError, VolumeSizer

__all__ = [
    "IGridBroker",
    "BalanceCheckpoint",
    "DailyProfitRecorder",
    "SmartGridConfig",
    "GridSchema",
    "DynamicStepSchema",
    "TrendFilterSchema",
    "EndOfDaySchema",
    "ProfitLogSchema",
    "MAType",
    "GridEngine",
    "GridEngineState",
    "TickReport",
    "ClosureReport",
    "ClosureFailure",
    "Placement",
    "PlacementKind",
    "GridMetrics",
    "IndicatorValues",
    "average_true_range",
    "moving_average",
    "GridOwnership",
    "GridSideState",
    "MarketSnapshot",
    "Position",
    "Side",
    "SymbolInfo",
    "PipStepPolicy",
    "PositionLedger",
    "TrendFilter",
    "TrendState",
    "SizingError",
    "VolumeSizer",
]

"""
SmartGrid Example

Runs the grid engine against the paper broker on simulated one-minute bars.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import numpy as np
import pandas as pd

from gridbot.api.paper_broker import PaperBroker
from gridbot.strategies.smart_grid import (
    GridEngine,
    IndicatorValues,
    MarketSnapshot,
    SmartGridConfig,
    SymbolInfo,
)
from gridbot.utils.logger import setup_logging

CONFIG_PATH = Path(__file__).with_name("smart_grid.yaml")
SPREAD = Decimal("0.00010")


def generate_sample_data(periods: int = 600, seed: int = 7) -> pd.DataFrame:
    """
    Generate one-minute EURUSD-like OHLC bars.

    Args:
        periods: Number of bars to generate
        seed: Random seed

    Returns:
        DataFrame with open/high/low/close columns indexed by bar open time
    """
    rng = np.random.default_rng(seed)
    start = datetime(2024, 1, 2, 14, 0, tzinfo=timezone.utc)
    index = [start + timedelta(minutes=i) for i in range(periods)]

    close = 1.10000 + np.cumsum(rng.normal(0, 0.00015, periods))
    open_ = np.concatenate([[close[0]], close[:-1]])
    wick = np.abs(rng.normal(0, 0.00008, periods))

    return pd.DataFrame(
        {
            "open": open_,
            "high": np.maximum(open_, close) + wick,
            "low": np.minimum(open_, close) - wick,
            "close": close,
        },
        index=index,
    ).round(5)


def main():
    """Run SmartGrid example"""
    setup_logging(log_level="INFO", log_to_file=False)

    config = SmartGridConfig.from_yaml_file(str(CONFIG_PATH))
    symbol_info = SymbolInfo(
        pip_size=Decimal("0.0001"),
        digits=5,
        volume_min=1000,
        volume_max=100000,
        volume_step=1000,
    )

    bars = generate_sample_data()
    first_bid = Decimal(str(bars["open"].iloc[0]))
    broker = PaperBroker(config.symbol, first_bid, first_bid + SPREAD)
    engine = GridEngine.from_config(config, broker, symbol_info)

    print("=" * 70)
    print("SMARTGRID EXAMPLE")
    print("=" * 70)

    history = max(config.trend_filter.ma_period, config.dynamic_step.atr_period) + 1
    last_status = None
    for i in range(history, len(bars)):
        bar_time = bars.index[i].to_pydatetime()
        engine.on_bar(bar_time)
        indicators = IndicatorValues.from_bars(
            bars.iloc[:i],
            atr_period=config.dynamic_step.atr_period,
            ma_period=config.trend_filter.ma_period,
            ma_type=config.trend_filter.ma_type,
        )

        # Two ticks per bar: the open and the close of the forming bar
        for offset, column in ((0, "open"), (59, "close")):
            bid = Decimal(str(bars[column].iloc[i]))
            broker.set_quote(bid, bid + SPREAD)
            snapshot = MarketSnapshot(
                bid=broker.bid,
                ask=broker.ask,
                time=bar_time + timedelta(seconds=offset),
                bar_time=bar_time,
                last_close=indicators.last_close,
                prev_close=indicators.prev_close,
                atr=indicators.atr,
                ma_value=indicators.ma_value,
            )
            report = engine.on_tick(snapshot)
            for placement in report.placements:
                print(
                    f"{snapshot.time:%H:%M:%S} {placement.kind.value:<7} "
                    f"{placement.side.value:<4} {placement.volume:>6} "
                    f"@ {placement.position.entry_price}"
                )
            if report.closure is not None:
                print(f"{snapshot.time:%H:%M:%S} end of day: closed {len(report.closure.closed)}")
            last_status = engine.status_report(snapshot)

    closure = engine.stop(bars.index[-1].to_pydatetime())

    print("-" * 70)
    print(f"Final status: {last_status}")
    print(f"Closed on stop: {len(closure.closed)} (pnl {closure.realized_pnl:.2f})")
    print(f"Balance: {broker.get_balance():.2f}")
    print(f"Take-profit fills: {sum(1 for *_, r in broker.closed_history if r == 'take_profit')}")


if __name__ == "__main__":
    main()

"""Pytest configuration and shared fixtures"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from gridbot.api.paper_broker import PaperBroker
from gridbot.strategies.smart_grid.grid_config import SmartGridConfig
from gridbot.strategies.smart_grid.models import (
    GridOwnership,
    MarketSnapshot,
    Side,
    SymbolInfo,
)

UTC = timezone.utc

SYMBOL = "EURUSD"
LABEL = "cls"
INSTANCE = "test"


@pytest.fixture
def symbol_info() -> SymbolInfo:
    return SymbolInfo(
        pip_size=Decimal("0.0001"),
        digits=5,
        volume_min=1000,
        volume_max=100000,
        volume_step=1000,
    )


@pytest.fixture
def ownership() -> GridOwnership:
    return GridOwnership(label=LABEL, symbol=SYMBOL, instance_id=INSTANCE)


@pytest.fixture
def broker() -> PaperBroker:
    return PaperBroker(
        symbol=SYMBOL,
        bid=Decimal("1.10000"),
        ask=Decimal("1.10010"),
        initial_balance=Decimal("10000"),
    )


@pytest.fixture
def config() -> SmartGridConfig:
    return SmartGridConfig(
        symbol=SYMBOL,
        label=LABEL,
        instance_id=INSTANCE,
        profit_log={"enabled": False},
    )


@pytest.fixture
def open_position(broker: PaperBroker):
    """Seed a grid position directly on the paper broker."""

    def _open(side: Side, price: str, volume: int = 1000, **kwargs):
        kwargs.setdefault("label", LABEL)
        kwargs.setdefault("instance_id", INSTANCE)
        return broker.add_position(
            side=side,
            entry_price=Decimal(price),
            volume=volume,
            **kwargs,
        )

    return _open


@pytest.fixture
def make_snapshot(broker: PaperBroker):
    """Build a MarketSnapshot from the broker's current quote."""

    def _make(
        time: datetime = datetime(2024, 1, 2, 10, 0, tzinfo=UTC),
        bar_time: datetime | None = None,
        last_close: str = "1.10000",
        prev_close: str = "1.10000",
        atr: str | None = None,
        ma_value: str | None = None,
    ) -> MarketSnapshot:
        return MarketSnapshot(
            bid=broker.bid,
            ask=broker.ask,
            time=time,
            bar_time=bar_time or time.replace(second=0, microsecond=0),
            last_close=Decimal(last_close),
            prev_close=Decimal(prev_close),
            atr=Decimal(atr) if atr is not None else None,
            ma_value=Decimal(ma_value) if ma_value is not None else None,
        )

    return _make

"""Tests for PositionLedger and GridMetrics.

Covers ownership scoping, weighted averaging, extreme/oldest entries,
and extremity-count behavior under out-of-order closes.
"""

from decimal import Decimal

import pytest

from gridbot.strategies.smart_grid.grid_metrics import GridMetrics
from gridbot.strategies.smart_grid.models import Side
from gridbot.strategies.smart_grid.position_ledger import PositionLedger

# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture
def ledger(broker, ownership):
    return PositionLedger(broker, ownership)


@pytest.fixture
def metrics(ledger, symbol_info):
    return GridMetrics(ledger, symbol_info)


@pytest.fixture
def buy_grid(open_position):
    """Three-level Buy grid: 1.10010 x1000, 1.09900 x2000, 1.09800 x4000."""
    return [
        open_position(Side.BUY, "1.10010", 1000),
        open_position(Side.BUY, "1.09900", 2000),
        open_position(Side.BUY, "1.09800", 4000),
    ]


# =========================================================================
# PositionLedger
# =========================================================================


class TestPositionLedger:
    def test_empty(self, ledger):
        assert ledger.positions() == []
        assert ledger.positions(Side.BUY) == []

    def test_filters_by_side(self, ledger, open_position):
        open_position(Side.BUY, "1.10000")
        open_position(Side.SELL, "1.10000")
        open_position(Side.BUY, "1.09900")
        assert len(ledger.positions(Side.BUY)) == 2
        assert len(ledger.positions(Side.SELL)) == 1
        assert len(ledger.positions()) == 3

    def test_ignores_other_owners(self, ledger, open_position):
        mine = open_position(Side.BUY, "1.10000")
        open_position(Side.BUY, "1.09000", instance_id="other-instance")
        open_position(Side.BUY, "1.09000", label="mean_reversion")
        open_position(Side.BUY, "1.09000", symbol="GBPUSD")
        assert [p.id for p in ledger.positions()] == [mine.id]

    def test_sorted_oldest_first(self, ledger, open_position):
        ids = [open_position(Side.SELL, price).id for price in ("1.1", "1.2", "1.3")]
        assert [p.id for p in ledger.positions(Side.SELL)] == ids

    def test_rereads_broker_every_call(self, ledger, broker, open_position):
        p = open_position(Side.BUY, "1.10000")
        assert len(ledger.positions()) == 1
        broker.remove_position(p.id)
        assert len(ledger.positions()) == 0


# =========================================================================
# Side state
# =========================================================================


class TestSideState:
    def test_empty_side_is_zeroed(self, metrics):
        state = metrics.compute_side_state(Side.BUY)
        assert state.is_empty
        assert state.count == 0
        assert state.average_price == Decimal("0")
        assert state.extremity_count == 0
        assert state.oldest_volume == 0

    def test_buy_aggregates(self, metrics, buy_grid):
        state = metrics.compute_side_state(Side.BUY)
        assert state.count == 3
        # (1100.10 + 2198.00 + 4392.00) / 7000 = 1.0985857...
        assert state.average_price == Decimal("1.09859")
        assert state.extreme_price == Decimal("1.09800")
        assert state.oldest_price == Decimal("1.10010")
        assert state.oldest_volume == 1000
        assert state.extremity_count == 3
        assert state.total_volume == 7000

    def test_sell_aggregates(self, metrics, open_position):
        open_position(Side.SELL, "1.10000", 1000)
        open_position(Side.SELL, "1.10110", 1000)
        open_position(Side.SELL, "1.10220", 2000)
        state = metrics.compute_side_state(Side.SELL)
        assert state.count == 3
        assert state.extreme_price == Decimal("1.10220")
        assert state.oldest_price == Decimal("1.10000")
        assert state.extremity_count == 3
        # (1100.00 + 1101.10 + 2204.40) / 4000 = 1.101375
        assert state.average_price == Decimal("1.10138")

    def test_sides_are_independent(self, metrics, buy_grid, open_position):
        open_position(Side.SELL, "1.20000", 5000)
        assert metrics.compute_side_state(Side.BUY).count == 3
        assert metrics.compute_side_state(Side.SELL).count == 1

    def test_compute_all(self, metrics, buy_grid):
        states = metrics.compute_all()
        assert states[Side.BUY].count == 3
        assert states[Side.SELL].is_empty

    def test_to_dict(self, metrics, buy_grid):
        d = metrics.compute_side_state(Side.BUY).to_dict()
        assert d["side"] == "buy"
        assert d["count"] == 3
        assert d["average_price"] == "1.09859"


# =========================================================================
# Behavior under closes
# =========================================================================


class TestCloses:
    def test_average_matches_reduced_set(self, metrics, broker, buy_grid):
        metrics.compute_side_state(Side.BUY)
        broker.remove_position(buy_grid[2].id)
        state = metrics.compute_side_state(Side.BUY)
        # (1100.10 + 2198.00) / 3000 = 1.0993666...
        assert state.average_price == Decimal("1.09937")
        assert state.count == 2
        assert state.extreme_price == Decimal("1.09900")

    def test_extremity_unchanged_by_closing_non_extreme(self, metrics, broker, buy_grid, open_position):
        above = open_position(Side.BUY, "1.10200", 1000)
        assert metrics.compute_side_state(Side.BUY).extremity_count == 3

        broker.remove_position(above.id)
        assert metrics.compute_side_state(Side.BUY).extremity_count == 3

    def test_extremity_drops_by_closed_extreme_count(self, metrics, broker, buy_grid):
        broker.remove_position(buy_grid[1].id)
        assert metrics.compute_side_state(Side.BUY).extremity_count == 2

    def test_oldest_moves_to_next_open(self, metrics, broker, buy_grid):
        broker.remove_position(buy_grid[0].id)
        state = metrics.compute_side_state(Side.BUY)
        assert state.oldest_price == Decimal("1.09900")
        assert state.oldest_volume == 2000
        assert state.extremity_count == 2

    def test_equal_entry_counts_as_extreme(self, metrics, open_position):
        open_position(Side.SELL, "1.10000")
        open_position(Side.SELL, "1.10000")
        open_position(Side.SELL, "1.09950")
        assert metrics.compute_side_state(Side.SELL).extremity_count == 2

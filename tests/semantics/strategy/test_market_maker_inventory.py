"""
Semantic test: market maker inventory and exits.

Invariant:
Inventory changes only through filled execution feedback, closing fills
consume lots oldest first, and open inventory is closed on take-profit,
stop-loss or age regardless of the entry gate. A loaded book is reduced at a
small profit, or near capacity at a small loss, and new entries stop once
inventory reaches the reduction threshold.
"""

from __future__ import annotations

import logging

import pytest

from mm_backtest.core.domain.types import OrderBookSnapshot, Trade
from mm_backtest.strategies.market_maker import MarketMakerStrategy

SYMBOL = "BTCUSDT"
STRATEGY_LOGGER = "mm_backtest.strategies.market_maker"


def book(ts: int, mid: float) -> OrderBookSnapshot:
    return OrderBookSnapshot(ts=ts, symbol=SYMBOL, bids=[(mid - 0.05, 5.0)], asks=[(mid + 0.05, 5.0)])


def skewed_book(ts: int, mid: float) -> OrderBookSnapshot:
    return OrderBookSnapshot(ts=ts, symbol=SYMBOL, bids=[(mid - 0.05, 9.0)], asks=[(mid + 0.05, 1.0)])


def executed(side: str, price: float, quantity: float, time: int = 0, status: str = "filled") -> Trade:
    return Trade(time=time, symbol=SYMBOL, side=side, price=price, quantity=quantity, status=status)


def test_only_filled_feedback_changes_inventory() -> None:
    strategy = MarketMakerStrategy(SYMBOL)

    strategy.on_execution(executed("buy", 100.0, 1.0, status="unfilled"), filled=False)
    strategy.on_execution(executed("buy", 100.0, 1.0, status="rejected"), filled=False)
    assert strategy.net_inventory == 0.0

    strategy.on_execution(executed("buy", 100.0, 1.0), filled=True)
    assert strategy.net_inventory == pytest.approx(1.0)
    assert strategy.position_of(SYMBOL) == pytest.approx(1.0)
    assert strategy.position_of("ETHUSDT") == 0.0


def test_closing_fill_consumes_oldest_lot_first() -> None:
    strategy = MarketMakerStrategy(SYMBOL)
    strategy.on_execution(executed("buy", 100.0, 1.0, time=0), filled=True)
    strategy.on_execution(executed("buy", 101.0, 2.0, time=1), filled=True)
    assert strategy.avg_entry_price == pytest.approx((100.0 + 202.0) / 3.0)

    strategy.on_execution(executed("sell", 102.0, 1.5, time=2), filled=True)

    assert strategy.net_inventory == pytest.approx(1.5)
    assert len(strategy.positions) == 1
    assert strategy.positions[0].entry_price == 101.0
    assert strategy.positions[0].quantity == pytest.approx(1.5)
    assert strategy.avg_entry_price == pytest.approx(101.0)


def test_oversized_closing_fill_flips_into_new_lot() -> None:
    strategy = MarketMakerStrategy(SYMBOL)
    strategy.on_execution(executed("buy", 100.0, 1.0), filled=True)

    strategy.on_execution(executed("sell", 105.0, 1.5, time=5), filled=True)

    assert strategy.net_inventory == pytest.approx(-0.5)
    assert len(strategy.positions) == 1
    lot = strategy.positions[0]
    assert lot.side == "sell"
    assert lot.entry_price == 105.0
    assert lot.entry_time == 5


def test_full_close_snaps_inventory_to_zero() -> None:
    strategy = MarketMakerStrategy(SYMBOL)
    strategy.on_execution(executed("buy", 100.0, 0.1), filled=True)
    strategy.on_execution(executed("buy", 100.0, 0.2), filled=True)

    strategy.on_execution(executed("sell", 100.0, 0.3), filled=True)

    assert strategy.positions == ()
    assert strategy.net_inventory == 0.0
    assert strategy.avg_entry_price == 0.0


def test_take_profit_closes_long_inventory() -> None:
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=1)
    strategy.on_execution(executed("buy", 100.0, 1.0), filled=True)

    trade = strategy.propose(book(1000, 100.3))

    assert trade is not None
    assert trade.side == "sell"
    assert trade.quantity == pytest.approx(0.005)
    assert trade.price == pytest.approx(100.25)


def test_stop_loss_closes_short_inventory_at_limit_price() -> None:
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=1)
    strategy.on_execution(executed("sell", 100.0, 1.0), filled=True)

    trade = strategy.propose(book(1000, 100.6))

    assert trade is not None
    assert trade.side == "buy"
    # min(best ask, avg entry * (1 - min_profit))
    assert trade.price == pytest.approx(100.0 * (1 - 5.0 / 10_000))


def test_stale_position_is_closed_by_age() -> None:
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=1, max_position_age_ms=1000)
    strategy.on_execution(executed("buy", 100.0, 1.0, time=0), filled=True)

    trade = strategy.propose(book(1001, 100.0))

    assert trade is not None
    assert trade.side == "sell"


def test_exit_is_not_blocked_by_entry_gate() -> None:
    strategy = MarketMakerStrategy(
        SYMBOL,
        vwap_window=1,
        momentum_window=2,
        momentum_threshold=0.001,
    )
    strategy.on_execution(executed("buy", 100.0, 1.0), filled=True)
    strategy.propose(book(0, 100.0))

    # +30 bps trips the momentum filter and take-profit on the same snapshot.
    trade = strategy.propose(book(1000, 100.3))

    assert trade is not None
    assert trade.side == "sell"


def test_closing_quantity_is_capped_by_inventory() -> None:
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=1, fix_order_volume=5.0)
    strategy.on_execution(executed("buy", 100.0, 1.0), filled=True)

    trade = strategy.propose(book(1000, 100.3))

    assert trade is not None
    assert trade.quantity == pytest.approx(1.0)


def test_inventory_reduction_takes_small_profit_when_loaded(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=STRATEGY_LOGGER)
    loaded = MarketMakerStrategy(SYMBOL, vwap_window=1, max_inventory=1.0)
    loaded.on_execution(executed("buy", 100.0, 0.8), filled=True)
    light = MarketMakerStrategy(SYMBOL, vwap_window=1, max_inventory=1.0)
    light.on_execution(executed("buy", 100.0, 0.5), filled=True)

    # +10 bps: above min_profit_bps, below take_profit_bps.
    trade = loaded.propose(book(1000, 100.1))

    assert trade is not None
    assert trade.side == "sell"
    assert trade.quantity == pytest.approx(0.005)
    assert trade.price == pytest.approx(100.05)
    assert "INVENTORY_REDUCTION" in caplog.text

    assert light.propose(book(1000, 100.1)) is None


def test_aggressive_close_accepts_small_loss_near_capacity(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=STRATEGY_LOGGER)
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=1, max_inventory=1.0, fix_order_volume=0.5)
    strategy.on_execution(executed("buy", 100.0, 0.95), filled=True)

    # -2 bps is within min_profit_bps of break-even.
    trade = strategy.propose(book(1000, 99.98))

    assert trade is not None
    assert trade.side == "sell"
    assert trade.quantity == pytest.approx(0.5)
    assert "AGGRESSIVE_CLOSE" in caplog.text


def test_aggressive_close_holds_beyond_min_profit_loss() -> None:
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=1, max_inventory=1.0)
    strategy.on_execution(executed("buy", 100.0, 0.95), filled=True)

    # -10 bps: no exit rule fires and the balanced book gives no entry.
    assert strategy.propose(book(1000, 99.9)) is None


@pytest.mark.parametrize(("inventory", "expected_side"), [(0.65, "buy"), (0.75, None)])
def test_entries_stop_at_inventory_headroom(inventory: float, expected_side: str | None) -> None:
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=2, max_inventory=1.0, momentum_threshold=1.0)
    strategy.on_execution(executed("buy", 100.0, inventory), filled=True)

    strategy.propose(skewed_book(0, 100.0))
    # Strong bid imbalance below VWAP; -1 bps triggers no exit.
    trade = strategy.propose(skewed_book(1000, 99.99))

    assert (trade.side if trade else None) == expected_side

"""
Semantic test: market maker entry gating.

Invariant:
No proposal is made before the VWAP window is full or on a one-sided book.
A volatility or momentum breach pauses new entries for the full cooldown of
that filter, even when the entry signal is present. Volatility is checked
first, so a snapshot breaching both starts only the volatility cooldown.
"""

from __future__ import annotations

import logging

import pytest

from mm_backtest.core.domain.errors import InvalidTradeParametersError
from mm_backtest.core.domain.types import OrderBookSnapshot
from mm_backtest.strategies.market_maker import MarketMakerConfig, MarketMakerStrategy

SYMBOL = "BTCUSDT"
STRATEGY_LOGGER = "mm_backtest.strategies.market_maker"


def book(ts: int, mid: float, bid_qty: float = 9.0, ask_qty: float = 1.0) -> OrderBookSnapshot:
    """Single-level book; default quantities give a strong buy imbalance (0.8)."""
    return OrderBookSnapshot(
        ts=ts,
        symbol=SYMBOL,
        bids=[(mid - 0.05, bid_qty)],
        asks=[(mid + 0.05, ask_qty)],
    )


def test_no_proposal_until_vwap_window_is_full() -> None:
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=3, momentum_threshold=1.0)

    assert strategy.propose(book(0, 100.00)) is None
    assert strategy.propose(book(1000, 99.99)) is None

    trade = strategy.propose(book(2000, 99.98))

    assert trade is not None
    assert trade.side == "buy"
    assert trade.status == "pending"
    assert trade.quantity == pytest.approx(0.005)
    # Limit order rests below the best bid.
    assert trade.price == pytest.approx((99.98 - 0.05) * (1 - 5.0 / 10_000))


def test_one_sided_book_yields_no_proposal() -> None:
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=1)

    assert strategy.propose(OrderBookSnapshot(ts=0, symbol=SYMBOL, bids=[(100.0, 1.0)], asks=[])) is None
    assert strategy.propose(OrderBookSnapshot(ts=1, symbol=SYMBOL, bids=[], asks=[(100.0, 1.0)])) is None


def test_sell_signal_above_vwap() -> None:
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=2, momentum_threshold=1.0, use_limit_orders=False)

    strategy.propose(book(0, 100.0, bid_qty=1.0, ask_qty=9.0))
    trade = strategy.propose(book(1000, 100.01, bid_qty=1.0, ask_qty=9.0))

    assert trade is not None
    assert trade.side == "sell"
    # Market order crosses to the best bid.
    assert trade.price == pytest.approx(100.01 - 0.05)


def test_volatility_breach_pauses_entries_for_cooldown() -> None:
    strategy = MarketMakerStrategy(
        SYMBOL,
        vwap_window=2,
        volatility_window=3,
        max_volatility_threshold=0.001,
        volatility_cooldown_ms=5000,
        momentum_threshold=1.0,
    )

    assert strategy.propose(book(0, 100.0)) is None
    assert strategy.propose(book(1000, 100.01)) is None
    # A 10% jump trips the volatility filter at t=2000.
    assert strategy.propose(book(2000, 110.0)) is None

    # Entry signal present (mid below VWAP) but still cooling down.
    assert strategy.propose(book(3000, 100.0)) is None
    assert strategy.propose(book(4000, 100.0)) is None
    assert strategy.propose(book(5000, 100.0)) is None
    assert strategy.propose(book(6000, 99.9)) is None

    trade = strategy.propose(book(7000, 99.8))

    assert trade is not None
    assert trade.side == "buy"


def test_reset_clears_windows_and_inventory() -> None:
    strategy = MarketMakerStrategy(SYMBOL, vwap_window=2, momentum_threshold=1.0)
    strategy.propose(book(0, 100.0))
    strategy.propose(book(1000, 99.9))

    strategy.reset()

    assert strategy.net_inventory == 0.0
    assert strategy.positions == ()
    # VWAP window must refill after a reset.
    assert strategy.propose(book(2000, 99.8)) is None


def test_unknown_parameter_is_rejected() -> None:
    with pytest.raises(InvalidTradeParametersError):
        MarketMakerStrategy(SYMBOL, not_a_param=1)

    with pytest.raises(InvalidTradeParametersError):
        MarketMakerConfig.from_params({"vwap_window": 0})


def test_explicit_config_is_overridden_by_params() -> None:
    strategy = MarketMakerStrategy(SYMBOL, MarketMakerConfig(vwap_window=7), obi_threshold=0.3)

    assert strategy.config.vwap_window == 7
    assert strategy.config.obi_threshold == 0.3
    assert strategy.name == "Market Maker"


def paused_reasons(caplog: pytest.LogCaptureFixture) -> list[str]:
    return [
        r.getMessage().split("PAUSED: ", 1)[1].split(":", 1)[0]
        for r in caplog.records
        if "PAUSED: " in r.getMessage()
    ]


def test_momentum_breach_pauses_entries_for_cooldown(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=STRATEGY_LOGGER)
    strategy = MarketMakerStrategy(
        SYMBOL,
        vwap_window=2,
        momentum_window=2,
        momentum_threshold=0.001,
        momentum_cooldown_ms=3000,
        max_volatility_threshold=1.0,
    )

    assert strategy.propose(book(0, 100.0)) is None
    # -20 bps in one step.
    assert strategy.propose(book(1000, 99.8)) is None
    # Mid below VWAP with a calm move, but still cooling down.
    assert strategy.propose(book(2000, 99.75)) is None
    assert strategy.propose(book(3000, 99.70)) is None

    trade = strategy.propose(book(4000, 99.65))

    assert trade is not None
    assert trade.side == "buy"
    assert paused_reasons(caplog) == ["STRONG_MOMENTUM", "MOMENTUM_COOLDOWN", "MOMENTUM_COOLDOWN"]


def test_volatility_is_checked_before_momentum(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=STRATEGY_LOGGER)
    strategy = MarketMakerStrategy(
        SYMBOL,
        vwap_window=2,
        volatility_window=3,
        max_volatility_threshold=0.0001,
        volatility_cooldown_ms=5000,
        momentum_window=2,
        momentum_threshold=0.001,
        momentum_cooldown_ms=1000,
    )

    strategy.propose(book(0, 100.0))
    strategy.propose(book(1000, 100.0))
    # A -1% step breaches both filters; only volatility is recorded.
    assert strategy.propose(book(2000, 99.0)) is None
    # Past the momentum cooldown, inside the volatility one.
    assert strategy.propose(book(3500, 99.0)) is None

    assert paused_reasons(caplog) == ["HIGH_VOLATILITY", "VOLATILITY_COOLDOWN"]

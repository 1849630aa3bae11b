"""Pure signal helpers used by the market-maker strategy.

All functions are side-effect free and operate on plain sequences so they
can be unit tested without a strategy instance.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from mm_backtest.core.domain.types import IMBALANCE_LEVELS, OrderBookSnapshot

BPS: float = 10_000.0


def vwap(price_volumes: Sequence[float], volumes: Sequence[float], window: int) -> float | None:
    """Volume-weighted average over a full window.

    ``price_volumes`` holds price * volume samples aligned with ``volumes``.
    Returns None until ``window`` samples are present or when the volume sums
    to zero.
    """
    if len(volumes) < window:
        return None

    total_volume = math.fsum(volumes)
    if total_volume == 0.0:
        return None
    return math.fsum(price_volumes) / total_volume


def simple_returns(prices: Sequence[float]) -> list[float]:
    return [(cur - prev) / prev for prev, cur in zip(prices, prices[1:])]


def returns_volatility(prices: Sequence[float]) -> float:
    """Population standard deviation of simple returns (0.0 below two prices)."""
    if len(prices) < 2:
        return 0.0

    returns = simple_returns(prices)
    mean = math.fsum(returns) / len(returns)
    variance = math.fsum((r - mean) ** 2 for r in returns) / len(returns)
    return math.sqrt(variance)


def momentum(prices: Sequence[float]) -> float:
    """Relative change from the first to the last price of the window."""
    if len(prices) < 2:
        return 0.0
    return (prices[-1] - prices[0]) / prices[0]


def order_book_imbalance(snapshot: OrderBookSnapshot, levels: int = IMBALANCE_LEVELS) -> float:
    return snapshot.order_book_imbalance(levels)


def pnl_bps(side: str, entry_price: float, current_price: float) -> float:
    """Mark-to-price return of a lot in basis points."""
    if entry_price == 0.0:
        return 0.0
    if side == "buy":
        return (current_price - entry_price) / entry_price * BPS
    return (entry_price - current_price) / entry_price * BPS

"""Derived performance metrics over closed trades (in close order)."""

from __future__ import annotations

import math
from itertools import accumulate
from typing import TYPE_CHECKING

from mm_backtest.core.domain.types import DrawdownStats, TradingMetrics

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mm_backtest.core.domain.types import ClosedTrade

TRADING_DAYS_PER_YEAR: int = 252


def cumulative_pnl(pnls: Sequence[float]) -> list[float]:
    return list(accumulate(pnls))


def max_drawdown(pnls: Sequence[float]) -> DrawdownStats:
    """Largest peak-to-trough fall of cumulative realized pnl.

    The running peak starts at the first cumulative value (not at zero), so a
    series that starts with a loss has no drawdown until it recovers and falls
    again. The percentage is relative to the peak and only defined while the
    peak is positive.
    """
    curve = cumulative_pnl(pnls)
    if not curve:
        return DrawdownStats()

    peak = curve[0]
    worst = 0.0
    worst_pct = 0.0
    for value in curve:
        peak = max(peak, value)
        drawdown = peak - value
        worst = max(worst, drawdown)
        if peak > 0.0:
            worst_pct = max(worst_pct, drawdown / peak * 100.0)

    return DrawdownStats(max_drawdown=worst, max_drawdown_pct=worst_pct)


def trade_returns(closed_trades: Sequence[ClosedTrade]) -> list[float]:
    """Fractional return of each closed trade on its entry notional."""
    returns = []
    for closed in closed_trades:
        basis = closed.quantity * closed.open_price
        returns.append(closed.pnl / basis if basis else 0.0)
    return returns


def sharpe_ratio(returns: Sequence[float]) -> float:
    """Annualized Sharpe ratio (sample std-dev, sqrt(252) scaling)."""
    n = len(returns)
    if n < 2:
        return 0.0

    mean = math.fsum(returns) / n
    variance = math.fsum((r - mean) ** 2 for r in returns) / (n - 1)
    std = math.sqrt(variance)
    if std == 0.0:
        return 0.0
    return mean / std * math.sqrt(TRADING_DAYS_PER_YEAR)


def trading_metrics(closed_trades: Sequence[ClosedTrade]) -> TradingMetrics:
    if not closed_trades:
        return TradingMetrics()

    pnls = [c.pnl for c in closed_trades]
    wins = [p for p in pnls if p > 0.0]
    losses = [-p for p in pnls if p < 0.0]

    gross_win = sum(wins)
    gross_loss = sum(losses)
    if gross_loss > 0.0:
        profit_factor = gross_win / gross_loss
    elif wins:
        profit_factor = math.inf
    else:
        profit_factor = 0.0

    drawdown = max_drawdown(pnls)

    return TradingMetrics(
        total_trades=len(pnls),
        winning_trades=len(wins),
        losing_trades=len(losses),
        total_pnl=sum(pnls),
        max_drawdown=drawdown.max_drawdown,
        max_drawdown_pct=drawdown.max_drawdown_pct,
        sharpe_ratio=sharpe_ratio(trade_returns(closed_trades)),
        win_rate=len(wins) / len(pnls),
        avg_win=gross_win / len(wins) if wins else 0.0,
        avg_loss=gross_loss / len(losses) if losses else 0.0,
        profit_factor=profit_factor,
    )

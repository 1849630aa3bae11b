"""Mark-to-market of open lots."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from mm_backtest.accounting.lots import OpenLot
    from mm_backtest.core.domain.types import Trade


def last_prices(trades: Iterable[Trade]) -> dict[str, float]:
    """Last traded price per symbol, in input order."""
    prices: dict[str, float] = {}
    for trade in trades:
        prices[trade.symbol] = trade.price
    return prices


def position_unrealized_pnl(quantity: float, avg_price: float, current_price: float) -> float:
    """Unrealized pnl of a signed position (+ long) marked at ``current_price``."""
    if quantity > 0.0:
        return (current_price - avg_price) * quantity
    return (avg_price - current_price) * abs(quantity)


def unrealized_pnl(
    open_lots: Mapping[str, list[OpenLot]],
    marks: Mapping[str, float],
) -> tuple[float, dict[str, float]]:
    """Total and per-symbol unrealized pnl.

    Symbols without a mark are valued at their entry price (zero pnl).
    """
    by_symbol: dict[str, float] = {}
    for symbol, lots in open_lots.items():
        pnl = 0.0
        for lot in lots:
            mark = marks.get(symbol, lot.price)
            pnl += position_unrealized_pnl(lot.signed_quantity, lot.price, mark)
        by_symbol[symbol] = pnl
    return sum(by_symbol.values()), by_symbol

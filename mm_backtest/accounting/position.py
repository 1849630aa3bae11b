"""Average-cost position accounting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from mm_backtest.accounting.lots import QTY_EPSILON, MatchResult, OpenLot
from mm_backtest.core.domain.types import ClosedTrade, opposite_side

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mm_backtest.core.domain.types import Trade


@dataclass(slots=True)
class AggregatePosition:
    """Signed quantity (+ long), average entry price and total cost basis."""

    quantity: float = 0.0
    avg_price: float = 0.0
    total_cost: float = 0.0
    last_time: int = 0

    @property
    def is_flat(self) -> bool:
        return abs(self.quantity) <= QTY_EPSILON

    def open(self, side: str, price: float, quantity: float, time: int) -> None:
        self.quantity = quantity if side == "buy" else -quantity
        self.avg_price = price
        self.total_cost = price * quantity
        self.last_time = time


class PositionProcessor:
    """One aggregate position per symbol; realizes against the average price.

    Adding in the position's direction re-averages the entry price. An
    opposing fill realizes the matched quantity as a single closed trade; any
    excess flips the position at the fill price.
    """

    def process(self, trades: Iterable[Trade]) -> MatchResult:
        positions: dict[str, AggregatePosition] = {}
        closed: list[ClosedTrade] = []

        for trade in trades:
            pos = positions.setdefault(trade.symbol, AggregatePosition())
            side = trade.side.lower()
            qty = trade.quantity

            if pos.is_flat:
                pos.open(side, trade.price, qty, trade.time)
                continue

            long = pos.quantity > 0.0
            if long == (side == "buy"):
                new_quantity = pos.quantity + (qty if long else -qty)
                pos.total_cost += trade.price * qty
                pos.avg_price = pos.total_cost / abs(new_quantity)
                pos.quantity = new_quantity
                pos.last_time = trade.time
                continue

            matched = min(qty, abs(pos.quantity))
            if long:
                pnl = (trade.price - pos.avg_price) * matched
                pos.quantity -= matched
            else:
                pnl = (pos.avg_price - trade.price) * matched
                pos.quantity += matched

            closed.append(
                ClosedTrade(
                    symbol=trade.symbol,
                    open_side=opposite_side(side),
                    open_price=pos.avg_price,
                    close_side=side,
                    close_price=trade.price,
                    quantity=matched,
                    pnl=pnl,
                    close_time=trade.time,
                )
            )

            if pos.is_flat:
                pos.quantity = 0.0
                pos.avg_price = 0.0
                pos.total_cost = 0.0
            else:
                pos.total_cost = pos.avg_price * abs(pos.quantity)

            remaining = qty - matched
            if remaining > QTY_EPSILON:
                pos.open(side, trade.price, remaining, trade.time)

        open_lots: dict[str, list[OpenLot]] = {}
        for symbol, pos in positions.items():
            if pos.is_flat:
                continue
            side = "buy" if pos.quantity > 0.0 else "sell"
            open_lots[symbol] = [OpenLot(side, pos.avg_price, abs(pos.quantity), pos.last_time)]

        return MatchResult(closed_trades=closed, open_lots=open_lots)

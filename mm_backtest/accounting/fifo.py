"""FIFO lot matching."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from mm_backtest.accounting.lots import QTY_EPSILON, MatchResult, OpenLot
from mm_backtest.core.domain.types import ClosedTrade

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mm_backtest.core.domain.types import Trade


class FifoProcessor:
    """Match opposing fills against the oldest open lot of the same symbol.

    A fill on the same side as the queue head (or into an empty queue) opens a
    lot. An opposing fill consumes lots oldest first, splitting the last one
    when needed; any leftover opens a lot on the incoming side.
    """

    def process(self, trades: Iterable[Trade]) -> MatchResult:
        queues: dict[str, deque[OpenLot]] = {}
        closed: list[ClosedTrade] = []

        for trade in trades:
            queue = queues.setdefault(trade.symbol, deque())
            side = trade.side.lower()

            if not queue or queue[0].side == side:
                queue.append(OpenLot(side, trade.price, trade.quantity, trade.time))
                continue

            remaining = trade.quantity
            while remaining > QTY_EPSILON and queue:
                head = queue[0]
                matched = min(remaining, head.quantity)

                if side == "buy":
                    pnl = (head.price - trade.price) * matched
                else:
                    pnl = (trade.price - head.price) * matched

                closed.append(
                    ClosedTrade(
                        symbol=trade.symbol,
                        open_side=head.side,
                        open_price=head.price,
                        close_side=side,
                        close_price=trade.price,
                        quantity=matched,
                        pnl=pnl,
                        close_time=trade.time,
                    )
                )

                remaining -= matched
                head.quantity -= matched
                if head.quantity <= QTY_EPSILON:
                    queue.popleft()

            if remaining > QTY_EPSILON:
                queue.append(OpenLot(side, trade.price, remaining, trade.time))

        return MatchResult(
            closed_trades=closed,
            open_lots={symbol: list(q) for symbol, q in queues.items() if q},
        )

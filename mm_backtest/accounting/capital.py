"""Capital and margin usage replayed from the ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mm_backtest.accounting.unrealized import position_unrealized_pnl
from mm_backtest.core.domain.errors import InvalidTradeParametersError
from mm_backtest.core.domain.types import CapitalMetrics

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mm_backtest.core.domain.ledger import Ledger
    from mm_backtest.core.domain.types import OrderBookSnapshot, Trade

# Share of open notional held back on top of margin.
SAFETY_BUFFER_RATE: float = 0.02
# Positions smaller than this are treated as flat.
FLAT_EPSILON: float = 1e-8


@dataclass(slots=True)
class CapitalSample:
    ts: int
    required_capital: float
    unrealized_pnl: float
    margin: float
    open_value: float


@dataclass(slots=True)
class CapitalTracker:
    """Replays filled trades of one symbol and samples capital usage per fill."""

    margin_rate: float = 0.1
    quantity: float = 0.0
    avg_price: float = 0.0
    samples: list[CapitalSample] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not 0.0 <= self.margin_rate <= 1.0:
            raise InvalidTradeParametersError(
                f"Margin rate must be between 0.0 and 1.0, got {self.margin_rate}"
            )

    def apply(self, trade: Trade, mark_price: float) -> CapitalSample:
        delta = trade.signed_quantity
        qty = self.quantity

        if qty == 0.0:
            new_avg = trade.price
        elif (qty > 0.0) == (delta > 0.0):
            new_avg = (abs(qty) * self.avg_price + abs(delta) * trade.price) / (abs(qty) + abs(delta))
        elif abs(delta) > abs(qty):
            # Flip: the remainder was opened at this trade's price.
            new_avg = trade.price
        else:
            new_avg = self.avg_price

        new_qty = qty + delta
        if abs(new_qty) < FLAT_EPSILON:
            self.quantity, self.avg_price = 0.0, 0.0
        else:
            self.quantity, self.avg_price = new_qty, new_avg

        return self._sample(trade.time, mark_price)

    def _sample(self, ts: int, mark_price: float) -> CapitalSample:
        if abs(self.quantity) < FLAT_EPSILON:
            unrealized = open_value = 0.0
        else:
            unrealized = position_unrealized_pnl(self.quantity, self.avg_price, mark_price)
            open_value = abs(self.quantity) * mark_price

        margin = open_value * self.margin_rate
        required = margin + max(0.0, -unrealized) + open_value * SAFETY_BUFFER_RATE

        sample = CapitalSample(ts, required, unrealized, margin, open_value)
        self.samples.append(sample)
        return sample

    def metrics(self) -> CapitalMetrics:
        if not self.samples:
            return CapitalMetrics()

        required = [s.required_capital for s in self.samples]
        worst_unrealized = min(0.0, min(s.unrealized_pnl for s in self.samples))

        return CapitalMetrics(
            max_required_capital=max(0.0, max(required)),
            max_drawdown=abs(worst_unrealized),
            max_open_positions_value=max(0.0, max(s.open_value for s in self.samples)),
            average_capital_utilization=sum(required) / len(required),
            peak_margin_requirement=max(0.0, max(s.margin for s in self.samples)),
            max_unrealized_loss=abs(worst_unrealized),
        )


def replay_capital(
    trades: Sequence[Trade],
    snapshots: Sequence[OrderBookSnapshot],
    symbol: str,
    margin_rate: float = 0.1,
) -> CapitalTracker:
    """Mark each fill at the mid of the first snapshot at or after it.

    Falls back to the fill price once the snapshots are exhausted.
    """
    tracker = CapitalTracker(margin_rate=margin_rate)
    idx = 0
    for trade in trades:
        if trade.symbol != symbol or trade.status != "filled":
            continue

        while idx < len(snapshots) and snapshots[idx].ts < trade.time:
            idx += 1

        mark = snapshots[idx].mid_price() if idx < len(snapshots) else trade.price
        tracker.apply(trade, mark)
    return tracker


def capital_metrics(ledger: Ledger, symbol: str, margin_rate: float = 0.1) -> CapitalMetrics:
    return replay_capital(ledger.filled_trades(), ledger.snapshots(), symbol, margin_rate).metrics()


def trading_costs(ledger: Ledger) -> dict[str, Any]:
    """Attempt / success counts over the whole ledger."""
    filled = ledger.filled_trades()
    failed = ledger.failed_trades()
    attempted = len(filled) + len(failed)

    return {
        "total_attempted_trades": attempted,
        "successful_trades": len(filled),
        "failed_trades": len(failed),
        "buy_trades": sum(1 for t in filled if t.side == "buy"),
        "sell_trades": sum(1 for t in filled if t.side == "sell"),
        "fill_rate": len(filled) / attempted if attempted else 0.0,
    }

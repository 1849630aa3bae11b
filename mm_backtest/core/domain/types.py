"""Core shared data models.

This module defines the canonical Pydantic models used across the system for
order-book snapshots, trade proposals, accounting results and run statistics.
These types are treated as schema definitions (see ``core/schemas``) and
intentionally prioritize structural clarity over minimal class size.
"""

# pylint: disable=missing-class-docstring,missing-function-docstring
from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Side = Literal["buy", "sell"]
TradeStatus = Literal["pending", "filled", "rejected", "unfilled"]

# Number of levels per side used for the order-book imbalance signal.
IMBALANCE_LEVELS: int = 5


def opposite_side(side: str) -> str:
    return "sell" if side == "buy" else "buy"


def signed_quantity(side: str, quantity: float) -> float:
    return quantity if side == "buy" else -quantity


# ---------------------------------------------------------------------------
# Market data
# ---------------------------------------------------------------------------


class OrderBookSnapshot(BaseModel):
    """Full-depth order-book snapshot.

    ``bids`` are ordered best (highest) first, ``asks`` best (lowest) first.
    Every derived value is 0.0 when either side is empty.
    """

    ts: int = Field(..., ge=0, description="Snapshot timestamp in milliseconds.")
    symbol: str | None = Field(default=None, min_length=1)
    bids: list[tuple[float, float]] = Field(default_factory=list)
    asks: list[tuple[float, float]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", frozen=True)

    def is_two_sided(self) -> bool:
        return bool(self.bids) and bool(self.asks)

    @property
    def best_bid(self) -> float:
        return self.bids[0][0] if self.bids else 0.0

    @property
    def best_ask(self) -> float:
        return self.asks[0][0] if self.asks else 0.0

    @property
    def top_of_book_volume(self) -> float:
        if not self.is_two_sided():
            return 0.0
        return self.bids[0][1] + self.asks[0][1]

    def mid_price(self) -> float:
        if not self.is_two_sided():
            return 0.0
        return (self.bids[0][0] + self.asks[0][0]) / 2.0

    def spread_abs(self) -> float:
        if not self.is_two_sided():
            return 0.0
        return self.asks[0][0] - self.bids[0][0]

    def spread_pct(self) -> float:
        mid = self.mid_price()
        if mid == 0.0:
            return 0.0
        return self.spread_abs() / mid

    def order_book_imbalance(self, levels: int = IMBALANCE_LEVELS) -> float:
        if not self.is_two_sided():
            return 0.0

        bid_vol = sum(qty for _, qty in self.bids[:levels])
        ask_vol = sum(qty for _, qty in self.asks[:levels])

        if bid_vol + ask_vol == 0.0:
            return 0.0
        return (bid_vol - ask_vol) / (bid_vol + ask_vol)

    def avg_top_bid_depth(self, levels: int = IMBALANCE_LEVELS) -> float:
        """Mean quantity over the top ``levels`` bid levels."""
        if not self.is_two_sided():
            return 0.0
        top = self.bids[:levels]
        return sum(qty for _, qty in top) / len(top)


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------


class Trade(BaseModel):
    """
    A trade proposal and, once executed, its outcome.

    Notes:
    - ``id`` is assigned once at creation and never changes; executed copies
      keep the id of the proposal they came from.
    - ``status`` follows pending -> filled | rejected | unfilled (see
      ``trade_state_machine``).
    """

    time: int = Field(..., ge=0, description="Proposal timestamp in milliseconds.")
    symbol: str = Field(..., min_length=1)
    side: Side
    price: float = Field(..., ge=0)
    quantity: float = Field(..., gt=0)
    status: TradeStatus = "pending"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1)

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @property
    def signed_quantity(self) -> float:
        return signed_quantity(self.side, self.quantity)

    @property
    def notional(self) -> float:
        return self.price * self.quantity

    def is_filled(self) -> bool:
        return self.status == "filled"


# ---------------------------------------------------------------------------
# Accounting results
# ---------------------------------------------------------------------------


class ClosedTrade(BaseModel):
    symbol: str = Field(..., min_length=1)
    open_side: Side
    open_price: float
    close_side: Side
    close_price: float
    quantity: float = Field(..., gt=0)
    pnl: float
    close_time: int = 0

    model_config = ConfigDict(extra="forbid", frozen=True)


class PnLResult(BaseModel):
    total_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    closed_trades: tuple[ClosedTrade, ...] = ()
    total_fees: float = 0.0
    # Signed open quantity: positive = net long.
    remaining_quantity: float = 0.0

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def total_pnl_with_unrealized(self) -> float:
        return self.total_pnl + self.unrealized_pnl

    @property
    def net_pnl(self) -> float:
        return self.total_pnl - self.total_fees

    def realized_series(self) -> list[float]:
        return [closed.pnl for closed in self.closed_trades]


class DrawdownStats(BaseModel):
    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0

    model_config = ConfigDict(extra="forbid", frozen=True)


class TradingMetrics(BaseModel):
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    total_pnl: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0
    sharpe_ratio: float = 0.0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0

    model_config = ConfigDict(extra="forbid", frozen=True)


class CapitalMetrics(BaseModel):
    max_required_capital: float = 0.0
    max_drawdown: float = 0.0
    max_open_positions_value: float = 0.0
    average_capital_utilization: float = 0.0
    peak_margin_requirement: float = 0.0
    max_unrealized_loss: float = 0.0

    model_config = ConfigDict(extra="forbid", frozen=True)


class ExecutionStats(BaseModel):
    total_trades: int = 0
    filled_trades: int = 0
    rejected_trades: int = 0
    unfilled_trades: int = 0
    total_slippage: float = 0.0

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def fill_rate(self) -> float:
        if self.total_trades == 0:
            return 0.0
        return self.filled_trades / self.total_trades

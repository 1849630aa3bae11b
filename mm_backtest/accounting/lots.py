"""Shared lot-matching output used by both accounting methods."""

from __future__ import annotations

from dataclasses import dataclass, field

from mm_backtest.core.domain.types import ClosedTrade

# Residual lot quantities below this are treated as fully consumed.
QTY_EPSILON: float = 1e-12


@dataclass(slots=True)
class OpenLot:
    side: str
    price: float
    quantity: float
    time: int = 0

    @property
    def signed_quantity(self) -> float:
        return self.quantity if self.side == "buy" else -self.quantity


@dataclass(slots=True)
class MatchResult:
    """Realized matches plus whatever remains open, per symbol."""

    closed_trades: list[ClosedTrade] = field(default_factory=list)
    open_lots: dict[str, list[OpenLot]] = field(default_factory=dict)

    @property
    def total_pnl(self) -> float:
        return sum(c.pnl for c in self.closed_trades)

    def remaining_by_symbol(self) -> dict[str, float]:
        return {
            symbol: sum(lot.signed_quantity for lot in lots)
            for symbol, lots in self.open_lots.items()
        }

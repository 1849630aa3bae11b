"""P&L calculation over ledger trades.

``PnlCalculator`` filters filled trades, runs the selected lot-matching
method and marks remaining open quantity to the last filled price. FIFO and
Position results are independent views and are never reconciled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from mm_backtest.accounting.fifo import FifoProcessor
from mm_backtest.accounting.position import PositionProcessor
from mm_backtest.accounting.unrealized import last_prices, unrealized_pnl
from mm_backtest.core.domain.errors import InvalidTradeParametersError
from mm_backtest.core.domain.types import PnLResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mm_backtest.core.domain.types import Trade

LOGGER = logging.getLogger(__name__)


class PnlMethod(str, Enum):
    FIFO = "fifo"
    POSITION = "position"

    @classmethod
    def parse(cls, value: PnlMethod | str) -> PnlMethod:
        if isinstance(value, PnlMethod):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            raise InvalidTradeParametersError(
                f"unknown pnl method {value!r}; expected one of "
                f"{[m.value for m in cls]}"
            ) from exc


@dataclass(slots=True)
class SymbolReportRow:
    symbol: str
    trades: int
    last_price: float
    realized_pnl: float
    unrealized_pnl: float
    remaining_quantity: float

    @property
    def total_pnl(self) -> float:
        return self.realized_pnl + self.unrealized_pnl


@dataclass(slots=True)
class PnlReport:
    method: PnlMethod
    rows: list[SymbolReportRow] = field(default_factory=list)

    @property
    def total_trades(self) -> int:
        return sum(r.trades for r in self.rows)

    @property
    def total_realized(self) -> float:
        return sum(r.realized_pnl for r in self.rows)

    @property
    def total_unrealized(self) -> float:
        return sum(r.unrealized_pnl for r in self.rows)

    @property
    def total_remaining(self) -> float:
        return sum(r.remaining_quantity for r in self.rows)

    @property
    def grand_total(self) -> float:
        return self.total_realized + self.total_unrealized

    def to_text(self) -> str:
        header = f"{'Symbol':<12}{'Trades':>8}{'Last Price':>14}{'Realized':>14}{'Unrealized':>14}{'Remaining':>12}{'Total':>14}"
        lines = [f"=== P&L Summary by Symbol ({self.method.value}) ===", header]
        for r in self.rows:
            lines.append(
                f"{r.symbol:<12}{r.trades:>8}{r.last_price:>14.2f}{r.realized_pnl:>14.2f}"
                f"{r.unrealized_pnl:>14.2f}{r.remaining_quantity:>12.4f}{r.total_pnl:>14.2f}"
            )
        lines.append("-" * len(header))
        lines.append(
            f"{'TOTAL':<12}{self.total_trades:>8}{'-':>14}{self.total_realized:>14.2f}"
            f"{self.total_unrealized:>14.2f}{self.total_remaining:>12.4f}{self.grand_total:>14.2f}"
        )
        return "\n".join(lines)


class PnlCalculator:
    """Deterministic, idempotent P&L over a trade list."""

    def __init__(self, fee_rate: float = 0.0) -> None:
        if fee_rate < 0.0:
            raise InvalidTradeParametersError(f"fee_rate must be non-negative, got {fee_rate}")
        self.fee_rate = fee_rate
        self._fifo = FifoProcessor()
        self._position = PositionProcessor()

    @staticmethod
    def filled_only(trades: Iterable[Trade]) -> list[Trade]:
        return [t for t in trades if t.status.lower() == "filled"]

    def calculate(self, trades: Iterable[Trade], method: PnlMethod | str = PnlMethod.FIFO) -> PnLResult:
        method = PnlMethod.parse(method)
        filled = self.filled_only(trades)
        if not filled:
            return PnLResult()

        if method is PnlMethod.FIFO:
            matched = self._fifo.process(filled)
        else:
            matched = self._position.process(filled)

        unrealized, _ = unrealized_pnl(matched.open_lots, last_prices(filled))
        fees = self.fee_rate * sum(t.notional for t in filled)

        result = PnLResult(
            total_pnl=matched.total_pnl,
            unrealized_pnl=unrealized,
            closed_trades=tuple(matched.closed_trades),
            total_fees=fees,
            remaining_quantity=sum(matched.remaining_by_symbol().values()),
        )

        LOGGER.debug(
            "pnl_calculated",
            extra={
                "method": method.value,
                "filled_trades": len(filled),
                "closed_trades": len(result.closed_trades),
                "realized_pnl": result.total_pnl,
                "unrealized_pnl": result.unrealized_pnl,
            },
        )
        return result

    def report(self, trades: Iterable[Trade], method: PnlMethod | str = PnlMethod.FIFO) -> PnlReport:
        """Per-symbol breakdown (sorted by symbol) plus totals."""
        method = PnlMethod.parse(method)

        by_symbol: dict[str, list[Trade]] = {}
        for trade in trades:
            by_symbol.setdefault(trade.symbol, []).append(trade)

        report = PnlReport(method=method)
        for symbol in sorted(by_symbol):
            symbol_trades = by_symbol[symbol]
            result = self.calculate(symbol_trades, method)
            marks = last_prices(self.filled_only(symbol_trades))
            report.rows.append(
                SymbolReportRow(
                    symbol=symbol,
                    trades=len(symbol_trades),
                    last_price=marks.get(symbol, 0.0),
                    realized_pnl=result.total_pnl,
                    unrealized_pnl=result.unrealized_pnl,
                    remaining_quantity=result.remaining_quantity,
                )
            )
        return report

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mm_backtest.core.domain.types import (
    CapitalMetrics,
    ExecutionStats,
    PnLResult,
    TradingMetrics,
)

if TYPE_CHECKING:
    from mm_backtest.core.domain.ledger import Ledger


@dataclass
class BacktestConfig:
    """Generic backtest configuration.

    Engine configs should subclass this
    and add engine-specific fields.
    """
    id: str
    description: str


@dataclass
class BacktestResult:
    """Container for backtest outputs.

    The ledger is the source of truth; every other field is derived from it
    (or, for ``execution``, from the executor's running statistics).
    """
    id: str
    ledger: Ledger
    symbol: str
    pnl: PnLResult = field(default_factory=PnLResult)
    metrics: TradingMetrics = field(default_factory=TradingMetrics)
    capital: CapitalMetrics = field(default_factory=CapitalMetrics)
    execution: ExecutionStats = field(default_factory=ExecutionStats)
    costs: dict[str, Any] = field(default_factory=dict)
    elapsed_seconds: float = 0.0
    extra_metadata: dict[str, Any] | None = None

    def summary(self) -> dict[str, float]:
        """Flat numeric summary used by the CLI and telemetry."""
        return {
            "realized_pnl": self.pnl.total_pnl,
            "unrealized_pnl": self.pnl.unrealized_pnl,
            "total_pnl_with_unrealized": self.pnl.total_pnl_with_unrealized,
            "total_fees": self.pnl.total_fees,
            "net_pnl": self.pnl.net_pnl,
            "remaining_quantity": self.pnl.remaining_quantity,
            "closed_trades": float(self.metrics.total_trades),
            "win_rate": self.metrics.win_rate,
            "profit_factor": self.metrics.profit_factor,
            "max_drawdown": self.metrics.max_drawdown,
            "max_drawdown_pct": self.metrics.max_drawdown_pct,
            "sharpe_ratio": self.metrics.sharpe_ratio,
            "total_trades": float(self.execution.total_trades),
            "filled_trades": float(self.execution.filled_trades),
            "rejected_trades": float(self.execution.rejected_trades),
            "unfilled_trades": float(self.execution.unfilled_trades),
            "fill_rate": self.execution.fill_rate,
            "total_slippage": self.execution.total_slippage,
            "max_required_capital": self.capital.max_required_capital,
            "peak_margin_requirement": self.capital.peak_margin_requirement,
            "max_unrealized_loss": self.capital.max_unrealized_loss,
            "elapsed_seconds": self.elapsed_seconds,
        }


class BacktestEngine:
    """Abstract base class for all backtest engines."""

    def __init__(self, config: BacktestConfig) -> None:
        self.config = config

    def run(self) -> BacktestResult:
        """Run the backtest and return a result object.

        Subclass engines must implement this method.
        """
        raise NotImplementedError("run() must be implemented by subclasses")

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from mm_backtest.accounting.calculator import PnlCalculator

if TYPE_CHECKING:
    from mm_backtest.accounting.calculator import PnlMethod
    from mm_backtest.backtest.engine.engine_base import BacktestResult


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class SummarySection:
    title: str
    rows: list[tuple[str, str]]


# ---------------------------------------------------------------------------
# Summary builder
# ---------------------------------------------------------------------------

def _money(value: float) -> str:
    return f"${value:,.2f}"


def summarize_backtest(result: BacktestResult) -> list[SummarySection]:
    pnl = result.pnl
    metrics = result.metrics
    stats = result.execution
    capital = result.capital
    costs = result.costs

    sections = [
        SummarySection(
            "P&L",
            [
                ("Realized PnL", _money(pnl.total_pnl)),
                ("Unrealized PnL", _money(pnl.unrealized_pnl)),
                ("Total PnL", _money(pnl.total_pnl_with_unrealized)),
                ("Fees", _money(pnl.total_fees)),
                ("Remaining quantity", f"{pnl.remaining_quantity:.6f}"),
                ("Closed trades", str(metrics.total_trades)),
                ("Win rate", f"{metrics.win_rate:.2%}"),
                ("Average win", _money(metrics.avg_win)),
                ("Average loss", _money(metrics.avg_loss)),
                ("Profit factor", f"{metrics.profit_factor:.2f}"),
                ("Max drawdown", f"{_money(metrics.max_drawdown)} ({metrics.max_drawdown_pct:.2f}%)"),
                ("Sharpe ratio", f"{metrics.sharpe_ratio:.2f}"),
            ],
        ),
        SummarySection(
            "Execution",
            [
                ("Proposals", str(stats.total_trades)),
                ("Filled", str(stats.filled_trades)),
                ("Rejected", str(stats.rejected_trades)),
                ("Unfilled", str(stats.unfilled_trades)),
                ("Fill rate", f"{stats.fill_rate:.2%}"),
                ("Total slippage", _money(stats.total_slippage)),
                ("Buy fills", str(costs.get("buy_trades", 0))),
                ("Sell fills", str(costs.get("sell_trades", 0))),
            ],
        ),
        SummarySection(
            "Capital",
            [
                ("Max required capital", _money(capital.max_required_capital)),
                ("Average capital utilization", _money(capital.average_capital_utilization)),
                ("Max open positions value", _money(capital.max_open_positions_value)),
                ("Peak margin requirement", _money(capital.peak_margin_requirement)),
                ("Max unrealized loss", _money(capital.max_unrealized_loss)),
            ],
        ),
    ]
    return sections


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def format_backtest_summary(result: BacktestResult, method: PnlMethod) -> str:
    lines = [
        f"Backtest {result.id} | {result.symbol} | {method.value} | {result.elapsed_seconds:.2f}s",
    ]
    for section in summarize_backtest(result):
        lines.append("")
        lines.append(f"=== {section.title} ===")
        width = max(len(label) for label, _ in section.rows)
        for label, value in section.rows:
            lines.append(f"{label:<{width}}  {value}")

    lines.append("")
    lines.append(PnlCalculator().report(result.ledger.all_trades(), method).to_text())
    return "\n".join(lines)


def print_backtest_summary(result: BacktestResult, method: PnlMethod) -> None:
    print(format_backtest_summary(result, method))

"""Public API for the mm_backtest package.

Only symbols imported here are considered part of the stable,
supported external interface.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ----------------------------------------------------------------------
# Accounting API
# ----------------------------------------------------------------------
from mm_backtest.accounting.calculator import PnlCalculator, PnlMethod
from mm_backtest.accounting.capital import CapitalTracker, capital_metrics, trading_costs
from mm_backtest.accounting.metrics import max_drawdown, sharpe_ratio, trading_metrics

# ----------------------------------------------------------------------
# Backtest Engine API
# ----------------------------------------------------------------------
from mm_backtest.backtest.adapters.execution import ExecutionConfig, ExecutionSimulator
from mm_backtest.backtest.engine.engine_base import BacktestResult
from mm_backtest.backtest.engine.replay_engine import (
    ReplayBacktestConfig,
    ReplayBacktestEngine,
    ReplayEngineConfig,
)
from mm_backtest.backtest.engine.replay_loop import ReplayLoop
from mm_backtest.backtest.io.jsonl_source import JsonlDataSource
from mm_backtest.backtest.io.memory_source import InMemoryDataSource

# ----------------------------------------------------------------------
# Domain Types
# ----------------------------------------------------------------------
from mm_backtest.core.domain.errors import (
    DataLoadingError,
    InsufficientMarginError,
    InvalidOrderBookError,
    InvalidTradeParametersError,
    PositionLimitExceededError,
    TradeError,
    TradeNotFoundError,
)
from mm_backtest.core.domain.ledger import Ledger
from mm_backtest.core.domain.types import (
    CapitalMetrics,
    ClosedTrade,
    DrawdownStats,
    ExecutionStats,
    OrderBookSnapshot,
    PnLResult,
    Trade,
    TradingMetrics,
)
from mm_backtest.core.ports.data_source import DataSource

# ----------------------------------------------------------------------
# Config API (used by consumers)
# ----------------------------------------------------------------------
from mm_backtest.core.risk.risk_config import RiskConfig

# ----------------------------------------------------------------------
# Strategy Interface
# ----------------------------------------------------------------------
from mm_backtest.strategies.base import Strategy
from mm_backtest.strategies.market_maker import MarketMakerConfig, MarketMakerStrategy
from mm_backtest.strategies.strategy_config import StrategyConfig

# ----------------------------------------------------------------------
# Public API definition
# ----------------------------------------------------------------------

__all__ = [
    # Engine
    "ReplayBacktestEngine",
    "ReplayBacktestConfig",
    "ReplayEngineConfig",
    "ReplayLoop",
    "BacktestResult",
    "ExecutionConfig",
    "ExecutionSimulator",

    # Data
    "DataSource",
    "JsonlDataSource",
    "InMemoryDataSource",

    # Accounting
    "PnlCalculator",
    "PnlMethod",
    "CapitalTracker",
    "capital_metrics",
    "trading_costs",
    "max_drawdown",
    "sharpe_ratio",
    "trading_metrics",

    # Config
    "RiskConfig",
    "StrategyConfig",
    "MarketMakerConfig",

    # Strategy interface
    "Strategy",
    "MarketMakerStrategy",

    # Domain
    "Ledger",
    "OrderBookSnapshot",
    "Trade",
    "ClosedTrade",
    "PnLResult",
    "DrawdownStats",
    "TradingMetrics",
    "CapitalMetrics",
    "ExecutionStats",

    # Errors
    "TradeError",
    "DataLoadingError",
    "InvalidOrderBookError",
    "InvalidTradeParametersError",
    "TradeNotFoundError",
    "PositionLimitExceededError",
    "InsufficientMarginError",

    # Version
    "__version__",
]

# ----------------------------------------------------------------------
# Package version
# ----------------------------------------------------------------------

try:
    __version__ = version("mm-backtest")
except PackageNotFoundError:
    __version__ = "0.0.0"

"""Order-book replay backtest engine.

Wires a data source, a strategy, the execution simulator and the replay loop,
then derives accounting, trading and capital metrics from the resulting Ledger.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from mm_backtest.accounting.calculator import PnlCalculator
from mm_backtest.accounting.capital import capital_metrics, trading_costs
from mm_backtest.accounting.config import AccountingConfig
from mm_backtest.accounting.metrics import trading_metrics
from mm_backtest.backtest.adapters.execution import ExecutionConfig, ExecutionSimulator
from mm_backtest.backtest.engine.engine_base import (
    BacktestConfig,
    BacktestEngine,
    BacktestResult,
)
from mm_backtest.backtest.engine.replay_loop import ReplayLoop
from mm_backtest.backtest.io.jsonl_source import (
    DEFAULT_BATCH_SIZE,
    JsonlDataSource,
    extract_symbol_from_filename,
)
from mm_backtest.core.domain.errors import DataLoadingError, InvalidTradeParametersError
from mm_backtest.core.events.event_bus import EventBus
from mm_backtest.core.events.sinks.file_recorder import FileRecorderSink
from mm_backtest.core.events.sinks.sink_logging import LoggingEventSink
from mm_backtest.core.risk.risk_config import RiskConfig
from mm_backtest.core.risk.risk_gate import RiskGate
from mm_backtest.strategies.base import Strategy
from mm_backtest.strategies.strategy_config import StrategyConfig

if TYPE_CHECKING:
    from mm_backtest.core.ports.data_source import DataSource

LOGGER = logging.getLogger(__name__)


@dataclass
class ReplayEngineConfig:
    """Configuration for the replay engine."""

    # Data wiring
    data_path: str | None = None
    symbol: str | None = None
    batch_size: int = DEFAULT_BATCH_SIZE
    show_progress: bool = True

    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    accounting: AccountingConfig = field(default_factory=AccountingConfig)

    # Output (JSONL event log); None disables the file recorder.
    event_bus_path: str | None = None


@dataclass
class ReplayBacktestConfig(BacktestConfig):
    """Backtest configuration for the replay engine."""

    engine_cfg: ReplayEngineConfig = field(default_factory=ReplayEngineConfig)
    strategy_cfg: StrategyConfig = field(default_factory=StrategyConfig)
    risk_cfg: RiskConfig = field(default_factory=RiskConfig)


class ReplayBacktestEngine(BacktestEngine):
    """Backtest engine replaying recorded order-book snapshots."""

    config: ReplayBacktestConfig

    def __init__(self, config: ReplayBacktestConfig) -> None:
        # pylint: disable=useless-super-delegation
        super().__init__(config)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _load_strategy_class(self, strategy_cfg: StrategyConfig) -> type[Strategy]:
        """Dynamically load the Strategy class named by ``strategy_cfg.class_path``."""
        module_path, class_name = strategy_cfg.split_class_path()

        try:
            module = importlib.import_module(module_path)
        except ImportError as exc:
            raise InvalidTradeParametersError(
                f"Cannot import strategy module {module_path!r}: {exc}"
            ) from exc

        cls = getattr(module, class_name, None)
        if not isinstance(cls, type) or not issubclass(cls, Strategy):
            raise InvalidTradeParametersError(
                f"Loaded class {class_name} is not a subclass of Strategy."
            )
        return cls

    def _build_strategy(self, symbol: str) -> Strategy:
        """Instantiate the strategy specified in the configuration."""
        strategy_cfg = self.config.strategy_cfg
        cls = self._load_strategy_class(strategy_cfg)
        return cls(symbol, **strategy_cfg.to_strategy_params())

    def _build_event_bus(self) -> EventBus:
        logger = logging.getLogger("bus")
        sinks: list = [LoggingEventSink(logger)]

        path = self.config.engine_cfg.event_bus_path
        if path:
            sinks.append(FileRecorderSink(Path(path)))

        return EventBus(sinks=sinks)

    def _build_data_source(self) -> JsonlDataSource:
        engine_cfg = self.config.engine_cfg
        if engine_cfg.data_path is None:
            raise DataLoadingError("No data file configured")

        source = JsonlDataSource(
            engine_cfg.data_path,
            symbol=engine_cfg.symbol,
            batch_size=engine_cfg.batch_size,
        )
        source.count_messages()
        return source

    def _resolve_symbol(self) -> str:
        engine_cfg = self.config.engine_cfg
        if engine_cfg.symbol:
            return engine_cfg.symbol
        if engine_cfg.data_path:
            return extract_symbol_from_filename(Path(engine_cfg.data_path).name)
        raise InvalidTradeParametersError("Cannot determine trading symbol")

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> BacktestResult:
        """Run the backtest over the configured JSONL file."""
        symbol = self._resolve_symbol()
        strategy = self._build_strategy(symbol)
        data_source = self._build_data_source()
        try:
            return self.run_with(data_source, strategy, symbol=symbol)
        finally:
            data_source.close()

    def run_with(
        self,
        data_source: DataSource,
        strategy: Strategy,
        *,
        symbol: str | None = None,
    ) -> BacktestResult:
        """Run the backtest with an explicit data source and strategy."""
        cfg = self.config
        engine_cfg = cfg.engine_cfg
        symbol = symbol or getattr(strategy, "symbol", None) or self._resolve_symbol()

        LOGGER.info(
            "Running backtest",
            extra={
                "backtest_id": cfg.id,
                "symbol": symbol,
                "strategy": strategy.name,
                "messages": data_source.total_count(),
            },
        )

        executor = ExecutionSimulator(engine_cfg.execution)
        risk_gate = RiskGate(cfg.risk_cfg) if cfg.risk_cfg.enabled else None
        event_bus = self._build_event_bus()

        loop = ReplayLoop(
            executor,
            event_bus=event_bus,
            risk_gate=risk_gate,
            show_progress=engine_cfg.show_progress,
        )
        try:
            ledger = loop.run(data_source, strategy)
        finally:
            event_bus.close()

        LOGGER.info(
            "Replay finished",
            extra={"backtest_id": cfg.id, "events": event_bus.counts},
        )

        accounting = engine_cfg.accounting
        calculator = PnlCalculator(fee_rate=accounting.fee_rate)
        pnl = calculator.calculate(ledger.all_trades(), accounting.method)

        return BacktestResult(
            id=cfg.id,
            ledger=ledger,
            symbol=symbol,
            pnl=pnl,
            metrics=trading_metrics(pnl.closed_trades),
            capital=capital_metrics(ledger, symbol, accounting.margin_rate),
            execution=executor.stats(),
            costs=trading_costs(ledger),
            elapsed_seconds=loop.elapsed_seconds,
            extra_metadata={
                "engine": "replay",
                "strategy_name": cfg.strategy_cfg.class_path,
                "strategy_params": cfg.strategy_cfg.params,
                "pnl_method": accounting.method.value,
                "risk_mode": cfg.risk_cfg.mode,
                "seed": engine_cfg.execution.seed,
            },
        )

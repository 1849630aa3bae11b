"""Snapshot replay loop.

Drives one strategy over one data source, routes every proposal through the
execution adapter and records outcomes in a fresh Ledger.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from mm_backtest.core.domain.errors import InsufficientMarginError, PositionLimitExceededError
from mm_backtest.core.domain.ledger import Ledger
from mm_backtest.core.events.events import (
    ReplayCompletedEvent,
    RiskBreachEvent,
    TradeExecutedEvent,
    TradeProposedEvent,
)
from mm_backtest.core.events.sinks.null_event_bus import NullEventBus

if TYPE_CHECKING:
    from mm_backtest.backtest.adapters.execution import ExecutionAdapter
    from mm_backtest.core.domain.types import Trade
    from mm_backtest.core.events.event_bus import EventBus
    from mm_backtest.core.ports.data_source import DataSource
    from mm_backtest.core.risk.risk_gate import RiskGate
    from mm_backtest.strategies.base import Strategy

LOGGER = logging.getLogger(__name__)

PROGRESS_STEP_PCT = 10


class ReplayLoop:
    """Single-threaded, synchronous replay.

    Invariant:
    - Every proposal is recorded in the Ledger (status pending) before it is
      executed, together with the snapshot that produced it.
    - The strategy receives execution feedback for every proposal it made,
      including those rejected by the risk gate.
    - Errors raised by the data source propagate unchanged.
    """

    def __init__(
        self,
        executor: ExecutionAdapter,
        *,
        event_bus: EventBus | None = None,
        risk_gate: RiskGate | None = None,
        show_progress: bool = True,
    ) -> None:
        self.executor = executor
        self._event_bus = event_bus if event_bus is not None else NullEventBus()
        self._risk_gate = risk_gate
        self._show_progress = show_progress

        self.processed = 0
        self.proposals = 0
        self.elapsed_seconds = 0.0

    def run(self, data_source: DataSource, strategy: Strategy) -> Ledger:
        ledger = Ledger(event_bus=self._event_bus)
        total = data_source.total_count()
        started = time.perf_counter()

        self.processed = 0
        self.proposals = 0
        last_progress = 0

        if total == 0:
            LOGGER.warning("Data source is empty, nothing to replay")

        while True:
            snapshot = data_source.next()
            if snapshot is None:
                break

            proposal = strategy.propose(snapshot)
            if proposal is not None:
                self.proposals += 1
                ledger.add(proposal)
                ledger.add_snapshot(snapshot)
                self._event_bus.emit(
                    TradeProposedEvent(
                        ts=proposal.time,
                        symbol=proposal.symbol,
                        trade_id=proposal.id,
                        side=proposal.side,
                        price=proposal.price,
                        quantity=proposal.quantity,
                    )
                )
                self._process(proposal, ledger, strategy)

            self.processed += 1
            if self._show_progress and total:
                progress = self.processed * 100 // total
                if progress >= last_progress + PROGRESS_STEP_PCT:
                    LOGGER.info("Progress: %d%% (%d/%d messages)", progress, self.processed, total)
                    last_progress = progress

        self.elapsed_seconds = time.perf_counter() - started
        filled = len(ledger.filled_trades())

        LOGGER.info(
            "Backtest completed in %.2f seconds (%d messages processed)",
            self.elapsed_seconds,
            self.processed,
            extra={"proposals": self.proposals, "filled": filled},
        )
        self._event_bus.emit(
            ReplayCompletedEvent(
                snapshots=self.processed,
                proposals=self.proposals,
                filled=filled,
                elapsed_seconds=self.elapsed_seconds,
            )
        )
        return ledger

    def _process(self, proposal: Trade, ledger: Ledger, strategy: Strategy) -> None:
        if self._risk_gate is not None and not self._passes_risk(self._risk_gate, proposal, ledger):
            ledger.change_status(proposal.id, "rejected")
            strategy.on_execution(proposal.model_copy(update={"status": "rejected"}), filled=False)
            return

        trade = self.executor.execute(proposal)
        if trade is None:
            return

        ledger.change_status(trade.id, trade.status)
        self._event_bus.emit(
            TradeExecutedEvent(
                ts=trade.time,
                symbol=trade.symbol,
                trade_id=trade.id,
                side=trade.side,
                status=trade.status,
                proposed_price=proposal.price,
                executed_price=trade.price,
                quantity=trade.quantity,
            )
        )
        strategy.on_execution(trade, filled=trade.status == "filled")

    def _passes_risk(self, risk_gate: RiskGate, proposal: Trade, ledger: Ledger) -> bool:
        """Return False only when a strict gate blocks the proposal."""
        try:
            risk_gate.check(proposal, ledger)
        except (PositionLimitExceededError, InsufficientMarginError) as exc:
            mode = risk_gate.risk_cfg.mode
            LOGGER.warning(
                "Risk limit breached (%s): %s",
                mode,
                exc,
                extra={"trade_id": proposal.id, "symbol": proposal.symbol},
            )
            self._event_bus.emit(
                RiskBreachEvent(
                    ts=proposal.time,
                    symbol=proposal.symbol,
                    trade_id=proposal.id,
                    mode=mode,
                    reason=str(exc),
                )
            )
            return not risk_gate.strict
        return True

"""Append-only trade and snapshot ledger.

The ledger is the single source of truth queried by accounting and reporting.
Trade records are only ever appended; the one permitted mutation is the
status transition pending -> filled | rejected | unfilled.
"""

# pylint: disable=missing-function-docstring
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mm_backtest.core.domain.errors import TradeNotFoundError
from mm_backtest.core.domain.trade_state_machine import is_valid_transition
from mm_backtest.core.events.events import TradeStatusTransitionEvent
from mm_backtest.core.events.sinks.null_event_bus import NullEventBus

if TYPE_CHECKING:
    from mm_backtest.core.domain.types import OrderBookSnapshot, Trade
    from mm_backtest.core.events.event_bus import EventBus

LOGGER = logging.getLogger(__name__)


class Ledger:
    """Trade and order-book record of a single replay run."""

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._event_bus = event_bus if event_bus is not None else NullEventBus()

        self._trades: list[Trade] = []
        # Position of each trade in ``_trades`` keyed by trade id.
        self._index: dict[str, int] = {}
        self._snapshots: list[OrderBookSnapshot] = []

    def __len__(self) -> int:
        return len(self._trades)

    # ---- Writes ----
    def add(self, trade: Trade) -> None:
        """Append a trade record.

        The ledger keeps its own copy so later changes to the caller's object
        (e.g. slippage applied by the executor) never leak into the record.
        """
        if trade.id in self._index:
            raise ValueError(f"duplicate trade id: {trade.id}")

        self._index[trade.id] = len(self._trades)
        self._trades.append(trade.model_copy())

    def add_snapshot(self, snapshot: OrderBookSnapshot) -> None:
        self._snapshots.append(snapshot)

    def change_status(self, trade_id: str, new_status: str) -> bool:
        """Apply a status transition to a recorded trade.

        Returns False (and logs) when the id is unknown or the transition is
        not allowed; this is the only locally recovered condition in the core.
        """
        try:
            trade = self.get(trade_id)
        except TradeNotFoundError:
            LOGGER.warning("Trade with ID %s not found", trade_id)
            return False

        old_status = trade.status
        if old_status == new_status:
            return True

        if not is_valid_transition(old_status, new_status):
            LOGGER.warning(
                "Refusing status change for trade %s: %s -> %s",
                trade_id,
                old_status,
                new_status,
            )
            return False

        trade.status = new_status
        LOGGER.debug("Trade %s status changed from %s to %s", trade_id, old_status, new_status)

        self._event_bus.emit(
            TradeStatusTransitionEvent(
                ts=trade.time,
                trade_id=trade_id,
                prev_state=old_status,
                next_state=new_status,
            )
        )
        return True

    # ---- Reads ----
    def get(self, trade_id: str) -> Trade:
        idx = self._index.get(trade_id)
        if idx is None:
            raise TradeNotFoundError(trade_id)
        return self._trades[idx]

    def all_trades(self) -> list[Trade]:
        return list(self._trades)

    def filled_trades(self) -> list[Trade]:
        return [t for t in self._trades if t.status == "filled"]

    def failed_trades(self) -> list[Trade]:
        return [t for t in self._trades if t.status != "filled"]

    def snapshots(self) -> list[OrderBookSnapshot]:
        return list(self._snapshots)

    def symbols(self) -> list[str]:
        return sorted({t.symbol for t in self._trades})

    def position(self, symbol: str) -> float:
        """Net filled position for a symbol (positive = long)."""
        position = 0.0
        for trade in self._trades:
            if trade.symbol != symbol or trade.status != "filled":
                continue
            position += trade.signed_quantity
        return position

    def _now(self, now_ts: int | None) -> int:
        if now_ts is not None:
            return now_ts
        return self._snapshots[-1].ts if self._snapshots else 0

    def last_fill_time(self, symbol: str) -> int | None:
        for trade in reversed(self._trades):
            if trade.symbol == symbol and trade.status == "filled":
                return trade.time
        return None

    def position_age(self, symbol: str, now_ts: int | None = None) -> int:
        """Milliseconds since the most recent fill of ``symbol``.

        ``now_ts`` defaults to the timestamp of the latest recorded snapshot,
        which keeps the value on the replay clock rather than the wall clock.
        Returns 0 when the symbol has no fills.
        """
        last_time = self.last_fill_time(symbol)
        if last_time is None:
            return 0
        return self._now(now_ts) - last_time

    def recent_fills(self, symbol: str, window_ms: int, now_ts: int | None = None) -> list[Trade]:
        """Fills of ``symbol`` within ``window_ms`` of now, most recent first."""
        now = self._now(now_ts)
        return [
            t
            for t in reversed(self._trades)
            if t.symbol == symbol and t.status == "filled" and now - t.time <= window_ms
        ]

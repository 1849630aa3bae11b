"""Error taxonomy for the replay backtester.

Every error raised by the core derives from ``TradeError`` so callers can
terminate a run on any core failure with a single ``except`` clause while
still surfacing the originating error unchanged.
"""

from __future__ import annotations


class TradeError(Exception):
    """Base class for all backtester errors."""


class DataLoadingError(TradeError):
    """The data source is missing, unreadable or malformed."""


class InvalidOrderBookError(TradeError):
    """A single snapshot record has unparsable or out-of-range fields."""


class InvalidTradeParametersError(TradeError, ValueError):
    """Configuration rejected at construction time, before any run starts."""


class TradeNotFoundError(TradeError):
    """A ledger lookup referenced an unknown trade id."""

    def __init__(self, trade_id: str) -> None:
        super().__init__(f"Trade not found: {trade_id}")
        self.trade_id = trade_id


class PositionLimitExceededError(TradeError):
    """A proposal would take the position beyond the configured limit."""

    def __init__(self, symbol: str, current: float, limit: float) -> None:
        super().__init__(
            f"Position limit exceeded for symbol {symbol}: "
            f"current {current}, limit {limit}"
        )
        self.symbol = symbol
        self.current = current
        self.limit = limit


class InsufficientMarginError(TradeError):
    """A proposal would require more margin than available."""

    def __init__(self, required: float, available: float) -> None:
        super().__init__(
            f"Insufficient margin: required {required}, available {available}"
        )
        self.required = required
        self.available = available

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from mm_backtest.core.domain.types import OrderBookSnapshot


class DataSource(Protocol):
    """Sequential supplier of order-book snapshots.

    The replay loop only ever calls ``next()`` until it returns None. Parse
    failures surface as ``DataLoadingError`` / ``InvalidOrderBookError``.
    """

    def next(self) -> OrderBookSnapshot | None:
        """Return the next snapshot, or None when the source is exhausted."""

    def reset(self) -> None:
        """Rewind to the first snapshot."""

    def total_count(self) -> int | None:
        """Number of snapshots if known up front (used for progress logging)."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mm_backtest.core.domain.types import OrderBookSnapshot


class InMemoryDataSource:
    """Serves a fixed list of snapshots in order."""

    def __init__(self, snapshots: Iterable[OrderBookSnapshot]) -> None:
        self._snapshots = list(snapshots)
        self._index = 0

    def next(self) -> OrderBookSnapshot | None:
        if self._index >= len(self._snapshots):
            return None
        snapshot = self._snapshots[self._index]
        self._index += 1
        return snapshot

    def reset(self) -> None:
        self._index = 0

    def total_count(self) -> int | None:
        return len(self._snapshots)

"""JSON-lines order-book snapshot source.

Two record layouts are accepted, tried in this order:

- current: ``{"symbol", "bids", "asks", "timestamp", "update_id", "fetch_time"}``
- legacy:  ``{"ts" | "timestamp", "data": {"b": [...], "a": [...]}}``

Price levels are ``[price, quantity]`` pairs, normally as decimal strings.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import IO, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from mm_backtest.core.domain.errors import DataLoadingError, InvalidOrderBookError
from mm_backtest.core.domain.types import OrderBookSnapshot

LOGGER = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10_000
UNKNOWN_SYMBOL = "UNKNOWN"

RawLevels = list[list[str | float | int]]


class OrderBookMessageV2(BaseModel):
    symbol: str
    bids: RawLevels
    asks: RawLevels
    timestamp: int
    update_id: int
    fetch_time: int

    model_config = ConfigDict(extra="ignore")


class OrderBookData(BaseModel):
    b: RawLevels
    a: RawLevels

    model_config = ConfigDict(extra="ignore")


class OrderBookMessage(BaseModel):
    ts: int = Field(validation_alias=AliasChoices("ts", "timestamp"))
    data: OrderBookData

    model_config = ConfigDict(extra="ignore")


def extract_symbol_from_filename(filename: str) -> str:
    """``BTCUSDT_2024-01-01.jsonl`` -> ``BTCUSDT``."""
    prefix = Path(filename).name.split("_", 1)[0]
    return prefix or UNKNOWN_SYMBOL


def _parse_levels(levels: RawLevels, side: str) -> list[tuple[float, float]]:
    parsed: list[tuple[float, float]] = []
    for level in levels:
        # Short levels carry no quantity and are skipped.
        if len(level) < 2:
            continue
        price_raw, qty_raw = level[0], level[1]
        try:
            price = float(price_raw)
        except (TypeError, ValueError) as exc:
            raise InvalidOrderBookError(f"Invalid {side} price: {price_raw}") from exc
        try:
            quantity = float(qty_raw)
        except (TypeError, ValueError) as exc:
            raise InvalidOrderBookError(f"Invalid {side} quantity: {qty_raw}") from exc
        parsed.append((price, quantity))
    return parsed


class JsonlDataSource:
    """Reads snapshots from a JSONL file in batches of ``batch_size`` lines."""

    # pylint: disable=too-many-instance-attributes

    def __init__(
        self,
        path: str | Path,
        symbol: str | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.path = Path(path)
        if not self.path.exists():
            raise DataLoadingError(f"File not found: {self.path}")
        if batch_size <= 0:
            raise DataLoadingError(f"batch_size must be positive, got {batch_size}")

        self.symbol = symbol if symbol is not None else extract_symbol_from_filename(self.path.name)
        self.batch_size = batch_size

        self._fh: IO[str] | None = None
        self._buffer: list[str] = []
        self._index = 0
        self._total: int | None = None

    # ---- DataSource ----
    def next(self) -> OrderBookSnapshot | None:
        if self._index >= len(self._buffer) and not self._load_batch():
            return None

        line = self._buffer[self._index]
        self._index += 1
        return self.parse_line(line)

    def reset(self) -> None:
        self.close()
        self._buffer = []
        self._index = 0

    def total_count(self) -> int | None:
        return self._total

    # ---- helpers ----
    def count_messages(self) -> int:
        """Count non-blank lines once and cache the result."""
        if self._total is not None:
            return self._total

        started = time.perf_counter()
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                count = sum(1 for line in fh if line.strip())
        except (OSError, UnicodeDecodeError) as exc:
            raise DataLoadingError(f"Failed to read {self.path}: {exc}") from exc

        self._total = count
        LOGGER.info("Counted %d messages in %.2fs", count, time.perf_counter() - started)
        return count

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def parse_line(self, line: str) -> OrderBookSnapshot:
        try:
            obj: Any = json.loads(line)
        except json.JSONDecodeError as exc:
            raise DataLoadingError(f"Malformed JSON in {self.path.name}: {exc}") from exc

        try:
            v2 = OrderBookMessageV2.model_validate(obj)
        except ValidationError:
            v2 = None

        if v2 is not None:
            return self._snapshot(
                v2.timestamp,
                v2.symbol,
                _parse_levels(v2.bids, "bid"),
                _parse_levels(v2.asks, "ask"),
            )

        try:
            v1 = OrderBookMessage.model_validate(obj)
        except ValidationError as exc:
            raise DataLoadingError(
                f"Unrecognized order-book record in {self.path.name}: {exc}"
            ) from exc

        return self._snapshot(
            v1.ts,
            self.symbol,
            _parse_levels(v1.data.b, "bid"),
            _parse_levels(v1.data.a, "ask"),
        )

    def _snapshot(
        self,
        ts: int,
        symbol: str,
        bids: list[tuple[float, float]],
        asks: list[tuple[float, float]],
    ) -> OrderBookSnapshot:
        try:
            return OrderBookSnapshot(ts=ts, symbol=symbol, bids=bids, asks=asks)
        except ValidationError as exc:
            raise InvalidOrderBookError(
                f"Invalid snapshot at ts={ts} in {self.path.name}: {exc}"
            ) from exc

    def _load_batch(self) -> bool:
        if self._fh is None:
            try:
                self._fh = self.path.open("r", encoding="utf-8")
            except OSError as exc:
                raise DataLoadingError(f"Failed to open file: {exc}") from exc

        self._buffer = []
        self._index = 0
        started = time.perf_counter()

        try:
            # Up to batch_size non-blank lines; blank lines are dropped.
            while len(self._buffer) < self.batch_size:
                line = self._fh.readline()
                if not line:
                    break
                if line.strip():
                    self._buffer.append(line)
        except (OSError, UnicodeDecodeError) as exc:
            raise DataLoadingError(f"Failed to read {self.path}: {exc}") from exc

        if not self._buffer:
            return False

        LOGGER.debug(
            "Loaded batch of %d messages in %.3fs",
            len(self._buffer),
            time.perf_counter() - started,
        )
        return True

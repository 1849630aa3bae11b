"""
Semantic test: JSONL snapshot source.

Invariant:
Both record layouts parse into the same snapshot shape, blank lines are
skipped, and any unreadable input surfaces as a domain error instead of
being dropped.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mm_backtest.backtest.io.jsonl_source import JsonlDataSource, extract_symbol_from_filename
from mm_backtest.core.domain.errors import DataLoadingError, InvalidOrderBookError


def write_lines(path: Path, records: list) -> Path:
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def legacy_record(ts: int, bid: str = "100.0", ask: str = "101.0") -> dict:
    return {"ts": ts, "data": {"b": [[bid, "1.5"]], "a": [[ask, "2.5"]]}}


def test_current_layout_carries_its_own_symbol(tmp_path: Path) -> None:
    record = {
        "symbol": "ETHUSDT",
        "bids": [["2000.5", "3"], ["2000.0", "1"]],
        "asks": [["2001.0", "2"]],
        "timestamp": 1700000000000,
        "update_id": 42,
        "fetch_time": 1700000000005,
    }
    path = write_lines(tmp_path / "BTCUSDT_2024-01-01.jsonl", [record])

    snapshot = JsonlDataSource(path).next()

    assert snapshot is not None
    assert snapshot.symbol == "ETHUSDT"
    assert snapshot.ts == 1700000000000
    assert snapshot.bids == [(2000.5, 3.0), (2000.0, 1.0)]
    assert snapshot.asks == [(2001.0, 2.0)]


def test_legacy_layout_takes_symbol_from_filename(tmp_path: Path) -> None:
    path = write_lines(
        tmp_path / "BTCUSDT_2024-01-01.jsonl",
        [legacy_record(1), {"timestamp": 2, "data": {"b": [], "a": [["101", "1"]]}}],
    )
    source = JsonlDataSource(path)

    first = source.next()
    second = source.next()

    assert first is not None and second is not None
    assert first.symbol == second.symbol == "BTCUSDT"
    assert first.bids == [(100.0, 1.5)]
    assert second.ts == 2
    assert second.bids == []
    assert source.next() is None


def test_blank_lines_are_skipped_across_batches(tmp_path: Path) -> None:
    path = write_lines(
        tmp_path / "BTCUSDT_x.jsonl",
        [legacy_record(1), "", "   ", legacy_record(2), "", legacy_record(3)],
    )
    source = JsonlDataSource(path, batch_size=1)

    assert source.count_messages() == 3
    assert source.total_count() == 3

    seen = []
    while (snapshot := source.next()) is not None:
        seen.append(snapshot.ts)
    assert seen == [1, 2, 3]

    source.reset()
    assert source.next().ts == 1
    source.close()


def test_short_levels_are_skipped(tmp_path: Path) -> None:
    record = {"ts": 1, "data": {"b": [["100"], ["99", "2"]], "a": [["101", "1"]]}}
    path = write_lines(tmp_path / "BTCUSDT_x.jsonl", [record])

    snapshot = JsonlDataSource(path).next()

    assert snapshot.bids == [(99.0, 2.0)]


def test_invalid_price_raises_invalid_order_book(tmp_path: Path) -> None:
    path = write_lines(tmp_path / "BTCUSDT_x.jsonl", [legacy_record(1, bid="abc")])

    with pytest.raises(InvalidOrderBookError, match="Invalid bid price: abc"):
        JsonlDataSource(path).next()


def test_out_of_range_snapshot_raises_invalid_order_book(tmp_path: Path) -> None:
    path = write_lines(tmp_path / "BTCUSDT_x.jsonl", [legacy_record(-5)])

    with pytest.raises(InvalidOrderBookError, match="ts=-5"):
        JsonlDataSource(path).next()


def test_malformed_json_raises_data_loading_error(tmp_path: Path) -> None:
    path = write_lines(tmp_path / "BTCUSDT_x.jsonl", ["{not json"])

    with pytest.raises(DataLoadingError):
        JsonlDataSource(path).next()


def test_unrecognized_record_raises_data_loading_error(tmp_path: Path) -> None:
    path = write_lines(tmp_path / "BTCUSDT_x.jsonl", [{"foo": 1}])

    with pytest.raises(DataLoadingError):
        JsonlDataSource(path).next()


def test_undecodable_bytes_raise_data_loading_error(tmp_path: Path) -> None:
    path = tmp_path / "BTCUSDT_x.jsonl"
    path.write_bytes(json.dumps(legacy_record(1)).encode("utf-8") + b"\n\xff\xfe\n")

    with pytest.raises(DataLoadingError):
        JsonlDataSource(path).count_messages()

    with pytest.raises(DataLoadingError):
        JsonlDataSource(path, batch_size=5).next()


def test_missing_file_fails_at_construction(tmp_path: Path) -> None:
    with pytest.raises(DataLoadingError):
        JsonlDataSource(tmp_path / "nope.jsonl")


def test_empty_file_yields_nothing(tmp_path: Path) -> None:
    path = tmp_path / "BTCUSDT_empty.jsonl"
    path.write_text("", encoding="utf-8")
    source = JsonlDataSource(path)

    assert source.count_messages() == 0
    assert source.next() is None


def test_symbol_is_filename_prefix() -> None:
    assert extract_symbol_from_filename("BTCUSDT_2024-01-01.jsonl") == "BTCUSDT"
    assert extract_symbol_from_filename("/data/ETHUSDT_book.jsonl") == "ETHUSDT"
    assert extract_symbol_from_filename("_weird.jsonl") == "UNKNOWN"

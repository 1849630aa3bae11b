"""
Semantic test: event bus delivery.

Invariant:
Events reach every sink in registration order and are tallied by type; a
closed bus closes its sinks once and refuses further events.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from mm_backtest.core.events.event_bus import EventBus
from mm_backtest.core.events.events import ReplayCompletedEvent, RiskBreachEvent
from mm_backtest.core.events.sinks.file_recorder import FileRecorderSink
from mm_backtest.core.events.sinks.null_event_bus import NullEventBus


class OrderedSink:
    def __init__(self, name: str, log: list[str]) -> None:
        self.name = name
        self.log = log
        self.closed = 0

    def on_event(self, event: Any) -> None:
        self.log.append(self.name)

    def close(self) -> None:
        self.closed += 1


def breach() -> RiskBreachEvent:
    return RiskBreachEvent(ts=1, symbol="BTCUSDT", trade_id="t-1", mode="advisory", reason="limit")


def test_sinks_receive_events_in_registration_order() -> None:
    log: list[str] = []
    first, second = OrderedSink("first", log), OrderedSink("second", log)
    bus = EventBus(sinks=[first])
    bus.register(second)

    bus.emit(breach())
    bus.emit(breach())

    assert log == ["first", "second", "first", "second"]
    assert bus.counts == {"RiskBreachEvent": 2}


def test_close_is_idempotent_and_final() -> None:
    sink = OrderedSink("only", [])
    bus = EventBus(sinks=[sink])

    bus.close()
    bus.close()

    assert bus.closed
    assert sink.closed == 1
    with pytest.raises(RuntimeError):
        bus.emit(breach())


def test_null_bus_only_counts() -> None:
    bus = NullEventBus()

    bus.emit(breach())

    assert bus.counts == {"RiskBreachEvent": 1}


def test_file_recorder_writes_typed_json_lines(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "events.jsonl"
    recorder = FileRecorderSink(path)
    assert not path.exists()

    bus = EventBus(sinks=[recorder])
    bus.emit(breach())
    bus.emit(ReplayCompletedEvent(snapshots=3, proposals=1, filled=1, elapsed_seconds=0.5))
    bus.close()

    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [r["event_type"] for r in records] == ["RiskBreachEvent", "ReplayCompletedEvent"]
    assert records[0]["reason"] == "limit"
    assert records[1]["snapshots"] == 3
    assert recorder.records_written == 2

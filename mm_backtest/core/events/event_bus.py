"""
Synchronous replay event bus.

Events are delivered to every sink in registration order, on the caller's
thread, before ``emit`` returns. The bus also keeps a per-type tally so a run
can report how many proposals, executions and breaches it produced.
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Iterable

from mm_backtest.core.events.event_sink import EventSink


class EventBus:
    """Fans replay events out to sinks."""

    def __init__(self, sinks: Iterable[EventSink] | None = None) -> None:
        self._sinks: list[EventSink] = list(sinks) if sinks is not None else []
        self._counts: Counter[str] = Counter()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def counts(self) -> dict[str, int]:
        """Number of emitted events keyed by event class name."""
        return dict(self._counts)

    def register(self, sink: EventSink) -> None:
        if self._closed:
            raise RuntimeError("cannot register a sink on a closed event bus")
        self._sinks.append(sink)

    def emit(self, event: Any) -> None:
        if self._closed:
            raise RuntimeError(f"event bus closed, dropping {type(event).__name__}")

        self._counts[type(event).__name__] += 1
        for sink in self._sinks:
            sink.on_event(event)

    def close(self) -> None:
        """Close sinks that own resources. Idempotent."""
        if self._closed:
            return

        self._closed = True
        for sink in self._sinks:
            close_fn = getattr(sink, "close", None)
            if callable(close_fn):
                close_fn()

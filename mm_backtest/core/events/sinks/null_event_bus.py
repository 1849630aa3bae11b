from __future__ import annotations

from mm_backtest.core.events.event_bus import EventBus


class NullEventBus(EventBus):
    """Bus without sinks: events are only tallied in ``counts``.

    Default bus for components constructed without one, and for tests.
    """

    def __init__(self) -> None:
        super().__init__(sinks=())

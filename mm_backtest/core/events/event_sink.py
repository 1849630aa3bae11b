"""
Event sink port.

A sink receives every replay event synchronously. Sinks holding resources
(files, sockets) may also expose ``close()``; ``EventBus.close`` calls it
once at the end of a run.
"""
from __future__ import annotations

from typing import Any, Protocol


class EventSink(Protocol):
    def on_event(self, event: Any) -> None:
        """Consume one event. Must not retain a mutable reference to it."""

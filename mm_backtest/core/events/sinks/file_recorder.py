"""
JSON-lines event recorder.

Each event becomes one line ``{"event_type": <class name>, <fields>...}``.
The file is opened lazily on the first event, in append mode, so a run that
emits nothing leaves no file behind.
"""
from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import IO, Any


def event_record(event: Any) -> dict[str, Any]:
    if is_dataclass(event) and not isinstance(event, type):
        return {"event_type": type(event).__name__, **asdict(event)}
    return {"event_type": type(event).__name__, "event": str(event)}


class FileRecorderSink:
    """Appends every event to ``path`` as a JSON line."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._fh: IO[str] | None = None
        self.records_written = 0

    @property
    def path(self) -> Path:
        return self._path

    def on_event(self, event: Any) -> None:
        if self._fh is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self._path.open("a", encoding="utf-8")

        self._fh.write(json.dumps(event_record(event), default=str) + "\n")
        self.records_written += 1

    def close(self) -> None:
        if self._fh is None:
            return
        self._fh.flush()
        self._fh.close()
        self._fh = None

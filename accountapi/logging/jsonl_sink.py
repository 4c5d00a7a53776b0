from __future__ import annotations

import json
import threading
from pathlib import Path

from accountapi.types import EventRecord

EVENTS_FILENAME = "events.jsonl"


class JsonlSink:
    """Append-only JSON-lines event file, safe to share between threads."""

    def __init__(self, events_path: Path) -> None:
        self._path = events_path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @classmethod
    def for_run_dir(cls, run_dir: Path) -> JsonlSink:
        return cls(run_dir / EVENTS_FILENAME)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, event: EventRecord) -> None:
        line = json.dumps(event.model_dump(mode="json"), ensure_ascii=True)
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def replay(self, event_type: str | None = None) -> list[dict[str, object]]:
        if not self._path.exists():
            return []
        with self._lock:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        rows = [json.loads(line) for line in lines if line.strip()]
        if event_type is None:
            return rows
        return [row for row in rows if row.get("event_type") == event_type]

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from uuid import uuid4

from accountapi.logging.jsonl_sink import EVENTS_FILENAME


def generate_run_id() -> str:
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    suffix = uuid4().hex[:8]
    return f"{stamp}-{suffix}"


def create_run_dir(base_dir: Path, run_id: str) -> Path:
    run_dir = base_dir / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def events_path_for(base_dir: Path, run_id: str) -> Path:
    return base_dir / run_id / EVENTS_FILENAME


def list_runs(base_dir: Path) -> list[str]:
    if not base_dir.is_dir():
        return []
    return sorted(
        entry.name for entry in base_dir.iterdir() if (entry / EVENTS_FILENAME).is_file()
    )

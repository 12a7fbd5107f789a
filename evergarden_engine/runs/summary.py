"""Run summary generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from ..utils import now_utc_iso, write_json


@dataclass
class RunSummary:
    run_id: str
    started_at: str
    finished_at: str
    scenes: dict[str, dict[str, Any]] = field(default_factory=dict)
    remixes_saved: int = 0

    @property
    def total_done(self) -> int:
        return sum(1 for item in self.scenes.values() if item.get("status") == "done")

    @property
    def total_failed(self) -> int:
        return sum(1 for item in self.scenes.values() if item.get("status") == "failed")


def write_summary(path: Path, summary: RunSummary, extra: Mapping[str, Any] | None = None) -> None:
    payload = {
        "run_id": summary.run_id,
        "started_at": summary.started_at,
        "finished_at": summary.finished_at,
        "total_scenes": len(summary.scenes),
        "total_done": summary.total_done,
        "total_failed": summary.total_failed,
        "remixes_saved": summary.remixes_saved,
        "scenes": summary.scenes,
        "ts": now_utc_iso(),
    }
    if extra:
        payload.update(extra)
    write_json(path, payload)

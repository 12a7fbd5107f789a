"""CLI progress helpers."""

from __future__ import annotations

import os
import shutil
import sys
import time
from typing import TextIO

from .generation.batch import SceneJobState, SceneStatus

_BOLD = "\x1b[1m"
_GREY = "\x1b[38;2;150;157;165m"
_RED = "\x1b[38;2;220;90;90m"
_RESET = "\x1b[0m"


class SceneProgress:
    """Prints one line per scene state transition.

    Used as the scheduler's state listener.
    """

    def __init__(self, total: int, stream: TextIO | None = None) -> None:
        self.total = total
        self.stream = stream or sys.stdout
        self.start = time.monotonic()
        self.finished: set[str] = set()
        self._color = bool(getattr(self.stream, "isatty", lambda: False)())

    def __call__(self, scene: str, state: SceneJobState) -> None:
        if state.status is SceneStatus.PENDING:
            self.finished.discard(scene)
            self._write(f"• {scene}: generating…")
            return
        self.finished.add(scene)
        elapsed = _format_duration(int(time.monotonic() - self.start))
        counter = f"{len(self.finished)}/{self.total}"
        if state.status is SceneStatus.DONE:
            self._write(f"• {scene}: done ({counter}, {elapsed})", _BOLD)
        else:
            self._write(f"• {scene}: failed ({counter}, {elapsed}) {state.error}", _RED)

    def done_line(self, done: int, width: int | None = None) -> str:
        elapsed = _format_duration(int(time.monotonic() - self.start))
        resolved_width = width if width is not None else _resolve_terminal_width(self.stream, 100)
        line = _separator_line(f"{done}/{self.total} scenes in {elapsed}", resolved_width)
        return f"{_GREY}{line}{_RESET}" if self._color else line

    def _write(self, line: str, style: str = "") -> None:
        if self._color and style:
            line = f"{style}{line}{_RESET}"
        self.stream.write(f"{line}\n")
        self.stream.flush()


def _format_duration(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def _separator_line(label: str, width: int) -> str:
    content = f" {label} "
    if width <= len(content) + 2:
        return content.strip()
    remaining = width - len(content)
    left = remaining // 2
    right = remaining - left
    return f"{'─' * left}{content}{'─' * right}"


def _resolve_terminal_width(stream: TextIO | None, fallback: int) -> int:
    if stream and hasattr(stream, "fileno"):
        try:
            return os.get_terminal_size(stream.fileno()).columns
        except (OSError, ValueError):
            pass
    return shutil.get_terminal_size(fallback=(fallback, 20)).columns

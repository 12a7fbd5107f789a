from __future__ import annotations

from evergarden_engine.cli_progress import SceneProgress
from evergarden_engine.generation.batch import SceneJobState
from evergarden_engine.images import ImagePayload


class FakeStream:
    def __init__(self, is_tty: bool) -> None:
        self._isatty = is_tty
        self.buffer: list[str] = []

    def isatty(self) -> bool:  # pragma: no cover - signature mimic
        return self._isatty

    def write(self, data: str) -> None:
        self.buffer.append(data)

    def flush(self) -> None:  # pragma: no cover - no-op for tests
        return None

    @property
    def text(self) -> str:
        return "".join(self.buffer)


def test_progress_counts_finished_scenes() -> None:
    stream = FakeStream(is_tty=False)
    progress = SceneProgress(total=2, stream=stream)

    progress("Writing a Letter", SceneJobState.pending())
    progress("Writing a Letter", SceneJobState.done(ImagePayload("image/png", "QUFB")))
    progress("At a Grand Ball", SceneJobState.failed("blocked"))

    lines = stream.text.splitlines()
    assert lines[0] == "• Writing a Letter: generating…"
    assert lines[1].startswith("• Writing a Letter: done (1/2")
    assert lines[2].startswith("• At a Grand Ball: failed (2/2")
    assert lines[2].endswith("blocked")
    assert "\x1b[" not in stream.text


def test_regenerate_resets_finished_count() -> None:
    stream = FakeStream(is_tty=False)
    progress = SceneProgress(total=1, stream=stream)

    progress("Writing a Letter", SceneJobState.failed("boom"))
    progress("Writing a Letter", SceneJobState.pending())

    assert progress.finished == set()


def test_tty_output_is_styled() -> None:
    stream = FakeStream(is_tty=True)
    progress = SceneProgress(total=1, stream=stream)

    progress("Writing a Letter", SceneJobState.done(ImagePayload("image/png", "QUFB")))

    assert "\x1b[1m" in stream.text
    assert "1/1 scenes in" in progress.done_line(1, width=40)

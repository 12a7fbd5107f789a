from __future__ import annotations

from pathlib import Path

from evergarden_engine.images import ImagePayload
from evergarden_engine.runs.events import EventWriter, emit, read_events


def test_event_writer_appends_jsonl(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "events.jsonl"
    writer = EventWriter(path, "run-1")

    writer.emit("scene_started", scene="At a Grand Ball", worker=0)
    writer.emit("scene_failed", scene="At a Grand Ball", error="blocked")

    events = read_events(path)
    assert [event["type"] for event in events] == ["scene_started", "scene_failed"]
    assert events[0]["run_id"] == "run-1"
    assert events[0]["worker"] == 0
    assert "ts" in events[1]


def test_image_payloads_are_omitted(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    writer = EventWriter(path, "run-1")

    event = writer.emit("remix_turn", image=ImagePayload("image/png", "c2VjcmV0"), turn=1)

    assert event["image"] == "<omitted>"
    assert "c2VjcmV0" not in path.read_text(encoding="utf-8")


def test_emit_without_writer_is_silent(tmp_path: Path) -> None:
    emit(None, "scene_started", scene="x")

    assert read_events(tmp_path / "missing.jsonl") == []

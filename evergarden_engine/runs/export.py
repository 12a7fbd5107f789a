"""Write finished scene images to disk and read them back."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from ..generation.batch import SceneJobState, SceneStatus
from ..generation.scenes import DEFAULT_STYLE, StylePreset
from ..images import ImagePayload, mime_type_for_suffix


def export_scene_images(
    states: Mapping[str, SceneJobState],
    out_dir: Path,
    style: StylePreset = DEFAULT_STYLE,
) -> dict[str, Path]:
    """Write each ``DONE`` scene as ``<prefix>-<scene-slug>.<ext>``.

    Pending and failed scenes are skipped.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    written: dict[str, Path] = {}
    for scene, state in states.items():
        if state.status is not SceneStatus.DONE or state.image is None:
            continue
        path = out_dir / style.filename_for(scene, state.image.suffix)
        path.write_bytes(state.image.to_bytes())
        written[scene] = path
    return written


def load_scene_images(out_dir: Path, style: StylePreset = DEFAULT_STYLE) -> dict[str, ImagePayload]:
    """Read back images previously written by ``export_scene_images``."""
    found: dict[str, ImagePayload] = {}
    for scene in style.scenes:
        stem = style.filename_for(scene, "")
        for path in sorted(out_dir.glob(f"{stem}.*")):
            if mime_type_for_suffix(path.suffix) is None:
                continue
            found[scene] = ImagePayload.from_path(path)
            break
    return found

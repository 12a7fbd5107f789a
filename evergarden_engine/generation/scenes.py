"""Scenes and prompt templates."""

from __future__ import annotations

from dataclasses import dataclass

from ..utils import slugify

SCENES = (
    "As an Auto Memory Doll",
    "In a Leiden Street Scene",
    "At a Grand Ball",
    "In a Countryside Landscape",
    "Writing a Letter",
    "Under a Starry Sky",
)


@dataclass(frozen=True)
class StylePreset:
    name: str
    primary_template: str
    fallback_template: str
    scenes: tuple[str, ...] = SCENES
    download_prefix: str = "evergarden"

    def primary_prompt(self, scene: str) -> str:
        return self.primary_template.format(scene=scene)

    def fallback_prompt(self, scene: str) -> str:
        return self.fallback_template.format(scene=scene)

    def filename_for(self, scene: str, suffix: str = ".jpg") -> str:
        return f"{self.download_prefix}-{scene_slug(scene)}{suffix}"


VIOLET_EVERGARDEN = StylePreset(
    name="violet-evergarden",
    primary_template=(
        "Reimagine the person in this photo in the artistic style of the anime 'Violet Evergarden'. "
        'The scene is: "{scene}". Capture the painterly, emotional aesthetic of the anime with detailed '
        "clothing and background appropriate for the scene. The output must be a high-quality, artistic image."
    ),
    fallback_template=(
        "Create an artistic image of the person in this photo. The style should be inspired by the anime "
        "'Violet Evergarden', and the setting is \"{scene}\". The image should have a painterly, emotional "
        "feel, with authentic-looking clothing and background. Ensure the final image is high quality and artistic."
    ),
    download_prefix="violet-evergarden",
)

DEFAULT_STYLE = VIOLET_EVERGARDEN


def scene_slug(scene: str) -> str:
    return slugify(scene)

"""Dry-run generation service (offline)."""

from __future__ import annotations

import asyncio
import hashlib
import io
from typing import Sequence

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from ..errors import ServiceError
from ..images import GenerationRequest, ImagePayload
from .base import ContentPart, ServiceResponse

_MAX_SIDE = 1024


class DryRunProvider:
    """Tints the source photo and stamps the instruction on it.

    Output is deterministic for a given image and instruction.
    """

    name = "dryrun"

    def __init__(self) -> None:
        self.calls = 0

    async def generate(
        self,
        request: GenerationRequest,
        *,
        modalities: Sequence[str] | None = None,
    ) -> ServiceResponse:
        self.calls += 1
        png, size = await asyncio.to_thread(_render, request.image.to_bytes(), request.instruction)
        parts = [ContentPart(image=ImagePayload.from_bytes(png, "image/png"))]
        text = None
        wants_text = modalities is not None and "TEXT" in {str(item).upper() for item in modalities}
        if wants_text:
            text = f"Dry run applied: {request.instruction.strip()[:80]}"
            parts.append(ContentPart(text=text))
        return ServiceResponse(
            parts=parts,
            text=text,
            metadata={"dryrun": True, "width": size[0], "height": size[1]},
        )


def _render(data: bytes, instruction: str) -> tuple[bytes, tuple[int, int]]:
    try:
        source = Image.open(io.BytesIO(data))
        source.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ServiceError(f"Dry-run provider could not decode the input image: {exc}") from exc

    image = source.convert("RGB")
    image.thumbnail((_MAX_SIDE, _MAX_SIDE))
    tint = Image.new("RGB", image.size, _color_from_prompt(instruction))
    image = Image.blend(image, tint, 0.35)
    draw = ImageDraw.Draw(image)
    draw.text((12, 12), f"dryrun\n{instruction[:60]}", fill=(255, 255, 255), font=ImageFont.load_default())

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue(), image.size


def _color_from_prompt(prompt: str) -> tuple[int, int, int]:
    digest = hashlib.sha256(prompt.encode("utf-8")).digest()
    return digest[0], digest[1], digest[2]

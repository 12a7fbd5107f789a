"""Turn raw service responses into images and text."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..errors import MalformedResponseError, RefusalError
from ..images import ImagePayload
from ..providers.base import ServiceResponse

NO_TEXT_PLACEHOLDER = "No text response received."


class ResultKind(str, Enum):
    IMAGE = "image"
    TEXT = "text"
    BOTH = "both"
    EMPTY = "empty"


@dataclass(frozen=True)
class GenerationResult:
    image: ImagePayload | None = None
    text: str | None = None

    @property
    def kind(self) -> ResultKind:
        if self.image is not None and self.text:
            return ResultKind.BOTH
        if self.image is not None:
            return ResultKind.IMAGE
        if self.text:
            return ResultKind.TEXT
        return ResultKind.EMPTY

    @property
    def has_image(self) -> bool:
        return self.kind in {ResultKind.IMAGE, ResultKind.BOTH}


def interpret_single(response: ServiceResponse) -> ImagePayload:
    """Return the first inline image, or raise ``RefusalError``.

    A missing parts list counts as a refusal here; the single-image flow
    only cares whether an image came back.
    """
    for part in response.parts or []:
        if part.image is not None:
            return part.image
    text = response.text or _joined_text(response)
    raise RefusalError(
        f'The model responded with text instead of an image: "{text or NO_TEXT_PLACEHOLDER}"',
        text=text,
    )


def interpret_multipart(response: ServiceResponse) -> GenerationResult:
    if response.parts is None:
        raise MalformedResponseError("Invalid response format from the model: no content parts.")
    image: ImagePayload | None = None
    text: str | None = None
    for part in response.parts:
        if part.image is not None:
            image = part.image
        elif part.text:
            text = part.text
    if image is None and not text:
        if response.text:
            return GenerationResult(text=response.text)
        raise RefusalError("The model did not return an image or text.")
    return GenerationResult(image=image, text=text)


def _joined_text(response: ServiceResponse) -> str | None:
    fragments = [part.text for part in response.parts or [] if part.text]
    return "".join(fragments) or None

"""One styled image per scene, with a fallback prompt on refusal."""

from __future__ import annotations

from typing import Callable

from ..errors import ErrorKind, EvergardenError, GenerationFailedError, describe_error
from ..images import GenerationRequest, ImagePayload
from ..runs.events import EventWriter, emit
from .interpret import interpret_single
from .invoker import RetryingInvoker
from .scenes import DEFAULT_STYLE


class StyledImageGenerator:
    def __init__(
        self,
        invoker: RetryingInvoker,
        *,
        fallback_prompt: Callable[[str], str] | None = None,
        events: EventWriter | None = None,
    ) -> None:
        self.invoker = invoker
        self.fallback_prompt = fallback_prompt or DEFAULT_STYLE.fallback_prompt
        self.events = events

    async def _attempt(self, image: ImagePayload, prompt: str) -> ImagePayload:
        response = await self.invoker.invoke(GenerationRequest(image=image, instruction=prompt))
        return interpret_single(response)

    async def generate(self, image: ImagePayload, primary_prompt: str, scene: str) -> ImagePayload:
        try:
            return await self._attempt(image, primary_prompt)
        except Exception as exc:
            if not _is_refusal(exc):
                raise GenerationFailedError(
                    f"The model failed to generate an image. Details: {describe_error(exc)}",
                    attempts=["primary"],
                    last_error=exc,
                ) from exc
            refusal = exc

        emit(self.events, "fallback_prompt_used", scene=scene, reason=describe_error(refusal))
        try:
            return await self._attempt(image, self.fallback_prompt(scene))
        except Exception as exc:
            raise GenerationFailedError(
                "The model failed with both the primary and fallback prompts. "
                f"Last error: {describe_error(exc)}",
                attempts=["primary", "fallback"],
                last_error=exc,
            ) from exc


def _is_refusal(exc: BaseException) -> bool:
    return isinstance(exc, EvergardenError) and exc.kind is ErrorKind.REFUSAL

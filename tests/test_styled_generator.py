from __future__ import annotations

import asyncio

import pytest

from evergarden_engine.errors import (
    ErrorKind,
    GenerationFailedError,
    RefusalError,
    ServiceError,
    TransientServiceError,
)
from evergarden_engine.generation.invoker import RetryingInvoker
from evergarden_engine.generation.scenes import DEFAULT_STYLE
from evergarden_engine.generation.styled import StyledImageGenerator
from evergarden_engine.images import ImagePayload
from evergarden_engine.providers.base import ContentPart, ServiceResponse

SOURCE = ImagePayload("image/png", "c291cmNl")
RESULT = ImagePayload("image/png", "cmVzdWx0")
IMAGE_RESPONSE = ServiceResponse(parts=[ContentPart(image=RESULT)])
REFUSAL_RESPONSE = ServiceResponse(parts=[ContentPart(text="I can't help with that.")], text="I can't help with that.")


class _PromptRecordingService:
    name = "recording"

    def __init__(self, outcomes: list[object]) -> None:
        self.outcomes = list(outcomes)
        self.prompts: list[str] = []

    async def generate(self, request, *, modalities=None):
        self.prompts.append(request.instruction)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


async def _no_sleep(_: float) -> None:
    return None


def _generator(service: _PromptRecordingService) -> StyledImageGenerator:
    return StyledImageGenerator(RetryingInvoker(service, sleep=_no_sleep))


def test_primary_success_skips_fallback() -> None:
    service = _PromptRecordingService([IMAGE_RESPONSE])

    image = asyncio.run(_generator(service).generate(SOURCE, "primary prompt", "At a Grand Ball"))

    assert image == RESULT
    assert service.prompts == ["primary prompt"]


def test_refusal_then_fallback_success() -> None:
    service = _PromptRecordingService([REFUSAL_RESPONSE, IMAGE_RESPONSE])

    image = asyncio.run(_generator(service).generate(SOURCE, "primary prompt", "At a Grand Ball"))

    assert image == RESULT
    assert service.prompts[0] == "primary prompt"
    assert service.prompts[1] == DEFAULT_STYLE.fallback_prompt("At a Grand Ball")
    assert '"At a Grand Ball"' in service.prompts[1]


def test_fallback_prompt_is_deterministic() -> None:
    first = DEFAULT_STYLE.fallback_prompt("Writing a Letter")
    second = DEFAULT_STYLE.fallback_prompt("Writing a Letter")

    assert first == second
    assert "Writing a Letter" in first
    assert first != DEFAULT_STYLE.primary_prompt("Writing a Letter")


def test_refusal_on_both_prompts_names_both_attempts() -> None:
    service = _PromptRecordingService([REFUSAL_RESPONSE, REFUSAL_RESPONSE])

    with pytest.raises(GenerationFailedError) as excinfo:
        asyncio.run(_generator(service).generate(SOURCE, "primary prompt", "Under a Starry Sky"))

    message = str(excinfo.value)
    assert "primary" in message and "fallback" in message
    assert "I can't help with that." in message
    assert excinfo.value.attempts == ["primary", "fallback"]
    assert isinstance(excinfo.value.last_error, RefusalError)
    assert len(service.prompts) == 2


def test_service_failure_does_not_trigger_fallback() -> None:
    failures = [TransientServiceError("500 INTERNAL") for _ in range(3)]
    service = _PromptRecordingService(failures)

    with pytest.raises(GenerationFailedError) as excinfo:
        asyncio.run(_generator(service).generate(SOURCE, "primary prompt", "At a Grand Ball"))

    assert service.prompts == ["primary prompt"] * 3
    assert excinfo.value.attempts == ["primary"]
    assert excinfo.value.last_error.kind is ErrorKind.TRANSIENT


def test_refusal_after_retried_transient_fault_still_falls_back() -> None:
    service = _PromptRecordingService([TransientServiceError("500"), REFUSAL_RESPONSE, IMAGE_RESPONSE])

    image = asyncio.run(_generator(service).generate(SOURCE, "primary prompt", "At a Grand Ball"))

    assert image == RESULT
    assert service.prompts[:2] == ["primary prompt", "primary prompt"]
    assert len(service.prompts) == 3


def test_fallback_service_error_is_reported_as_last_error() -> None:
    service = _PromptRecordingService([REFUSAL_RESPONSE, ServiceError("quota exhausted", code=429)])

    with pytest.raises(GenerationFailedError) as excinfo:
        asyncio.run(_generator(service).generate(SOURCE, "primary prompt", "At a Grand Ball"))

    assert "quota exhausted" in str(excinfo.value)
    assert excinfo.value.last_error.kind is ErrorKind.SERVICE

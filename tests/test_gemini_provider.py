from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from google.genai import errors as genai_errors

from evergarden_engine.errors import ErrorKind, ServiceError, TransientServiceError
from evergarden_engine.images import GenerationRequest, ImagePayload
from evergarden_engine.providers.base import IMAGE_AND_TEXT
from evergarden_engine.providers.gemini import GeminiProvider, classify_api_error, to_service_response

SOURCE = ImagePayload.from_bytes(b"source-bytes", "image/jpeg")


def _response(parts, *, block_reason=None):
    candidates = [] if parts is None else [SimpleNamespace(content=SimpleNamespace(parts=parts), finish_reason=None)]
    feedback = SimpleNamespace(block_reason=block_reason) if block_reason else None
    return SimpleNamespace(candidates=candidates, prompt_feedback=feedback)


def _image_part(data: bytes, mime_type: str = "image/png"):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)


def _text_part(text: str):
    return SimpleNamespace(inline_data=None, text=text)


class _FakeModels:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.calls: list[dict] = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def _client(outcome) -> tuple[SimpleNamespace, _FakeModels]:
    models = _FakeModels(outcome)
    return SimpleNamespace(aio=SimpleNamespace(models=models)), models


def test_to_service_response_encodes_inline_bytes() -> None:
    response = to_service_response(_response([_text_part("Here it is."), _image_part(b"png-bytes")]))

    assert response.parts is not None and len(response.parts) == 2
    assert response.parts[1].image.to_bytes() == b"png-bytes"
    assert response.parts[1].image.mime_type == "image/png"
    assert response.text == "Here it is."


def test_to_service_response_without_candidates_has_no_parts() -> None:
    response = to_service_response(_response(None, block_reason="SAFETY"))

    assert response.parts is None
    assert response.text is None
    assert response.metadata["block_reason"] == "SAFETY"


def test_to_service_response_keeps_base64_strings() -> None:
    response = to_service_response(_response([_image_part("cG5n")]))

    assert response.parts[0].image.data == "cG5n"


def test_generate_sends_image_then_instruction() -> None:
    client, models = _client(_response([_image_part(b"out")]))
    provider = GeminiProvider(model="test-model", client=client)

    response = asyncio.run(provider.generate(GenerationRequest(image=SOURCE, instruction="paint me")))

    assert response.parts[0].image.to_bytes() == b"out"
    call = models.calls[0]
    assert call["model"] == "test-model"
    assert "config" not in call
    parts = call["contents"].parts
    assert parts[0].inline_data.data == b"source-bytes"
    assert parts[0].inline_data.mime_type == "image/jpeg"
    assert parts[1].text == "paint me"


def test_generate_requests_modalities_for_remix() -> None:
    client, models = _client(_response([_text_part("ok")]))
    provider = GeminiProvider(client=client)

    asyncio.run(provider.generate(GenerationRequest(image=SOURCE, instruction="edit"), modalities=IMAGE_AND_TEXT))

    config = models.calls[0]["config"]
    assert [str(getattr(item, "value", item)) for item in config.response_modalities] == ["IMAGE", "TEXT"]


def test_server_error_is_classified_transient() -> None:
    error = genai_errors.ServerError(500, {"error": {"code": 500, "message": "Internal error", "status": "INTERNAL"}})
    client, _ = _client(error)
    provider = GeminiProvider(client=client)

    with pytest.raises(TransientServiceError) as excinfo:
        asyncio.run(provider.generate(GenerationRequest(image=SOURCE, instruction="paint me")))

    assert excinfo.value.kind is ErrorKind.TRANSIENT
    assert excinfo.value.code == 500
    assert excinfo.value.__cause__ is error


def test_client_error_is_not_transient() -> None:
    error = genai_errors.ClientError(
        400,
        {"error": {"code": 400, "message": "Bad image", "status": "INVALID_ARGUMENT"}},
    )

    classified = classify_api_error(error)

    assert type(classified) is ServiceError
    assert classified.kind is ErrorKind.SERVICE
    assert "Bad image" in str(classified)


def test_internal_status_without_code_is_transient() -> None:
    classified = classify_api_error(SimpleNamespace(code=None, status="INTERNAL", message="try again"))

    assert isinstance(classified, TransientServiceError)


def test_missing_api_key_is_service_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    provider = GeminiProvider()

    with pytest.raises(ServiceError):
        asyncio.run(provider.generate(GenerationRequest(image=SOURCE, instruction="paint me")))

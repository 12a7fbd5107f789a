"""Gemini image provider."""

from __future__ import annotations

import os
from typing import Any, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import ServiceError, TransientServiceError
from ..images import GenerationRequest, ImagePayload
from .base import ContentPart, ServiceResponse

DEFAULT_MODEL = "gemini-2.5-flash-image-preview"

_TRANSIENT_STATUSES = {"INTERNAL", "UNAVAILABLE"}


class GeminiProvider:
    name = "gemini"

    def __init__(self, model: str | None = None, api_key: str | None = None, client: Any | None = None) -> None:
        self.model = model or DEFAULT_MODEL
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        api_key = self._api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise ServiceError("GEMINI_API_KEY or GOOGLE_API_KEY not set.")
        self._client = genai.Client(api_key=api_key)
        return self._client

    async def generate(
        self,
        request: GenerationRequest,
        *,
        modalities: Sequence[str] | None = None,
    ) -> ServiceResponse:
        client = self._get_client()
        contents = types.Content(role="user", parts=_build_message_parts(request))
        kwargs: dict[str, Any] = {"model": self.model, "contents": contents}
        config = _build_content_config(modalities)
        if config is not None:
            kwargs["config"] = config
        try:
            response = await client.aio.models.generate_content(**kwargs)
        except genai_errors.APIError as exc:
            raise classify_api_error(exc) from exc
        return to_service_response(response, model=self.model)


def _build_content_config(modalities: Sequence[str] | None) -> types.GenerateContentConfig | None:
    if not modalities:
        return None
    return types.GenerateContentConfig(
        response_modalities=[str(modality).upper() for modality in modalities],
        candidate_count=1,
    )


def _build_message_parts(request: GenerationRequest) -> list[types.Part]:
    image = request.image
    return [
        types.Part(inline_data=types.Blob(data=image.to_bytes(), mime_type=image.mime_type)),
        types.Part(text=request.instruction),
    ]


def classify_api_error(exc: Any) -> ServiceError:
    code = getattr(exc, "code", None)
    status = getattr(exc, "status", None)
    message = getattr(exc, "message", None) or str(exc)
    detail = f"Gemini request failed ({code} {status}): {message}" if code else f"Gemini request failed: {message}"
    status_name = str(status or "").upper()
    if (isinstance(code, int) and code >= 500) or status_name in _TRANSIENT_STATUSES:
        return TransientServiceError(detail, code=code, status=status)
    return ServiceError(detail, code=code, status=status)


def to_service_response(response: Any, *, model: str | None = None) -> ServiceResponse:
    candidates = getattr(response, "candidates", None) or []
    metadata: dict[str, Any] = {"model": model, "candidates": len(candidates)}
    block_reason = _block_reason(response)
    if block_reason:
        metadata["block_reason"] = block_reason

    raw_parts = None
    if candidates:
        content = getattr(candidates[0], "content", None)
        raw_parts = getattr(content, "parts", None)
        finish_reason = getattr(candidates[0], "finish_reason", None)
        if finish_reason is not None:
            metadata["finish_reason"] = str(getattr(finish_reason, "value", finish_reason))

    parts: list[ContentPart] | None = None
    if raw_parts is not None:
        parts = []
        for part in raw_parts:
            image = _extract_inline_image(part)
            if image is not None:
                parts.append(ContentPart(image=image))
                continue
            text = getattr(part, "text", None)
            if isinstance(text, str) and text:
                parts.append(ContentPart(text=text))

    text = None
    if parts:
        fragments = [part.text for part in parts if part.text]
        text = "".join(fragments) or None
    return ServiceResponse(parts=parts, text=text, metadata=metadata)


def _extract_inline_image(part: Any) -> ImagePayload | None:
    inline_data = getattr(part, "inline_data", None)
    data = getattr(inline_data, "data", None) if inline_data else None
    if data is None:
        return None
    mime_type = getattr(inline_data, "mime_type", None) or "image/png"
    if isinstance(data, (bytes, bytearray)):
        return ImagePayload.from_bytes(bytes(data), mime_type)
    # Raw REST payloads keep the data base64-encoded.
    return ImagePayload(mime_type=mime_type, data=str(data))


def _block_reason(response: Any) -> str | None:
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None) if feedback else None
    if reason is None:
        return None
    return str(getattr(reason, "value", reason))
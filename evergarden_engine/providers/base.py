"""Provider base classes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol, Sequence

from ..images import GenerationRequest, ImagePayload

IMAGE_AND_TEXT = ("IMAGE", "TEXT")


@dataclass(frozen=True)
class ContentPart:
    image: ImagePayload | None = None
    text: str | None = None


@dataclass
class ServiceResponse:
    """Raw response from a generation service.

    ``parts`` is ``None`` when the response carried no content parts at all,
    which is distinct from an empty list.
    """

    parts: list[ContentPart] | None
    text: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


class GenerationService(Protocol):
    name: str

    async def generate(
        self,
        request: GenerationRequest,
        *,
        modalities: Sequence[str] | None = None,
    ) -> ServiceResponse:
        ...


class ProviderRegistry:
    def __init__(self, providers: Iterable[GenerationService]) -> None:
        self._providers = {provider.name: provider for provider in providers}

    def get(self, name: str) -> GenerationService | None:
        return self._providers.get(name)

    def list(self) -> list[str]:
        return sorted(self._providers.keys())

"""Engine settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .generation.batch import DEFAULT_CONCURRENCY
from .generation.invoker import INITIAL_DELAY_S, MAX_ATTEMPTS
from .providers.gemini import DEFAULT_MODEL
from .utils import getenv_int


@dataclass(frozen=True)
class EngineSettings:
    provider: str = "gemini"
    image_model: str = DEFAULT_MODEL
    concurrency: int = DEFAULT_CONCURRENCY
    max_attempts: int = MAX_ATTEMPTS
    retry_delay_ms: int = int(INITIAL_DELAY_S * 1000)

    @property
    def retry_delay_s(self) -> float:
        return self.retry_delay_ms / 1000.0

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            provider=str(os.getenv("EVERGARDEN_PROVIDER") or "").strip() or "gemini",
            image_model=str(os.getenv("EVERGARDEN_IMAGE_MODEL") or "").strip() or DEFAULT_MODEL,
            concurrency=getenv_int("EVERGARDEN_CONCURRENCY", DEFAULT_CONCURRENCY),
            max_attempts=getenv_int("EVERGARDEN_MAX_ATTEMPTS", MAX_ATTEMPTS),
            retry_delay_ms=getenv_int("EVERGARDEN_RETRY_DELAY_MS", int(INITIAL_DELAY_S * 1000), minimum=0),
        )

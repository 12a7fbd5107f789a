"""Single service call with bounded exponential backoff."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence

from ..errors import TransientServiceError, describe_error
from ..images import GenerationRequest
from ..providers.base import GenerationService, ServiceResponse
from ..runs.events import EventWriter, emit

MAX_ATTEMPTS = 3
INITIAL_DELAY_S = 1.0

Sleep = Callable[[float], Awaitable[None]]


class RetryingInvoker:
    """Calls a generation service, retrying only transient server faults.

    With the defaults a failing call is attempted three times, waiting 1s after
    the first failure and 2s after the second. The last error is re-raised
    unchanged so callers can still inspect its kind.
    """

    def __init__(
        self,
        service: GenerationService,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        initial_delay_s: float = INITIAL_DELAY_S,
        sleep: Sleep | None = None,
        events: EventWriter | None = None,
    ) -> None:
        self.service = service
        self.max_attempts = max(1, int(max_attempts))
        self.initial_delay_s = max(0.0, float(initial_delay_s))
        self._sleep = sleep or asyncio.sleep
        self.events = events

    def delay_for(self, attempt: int) -> float:
        return self.initial_delay_s * (2 ** (attempt - 1))

    async def invoke(
        self,
        request: GenerationRequest,
        *,
        modalities: Sequence[str] | None = None,
    ) -> ServiceResponse:
        attempt = 1
        while True:
            try:
                return await self.service.generate(request, modalities=modalities)
            except TransientServiceError as exc:
                emit(
                    self.events,
                    "generation_attempt_failed",
                    provider=self.service.name,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=describe_error(exc),
                    error_kind=exc.kind.value,
                )
                if attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                emit(
                    self.events,
                    "generation_retry_scheduled",
                    provider=self.service.name,
                    attempt=attempt,
                    delay_s=delay,
                )
                await self._sleep(delay)
                attempt += 1

"""Bounded-concurrency scheduler over per-scene generation jobs."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Sequence

from ..errors import InvalidStateError, describe_error
from ..images import ImagePayload
from ..runs.events import EventWriter, emit
from .scenes import DEFAULT_STYLE
from .styled import StyledImageGenerator

DEFAULT_CONCURRENCY = 2


class SceneStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class SceneJobState:
    status: SceneStatus
    image: ImagePayload | None = None
    error: str | None = None

    @classmethod
    def pending(cls) -> "SceneJobState":
        return cls(SceneStatus.PENDING)

    @classmethod
    def done(cls, image: ImagePayload) -> "SceneJobState":
        return cls(SceneStatus.DONE, image=image)

    @classmethod
    def failed(cls, reason: str) -> "SceneJobState":
        return cls(SceneStatus.FAILED, error=reason)

    @property
    def is_terminal(self) -> bool:
        return self.status is not SceneStatus.PENDING


StateListener = Callable[[str, SceneJobState], None]


class BatchScheduler:
    """Runs one generation job per scene with at most ``concurrency`` in flight.

    Scene state lives in ``self.states``. Each job only ever writes its own
    scene key, and everything runs on one event loop, so the map needs no lock.
    Regenerated scenes share the same job slots as the batch workers.
    Job failures are recorded as ``FAILED`` states and never raised.
    """

    def __init__(
        self,
        generator: StyledImageGenerator,
        *,
        prompt_for: Callable[[str], str] | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        events: EventWriter | None = None,
        listener: StateListener | None = None,
    ) -> None:
        self.generator = generator
        self.prompt_for = prompt_for or DEFAULT_STYLE.primary_prompt
        self.concurrency = max(1, int(concurrency))
        self.events = events
        self.listener = listener
        self.states: dict[str, SceneJobState] = {}
        self.in_flight = 0
        self.peak_in_flight = 0
        self._image: ImagePayload | None = None
        self._slots: asyncio.Semaphore | None = None
        self._slots_loop: asyncio.AbstractEventLoop | None = None

    def _job_slots(self) -> asyncio.Semaphore:
        # Shared by batch workers and regenerate; rebuilt per event loop.
        loop = asyncio.get_running_loop()
        if self._slots is None or self._slots_loop is not loop:
            self._slots = asyncio.Semaphore(self.concurrency)
            self._slots_loop = loop
        return self._slots

    def snapshot(self) -> dict[str, SceneJobState]:
        return dict(self.states)

    def _set_state(self, scene: str, state: SceneJobState) -> None:
        self.states[scene] = state
        if self.listener is not None:
            self.listener(scene, state)

    async def run_batch(self, image: ImagePayload | str, scenes: Sequence[str]) -> dict[str, SceneJobState]:
        if isinstance(image, str):
            image = ImagePayload.from_data_url(image)
        self._image = image
        ordered = list(dict.fromkeys(scenes))
        self.states = {}
        for scene in ordered:
            self._set_state(scene, SceneJobState.pending())

        queue: asyncio.Queue[str] = asyncio.Queue()
        for scene in ordered:
            queue.put_nowait(scene)

        emit(self.events, "batch_started", scenes=ordered, concurrency=self.concurrency)
        started = time.monotonic()
        workers = [self._worker(queue, image, worker_id) for worker_id in range(self.concurrency)]
        await asyncio.gather(*workers)
        done = sum(1 for state in self.states.values() if state.status is SceneStatus.DONE)
        emit(
            self.events,
            "batch_finished",
            done=done,
            failed=len(self.states) - done,
            elapsed_s=round(time.monotonic() - started, 3),
        )
        return self.snapshot()

    async def _worker(self, queue: asyncio.Queue[str], image: ImagePayload, worker_id: int) -> None:
        while True:
            try:
                scene = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            await self._run_job(image, scene, worker_id=worker_id)
            queue.task_done()

    async def _run_job(self, image: ImagePayload, scene: str, *, worker_id: int | None = None) -> SceneJobState:
        async with self._job_slots():
            emit(self.events, "scene_started", scene=scene, worker=worker_id)
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            started = time.monotonic()
            try:
                result = await self.generator.generate(image, self.prompt_for(scene), scene)
            except Exception as exc:
                state = SceneJobState.failed(describe_error(exc))
                emit(self.events, "scene_failed", scene=scene, error=state.error)
            else:
                state = SceneJobState.done(result)
                emit(
                    self.events,
                    "scene_completed",
                    scene=scene,
                    mime_type=result.mime_type,
                    elapsed_s=round(time.monotonic() - started, 3),
                )
            finally:
                self.in_flight -= 1
        self._set_state(scene, state)
        return state

    async def regenerate(self, scene: str) -> SceneJobState | None:
        """Re-run a single scene. Returns ``None`` if it is already pending."""
        if self._image is None:
            raise InvalidStateError("No source image; run a batch before regenerating a scene.")
        current = self.states.get(scene)
        if current is None:
            raise InvalidStateError(f"Unknown scene: {scene}")
        if current.status is SceneStatus.PENDING:
            emit(self.events, "scene_regenerate_skipped", scene=scene)
            return None
        self._set_state(scene, SceneJobState.pending())
        return await self._run_job(self._image, scene)

    def accept(self, scene: str, image: ImagePayload) -> SceneJobState:
        current = self.states.get(scene)
        if current is None:
            raise InvalidStateError(f"Unknown scene: {scene}")
        if current.status is SceneStatus.PENDING:
            raise InvalidStateError(f"Scene is still generating: {scene}")
        state = SceneJobState.done(image)
        self._set_state(scene, state)
        return state

    def restore(self, images: Mapping[str, ImagePayload]) -> dict[str, SceneJobState]:
        """Seed finished scenes from a previous run so remixes can be accepted."""
        for scene, image in images.items():
            self._set_state(scene, SceneJobState.done(image))
        return self.snapshot()

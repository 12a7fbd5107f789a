"""Core Evergarden engine orchestration."""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path
from typing import Awaitable, Callable

from .chat.remix import RemixLoop, RemixSession
from .config import EngineSettings
from .errors import InvalidStateError
from .generation.batch import BatchScheduler, SceneJobState, SceneStatus, StateListener
from .generation.invoker import RetryingInvoker
from .generation.scenes import DEFAULT_STYLE, StylePreset
from .generation.styled import StyledImageGenerator
from .images import ImagePayload
from .providers import default_registry
from .providers.base import GenerationService, ProviderRegistry
from .runs.events import EventWriter
from .runs.export import export_scene_images, load_scene_images
from .runs.summary import RunSummary, write_summary
from .utils import now_utc_iso


class EvergardenEngine:
    def __init__(
        self,
        run_dir: Path,
        events_path: Path,
        settings: EngineSettings | None = None,
        provider_registry: ProviderRegistry | None = None,
        style: StylePreset = DEFAULT_STYLE,
        listener: StateListener | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.run_dir = run_dir
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.run_id = run_dir.name or str(uuid.uuid4())
        self.events = EventWriter(events_path, self.run_id)
        self.settings = settings or EngineSettings.from_env()
        self.style = style
        self.providers = provider_registry or default_registry(self.settings.image_model)
        self.service = self._resolve_service(self.settings.provider)
        self.invoker = RetryingInvoker(
            self.service,
            max_attempts=self.settings.max_attempts,
            initial_delay_s=self.settings.retry_delay_s,
            sleep=sleep,
            events=self.events,
        )
        self.generator = StyledImageGenerator(
            self.invoker,
            fallback_prompt=style.fallback_prompt,
            events=self.events,
        )
        self.scheduler = BatchScheduler(
            self.generator,
            prompt_for=style.primary_prompt,
            concurrency=self.settings.concurrency,
            events=self.events,
            listener=listener,
        )
        self.remix_loop = RemixLoop(self.service, events=self.events)
        self.summary_path = run_dir / "summary.json"
        self.remixes_saved = 0
        self.started_at = now_utc_iso()
        self.events.emit(
            "run_started",
            out_dir=str(self.run_dir),
            provider=self.service.name,
            style=style.name,
        )

    def _resolve_service(self, name: str) -> GenerationService:
        service = self.providers.get(name)
        if service is None:
            available = ", ".join(self.providers.list()) or "none"
            raise InvalidStateError(f"No provider available for {name} (available: {available})")
        return service

    @property
    def states(self) -> dict[str, SceneJobState]:
        return self.scheduler.snapshot()

    async def generate_all(self, image: ImagePayload | str) -> dict[str, SceneJobState]:
        if isinstance(image, str):
            image = ImagePayload.from_data_url(image)
        return await self.scheduler.run_batch(image, self.style.scenes)

    async def regenerate(self, scene: str) -> SceneJobState | None:
        return await self.scheduler.regenerate(scene)

    async def regenerate_failed(self) -> dict[str, SceneJobState]:
        """Re-run every failed scene, returning the new state per scene."""
        failed = [scene for scene, state in self.scheduler.states.items() if state.status is SceneStatus.FAILED]
        states = await asyncio.gather(*(self.regenerate(scene) for scene in failed))
        return {scene: state for scene, state in zip(failed, states) if state is not None}

    def load_run(self, run_dir: Path | None = None) -> dict[str, SceneJobState]:
        """Seed scene states from images exported by an earlier run."""
        images = load_scene_images(run_dir or self.run_dir, self.style)
        self.events.emit("run_loaded", scenes=list(images))
        return self.scheduler.restore(images)

    def open_remix(self, scene: str) -> RemixSession:
        state = self.scheduler.states.get(scene)
        if state is None or state.status is not SceneStatus.DONE or state.image is None:
            raise InvalidStateError(f"Scene has no finished image to remix: {scene}")
        self.events.emit("remix_opened", scene=scene)
        return RemixSession(scene=scene, current_image=state.image)

    def open_remix_from_image(self, image: ImagePayload | str, scene: str | None = None) -> RemixSession:
        if isinstance(image, str):
            image = ImagePayload.from_data_url(image)
        self.events.emit("remix_opened", scene=scene)
        return RemixSession(scene=scene, current_image=image)

    async def remix(self, session: RemixSession, instruction: str) -> RemixSession:
        return await self.remix_loop.send_turn(session, instruction)

    def save_remix(self, session: RemixSession) -> ImagePayload:
        scene, image = session.save()
        if scene is not None and scene in self.scheduler.states:
            self.scheduler.accept(scene, image)
        self.remixes_saved += 1
        self.events.emit("remix_saved", scene=scene)
        return image

    def export(self, out_dir: Path | None = None) -> dict[str, Path]:
        return export_scene_images(self.scheduler.states, out_dir or self.run_dir, self.style)

    def finish(self, exported: dict[str, Path] | None = None) -> RunSummary:
        scenes: dict[str, dict[str, object]] = {}
        for scene, state in self.scheduler.states.items():
            entry: dict[str, object] = {"status": state.status.value}
            if state.error:
                entry["error"] = state.error
            if exported and scene in exported:
                entry["path"] = str(exported[scene])
            scenes[scene] = entry
        summary = RunSummary(
            run_id=self.run_id,
            started_at=self.started_at,
            finished_at=now_utc_iso(),
            scenes=scenes,
            remixes_saved=self.remixes_saved,
        )
        write_summary(self.summary_path, summary)
        self.events.emit("run_finished", summary_path=str(self.summary_path))
        return summary

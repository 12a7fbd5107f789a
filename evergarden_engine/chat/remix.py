"""Conversational remix of a single generated image."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..errors import InvalidStateError, describe_error
from ..images import GenerationRequest, ImagePayload
from ..providers.base import IMAGE_AND_TEXT, GenerationService
from ..runs.events import EventWriter, emit
from ..generation.interpret import interpret_multipart

REMIX_ERROR_PREFIX = "Sorry, I couldn't remix that."


class TurnRole(str, Enum):
    USER = "user"
    BOT = "bot"


@dataclass(frozen=True)
class ChatTurn:
    role: TurnRole
    text: str | None = None
    image: ImagePayload | None = None


@dataclass
class RemixSession:
    scene: str | None
    current_image: ImagePayload | None
    history: list[ChatTurn] = field(default_factory=list)
    closed: bool = False

    def save(self) -> tuple[str | None, ImagePayload]:
        """Close the session and hand back the accepted image."""
        if self.closed:
            raise InvalidStateError("Remix session is already closed.")
        if self.current_image is None:
            raise InvalidStateError("Remix session has no image to save.")
        image = self.current_image
        self.history.clear()
        self.closed = True
        return self.scene, image

    def discard(self) -> None:
        self.history.clear()
        self.current_image = None
        self.closed = True


class RemixLoop:
    """Sends one remix turn at a time; a single attempt per turn, no retries."""

    def __init__(self, service: GenerationService, *, events: EventWriter | None = None) -> None:
        self.service = service
        self.events = events

    async def send_turn(self, session: RemixSession, instruction: str) -> RemixSession:
        if session.closed:
            raise InvalidStateError("Remix session is closed.")
        if session.current_image is None:
            raise InvalidStateError("Remix session has no current image.")
        if not instruction or not instruction.strip():
            return session

        request = GenerationRequest(image=session.current_image, instruction=instruction)
        try:
            response = await self.service.generate(request, modalities=IMAGE_AND_TEXT)
            result = interpret_multipart(response)
        except Exception as exc:
            message = f"{REMIX_ERROR_PREFIX} {describe_error(exc)}"
            session.history.append(ChatTurn(TurnRole.USER, text=instruction))
            session.history.append(ChatTurn(TurnRole.BOT, text=message))
            emit(
                self.events,
                "remix_turn_failed",
                scene=session.scene,
                turn=len(session.history) // 2,
                error=describe_error(exc),
                error_kind=getattr(getattr(exc, "kind", None), "value", None),
            )
            return session

        session.history.append(ChatTurn(TurnRole.USER, text=instruction))
        session.history.append(ChatTurn(TurnRole.BOT, text=result.text, image=result.image))
        if result.has_image:
            session.current_image = result.image
        emit(
            self.events,
            "remix_turn",
            scene=session.scene,
            turn=len(session.history) // 2,
            result_kind=result.kind.value,
            image_replaced=result.has_image,
        )
        return session
